import math

import pytest

from chart_gate import (
    ChartGate,
    ChartState,
    admit,
    chart_signature,
    classify_chart_input,
    coerce_kind,
    derive_fallback_spec,
    has_usable_data,
    is_meaningful,
    keyword_frequency_spec,
    normalize_chart_spec,
    placeholder_spec,
    two_category_imbalance_pct,
)
from content_normalizer import ContentNormalizer
from models import ChartSpec


def _spec(labels, values, kind="doughnut"):
    return ChartSpec(labels=list(labels), values=list(values), kind=kind)


def _slides(raws, min_slides=None):
    raws = list(raws)
    return ContentNormalizer().normalize_outline(raws, min_slides=min_slides or len(raws))


# ----------------------------------------------------------------------
# Meaningfulness and admission
# ----------------------------------------------------------------------
def test_two_category_imbalance():
    assert two_category_imbalance_pct(_spec("AB", [60, 40])) == pytest.approx(20.0)
    assert two_category_imbalance_pct(_spec("AB", [51, 49])) == pytest.approx(2.0)
    assert two_category_imbalance_pct(_spec("ABC", [1, 1, 1])) == 0.0


@pytest.mark.parametrize(
    "values,allow,expected",
    [
        ([51, 49], True, False),
        ([60, 40], True, True),
        ([56, 44], True, True),
        ([60, 40], False, False),
    ],
)
def test_two_category_meaningful(values, allow, expected):
    assert is_meaningful(_spec("AB", values), allow_two_category=allow, min_imbalance_pct=12) is expected


def test_three_categories_always_meaningful():
    assert is_meaningful(_spec("ABC", [1, 1, 1]), allow_two_category=False)


def test_usable_data_needs_a_positive_value():
    assert not has_usable_data(_spec("AB", [0, 0]))
    assert not has_usable_data(placeholder_spec())
    assert has_usable_data(_spec("AB", [0, 3]))


def test_admit_caps_charts_per_document():
    state = ChartState()
    results = [admit(_spec("ABC", [n + 1, 2, 3]), state, max_charts=4) for n in range(6)]
    assert results == [True, True, True, True, False, False]
    assert state.admitted_count == 4


def test_admit_only_one_two_category_chart():
    state = ChartState()
    assert admit(_spec("AB", [60, 40]), state)
    assert not admit(_spec(["Yes", "No"], [70, 30]), state)
    assert admit(_spec("ABC", [5, 3, 2]), state)
    assert state.has_two_category_chart


def test_admit_rejects_numeric_duplicates():
    state = ChartState()
    assert admit(_spec(["Workers", "Queens", "Males"], [80, 5, 15]), state)
    assert not admit(_spec(["males", "workers", "queens"], [150, 800, 50]), state)
    assert state.admitted_count == 1


def test_admit_rejects_placeholder_and_flat_split():
    state = ChartState()
    assert not admit(placeholder_spec(), state)
    assert not admit(_spec("AB", [50, 50]), state)
    assert state.admitted_count == 0
    assert not state.has_two_category_chart


def test_signature_ignores_order_case_and_scale():
    first = _spec(["Workers", "Queens", "Males"], [80, 5, 15])
    second = _spec(["queens", "males", "workers"], [10, 30, 160])
    assert chart_signature(first) == chart_signature(second)
    assert chart_signature(first) == "males|150;queens|50;workers|800"
    assert chart_signature(first) != chart_signature(_spec(["Workers", "Queens", "Males"], [70, 15, 15]))


# ----------------------------------------------------------------------
# Input normalization
# ----------------------------------------------------------------------
@pytest.mark.parametrize(
    "raw,variant",
    [
        (_spec("AB", [1, 2]), "canonical"),
        ({"data": {"labels": ["a"], "datasets": []}}, "dataset"),
        ({"labels": ["a"], "datasets": []}, "dataset"),
        ({"labels": ["a"], "values": [1]}, "columns"),
        ([("a", 1)], "rows"),
        ({"data": [{"label": "a", "value": 1}]}, "rows"),
        ({"data": {"a": 1}}, "keyed"),
        ({"a": 1, "b": 2}, "keyed"),
        ({"title": "nothing"}, "unknown"),
        ("garbage", "unknown"),
    ],
)
def test_classify_chart_input(raw, variant):
    assert classify_chart_input(raw) == variant


def test_normalize_dataset_input():
    spec = normalize_chart_spec(
        {
            "type": "pie",
            "title": "Castes",
            "data": {"labels": ["Workers", "Soldiers", "Queens"], "datasets": [{"data": [80, "15", 5]}]},
        }
    )
    assert spec.kind == "pie"
    assert spec.title == "Castes"
    assert spec.labels == ["Workers", "Soldiers", "Queens"]
    assert spec.values == [80.0, 15.0, 5.0]
    assert spec.signature == chart_signature(spec)
    assert not spec.placeholder


@pytest.mark.parametrize(
    "raw",
    [
        {"labels": ["Egg", "Larva", "Pupa"], "values": [7, 14, 12]},
        [{"label": "Egg", "value": 7}, {"name": "Larva", "y": 14}, {"label": "Pupa", "count": 12}],
        [("Egg", 7), ("Larva", 14), ("Pupa", 12)],
        {"data": {"Egg": 7, "Larva": 14, "Pupa": 12}},
        {"Egg": 7, "Larva": 14, "Pupa": 12},
    ],
)
def test_normalize_equivalent_shapes(raw):
    spec = normalize_chart_spec(raw)
    assert spec.labels == ["Egg", "Larva", "Pupa"]
    assert spec.values == [7.0, 14.0, 12.0]
    assert spec.kind == "doughnut"


def test_normalize_skips_bad_values_and_duplicate_labels():
    spec = normalize_chart_spec(
        {"labels": ["A", "a", "B", "C", None], "values": [1, 2, math.nan, "3%", 4]}
    )
    assert spec.labels == ["A", "C"]
    assert spec.values == [1.0, 3.0]


def test_normalize_caps_categories():
    spec = normalize_chart_spec({"labels": [f"L{n}" for n in range(20)], "values": list(range(1, 21))})
    assert len(spec.labels) == 12


@pytest.mark.parametrize(
    "raw",
    [
        None,
        "garbage",
        {"labels": ["only"], "values": [1]},
        {"labels": 5, "values": [1]},
        {"labels": ["a", "b"], "datasets": "bad"},
        {"labels": ["a", "b"], "datasets": {"data": [1, 2]}},
        {"title": "no data"},
    ],
)
def test_normalize_malformed_returns_placeholder(raw):
    spec = normalize_chart_spec(raw, title="Fallback")
    assert spec.placeholder
    assert spec.labels == ["A", "B"]
    assert spec.values == [0.0, 0.0]
    assert spec.title == "Fallback"


MISTYPED_NESTED_CHARTS = [
    {"data": {"labels": "ab", "datasets": {"x": 1}}},
    {"data": {"labels": ["a", "b"], "datasets": [{"data": 5}]}},
    {"data": {"labels": {"a": 1}, "datasets": [{"data": [1, 2]}]}},
    {"labels": ["a", "b"], "datasets": [None, {"data": [1, 2]}]},
    {"labels": ["a", "b"], "datasets": [{"data": {"a": 1, "b": 2}}]},
    {"labels": {"a": 1}, "values": [1, 2]},
    {"labels": ["a", "b"], "values": 7},
    {"data": [5, None, {"label": {"x": 1}, "value": 2}]},
    {"data": 5},
    {"datasets": [None]},
]


@pytest.mark.parametrize("raw", MISTYPED_NESTED_CHARTS)
def test_normalize_mistyped_nested_fields_returns_placeholder(raw):
    spec = normalize_chart_spec(raw, title="Nested")
    assert spec.placeholder
    assert spec.title == "Nested"


@pytest.mark.parametrize("raw", MISTYPED_NESTED_CHARTS)
def test_gate_survives_mistyped_nested_chart_spec(raw):
    slides = _slides(
        [
            {"title": "Castes", "body": "Colonies have castes.", "chartSpec": raw},
            {"title": "Habitat", "body": "Ants live everywhere."},
        ]
    )
    charts = ChartGate().gate_document(slides)
    assert all(chart.synthetic for chart in charts)


@pytest.mark.parametrize(
    "kind,expected",
    [("Donut", "doughnut"), ("horizontalBar", "bar"), ("line", "bar"), ("polarArea", "pie"), (None, "doughnut"), ("weird", "doughnut")],
)
def test_coerce_kind(kind, expected):
    assert coerce_kind(kind) == expected


# ----------------------------------------------------------------------
# Document gating
# ----------------------------------------------------------------------
def test_gate_admits_explicit_slide_chart():
    slides = _slides(
        [
            {
                "title": "Castes",
                "body": "Colonies have castes.",
                "chartSpec": {"type": "bar", "labels": ["Workers", "Soldiers", "Queens"], "values": [80, 15, 5]},
            },
            {"title": "Habitat", "body": "Ants live everywhere."},
        ]
    )
    charts = ChartGate().gate_document(slides)
    assert len(charts) == 1
    assert charts[0].slide_index == 0
    assert not charts[0].synthetic
    assert charts[0].spec.kind == "bar"
    assert charts[0].spec.title == "Castes"
    assert slides[0].chart_spec == charts[0].spec
    assert slides[1].chart_spec is None


def test_gate_caps_injected_candidates():
    slides = _slides([{"title": f"S{n}"} for n in range(6)])
    candidates = {n: {"labels": ["A", "B", "C"], "values": [n + 1, 2, 3]} for n in range(6)}
    charts = ChartGate(max_charts=4).gate_document(slides, candidates=candidates)
    assert [chart.slide_index for chart in charts] == [0, 1, 2, 3]
    assert slides[4].chart_spec is None and slides[5].chart_spec is None


def test_gate_mines_slide_text():
    slides = _slides([{"title": "Castes", "body": "Workers: 80%, soldiers: 15%, queens: 5%."}])
    charts = ChartGate().gate_document(slides)
    assert len(charts) == 1
    assert charts[0].spec.labels == ["Workers", "soldiers", "queens"]
    assert charts[0].spec.title == "Castes"


def test_gate_uses_remote_rows_when_spec_has_only_a_url():
    requested = []

    def fake_rows(url):
        requested.append(url)
        return [{"label": "Seeds", "value": 40}, {"label": "Insects", "value": 35}, {"label": "Nectar", "value": 25}]

    slides = _slides(
        [{"title": "Diet", "body": "Foragers bring food.", "chartSpec": {"sourceUrl": "https://example.org/diet.csv"}}]
    )
    charts = ChartGate(fetch_rows=fake_rows).gate_document(slides)
    assert requested == ["https://example.org/diet.csv"]
    assert charts[0].spec.labels == ["Seeds", "Insects", "Nectar"]
    assert charts[0].spec.title == "Diet"


def test_gate_ignores_image_chart_urls():
    def fail_rows(url):
        raise AssertionError("image URLs are never fetched")

    slides = _slides([{"title": "Photo", "chart": {"url": "https://example.org/chart.png"}}])
    charts = ChartGate(fetch_rows=fail_rows).gate_document(slides)
    assert slides[0].chart_spec is None
    assert all(chart.synthetic for chart in charts)


def test_gate_aggregates_pairs_across_slides():
    slides = _slides([{"title": "Workers", "body": "Workers: 60%"}, {"title": "Queens", "body": "Queens: 15%"}], 10)
    charts = ChartGate().gate_document(slides)
    assert len(charts) == 1
    chart = charts[0]
    assert chart.synthetic
    assert chart.slide_index is None
    assert chart.spec.title == "Distribution"
    assert chart.spec.labels == ["Workers", "Queens"]
    assert all(slide.chart_spec is None for slide in slides)


def test_gate_flat_synthetic_split_is_rejected_without_keyword_fallback():
    slides = _slides([{"title": "Workers", "body": "Workers: 50%"}, {"title": "Queens", "body": "Queens: 50%"}], 10)
    assert ChartGate().gate_document(slides) == []


def test_gate_keyword_fallback_for_prose_documents():
    slides = _slides(
        [
            {"title": "Colony founding", "bullets": ["Queens found colonies", "Workers forage", "Workers nurse"]},
            {"title": "Colony growth", "bullets": ["Workers multiply", "Queens lay eggs", "Foragers explore"]},
        ]
    )
    charts = ChartGate().gate_document(slides)
    assert len(charts) == 1
    assert charts[0].synthetic
    assert charts[0].spec.title == "Top Topics"
    assert charts[0].spec.labels[0] == "workers"


def test_keyword_frequency_needs_three_words():
    slides = _slides([{"title": "Ants", "bullets": ["ants", "ants ants", "ants ants ants"]}])
    assert keyword_frequency_spec(slides) is None


def test_derive_fallback_prefers_pairs():
    slides = _slides([{"title": "A", "body": "Egg: 7; Larva: 14; Pupa: 12"}])
    spec = derive_fallback_spec(slides)
    assert spec.title == "Distribution"
    assert spec.labels == ["Egg", "Larva", "Pupa"]
