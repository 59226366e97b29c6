import re
import threading

import pytest

from harvest import (
    HarvestCoordinator,
    InsufficientSourcesError,
    RoundDescriptor,
    VettedSourceSet,
    default_rounds,
    requires_rigorous_sourcing,
    seed_references,
    synonym_queries,
    topical_queries,
)
from models import CandidateSource
from source_vetting import SourceVetter

ALL_ROUNDS = ["R0_seeds", "R1_topical", "R2_scholar", "R3_extension", "R4_synonyms"]


class StubSearch:
    def __init__(self, responder=None):
        self.responder = responder or (lambda query: [])
        self.queries = []
        self._lock = threading.Lock()

    def search(self, query):
        with self._lock:
            self.queries.append(query)
        return self.responder(query)


def _edu_results(prefix, count=3):
    def responder(query):
        slug = re.sub(r"[^a-z0-9]+", "-", query.lower()).strip("-")
        return [
            CandidateSource(url=f"https://{prefix}{idx}.edu/{slug}", title=query, snippet="")
            for idx in range(count)
        ]

    return responder


def _first_pass(sources, vetter, count=3):
    for idx in range(count):
        sources.consider(CandidateSource(url=f"https://bio{idx}.edu/ants", title="Ant biology"), vetter)


def test_empty_search_runs_every_round_once_then_fails():
    search = StubSearch()
    coordinator = HarvestCoordinator(search, SourceVetter(), min_required=10)
    with pytest.raises(InsufficientSourcesError) as excinfo:
        coordinator.harvest("soil erosion report", VettedSourceSet())
    err = excinfo.value
    assert err.rounds_completed == ALL_ROUNDS
    assert err.achieved == 0
    assert err.required == 10
    for tag in ALL_ROUNDS:
        assert tag in str(err)
    assert "0/10" in str(err)


def test_ant_report_scenario_fails_closed_with_all_rounds():
    vetter = SourceVetter()
    sources = VettedSourceSet()
    _first_pass(sources, vetter)
    coordinator = HarvestCoordinator(StubSearch(), vetter, min_required=10)
    with pytest.raises(InsufficientSourcesError) as excinfo:
        coordinator.harvest("ant life cycle report", sources)
    err = excinfo.value
    # three first-pass URLs plus three curated ant references
    assert err.achieved == 6
    assert err.required == 10
    assert err.rounds_completed == ALL_ROUNDS
    assert err.to_dict() == {"achieved": 6, "required": 10, "rounds_completed": ALL_ROUNDS}


def test_ant_report_scenario_succeeds_and_stops_early():
    vetter = SourceVetter()
    sources = VettedSourceSet()
    _first_pass(sources, vetter)
    search = StubSearch(_edu_results("lab"))
    coordinator = HarvestCoordinator(search, vetter, min_required=10)
    result = coordinator.harvest("ant life cycle report", sources)
    assert result.sufficient
    assert result.achieved >= 10
    assert result.rounds_completed == ["R0_seeds", "R1_topical"]
    seeds, topical = result.rounds
    assert seeds.added_count == 3
    assert seeds.cumulative_vetted_count == 6
    assert topical.queries == topical_queries("ant life cycle report")
    assert topical.cumulative_vetted_count == result.achieved


def test_no_rounds_when_floor_already_met():
    vetter = SourceVetter()
    sources = VettedSourceSet()
    _first_pass(sources, vetter, count=10)
    search = StubSearch()
    result = HarvestCoordinator(search, vetter, min_required=10).harvest("ant report", sources)
    assert result.rounds == []
    assert search.queries == []


def test_non_rigorous_task_never_raises_or_harvests():
    search = StubSearch()
    result = HarvestCoordinator(search, SourceVetter(), min_required=10).harvest(
        "ant life cycle for kids", VettedSourceSet()
    )
    assert result.rigorous is False
    assert result.sufficient is False
    assert result.rounds == []
    assert search.queries == []


def test_seen_urls_are_vetted_once():
    search = StubSearch(lambda query: [CandidateSource(url="https://same.edu/page?utm_source=x#top")])
    sources = VettedSourceSet()
    with pytest.raises(InsufficientSourcesError) as excinfo:
        HarvestCoordinator(search, SourceVetter(), min_required=5).harvest("soil erosion report", sources)
    assert excinfo.value.achieved == 1
    assert sources.vetted == ["https://same.edu/page"]


def test_rejected_urls_are_not_revisited():
    vetter = SourceVetter()
    sources = VettedSourceSet()
    bad = CandidateSource(url="https://www.chegg.com/ants")
    assert sources.consider(bad, vetter) is False
    assert sources.consider(bad, vetter) is False
    assert len(sources.decisions) == 1


def test_search_errors_degrade_to_empty():
    def responder(query):
        raise TimeoutError("slow upstream")

    with pytest.raises(InsufficientSourcesError) as excinfo:
        HarvestCoordinator(StubSearch(responder), SourceVetter(), min_required=2).harvest(
            "soil erosion analysis", VettedSourceSet()
        )
    assert excinfo.value.rounds_completed == ALL_ROUNDS


def test_trusted_round_skips_vetting_but_dedupes():
    seeds = [
        CandidateSource(url="https://example.com/curated"),
        CandidateSource(url="https://example.com/curated#dup"),
    ]
    rounds = [RoundDescriptor("custom", "curated", seeds=lambda prompt: seeds, trusted=True)]
    sources = VettedSourceSet()
    result = HarvestCoordinator(StubSearch(), SourceVetter(), min_required=1, rounds=rounds).harvest(
        "custom report", sources
    )
    assert result.rounds_completed == ["custom"]
    assert sources.vetted == ["https://example.com/curated"]


def test_round_results_fold_back_in_query_order():
    sources = VettedSourceSet()
    rounds = [RoundDescriptor("R1_topical", "topical", queries=lambda prompt: ["q1", "q2", "q3"])]

    def responder(query):
        return [CandidateSource(url=f"https://{query}.edu/page")]

    with pytest.raises(InsufficientSourcesError):
        HarvestCoordinator(StubSearch(responder), SourceVetter(), min_required=10, rounds=rounds).harvest(
            "topic report", sources
        )
    assert sources.vetted == ["https://q1.edu/page", "https://q2.edu/page", "https://q3.edu/page"]


def test_default_round_order():
    assert [descriptor.tag for descriptor in default_rounds()] == ALL_ROUNDS


@pytest.mark.parametrize(
    "prompt,expected",
    [
        ("ant life cycle report", True),
        ("Market analysis of honey", True),
        ("research on bees", True),
        ("a study of termites", True),
        ("fun ant facts", False),
        ("researcher biographies", False),
    ],
)
def test_requires_rigorous_sourcing(prompt, expected):
    assert requires_rigorous_sourcing(prompt) is expected


def test_seed_references_match_whole_words():
    assert len(seed_references("ant life cycle report")) == 3
    assert len(seed_references("Insect metamorphosis study")) == 3
    assert seed_references("important plant report") == []


def test_topical_queries_use_topic_pack_or_generic_axes():
    ant = topical_queries("ant life cycle report")
    assert "ant lifecycle metamorphosis larval pupal stages" in ant
    generic = topical_queries("soil erosion")
    assert generic[0] == "soil erosion site:edu OR site:gov"


def test_synonym_queries_substitute_and_extend():
    queries = synonym_queries("ant life cycle report")
    assert "ant development stages report" in queries
    assert "ant ontogeny metamorphosis report" in queries
    assert "ant life cycle report brood development caste differentiation" in queries
    assert synonym_queries("soil erosion") == ["soil erosion overview", "soil erosion key concepts"]
