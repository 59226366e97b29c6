"""
Chart admissibility gating.

Every chart-like input is resolved into one canonical categorical spec, then
admitted per document against a small budget: usable data, a meaningful split,
a chart cap, numeric de-duplication and at most one two-category chart. When a
document ends with nothing admitted, one synthetic candidate is derived from
the slide text and put through the same gate.
"""

from __future__ import annotations

import logging
import math
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from chart_data import resolve_data_url
from config import DeckConfig
from models import AdmittedChart, ChartSpec, NumericPair, SlideUnit
from quant_extraction import aggregate_pairs, extract_from_slide, shorten_label

logger = logging.getLogger(__name__)

RowFetcher = Callable[[str], List[Dict[str, Any]]]

KIND_ALIASES = {
    "doughnut": "doughnut",
    "donut": "doughnut",
    "pie": "pie",
    "polararea": "pie",
    "bar": "bar",
    "column": "bar",
    "horizontalbar": "bar",
    "histogram": "bar",
    "line": "bar",
    "area": "bar",
    "scatter": "bar",
    "radar": "bar",
}
_WORD = re.compile(r"[a-z][a-z0-9-]{2,}")


def coerce_kind(kind: Any) -> str:
    key = re.sub(r"[^a-z]", "", str(kind or "").lower())
    return KIND_ALIASES.get(key, "doughnut")


def classify_chart_input(raw: Any) -> str:
    """Name the input variant: canonical, dataset, columns, keyed, rows or unknown."""
    if isinstance(raw, ChartSpec):
        return "canonical"
    if isinstance(raw, (list, tuple)):
        return "rows"
    if not isinstance(raw, dict):
        return "unknown"
    data = raw.get("data")
    if isinstance(data, dict) and "labels" in data and "datasets" in data:
        return "dataset"
    if "labels" in raw and "datasets" in raw:
        return "dataset"
    if "labels" in raw and "values" in raw:
        return "columns"
    if isinstance(data, (list, tuple)):
        return "rows"
    if isinstance(data, dict):
        return "keyed"
    if any(_number(value) is not None for value in raw.values()):
        return "keyed"
    return "unknown"


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.replace(",", "").replace("%", "").replace("$", "").strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _row_pair(row: Any) -> Tuple[Any, Any]:
    if isinstance(row, NumericPair):
        return row.label, row.value
    if isinstance(row, dict):
        label = row.get("label", row.get("name"))
        value = next((row[k] for k in ("value", "y", "count", "v") if k in row), None)
        return label, value
    if isinstance(row, (list, tuple)) and len(row) >= 2:
        return row[0], row[1]
    return None, None


def _sequence(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def _raw_series(raw: Any, variant: str) -> Tuple[List[Any], List[Any]]:
    if variant == "canonical":
        return list(raw.labels), list(raw.values)
    if variant == "dataset":
        data = raw.get("data") if isinstance(raw.get("data"), dict) else raw
        datasets = _sequence(data.get("datasets"))
        first = datasets[0] if datasets and isinstance(datasets[0], dict) else {}
        return _sequence(data.get("labels")), _sequence(first.get("data"))
    if variant == "columns":
        return _sequence(raw.get("labels")), _sequence(raw.get("values"))
    if variant == "rows":
        rows = raw if isinstance(raw, (list, tuple)) else _sequence(raw.get("data"))
        pairs = [_row_pair(row) for row in rows]
        return [p[0] for p in pairs], [p[1] for p in pairs]
    if variant == "keyed":
        mapping = raw.get("data") if isinstance(raw.get("data"), dict) else raw
        return list(mapping.keys()), list(mapping.values())
    return [], []


def _meta(raw: Any, key: str) -> Any:
    if isinstance(raw, ChartSpec):
        return getattr(raw, key, None)
    if isinstance(raw, dict):
        return raw.get(key)
    return None


def placeholder_spec(title: str = "", kind: str = "doughnut") -> ChartSpec:
    return ChartSpec(labels=["A", "B"], values=[0.0, 0.0], title=title, kind=kind, placeholder=True)


def normalize_chart_spec(raw: Any, title: Optional[str] = None) -> ChartSpec:
    """Coerce any supported chart shape into a canonical spec; never raises."""
    kind = coerce_kind(_meta(raw, "kind") or _meta(raw, "type"))
    resolved_title = title or str(_meta(raw, "title") or "")
    variant = classify_chart_input(raw)
    try:
        raw_labels, raw_values = _raw_series(raw, variant)
        labels: List[str] = []
        values: List[float] = []
        seen: set[str] = set()
        for label, value in zip(raw_labels, raw_values):
            number = _number(value)
            if label is None or number is None:
                continue
            short = shorten_label(label)
            if short.lower() in seen:
                continue
            seen.add(short.lower())
            labels.append(short)
            values.append(number)
        labels = labels[: DeckConfig.MAX_TABULAR_ROWS]
        values = values[: DeckConfig.MAX_TABULAR_ROWS]
        if len(labels) < 2:
            logger.debug("normalize_chart_spec: %s input has <2 categories", variant)
            return placeholder_spec(resolved_title, kind)
        spec = ChartSpec(labels=labels, values=values, title=resolved_title, kind=kind)
    except (TypeError, ValueError, AttributeError, KeyError, IndexError) as exc:
        logger.debug("normalize_chart_spec: malformed %s input (%s)", variant, exc)
        return placeholder_spec(resolved_title, kind)
    return spec.model_copy(update={"signature": chart_signature(spec)})


def has_usable_data(spec: ChartSpec) -> bool:
    return len(spec.labels) >= 2 and len(spec.values) >= 2 and any(v > 0 for v in spec.values)


def _shares(spec: ChartSpec) -> List[float]:
    clipped = [max(0.0, v) for v in spec.values]
    total = sum(clipped)
    if total <= 0:
        return [0.0 for _ in clipped]
    return [v / total for v in clipped]


def two_category_imbalance_pct(spec: ChartSpec) -> float:
    """Percentage-point gap between the two shares (60/40 -> 20)."""
    if len(spec.values) != 2:
        return 0.0
    first, second = _shares(spec)
    return abs(first - second) * 100.0


def is_meaningful(
    spec: ChartSpec,
    allow_two_category: bool = True,
    min_imbalance_pct: float = DeckConfig.MIN_TWO_CATEGORY_IMBALANCE_PCT,
) -> bool:
    categories = len(spec.labels)
    if categories >= 3:
        return True
    if categories == 2:
        return allow_two_category and two_category_imbalance_pct(spec) >= min_imbalance_pct
    return False


def chart_signature(spec: ChartSpec) -> str:
    parts = []
    for label, share in zip(spec.labels, _shares(spec)):
        permille = int(math.floor(share * 1000 + 0.5))
        parts.append(f"{label.lower()}|{permille}")
    return ";".join(sorted(parts))


@dataclass
class ChartState:
    """Per-document chart budget; only ``admit`` mutates it."""

    admitted_count: int = 0
    seen_signatures: set = field(default_factory=set)
    has_two_category_chart: bool = False

    def record(self, signature: str, two_category: bool) -> None:
        self.admitted_count += 1
        self.seen_signatures.add(signature)
        if two_category:
            self.has_two_category_chart = True


def admit(
    spec: ChartSpec,
    state: ChartState,
    max_charts: int = DeckConfig.MAX_CHARTS,
    allow_two_category: bool = DeckConfig.ALLOW_TWO_CATEGORY,
    min_imbalance_pct: float = DeckConfig.MIN_TWO_CATEGORY_IMBALANCE_PCT,
) -> bool:
    if state.admitted_count >= max_charts:
        return False
    if not has_usable_data(spec):
        return False
    two_category = len(spec.labels) == 2
    if not is_meaningful(spec, allow_two_category and not state.has_two_category_chart, min_imbalance_pct):
        return False
    if two_category and state.has_two_category_chart:
        return False
    signature = chart_signature(spec)
    if signature in state.seen_signatures:
        return False
    state.record(signature, two_category)
    return True


def spec_from_pairs(pairs: Iterable[NumericPair], title: str) -> ChartSpec:
    pairs = list(pairs)
    return normalize_chart_spec(
        {"labels": [p.label for p in pairs], "values": [p.value for p in pairs]}, title=title
    )


def seed_chart_candidate(slide: SlideUnit, fetch_rows: Optional[RowFetcher] = None) -> Optional[ChartSpec]:
    """Explicit spec, then remote tabular data, then numbers mined from the slide text."""
    raw = slide.raw_chart
    if raw:
        title = str(raw.get("title") or slide.title)
        spec = normalize_chart_spec(raw, title=title)
        if has_usable_data(spec):
            return spec
        url = resolve_data_url(raw)
        if url and fetch_rows is not None:
            spec = normalize_chart_spec(fetch_rows(url), title=title)
            if has_usable_data(spec):
                return spec
        logger.debug("Slide %d: explicit chart unusable, trying text", slide.index)
    pairs = extract_from_slide(slide)
    if pairs:
        return spec_from_pairs(pairs, slide.title)
    return None


def keyword_frequency_spec(slides: Iterable[SlideUnit], top_n: int = DeckConfig.MAX_PAIRS) -> Optional[ChartSpec]:
    counts: Counter = Counter()
    for slide in slides:
        text = " ".join([slide.title, *slide.bullets]).lower()
        for word in _WORD.findall(text):
            if word not in DeckConfig.CHART_STOP_WORDS:
                counts[word[:20]] += 1
    top = counts.most_common(top_n)
    if len(top) < DeckConfig.MIN_KEYWORD_CATEGORIES:
        return None
    return normalize_chart_spec(
        {"labels": [word for word, _ in top], "values": [count for _, count in top]},
        title="Top Topics",
    )


def derive_fallback_spec(slides: List[SlideUnit]) -> Optional[ChartSpec]:
    pairs = aggregate_pairs(slides)
    if len({p.label.lower() for p in pairs}) >= 2:
        return spec_from_pairs(pairs, "Distribution")
    return keyword_frequency_spec(slides)


class ChartGate:
    """Runs the per-document admission pass over a list of slides."""

    def __init__(
        self,
        max_charts: int = DeckConfig.MAX_CHARTS,
        allow_two_category: bool = DeckConfig.ALLOW_TWO_CATEGORY,
        min_imbalance_pct: float = DeckConfig.MIN_TWO_CATEGORY_IMBALANCE_PCT,
        fetch_rows: Optional[RowFetcher] = None,
    ):
        self.max_charts = max_charts
        self.allow_two_category = allow_two_category
        self.min_imbalance_pct = min_imbalance_pct
        self.fetch_rows = fetch_rows
        self.state = ChartState()

    def _admit(self, spec: ChartSpec) -> bool:
        return admit(spec, self.state, self.max_charts, self.allow_two_category, self.min_imbalance_pct)

    def gate_document(
        self, slides: List[SlideUnit], candidates: Optional[Dict[int, Any]] = None
    ) -> List[AdmittedChart]:
        self.state = ChartState()
        if candidates is None:
            candidates = {slide.index: seed_chart_candidate(slide, self.fetch_rows) for slide in slides}
        admitted: List[AdmittedChart] = []
        for slide in slides:
            raw = candidates.get(slide.index)
            if raw is None:
                continue
            spec = normalize_chart_spec(raw)
            if self._admit(spec):
                slide.chart_spec = spec
                admitted.append(AdmittedChart(slide_index=slide.index, spec=spec))
            else:
                logger.debug("Slide %d chart rejected (%s)", slide.index, spec.signature or "placeholder")
        if self.state.admitted_count == 0:
            synthetic = derive_fallback_spec(slides)
            if synthetic is not None and self._admit(synthetic):
                admitted.append(AdmittedChart(slide_index=None, spec=synthetic, synthetic=True))
                logger.info("Admitted synthetic '%s' chart", synthetic.title)
            else:
                logger.info("No admissible chart for this document")
        return admitted
