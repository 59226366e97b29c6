"""Mine label/value pairs from slide prose as latent chart data."""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, List, Optional, Tuple

from config import DeckConfig
from content_normalizer import strip_formatting
from models import NumericPair, SlideUnit

logger = logging.getLogger(__name__)

_LABEL = r"([A-Za-z][A-Za-z0-9 /&'+-]{0,59}?)"
_NUMBER = r"(\d[\d,]*(?:\.\d+)?)"
_COLON_PAIR = re.compile(
    _LABEL + r"\s*(?::|\s[-–—]\s|[–—])\s*[$€£]?\s*" + _NUMBER + r"(\s*%|\s*percent(?:age)?\b)?",
    re.IGNORECASE,
)
_PAREN_PAIR = re.compile(_LABEL + r"\s*\(\s*" + _NUMBER + r"\s*%\s*\)")
# Clause breaks: semicolons, newlines, and sentence/list punctuation followed by space.
_CLAUSE_BREAK = re.compile(r"[;\n]|[.,](?=\s)")
_PARENS = re.compile(r"\([^)]*\)")


def shorten_label(raw: Any) -> str:
    text = _PARENS.sub(" ", strip_formatting(raw))
    words = text.split()[:5]
    label = " ".join(words)
    if len(label) > DeckConfig.MAX_LABEL_CHARS:
        label = label[: DeckConfig.MAX_LABEL_CHARS - 1].rstrip() + "…"
    return label or "Item"


def _to_number(token: str) -> Optional[float]:
    try:
        return float(token.replace(",", ""))
    except ValueError:
        return None


def _clauses(text: str) -> List[str]:
    return [part.strip() for part in _CLAUSE_BREAK.split(text or "") if part.strip()]


def parse_pairs(text: Any, max_pairs: int = DeckConfig.MAX_PAIRS) -> List[NumericPair]:
    """Extract ``Label: 42%`` / ``Label (42%)`` pairs; non-numeric text yields ``[]``."""
    if not isinstance(text, str) or not text.strip():
        return []
    pairs: List[NumericPair] = []
    seen: set[Tuple[str, bool]] = set()
    for clause in _clauses(text):
        matches = [(m.group(1), m.group(2), bool(m.group(3))) for m in _COLON_PAIR.finditer(clause)]
        matches += [(m.group(1), m.group(2), True) for m in _PAREN_PAIR.finditer(clause)]
        for raw_label, raw_value, is_pct in matches:
            value = _to_number(raw_value)
            if value is None:
                continue
            label = shorten_label(raw_label)
            key = (label.lower(), is_pct)
            if key in seen:
                continue
            seen.add(key)
            pairs.append(NumericPair(label=label, value=value, is_percentage=is_pct))
            if len(pairs) >= max_pairs:
                return pairs
    return pairs


def _pool_pairs(texts: Iterable[str], max_pairs: int) -> List[NumericPair]:
    pooled: List[NumericPair] = []
    seen: set[Tuple[str, bool]] = set()
    for text in texts:
        for pair in parse_pairs(text, max_pairs):
            key = (pair.label.lower(), pair.is_percentage)
            if key in seen:
                continue
            seen.add(key)
            pooled.append(pair)
            if len(pooled) >= max_pairs:
                return pooled
    return pooled


def _consistent(pairs: List[NumericPair]) -> List[NumericPair]:
    # Percentages and raw counts never share one chart; the first pair decides.
    if not pairs:
        return pairs
    kind = pairs[0].is_percentage
    return [pair for pair in pairs if pair.is_percentage == kind]


def _distinct_labels(pairs: List[NumericPair]) -> int:
    return len({pair.label.lower() for pair in pairs})


def _slide_texts(slide: SlideUnit) -> List[str]:
    return [slide.subtitle, slide.notes, *slide.bullets]


def extract_from_slide(slide: SlideUnit, max_pairs: int = DeckConfig.MAX_PAIRS) -> List[NumericPair]:
    pairs = _consistent(_pool_pairs(_slide_texts(slide), max_pairs))
    if _distinct_labels(pairs) < 2:
        return []
    return pairs


def aggregate_pairs(slides: Iterable[SlideUnit], max_pairs: int = DeckConfig.MAX_PAIRS) -> List[NumericPair]:
    """Document-wide pooled pairs, used when no slide produced an admissible chart."""
    texts: List[str] = []
    for slide in slides:
        texts.extend(_slide_texts(slide))
    pairs = _consistent(_pool_pairs(texts, max_pairs))
    logger.debug("aggregate_pairs: %d pair(s) across document", len(pairs))
    return pairs
