"""
Slide content normalization.

Turns loosely shaped outline slides into bounded ``SlideUnit`` records:
markup stripped, subtitle derived from the body, bullets capped to 3-6 and
titles unique within one document. Short decks are padded with clearly
labelled filler units.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from config import DeckConfig
from models import SlideUnit

logger = logging.getLogger(__name__)

_LINK = re.compile(r"\[([^\]]*)\]\([^)]*\)")
_HTML_TAG = re.compile(r"<[^>]+>")
_LIST_MARKER = re.compile(r"^\s*(?:[-•*+]|\d+[.)])\s+", re.MULTILINE)
_MD_TOKENS = re.compile(r"[`*_>#~|]")
_LEAD_META = re.compile(r"^\s*(?:in this slide|this slide|the slide)[^:]{0,80}:\s*", re.IGNORECASE)
_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")
_META_PATTERNS = [
    re.compile(rf"\b{re.escape(phrase)}\b[,:]?\s*", re.IGNORECASE) for phrase in DeckConfig.META_PHRASES
]


def strip_formatting(text: Any) -> str:
    if text is None:
        return ""
    if isinstance(text, list):
        text = " ".join(str(part) for part in text if part is not None)
    elif not isinstance(text, str):
        text = str(text)
    cleaned = _LINK.sub(r"\1", text)
    cleaned = _HTML_TAG.sub(" ", cleaned)
    cleaned = _LIST_MARKER.sub("", cleaned)
    cleaned = _MD_TOKENS.sub("", cleaned)
    cleaned = _LEAD_META.sub("", cleaned)
    for pattern in _META_PATTERNS:
        cleaned = pattern.sub("", cleaned)
    return re.sub(r"\s+", " ", cleaned).strip()


def split_sentences(text: str) -> List[str]:
    if not text:
        return []
    return [part.strip() for part in _SENTENCE_BOUNDARY.split(text.strip()) if part.strip()]


def trim_text(text: str, limit: int) -> str:
    """Cap ``text`` at ``limit`` chars, ending with an ellipsis when cut."""
    if len(text) <= limit:
        return text
    cut = text[: limit - 1]
    space = cut.rfind(" ")
    if space > limit * 0.6:
        cut = cut[:space]
    return cut.rstrip(" ,;:-") + "…"


def paginate(text: str, max_chars: int = DeckConfig.PAGE_MAX_CHARS) -> List[str]:
    """
    Pack whole sentences greedily into pages of at most ``max_chars``.

    A sentence is never split; one longer than ``max_chars`` gets a page of
    its own.
    """
    compact = re.sub(r"\s+", " ", text or "").strip()
    if not compact:
        return []
    if len(compact) <= max_chars:
        return [compact]
    pages: List[str] = []
    current = ""
    for sentence in split_sentences(compact):
        candidate = f"{current} {sentence}" if current else sentence
        if len(candidate) <= max_chars:
            current = candidate
            continue
        if current:
            pages.append(current)
        current = sentence
    if current:
        pages.append(current)
    return pages


def _first_text(*values: Any) -> Any:
    for value in values:
        if value:
            return value
    return ""


def _bullet_items(raw: Any) -> List[str]:
    if not raw:
        return []
    if isinstance(raw, str):
        return [line for line in raw.splitlines() if line.strip()]
    if isinstance(raw, (list, tuple)):
        items: List[str] = []
        for item in raw:
            if isinstance(item, dict):
                item = item.get("text") or item.get("title") or ""
            if item:
                items.append(str(item))
        return items
    return [str(raw)]


class ContentNormalizer:
    """Per-document normalizer; remembers titles it has already issued."""

    def __init__(
        self,
        subtitle_max: int = DeckConfig.SUBTITLE_MAX_CHARS,
        bullet_max: int = DeckConfig.BULLET_MAX_CHARS,
        min_bullets: int = DeckConfig.MIN_BULLETS,
        max_bullets: int = DeckConfig.MAX_BULLETS,
    ):
        self.subtitle_max = subtitle_max
        self.bullet_max = bullet_max
        self.min_bullets = min_bullets
        self.max_bullets = max_bullets
        self._used_titles: set[str] = set()
        self._title_suffix: Dict[str, int] = {}

    def unique_title(self, title: str) -> str:
        key = title.lower()
        if key not in self._used_titles:
            self._used_titles.add(key)
            return title
        n = self._title_suffix.get(key, 1)
        while True:
            n += 1
            candidate = f"{title} ({n})"
            if candidate.lower() not in self._used_titles:
                break
        self._title_suffix[key] = n
        self._used_titles.add(candidate.lower())
        return candidate

    def _bullets(self, raw_items: Iterable[str], spare_sentences: List[str]) -> List[str]:
        bullets: List[str] = []
        seen: set[str] = set()

        def _push(text: str) -> None:
            cleaned = strip_formatting(text)
            if not cleaned:
                return
            trimmed = trim_text(cleaned, self.bullet_max)
            if trimmed.lower() in seen:
                return
            seen.add(trimmed.lower())
            bullets.append(trimmed)

        for item in raw_items:
            if len(bullets) >= self.max_bullets:
                break
            _push(item)
        for sentence in spare_sentences:
            if len(bullets) >= self.min_bullets:
                break
            _push(sentence)
        for filler in DeckConfig.FILLER_BULLETS:
            if len(bullets) >= self.min_bullets:
                break
            _push(filler)
        return bullets

    def normalize_slide(self, raw: Any, index: int) -> SlideUnit:
        if not isinstance(raw, dict):
            raw = {"title": raw}
        content = raw.get("content") if isinstance(raw.get("content"), dict) else {}

        title = strip_formatting(_first_text(raw.get("title"), content.get("title")))
        title = title or f"Slide {index + 1}"

        body = strip_formatting(
            _first_text(raw.get("body"), content.get("body"), raw.get("notes"), raw.get("text"))
        )
        sentences = split_sentences(body)

        explicit_subtitle = strip_formatting(_first_text(raw.get("subtitle"), content.get("subtitle")))
        used = 0 if explicit_subtitle else min(len(sentences), DeckConfig.SUBTITLE_SENTENCES)
        subtitle = explicit_subtitle or " ".join(sentences[:used])
        subtitle = trim_text(subtitle, self.subtitle_max)

        bullets = self._bullets(
            _bullet_items(_first_text(raw.get("bullets"), content.get("bullets"))),
            sentences[used:],
        )
        keyword = strip_formatting(_first_text(raw.get("keyword"), content.get("keyword"))) or title

        return SlideUnit(
            index=index,
            title=self.unique_title(title),
            subtitle=subtitle,
            notes=body,
            bullets=bullets,
            keyword=keyword,
            raw_chart=_raw_chart(raw, content),
        )

    def filler_slide(self, index: int, ordinal: int) -> SlideUnit:
        return SlideUnit(
            index=index,
            title=self.unique_title(DeckConfig.FILLER_SLIDE_TITLE.format(n=ordinal)),
            subtitle="Placeholder slide reserved for follow-up material.",
            notes="No additional findings were available for this slot.",
            bullets=list(DeckConfig.FILLER_BULLETS[: self.min_bullets]),
            keyword="insights",
        )

    def normalize_outline(
        self, raw_slides: Iterable[Any], min_slides: int = DeckConfig.MIN_SLIDES
    ) -> List[SlideUnit]:
        slides = [self.normalize_slide(raw, idx) for idx, raw in enumerate(raw_slides or [])]
        padded = 0
        while len(slides) < min_slides:
            padded += 1
            slides.append(self.filler_slide(len(slides), padded))
        if padded:
            logger.info("Padded outline with %d filler slide(s) to reach %d", padded, min_slides)
        return slides


def _raw_chart(raw: Dict[str, Any], content: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    spec = _first_text(
        raw.get("chartSpec"), raw.get("chart_spec"), content.get("chartSpec"), content.get("chart_spec")
    )
    chart: Dict[str, Any] = {}
    if isinstance(spec, dict):
        chart.update(spec)
    elif isinstance(spec, list):
        chart["data"] = spec
    image = raw.get("chart")
    if isinstance(image, dict) and image.get("url"):
        chart.setdefault("chartUrl", image["url"])
    return chart or None


def expand_pages(slide: SlideUnit, max_chars: int = DeckConfig.PAGE_MAX_CHARS) -> List[Tuple[str, str]]:
    """Split a slide's notes into (title, text) continuation pages."""
    pages = paginate(slide.notes, max_chars)
    if not pages:
        return [(slide.title, "")]
    expanded = [(slide.title, pages[0])]
    for number, page in enumerate(pages[1:], start=2):
        expanded.append((f"{slide.title} (cont. {number})", page))
    return expanded
