"""Source hygiene: URL canonicalization plus allow/block/score vetting."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Pattern, Sequence, Tuple
from urllib.parse import urlsplit, urlunsplit

from config import DeckConfig

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def _is_tracking_param(name: str) -> bool:
    key = name.lower()
    if key in DeckConfig.TRACKING_PARAMS:
        return True
    return any(key.startswith(prefix) for prefix in DeckConfig.TRACKING_PARAM_PREFIXES)


def normalize_url(url: str) -> str:
    """Return the canonical form used for de-duplication; never raises."""
    if not isinstance(url, str):
        return ""
    compact = _WHITESPACE.sub("", url)
    if not compact:
        return ""
    try:
        parts = urlsplit(compact)
        if not parts.scheme or not parts.netloc:
            return compact
        kept = [
            segment
            for segment in parts.query.split("&")
            if segment and not _is_tracking_param(segment.split("=", 1)[0])
        ]
        return urlunsplit(
            (parts.scheme.lower(), parts.netloc.lower(), parts.path, "&".join(kept), "")
        )
    except ValueError:
        logger.debug("normalize_url: unparseable url %r", compact)
        return compact


@dataclass(frozen=True)
class VettingPolicy:
    allowlist: Tuple[str, ...]
    blocklist: Tuple[str, ...]
    authority_bonuses: Tuple[Tuple[Tuple[str, ...], float], ...]
    topic_keywords: Tuple[str, ...] = ()
    topic_bonus: float = 0.15
    pdf_bonus: float = 0.1
    threshold: float = 0.55
    topic_pattern: Optional[Pattern[str]] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if self.topic_pattern is None and self.topic_keywords:
            alternation = "|".join(re.escape(word) for word in self.topic_keywords)
            object.__setattr__(
                self, "topic_pattern", re.compile(rf"\b({alternation})\b", re.IGNORECASE)
            )

    @classmethod
    def from_config(cls) -> "VettingPolicy":
        return cls(
            allowlist=tuple(p.lower() for p in DeckConfig.SOURCE_ALLOWLIST),
            blocklist=tuple(p.lower() for p in DeckConfig.SOURCE_BLOCKLIST),
            authority_bonuses=tuple(
                (tuple(p.lower() for p in patterns), bonus)
                for patterns, bonus in DeckConfig.SOURCE_AUTHORITY_BONUSES
            ),
            topic_keywords=tuple(DeckConfig.TOPIC_KEYWORDS),
            topic_bonus=DeckConfig.TOPIC_BONUS,
            pdf_bonus=DeckConfig.PDF_BONUS,
            threshold=DeckConfig.VETTING_THRESHOLD,
        )


@dataclass(frozen=True)
class VettingDecision:
    url: str
    vetted: bool
    reason: str
    score: float


class SourceVetter:
    """Pure scoring/filtering against an injected policy."""

    def __init__(self, policy: Optional[VettingPolicy] = None):
        self.policy = policy or VettingPolicy.from_config()

    def _matches(self, url: str, patterns: Sequence[str]) -> bool:
        lowered = (url or "").lower()
        return any(pattern in lowered for pattern in patterns)

    def is_blocked(self, url: str) -> bool:
        return self._matches(url, self.policy.blocklist)

    def is_allowlisted(self, url: str) -> bool:
        return self._matches(url, self.policy.allowlist)

    def score_source(self, url: str, title: str = "", snippet: str = "") -> float:
        if self.is_blocked(url):
            return 0.0
        lowered = (url or "").lower()
        score = 0.0
        for patterns, bonus in self.policy.authority_bonuses:
            if any(pattern in lowered for pattern in patterns):
                score += bonus
        text = f"{title or ''} {snippet or ''}"
        if self.policy.topic_pattern is not None and self.policy.topic_pattern.search(text):
            score += self.policy.topic_bonus
        if _path_of(lowered).endswith(".pdf"):
            score += self.policy.pdf_bonus
        return round(min(1.0, score), 4)

    def explain(self, url: str, title: str = "", snippet: str = "") -> VettingDecision:
        if self.is_blocked(url):
            return VettingDecision(url=url, vetted=False, reason="BLOCKLIST", score=0.0)
        score = self.score_source(url, title, snippet)
        if self.is_allowlisted(url):
            return VettingDecision(url=url, vetted=True, reason="ALLOWLIST", score=score)
        if score >= self.policy.threshold:
            return VettingDecision(url=url, vetted=True, reason="SCORE_PASS", score=score)
        return VettingDecision(url=url, vetted=False, reason="SCORE_FAIL", score=score)

    def is_vetted(self, url: str, title: str = "", snippet: str = "") -> bool:
        return self.explain(url, title, snippet).vetted


def _path_of(url: str) -> str:
    try:
        return urlsplit(url).path or url
    except ValueError:
        return url


def summarize_decisions(decisions: List[VettingDecision], sample: int = 5) -> dict:
    """Counts plus the first few rejections, for diagnostics logs."""
    rejected = [d for d in decisions if not d.vetted]
    return {
        "vetted": len(decisions) - len(rejected),
        "rejected": len(rejected),
        "rejection_sample": [
            {"url": d.url, "reason": d.reason, "score": d.score} for d in rejected[:sample]
        ],
    }
