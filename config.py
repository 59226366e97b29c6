"""
Deck Builder Configuration

Single configuration surface for the research-vetting and content-packaging
workflow. Everything tunable lives here as a class attribute so call sites can
read ``DeckConfig.X`` without threading settings objects around; values are
read from the environment (and ``.env``) once at import.
"""

import json
import os
from typing import Dict, List, Tuple

from dotenv import load_dotenv

load_dotenv()


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class DeckConfig:
    """Research and packaging configuration used across the runtime."""

    DEFAULT_MODEL = os.getenv("DECK_MODEL", "gpt-4o-mini")
    RESPONSE_FORMAT = {"type": "json_object"}
    MODEL_TEMPERATURE = float(os.getenv("DECK_MODEL_TEMPERATURE", "0.2"))

    # Search and fetch controls
    SEARCH_PROVIDER = os.getenv("DECK_SEARCH_PROVIDER", "searxng")
    SEARXNG_BASE_URL = os.getenv("SEARXNG_BASE_URL", "http://localhost:8080")
    DUCKDUCKGO_HTML_URL = "https://html.duckduckgo.com/html/"
    WIKIPEDIA_API_URL = "https://en.wikipedia.org/w/api.php"
    HTTP_TIMEOUT_SECONDS = int(os.getenv("DECK_HTTP_TIMEOUT", "12"))
    TABULAR_TIMEOUT_SECONDS = int(os.getenv("DECK_TABULAR_TIMEOUT", "15"))
    MAX_RESULTS_PER_QUERY = int(os.getenv("DECK_MAX_RESULTS", "6"))
    SEARCH_CONCURRENCY = int(os.getenv("DECK_SEARCH_CONCURRENCY", "4"))
    FETCH_CONCURRENCY = int(os.getenv("DECK_FETCH_CONCURRENCY", "3"))
    PAGE_TEXT_MAX_CHARS = int(os.getenv("DECK_PAGE_TEXT_MAX", "4000"))
    TEXT_CACHE_SIZE = int(os.getenv("DECK_TEXT_CACHE_SIZE", "256"))
    USER_AGENT = os.getenv(
        "DECK_USER_AGENT",
        "Mozilla/5.0 (compatible; DeckResearchBot/1.0; +https://example.org/bot)",
    )
    PAGE_NOISE_TAGS = ["script", "style", "nav", "footer", "aside", "header", "noscript"]

    # Source vetting policy
    SOURCE_ALLOWLIST = _env_list(
        "DECK_SOURCE_ALLOWLIST",
        [
            ".edu",
            ".ac.",
            ".gov",
            ".museum",
            ".nhm.",
            "amnh.org",
            "smithsonian",
            "biodiversitylibrary.org",
            "ncbi.nlm.nih.gov/pmc",
            "doi.org/",
            "antwiki.org",
            "antweb.org",
            "ufl.edu/ifas",
            "ucdavis.edu/ipm",
            "nhm.ac.uk",
            "nmnh.si.edu",
            "britannica.com",
            "wikipedia.org",
            "nationalgeographic.com",
            "scientificamerican.com",
            "nature.com",
        ],
    )
    SOURCE_BLOCKLIST = _env_list(
        "DECK_SOURCE_BLOCKLIST",
        [
            "studocu.com",
            "scribd.com",
            "misfitanimals.com",
            "geeksforgeeks.org",
            "calculator",
            "microsoft.com/create",
            "galaxy.ai",
            "chegg.com",
            "coursehero.com",
            "quizlet.com",
            "slideshare.net",
            "prezi.com",
            "rapidtables.com",
        ],
    )
    # Each entry is (url substrings, bonus); one bonus per entry however many substrings match.
    SOURCE_AUTHORITY_BONUSES: List[Tuple[Tuple[str, ...], float]] = [
        ((".edu",), 0.4),
        ((".gov",), 0.4),
        ((".ac.",), 0.35),
        (("museum", "nhm.", "amnh.org"), 0.3),
        (("doi.org", "ncbi.nlm.nih.gov"), 0.5),
        (("antwiki.org", "antweb.org"), 0.35),
        (("britannica.com",), 0.4),
        (("wikipedia.org",), 0.3),
        (("nationalgeographic.com",), 0.4),
        (("scientificamerican.com",), 0.4),
        (("nature.com",), 0.5),
        (("smithsonian",), 0.4),
    ]
    TOPIC_KEYWORDS = _env_list(
        "DECK_TOPIC_KEYWORDS",
        ["ant", "ants", "formicidae", "insect", "insects", "metamorphosis", "larva", "pupa", "colony"],
    )
    TOPIC_BONUS = float(os.getenv("DECK_TOPIC_BONUS", "0.15"))
    PDF_BONUS = float(os.getenv("DECK_PDF_BONUS", "0.1"))
    VETTING_THRESHOLD = float(os.getenv("DECK_VETTING_THRESHOLD", "0.55"))
    TRACKING_PARAM_PREFIXES = ("utm_", "fb")
    TRACKING_PARAMS = {"ref", "ref_src", "gclid", "mc_cid", "mc_eid"}

    # Harvest
    MIN_VETTED_SOURCES = int(os.getenv("DECK_MIN_VETTED_SOURCES", "10"))
    RIGOROUS_INTENT_TERMS = _env_list("DECK_RIGOROUS_TERMS", ["report", "analysis", "study", "research"])
    SEED_REFERENCES: List[Dict[str, object]] = [
        {
            "title": "Hölldobler & Wilson (1990). The Ants. Harvard University Press.",
            "url": "https://doi.org/10.1007/978-3-662-10306-7",
            "keywords": ["ant", "ants", "formicidae", "insect", "insects"],
        },
        {
            "title": "Lach, Parr & Abbott (2010). Ant Ecology. Oxford University Press.",
            "url": "https://global.oup.com/academic/product/ant-ecology-9780199544639",
            "keywords": ["ant", "ants", "formicidae", "insect", "insects"],
        },
        {
            "title": "Tschinkel (2006). The Fire Ants. Harvard University Press.",
            "url": "https://www.hup.harvard.edu/catalog.php?isbn=9780674022075",
            "keywords": ["ant", "ants", "formicidae", "insect", "insects"],
        },
    ]
    INITIAL_QUERY_AXES = _env_list(
        "DECK_INITIAL_AXES",
        ["{query}", "{query} best practices", "{query} 2025 trends", "{query} statistics data"],
    )
    BROADEN_QUERY_AXES = ["{query} overview", "{query} introduction site:edu"]
    TOPICAL_QUERY_PACKS: Dict[str, List[str]] = json.loads(
        os.getenv(
            "DECK_TOPICAL_PACKS",
            json.dumps(
                {
                    "ant": [
                        "Formicidae holometabolous development site:edu OR site:gov",
                        "ant lifecycle metamorphosis larval pupal stages",
                        "ant colony caste queen worker development duration",
                        "Formicidae life cycle review PDF",
                    ],
                }
            ),
        )
    )
    TOPICAL_PACK_ALIASES: Dict[str, List[str]] = {
        "ant": ["ant", "ants", "formicidae"],
    }
    TOPICAL_QUERY_AXES = [
        "{query} site:edu OR site:gov",
        "{query} scientific review",
        "{query} research paper PDF",
        "{query} academic study",
    ]
    SCHOLAR_QUERY_AXES = [
        "{query} site:ncbi.nlm.nih.gov/pmc",
        "{query} site:doi.org",
        "{query} site:smithsonian OR site:nhm.ac.uk OR site:amnh.org",
    ]
    SCHOLAR_TOPIC_SITES: Dict[str, List[str]] = {
        "ant": ["{query} site:antwiki.org OR site:antweb.org"],
    }
    EXTENSION_QUERY_AXES = [
        "{query} site:edu extension OR ipm",
        "{query} site:gov agriculture OR entomology",
    ]
    SYNONYM_SUBSTITUTIONS: Dict[str, List[str]] = {
        "life cycle": ["development stages", "ontogeny metamorphosis"],
        "lifecycle": ["development stages", "ontogeny metamorphosis"],
        "behavior": ["behaviour ethology"],
        "habitat": ["ecology distribution"],
        "diet": ["feeding ecology"],
    }
    RELATED_TERMS: Dict[str, List[str]] = {
        "ant": ["brood development caste differentiation"],
    }
    SYNONYM_FALLBACK_AXES = ["{query} overview", "{query} key concepts"]

    # Research context
    CONTEXT_MAX_URLS = int(os.getenv("DECK_CONTEXT_MAX_URLS", "10"))
    CONTEXT_FETCH_LIMIT = int(os.getenv("DECK_CONTEXT_FETCH_LIMIT", "8"))
    CONTEXT_BLURB_CHARS = 600
    CONTEXT_MAX_CHARS = int(os.getenv("DECK_CONTEXT_MAX_CHARS", "3500"))

    # Content normalization
    MIN_SLIDES = int(os.getenv("DECK_MIN_SLIDES", "10"))
    SUBTITLE_MAX_CHARS = 160
    SUBTITLE_SENTENCES = 2
    BULLET_MAX_CHARS = 120
    MIN_BULLETS = 3
    MAX_BULLETS = 6
    PAGE_MAX_CHARS = int(os.getenv("DECK_PAGE_MAX_CHARS", "750"))
    META_PHRASES = [
        "as shown on this slide",
        "as shown in this slide",
        "in this slide",
        "on this slide",
        "this slide",
        "the slide",
        "this template",
    ]
    FILLER_BULLETS = [
        "See speaker notes for detail",
        "Supporting evidence listed in sources",
        "Open questions flagged for review",
        "Further reading in the appendix",
    ]
    FILLER_SLIDE_TITLE = "Additional Insights {n}"

    # Charts
    MAX_CHARTS = int(os.getenv("DECK_MAX_CHARTS", "4"))
    ALLOW_TWO_CATEGORY = _env_bool("DECK_ALLOW_TWO_CATEGORY", True)
    MIN_TWO_CATEGORY_IMBALANCE_PCT = float(os.getenv("DECK_MIN_TWO_CAT_IMBALANCE_PCT", "12"))
    MAX_PAIRS = 8
    MAX_TABULAR_ROWS = 12
    MAX_LABEL_CHARS = 30
    MIN_KEYWORD_CATEGORIES = 3
    CHART_STOP_WORDS = {
        "the", "and", "for", "with", "this", "that", "from", "into", "your", "their",
        "about", "what", "when", "where", "which", "are", "is", "was", "were", "be",
        "on", "in", "of", "to", "as", "by", "it", "its", "a", "an", "or", "at", "we",
        "you", "they", "how", "why", "but", "if", "then", "than", "over", "under",
        "per", "across", "between", "within", "most",
    }

    # Output
    OUTPUT_DIR = os.getenv("DECK_OUTPUT_DIR", "deck_packages")
    REPORT_RENDERERS = _env_list("DECK_RENDERERS", ["markdown", "json"])
    HARVEST_STATS_FILE = "harvest_stats.json"
