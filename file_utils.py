"""
File utilities for the deck builder.

Handles package directory creation, atomic text/json saves, the harvest
statistics sidecar and the per-format renderer loop.
"""

from __future__ import annotations

import json
import logging
import os
from collections import Counter
from datetime import datetime
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlsplit

from config import DeckConfig
from logging_utils import log_exception
from models import ContentPackage
from renderers import get_renderer

logger = logging.getLogger(__name__)


def _atomic_write_text(path: Path, data: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with NamedTemporaryFile("w", delete=False, encoding="utf-8", dir=str(path.parent)) as tmp:
        tmp.write(data)
        tmp_name = tmp.name
    os.replace(tmp_name, path)


def write_text(path: Path, content: str) -> None:
    _atomic_write_text(path, content)


def write_json(path: Path, payload: Any) -> None:
    serialized = json.dumps(payload, indent=2, ensure_ascii=False)
    _atomic_write_text(path, serialized)


def _domain(url: str) -> str:
    host = urlsplit(url).netloc.lower()
    return host[4:] if host.startswith("www.") else host


def harvest_stats(package: ContentPackage) -> Dict[str, Any]:
    """Summary written next to every package; linted by ``source_qc``."""
    domains = Counter(_domain(url) for url in package.sources if url)
    total = len(package.sources)
    dominant_ratio = (max(domains.values()) / total) if domains and total else 0.0
    required = int(package.metadata.get("required_sources", DeckConfig.MIN_VETTED_SOURCES))
    return {
        "achieved": total,
        "required": required,
        "rigorous": package.rigorous,
        "rounds": [record.model_dump() for record in package.harvest_rounds],
        "rounds_completed": [record.round_id for record in package.harvest_rounds],
        "domain_counts": dict(domains),
        "unique_domains": len(domains),
        "dominant_ratio": round(dominant_ratio, 3),
        "slide_count": len(package.slides),
        "charts_admitted": len(package.charts),
        "synthetic_charts": sum(1 for chart in package.charts if chart.synthetic),
    }


class DeckFileManager:
    def __init__(self, base_output_dir: str = DeckConfig.OUTPUT_DIR):
        self.base_output_dir = base_output_dir

    def create_package_directory(self, prompt: str) -> str:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        slug = "".join(c.lower() if c.isalnum() else "_" for c in prompt)[:24]
        path = Path(self.base_output_dir) / f"deck_{timestamp}_{slug}"
        path.mkdir(parents=True, exist_ok=True)
        return str(path)

    def render_all(
        self, package: ContentPackage, package_dir: str, renderer_names: Sequence[str]
    ) -> Dict[str, List[str]]:
        """Run each renderer in isolation; a failing format never blocks the rest."""
        artifacts: Dict[str, List[str]] = {}
        for renderer_name in renderer_names:
            try:
                renderer = get_renderer(renderer_name)
            except ValueError:
                logger.warning("Unknown renderer '%s' requested. Skipping.", renderer_name)
                continue
            try:
                artifacts[renderer_name] = renderer.render(package, package_dir)
            except Exception as exc:
                log_exception(logger, exc, context=f"renderer:{renderer_name}", prompt=package.prompt)
        return artifacts

    def save_package(
        self,
        package: ContentPackage,
        package_dir: Optional[str] = None,
        renderer_names: Optional[Sequence[str]] = None,
    ) -> str:
        package_dir = package_dir or self.create_package_directory(package.prompt)
        stats = harvest_stats(package)
        write_json(Path(package_dir) / DeckConfig.HARVEST_STATS_FILE, stats)

        names = list(renderer_names or DeckConfig.REPORT_RENDERERS)
        artifacts = self.render_all(package, package_dir, names)
        metadata = {
            "generated_at": datetime.now().isoformat(),
            "prompt": package.prompt,
            "title": package.title,
            "renderers": names,
            "artifact_paths": [path for paths in artifacts.values() for path in paths],
            "failed_renderers": [name for name in names if name not in artifacts],
            "statistics": {
                "slide_count": stats["slide_count"],
                "source_count": stats["achieved"],
                "chart_count": stats["charts_admitted"],
            },
        }
        write_json(Path(package_dir) / "metadata.json", metadata)
        logger.info("💾 Package saved to %s", package_dir)
        logger.info(
            "   -> %s slides | %s sources | %s charts",
            stats["slide_count"],
            stats["achieved"],
            stats["charts_admitted"],
        )
        return package_dir


file_manager = DeckFileManager()
