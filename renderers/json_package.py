"""JSON package renderer."""

from __future__ import annotations

from pathlib import Path
from typing import List

from file_utils import write_json
from models import ContentPackage

from .base import BaseRenderer


class JSONPackageRenderer(BaseRenderer):
    """Persist the full content package for downstream format builders."""

    name = "json"

    def render(self, package: ContentPackage, output_dir: str) -> List[str]:
        output_path = Path(output_dir) / "package.json"
        write_json(output_path, package.model_dump(mode="json"))
        return [str(output_path)]
