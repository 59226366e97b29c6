"""Base classes for per-format package renderers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from models import ContentPackage


class BaseRenderer(ABC):
    """Shared interface for any package renderer."""

    name: str = "base"

    @abstractmethod
    def render(self, package: ContentPackage, output_dir: str) -> List[str]:
        """Render the package into artifacts and return the written file paths."""
