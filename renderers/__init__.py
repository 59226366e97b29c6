"""Renderer registry."""

from __future__ import annotations

from typing import List

from .base import BaseRenderer


def _normalized(name: str) -> str:
    return (name or "").strip().lower()


def get_renderer(name: str) -> BaseRenderer:
    normalized = _normalized(name)
    if normalized in {"markdown", "md"}:
        from .markdown_deck import MarkdownDeckRenderer

        return MarkdownDeckRenderer()
    if normalized in {"json", "package_json"}:
        from .json_package import JSONPackageRenderer

        return JSONPackageRenderer()
    raise ValueError(f"Unknown renderer '{name}'")


def available_renderers() -> List[str]:
    return ["markdown", "json"]
