from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

CHART_KINDS = ("doughnut", "pie", "bar")


class CandidateSource(BaseModel):
    url: str
    title: str = ""
    snippet: str = ""

    @field_validator("title", "snippet", mode="before")
    def coerce_text(cls, v: Any) -> str:
        return "" if v is None else str(v)


class HarvestRoundRecord(BaseModel):
    round_id: str
    queries: List[str] = Field(default_factory=list)
    added_count: int = Field(ge=0, default=0)
    cumulative_vetted_count: int = Field(ge=0, default=0)


class NumericPair(BaseModel):
    label: str
    value: float
    is_percentage: bool = False

    @field_validator("label")
    def validate_label(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Pair label cannot be empty")
        if len(v) > 30:
            raise ValueError(f"Pair label too long: {v}")
        return v


class ChartSpec(BaseModel):
    """Canonical chart spec: parallel labels/values plus presentation metadata."""

    labels: List[str]
    values: List[float]
    title: str = ""
    kind: str = "doughnut"
    signature: str = ""
    placeholder: bool = False

    @field_validator("kind")
    def validate_kind(cls, v: str) -> str:
        if v not in CHART_KINDS:
            raise ValueError(f"Unsupported chart kind: {v}")
        return v

    @model_validator(mode="after")
    def validate_shape(self) -> "ChartSpec":
        if len(self.labels) != len(self.values):
            raise ValueError(
                f"Chart labels/values length mismatch: {len(self.labels)} != {len(self.values)}"
            )
        if len(self.labels) < 2:
            raise ValueError("Chart needs at least two categories")
        return self


class SlideUnit(BaseModel):
    index: int
    title: str
    subtitle: str = ""
    notes: str = ""
    bullets: List[str] = Field(default_factory=list)
    keyword: str = ""
    chart_spec: Optional[ChartSpec] = None
    raw_chart: Optional[Dict[str, Any]] = Field(default=None, exclude=True)

    @field_validator("subtitle")
    def validate_subtitle(cls, v: str) -> str:
        if len(v) > 160:
            raise ValueError(f"Subtitle exceeds 160 chars ({len(v)})")
        return v

    @field_validator("bullets")
    def validate_bullets(cls, v: List[str]) -> List[str]:
        if not 3 <= len(v) <= 6:
            raise ValueError(f"Slides carry 3-6 bullets, got {len(v)}")
        for bullet in v:
            if len(bullet) > 120:
                raise ValueError(f"Bullet exceeds 120 chars: {bullet[:40]}...")
        return v


class AdmittedChart(BaseModel):
    slide_index: Optional[int] = None
    spec: ChartSpec
    synthetic: bool = False


class Outline(BaseModel):
    title: str = ""
    slides: List[Dict[str, Any]] = Field(default_factory=list)
    sources: List[str] = Field(default_factory=list)

    @field_validator("slides", mode="before")
    def drop_non_mapping_slides(cls, v: Any) -> List[Dict[str, Any]]:
        if not isinstance(v, list):
            return []
        return [item for item in v if isinstance(item, dict)]

    @field_validator("sources", mode="before")
    def coerce_sources(cls, v: Any) -> List[str]:
        if not isinstance(v, list):
            return []
        return [str(item).strip() for item in v if item and str(item).strip()]


class ContentPackage(BaseModel):
    title: str
    prompt: str
    slides: List[SlideUnit] = Field(default_factory=list)
    charts: List[AdmittedChart] = Field(default_factory=list)
    sources: List[str] = Field(default_factory=list)
    outline_sources: List[str] = Field(default_factory=list)
    harvest_rounds: List[HarvestRoundRecord] = Field(default_factory=list)
    rigorous: bool = False
    metadata: Dict[str, Any] = Field(default_factory=dict)
