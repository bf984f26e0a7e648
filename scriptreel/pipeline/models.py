"""
Pydantic models and enums for the script-to-storyboard pipeline.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr


# ── Pipeline Status ──────────────────────────────────────────────────────────

class PipelineStatus(str, Enum):
    START = "START"
    ADMITTING = "ADMITTING"
    SCRIPTING = "SCRIPTING"
    IMAGING = "IMAGING"
    DONE = "DONE"
    FAILED = "FAILED"


# ── Quota ────────────────────────────────────────────────────────────────────

class QuotaState(BaseModel):
    """The shared daily counter. Stored as {"count": n, "lastResetDate": "YYYY-MM-DD"}."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    count: int = Field(default=0, ge=0)
    last_reset_date: date = Field(alias="lastResetDate")

    @classmethod
    def fresh(cls, today: date) -> "QuotaState":
        return cls(count=0, last_reset_date=today)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, raw) -> "QuotaState":
        return cls.model_validate_json(raw)


class QuotaStatus(BaseModel):
    limit: int
    used: int
    remaining: int
    resets_at: datetime


# ── Script ───────────────────────────────────────────────────────────────────

class Scene(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: StrictStr
    timing: StrictStr  # e.g. "0-5s"
    description: StrictStr  # used verbatim as the image prompt
    soundtrack_suggestion: StrictStr = Field(alias="soundtrackSuggestion")
    narration_script: StrictStr = Field(alias="narrationScript")


# ── Images ───────────────────────────────────────────────────────────────────

IMAGE_GENERATED_PLACEHOLDER = "https://via.placeholder.com/1024x1024.png?text=Image+Generated"
IMAGE_FAILED_PLACEHOLDER = "https://via.placeholder.com/1024x1024.png?text=Generation+Failed"


class ImageResult(BaseModel):
    """Outcome of one scene's image call. Failures are values, not exceptions."""
    model_config = ConfigDict(frozen=True)

    ok: bool
    url: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def resolved(cls, url: str) -> "ImageResult":
        return cls(ok=True, url=url)

    @classmethod
    def failed(cls, error: str) -> "ImageResult":
        return cls(ok=False, error=error)

    @property
    def reference(self) -> str:
        """What the caller receives for this scene."""
        if self.ok and self.url:
            return self.url
        return IMAGE_FAILED_PLACEHOLDER


# ── API Models ───────────────────────────────────────────────────────────────

class GenerateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    idea: StrictStr = Field(..., min_length=1, description="Topic of the video")
    duration: float = Field(..., gt=0, strict=True, allow_inf_nan=False, description="Target length in seconds")


class PipelineResponse(BaseModel):
    script: list[Scene]
    images: list[str]

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
