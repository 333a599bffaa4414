"""Data models for screenshot analysis, indexing and search."""

import time
from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def now_ms() -> int:
    """Current time as epoch milliseconds, the unit every timestamp uses."""
    return int(time.time() * 1000)


def _to_epoch_ms(value: Any) -> Any:
    if isinstance(value, datetime):
        return int(value.timestamp() * 1000)
    return value


class Screenshot(BaseModel):
    """A captured image and its stable identity.

    Design decisions:
    - id: UUID4 assigned once at registration, never recomputed
    - filepath: may change on rename, id must not
    - content_hash: SHA-256 of the file bytes, used to spot duplicates
    - created_at/updated_at: epoch milliseconds
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    filepath: str
    filename: str
    created_at: int = Field(default_factory=now_ms)
    updated_at: int = Field(default_factory=now_ms)
    file_size: int = 0
    format: str = "png"
    content_hash: Optional[str] = None
    is_favorite: bool = False


class ScreenshotMetadata(BaseModel):
    """Persisted analysis output for one screenshot."""

    screenshot_id: str
    ocr_text: Optional[str] = None
    ai_title: Optional[str] = None
    ai_description: Optional[str] = None
    ai_keywords: list[str] = Field(default_factory=list)
    confidence_score: Optional[float] = None
    processed_at: int = Field(default_factory=now_ms)
    comprehensive_description: Optional[str] = None


class OCRResult(BaseModel):
    text: str = ""
    confidence: float = 0.0


class ContentClassification(BaseModel):
    content_type: Optional[str] = None
    app_detected: Optional[str] = None
    url_detected: Optional[str] = None
    language: Optional[str] = None


class AnalysisResult(BaseModel):
    """Output of one pipeline run. Any field may be missing after upstream failures."""

    ocr_text: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    keywords: list[str] = Field(default_factory=list)
    confidence_score: Optional[float] = None
    content_type: Optional[str] = None
    app_detected: Optional[str] = None
    url_detected: Optional[str] = None
    comprehensive_description: Optional[str] = None

    @field_validator("keywords", mode="before")
    @classmethod
    def _keywords_default(cls, value):
        return [] if value is None else value

    def has_content(self) -> bool:
        """True when the run produced something worth persisting."""
        return bool(self.ocr_text or self.title)

    def to_metadata(self, screenshot_id: str) -> ScreenshotMetadata:
        return ScreenshotMetadata(
            screenshot_id=screenshot_id,
            ocr_text=self.ocr_text,
            ai_title=self.title,
            ai_description=self.description,
            ai_keywords=list(self.keywords),
            confidence_score=self.confidence_score,
            comprehensive_description=self.comprehensive_description,
        )

    @classmethod
    def from_metadata(cls, metadata: ScreenshotMetadata) -> "AnalysisResult":
        return cls(
            ocr_text=metadata.ocr_text,
            title=metadata.ai_title,
            description=metadata.ai_description,
            keywords=metadata.ai_keywords,
            confidence_score=metadata.confidence_score,
            comprehensive_description=metadata.comprehensive_description,
        )


class EmbeddingRecord(BaseModel):
    """One indexed vector, keyed by the screenshot id."""

    id: str
    path: str = ""
    kind: Literal["image", "text"] = "image"
    vector: list[float] = Field(min_length=1)
    source_text: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class SemanticMatch(BaseModel):
    id: str
    score: float
    record: EmbeddingRecord


# Smart folder rules. Persisted blobs use camelCase keys, hence the aliases.


class _Rule(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class AllRule(_Rule):
    type: Literal["all"] = "all"


class RecentRule(_Rule):
    type: Literal["recent"] = "recent"
    days: float = Field(default=7, gt=0)

    @field_validator("days", mode="before")
    @classmethod
    def _zero_days_means_default(cls, value):
        # A zero or null window falls back to the default week.
        return 7 if value is None or value == 0 else value


class FavoritesRule(_Rule):
    type: Literal["favorites"] = "favorites"


class TagRule(_Rule):
    type: Literal["tag"] = "tag"
    tag_id: int = Field(alias="tagId")


class DateRangeRule(_Rule):
    """Inclusive creation-time window in epoch milliseconds."""

    type: Literal["date_range"] = "date_range"
    start: int = Field(default=0, alias="startDate")
    end: Optional[int] = Field(default=None, alias="endDate")

    @model_validator(mode="before")
    @classmethod
    def _coerce_datetimes(cls, data):
        if isinstance(data, dict):
            return {key: _to_epoch_ms(value) for key, value in data.items()}
        return data

    @model_validator(mode="after")
    def _check_order(self):
        if self.end is not None and self.end < self.start:
            raise ValueError("date_range end precedes start")
        return self


class ContentTypeRule(_Rule):
    type: Literal["content_type"] = "content_type"
    content_type: str = Field(default="", alias="contentType")


FilterRule = Annotated[
    Union[AllRule, RecentRule, FavoritesRule, TagRule, DateRangeRule, ContentTypeRule],
    Field(discriminator="type"),
]


class SmartFolder(BaseModel):
    id: Optional[int] = None
    name: str
    filter_rule: FilterRule


class SearchResultEntry(BaseModel):
    """One ranked hit of a hybrid query. Never persisted."""

    artifact_id: str
    relevance_score: Optional[float] = None
    source: Literal["lexical", "semantic"]
    screenshot: Optional[Screenshot] = None
    metadata: Optional[ScreenshotMetadata] = None
