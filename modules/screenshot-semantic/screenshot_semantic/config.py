"""Typed configuration for the screenshot analysis and search core."""

import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

ENV_PREFIX = "SCREENSHOT_SEMANTIC_"


class Settings(BaseModel):
    """Settings shared by the pipeline, stores and search service."""

    storage_root: Path = Field(
        default_factory=lambda: Path(os.path.expanduser("~/.screenshot-semantic")),
        description="Base directory for the database and embedding index.",
    )
    database_path: Optional[Path] = Field(
        default=None, description="SQLite metadata database (default: <root>/screenshots.db)."
    )
    embedding_index_path: Optional[Path] = Field(
        default=None,
        description="Embedding index document (default: <root>/embeddings/embedding_index.json).",
    )
    embedding_model: str = Field(default="text-embedding-3-small")
    vision_model: str = Field(default="gpt-4o-mini")
    openai_api_key: Optional[str] = Field(default=None, repr=False)
    embed_max_chars: int = Field(default=8000, gt=0)
    title_max_chars: int = Field(default=50, gt=0)
    batch_size: int = Field(default=3, gt=0)
    batch_pause_seconds: float = Field(default=1.0, ge=0)
    search_limit: int = Field(default=50, gt=0)
    auto_rename: bool = Field(default=True)
    log_level: str = Field(default="INFO")

    def resolved_database_path(self) -> Path:
        return self.database_path or self.storage_root / "screenshots.db"

    def resolved_embedding_index_path(self) -> Path:
        return (
            self.embedding_index_path
            or self.storage_root / "embeddings" / "embedding_index.json"
        )

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from SCREENSHOT_SEMANTIC_* environment variables.

        OPENAI_API_KEY is honoured when no prefixed key is set.
        """
        values = {}
        for name in cls.model_fields:
            raw = os.environ.get(ENV_PREFIX + name.upper())
            if raw is not None:
                values[name] = raw
        if "openai_api_key" not in values and os.getenv("OPENAI_API_KEY"):
            values["openai_api_key"] = os.getenv("OPENAI_API_KEY")
        return cls(**values)


def configure_logging(level: str = "INFO") -> None:
    """Install a basic stderr handler for hosts that do not configure logging.

    The package logger level is always set, so the level applies even when
    the host already installed its own handlers.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("screenshot_semantic").setLevel(numeric_level)


__all__ = ["Settings", "configure_logging"]
