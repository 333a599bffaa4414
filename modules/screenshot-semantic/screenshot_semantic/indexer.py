"""Glue between the analysis pipeline, the metadata store and the embedding index."""

import asyncio
import hashlib
import logging
import os
import re
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Optional

from .metadata import MetadataStore
from .models import AnalysisResult, Screenshot
from .pipeline import AnalysisPipeline
from .storage import EmbeddingStore

logger = logging.getLogger(__name__)

DEFAULT_NAME_PATTERNS = (
    re.compile(r"^Screenshot \d{4}-\d{2}-\d{2} at \d{1,2}\.\d{2}\.\d{2}( AM| PM)?\.png$", re.I),
    re.compile(r"^CleanShot \d{4}-\d{2}-\d{2} at \d{1,2}\.\d{2}\.\d{2}(@2x)?\.png$", re.I),
    re.compile(r"^screenshot_\d+\.png$", re.I),
    re.compile(r"^Screen Shot \d{4}-\d{2}-\d{2} at \d{1,2}\.\d{2}\.\d{2}( AM| PM)?\.png$", re.I),
)


def compute_fingerprint(path: str) -> str:
    """SHA-256 hex digest of the file contents."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1 << 16), b""):
            digest.update(chunk)
    return digest.hexdigest()


def is_default_screenshot_name(filename: str) -> bool:
    return any(pattern.match(filename) for pattern in DEFAULT_NAME_PATTERNS)


def title_to_filename(title: str, today: Optional[date] = None) -> Optional[str]:
    """``"Quarterly Sales!"`` -> ``"quarterly-sales-2024-05-01.png"``; None if too short."""
    slug = re.sub(r"[^\w\s-]", "", title)
    slug = re.sub(r"\s+", "-", slug.strip()).lower()[:50]
    if len(slug) <= 3:
        return None
    return f"{slug}-{(today or date.today()).isoformat()}.png"


def search_content(result: AnalysisResult) -> str:
    parts = [result.ocr_text, result.title, result.description, *result.keywords]
    return " ".join(part for part in parts if part)


@dataclass
class IndexingOutcome:
    """What happened to one screenshot.

    ``embedded`` is False when the screenshot is searchable by text only.
    """

    screenshot_id: str
    result: AnalysisResult
    persisted: bool = False
    embedded: bool = False
    embedding_error: Optional[str] = None
    renamed_to: Optional[str] = None


@dataclass
class BackfillReport:
    purged: int = 0
    processed: int = 0
    generated: int = 0
    skipped: int = 0
    errors: int = 0


class ScreenshotIndexer:
    """Runs analysis for a screenshot and records the outcome everywhere it belongs.

    Design decisions:
    - Embedding failures never fail indexing; the screenshot stays
      searchable by text and the outcome says so
    - Renames go through record_rename so the embedding record's path is
      updated with the metadata path, otherwise purge_stale would drop it
    """

    def __init__(
        self,
        pipeline: AnalysisPipeline,
        metadata: MetadataStore,
        embeddings: Optional[EmbeddingStore] = None,
        config: Optional[dict] = None,
    ):
        config = config or {}
        self.pipeline = pipeline
        self.metadata = metadata
        self.embeddings = embeddings
        self.auto_rename = config.get("auto_rename", True)

    async def register(self, path: str) -> Screenshot:
        """Create the screenshot record for a file, reusing an identical one."""
        fingerprint = await asyncio.to_thread(compute_fingerprint, path)
        existing = self.metadata.find_by_content_hash(fingerprint)
        if existing is not None:
            logger.info("%s duplicates screenshot %s", path, existing.id)
            return existing

        file = Path(path)
        screenshot = Screenshot(
            filepath=str(file),
            filename=file.name,
            file_size=(await asyncio.to_thread(file.stat)).st_size,
            format=file.suffix.lstrip(".").lower() or "png",
            content_hash=fingerprint,
        )
        return self.metadata.add_screenshot(screenshot)

    async def index(self, screenshot_id: str, image_path: str) -> IndexingOutcome:
        """Analyze, persist, embed and (optionally) rename one screenshot.

        Raises:
            ImageReadError: If the image cannot be read
        """
        result = await self.pipeline.process(screenshot_id, image_path)
        outcome = IndexingOutcome(screenshot_id=screenshot_id, result=result)
        if not result.has_content():
            logger.warning("Nothing to persist for %s", screenshot_id)
            return outcome

        self.metadata.add_metadata(result.to_metadata(screenshot_id))
        self.metadata.update_search_index(
            screenshot_id, search_content(result), result.keywords
        )
        outcome.persisted = True

        if self.embeddings is None:
            logger.warning("No embedding store configured, %s is text-searchable only", screenshot_id)
        elif not result.comprehensive_description:
            logger.warning("No comprehensive description for %s, skipping embedding", screenshot_id)
        else:
            try:
                await self.embeddings.add_image(screenshot_id, image_path, result)
                outcome.embedded = True
            except Exception as e:
                logger.error("Failed to create embedding for %s: %s", screenshot_id, e)
                outcome.embedding_error = str(e)

        if self.auto_rename and result.title:
            outcome.renamed_to = await self._auto_rename(screenshot_id, result.title)
        return outcome

    async def reprocess(self, screenshot_id: str) -> Optional[IndexingOutcome]:
        """Re-run analysis, replacing the previous embedding."""
        screenshot = self.metadata.get_screenshot(screenshot_id)
        if screenshot is None:
            return None
        if self.embeddings is not None:
            await self.embeddings.remove_item(screenshot_id)
        return await self.index(screenshot_id, screenshot.filepath)

    async def record_rename(self, screenshot_id: str, new_path: str) -> bool:
        """Sync both stores after the file at ``screenshot_id`` moved to ``new_path``."""
        updated = self.metadata.update_screenshot_path(screenshot_id, new_path)
        if self.embeddings is not None:
            await self.embeddings.update_path(screenshot_id, new_path)
        return updated

    async def _auto_rename(self, screenshot_id: str, title: str) -> Optional[str]:
        screenshot = self.metadata.get_screenshot(screenshot_id)
        if screenshot is None or not is_default_screenshot_name(screenshot.filename):
            return None
        new_name = title_to_filename(title)
        if new_name is None:
            return None

        old_path = Path(screenshot.filepath)
        new_path = old_path.with_name(new_name)
        if new_path.exists():
            logger.warning("Not renaming %s: %s already exists", old_path, new_path)
            return None
        try:
            await asyncio.to_thread(os.rename, old_path, new_path)
        except OSError as e:
            logger.warning("Failed to rename %s: %s", old_path, e)
            return None

        await self.record_rename(screenshot_id, str(new_path))
        logger.info("Auto-renamed %s to %s", old_path.name, new_name)
        return str(new_path)

    async def delete(self, screenshot_id: str) -> bool:
        deleted = self.metadata.delete_screenshot(screenshot_id)
        if self.embeddings is not None:
            await self.embeddings.remove_item(screenshot_id)
        return deleted

    async def backfill(self) -> BackfillReport:
        """Bring the embedding index up to date with every known screenshot."""
        report = BackfillReport()
        if self.embeddings is None:
            logger.error("Cannot backfill embeddings without an embedding store")
            return report

        report.purged = await self.embeddings.purge_stale()
        for screenshot in self.metadata.all_screenshots():
            if not await asyncio.to_thread(os.path.exists, screenshot.filepath):
                logger.warning(
                    "Skipping %s: file missing at %s", screenshot.id, screenshot.filepath
                )
                report.skipped += 1
                continue
            try:
                metadata = self.metadata.get_metadata(screenshot.id)
                if metadata is not None and metadata.comprehensive_description:
                    await self.embeddings.add_image(
                        screenshot.id,
                        screenshot.filepath,
                        AnalysisResult.from_metadata(metadata),
                    )
                    report.processed += 1
                    continue

                outcome = await self.index(screenshot.id, screenshot.filepath)
                if outcome.embedded:
                    report.generated += 1
                    report.processed += 1
                else:
                    report.skipped += 1
            except Exception as e:
                logger.error("Failed to process embedding for %s: %s", screenshot.id, e)
                report.errors += 1

        logger.info(
            "Backfill complete: %d processed (%d generated), %d skipped, %d errors, %d purged",
            report.processed,
            report.generated,
            report.skipped,
            report.errors,
            report.purged,
        )
        return report
