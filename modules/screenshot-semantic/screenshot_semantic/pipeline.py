"""Per-screenshot analysis pipeline: OCR, then title, description,
keywords and classification, then a long-form description for embedding.

Remote failures degrade to heuristics; only an unreadable image is fatal.
"""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Awaitable, Optional, Sequence

from .fallback import first_usable
from .heuristics import (
    TITLE_MAX_CHARS,
    compose_comprehensive_description,
    extract_keywords,
    heuristic_description,
    heuristic_title,
)
from .inference import InferenceClient, ScreenshotImage, load_image
from .models import AnalysisResult, ContentClassification, OCRResult, Screenshot

logger = logging.getLogger(__name__)

DEFAULT_OCR_CONFIDENCE = 0.8


def _field(payload: Any, name: str) -> Any:
    if isinstance(payload, Mapping):
        return payload.get(name)
    return getattr(payload, name, None)


def _text_or_none(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


async def _remote_text(call: Awaitable[Any]) -> Optional[str]:
    return _text_or_none(await call)


def normalize_ocr(payload: Any) -> OCRResult:
    """Accept ``{text, confidence}`` or a bare string; anything else is empty."""
    if isinstance(payload, str):
        text, confidence = payload, DEFAULT_OCR_CONFIDENCE
    elif payload is not None and _field(payload, "text") is not None:
        text = _field(payload, "text")
        confidence = _field(payload, "confidence")
        if not isinstance(text, str):
            return OCRResult()
        if not isinstance(confidence, (int, float)) or isinstance(confidence, bool):
            confidence = DEFAULT_OCR_CONFIDENCE
    else:
        return OCRResult()

    if not text.strip():
        return OCRResult()
    return OCRResult(text=text, confidence=float(confidence) or DEFAULT_OCR_CONFIDENCE)


def normalize_classification(payload: Any) -> ContentClassification:
    if payload is None or isinstance(payload, (str, bytes, list)):
        return ContentClassification()
    return ContentClassification(
        content_type=_text_or_none(_field(payload, "content_type")),
        app_detected=_text_or_none(_field(payload, "app_detected")),
        url_detected=_text_or_none(_field(payload, "url_detected")),
        language=_text_or_none(_field(payload, "language")),
    )


@dataclass
class BatchResult:
    results: dict[str, AnalysisResult] = field(default_factory=dict)
    failures: dict[str, str] = field(default_factory=dict)


class AnalysisPipeline:
    """Turns a screenshot into an :class:`AnalysisResult`.

    Design decisions:
    - One in-flight task per screenshot id; concurrent callers share it
    - The registry entry is dropped when the task settles, success or not
    - Each stage is an ordered fallback chain (remote call, then heuristic)
    - Batches run ``batch_size`` at a time with a pause in between, to stay
      under remote rate limits
    """

    def __init__(
        self,
        inference: InferenceClient,
        config: Optional[dict] = None,
    ):
        config = config or {}
        self.inference = inference
        self.title_max_chars = config.get("title_max_chars", TITLE_MAX_CHARS)
        self.batch_size = config.get("batch_size", 3)
        self.batch_pause_seconds = config.get("batch_pause_seconds", 1.0)
        self._in_flight: dict[str, asyncio.Task] = {}

    def is_processing(self, screenshot_id: str) -> bool:
        task = self._in_flight.get(screenshot_id)
        return task is not None and not task.done()

    async def process(self, screenshot_id: str, image_path: str) -> AnalysisResult:
        """Analyze one screenshot, joining any run already in flight for its id.

        Raises:
            ImageReadError: If the image cannot be read
        """
        task = self._in_flight.get(screenshot_id)
        if task is None or task.done():
            task = asyncio.ensure_future(self._run(screenshot_id, image_path))
            self._in_flight[screenshot_id] = task
            task.add_done_callback(
                lambda finished: self._release(screenshot_id, finished)
            )
        else:
            logger.debug("Joining in-flight analysis for %s", screenshot_id)
        return await task

    def _release(self, screenshot_id: str, task: asyncio.Task) -> None:
        if self._in_flight.get(screenshot_id) is task:
            del self._in_flight[screenshot_id]

    async def _run(self, screenshot_id: str, image_path: str) -> AnalysisResult:
        logger.info("Starting analysis for %s (%s)", screenshot_id, image_path)
        image = await load_image(image_path)

        ocr = await self._extract_text(image)
        result = AnalysisResult(ocr_text=ocr.text, confidence_score=ocr.confidence)
        if not ocr.text.strip():
            logger.warning("No text extracted for %s, skipping detailed analysis", screenshot_id)
            return result

        title, description, classification = await asyncio.gather(
            self._title(image, ocr.text),
            self._description(image, ocr.text),
            self._classify(image),
        )
        keywords = extract_keywords(ocr.text)
        comprehensive = await self._comprehensive_description(
            image, ocr.text, title, keywords, description
        )

        result = result.model_copy(
            update={
                "title": title,
                "description": description,
                "keywords": keywords,
                "content_type": classification.content_type,
                "app_detected": classification.app_detected,
                "url_detected": classification.url_detected,
                "comprehensive_description": comprehensive,
            }
        )
        logger.info(
            "Analysis complete for %s: title=%r, %d keywords, %d chars for embedding",
            screenshot_id,
            result.title,
            len(result.keywords),
            len(result.comprehensive_description or ""),
        )
        return result

    @staticmethod
    async def _remote_ocr(call: Awaitable[Any]) -> Optional[OCRResult]:
        ocr = normalize_ocr(await call)
        return ocr if ocr.text else None

    async def _extract_text(self, image: ScreenshotImage) -> OCRResult:
        """Structured OCR first, then plain text extraction."""
        ocr = await first_usable(
            "ocr",
            [
                lambda: self._remote_ocr(self.inference.extract_all_text(image)),
                lambda: self._remote_ocr(self.inference.extract_text(image)),
            ],
        )
        if ocr is None:
            logger.warning("OCR returned no usable text")
            return OCRResult()
        return ocr

    async def _remote_title(self, image: ScreenshotImage, text: str) -> Optional[str]:
        title = _text_or_none(await self.inference.generate_title(image, text))
        return title.strip()[: self.title_max_chars] if title else None

    async def _title(self, image: ScreenshotImage, text: str) -> Optional[str]:
        return await first_usable(
            "title",
            [
                lambda: self._remote_title(image, text),
                lambda: heuristic_title(text, self.title_max_chars),
            ],
        )

    async def _description(self, image: ScreenshotImage, text: str) -> Optional[str]:
        return await first_usable(
            "description",
            [
                lambda: _remote_text(self.inference.generate_description(image, text)),
                lambda: heuristic_description(text),
            ],
        )

    async def _classify(self, image: ScreenshotImage) -> ContentClassification:
        try:
            return normalize_classification(await self.inference.classify(image))
        except Exception as e:
            logger.warning("Content classification failed: %s", e)
            return ContentClassification()

    async def _comprehensive_description(
        self,
        image: ScreenshotImage,
        text: str,
        title: Optional[str],
        keywords: list[str],
        description: Optional[str],
    ) -> Optional[str]:
        return await first_usable(
            "comprehensive description",
            [
                lambda: _remote_text(
                    self.inference.generate_comprehensive_description(
                        image, text, title, keywords
                    )
                ),
                lambda: compose_comprehensive_description(
                    description=description,
                    ocr_text=text,
                    title=title,
                    keywords=keywords,
                ),
            ],
        )

    async def batch_process(self, screenshots: Sequence[Screenshot]) -> BatchResult:
        """Analyze screenshots in fixed-size groups.

        Each group is awaited in full before the next starts. A failure is
        recorded against its id and never stops the batch.
        """
        outcome = BatchResult()
        for start in range(0, len(screenshots), self.batch_size):
            group = screenshots[start : start + self.batch_size]
            settled = await asyncio.gather(
                *(self.process(s.id, s.filepath) for s in group),
                return_exceptions=True,
            )
            for screenshot, result in zip(group, settled):
                if isinstance(result, BaseException):
                    logger.error("Failed to process screenshot %s: %s", screenshot.id, result)
                    outcome.failures[screenshot.id] = str(result)
                else:
                    outcome.results[screenshot.id] = result

            if start + self.batch_size < len(screenshots):
                await asyncio.sleep(self.batch_pause_seconds)
        return outcome
