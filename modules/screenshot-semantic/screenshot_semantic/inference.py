"""OpenAI vision wrapper for screenshot OCR, titling and description."""

import asyncio
import base64
import json
import logging
import mimetypes
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence

from openai import AsyncOpenAI

from .errors import ImageReadError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScreenshotImage:
    """Raw image bytes plus the media type sent to the vision model."""

    data: bytes
    media_type: str = "image/png"

    def data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.media_type};base64,{encoded}"


async def load_image(path: str) -> ScreenshotImage:
    """Read an image from disk without blocking the event loop.

    Raises:
        ImageReadError: If the file cannot be read
    """
    try:
        data = await asyncio.to_thread(Path(path).read_bytes)
    except OSError as e:
        raise ImageReadError(path, str(e)) from e
    media_type = mimetypes.guess_type(path)[0] or "image/png"
    logger.debug("Loaded image %s (%d bytes, %s)", path, len(data), media_type)
    return ScreenshotImage(data=data, media_type=media_type)


class InferenceClient:
    """Multimodal inference calls used by the analysis pipeline.

    Every method returns what the model said, lightly parsed. Shape checks
    and fallbacks are the caller's job: the model may answer with empty or
    malformed output, and SDK errors propagate.
    """

    OCR_PROMPT = (
        "Extract all text visible in this screenshot exactly as written, "
        "preserving line breaks. Respond with JSON: "
        '{"text": "<all text>", "confidence": <0.0-1.0>}.'
    )
    CLASSIFY_PROMPT = (
        "Classify this screenshot. Respond with JSON containing "
        '"content_type" (e.g. code, webpage, document, chat, chart, diagram, interface), '
        '"app_detected" (application name or null), "url_detected" (visible URL or null) '
        'and "language" (programming or natural language, or null).'
    )
    TITLE_PROMPT = (
        "Write a short, specific title (at most 8 words) for this screenshot. "
        "Respond with the title only."
    )
    DESCRIPTION_PROMPT = (
        "Describe what this screenshot shows in two or three sentences: "
        "the application or site, the task in progress and the key content."
    )
    COMPREHENSIVE_PROMPT = (
        "Write a thorough description of this screenshot for semantic search. "
        "Cover the application, visible text, subject matter, entities, purpose "
        "and any notable visual elements. Plain prose, no preamble."
    )

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        max_tokens: int = 1024,
    ):
        self.model = model
        self.max_tokens = max_tokens

        final_api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not final_api_key:
            raise ValueError(
                "OpenAI API key required. Set OPENAI_API_KEY environment variable "
                "or pass api_key parameter."
            )

        self.client = AsyncOpenAI(api_key=final_api_key)

    async def _ask(
        self,
        image: ScreenshotImage,
        prompt: str,
        *,
        json_output: bool = False,
        max_tokens: Optional[int] = None,
    ) -> Optional[str]:
        kwargs: dict = {
            "model": self.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": "image_url", "image_url": {"url": image.data_url()}},
                    ],
                }
            ],
            "max_tokens": max_tokens or self.max_tokens,
        }
        if json_output:
            kwargs["response_format"] = {"type": "json_object"}

        response = await self.client.chat.completions.create(**kwargs)
        if not response.choices:
            return None
        content = response.choices[0].message.content
        return content.strip() if content else None

    async def _ask_json(self, image: ScreenshotImage, prompt: str) -> Any:
        raw = await self._ask(image, prompt, json_output=True)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.debug("Model returned non-JSON output (%d chars)", len(raw))
            return raw

    async def extract_text(self, image: ScreenshotImage) -> Optional[str]:
        return await self._ask(
            image, "Extract all text visible in this screenshot exactly as written."
        )

    async def extract_all_text(self, image: ScreenshotImage) -> Any:
        """OCR returning ``{"text", "confidence"}``, or a bare string."""
        return await self._ask_json(image, self.OCR_PROMPT)

    async def classify(self, image: ScreenshotImage) -> Any:
        return await self._ask_json(image, self.CLASSIFY_PROMPT)

    async def generate_title(self, image: ScreenshotImage, text: str) -> Optional[str]:
        prompt = f"{self.TITLE_PROMPT}\n\nText found in the screenshot:\n{text}"
        return await self._ask(image, prompt, max_tokens=40)

    async def generate_description(
        self, image: ScreenshotImage, text: str
    ) -> Optional[str]:
        prompt = f"{self.DESCRIPTION_PROMPT}\n\nText found in the screenshot:\n{text}"
        return await self._ask(image, prompt, max_tokens=300)

    async def generate_comprehensive_description(
        self,
        image: ScreenshotImage,
        text: str,
        title: Optional[str] = None,
        keywords: Optional[Sequence[str]] = None,
    ) -> Optional[str]:
        prompt = self.COMPREHENSIVE_PROMPT
        if title:
            prompt += f"\n\nWorking title: {title}"
        if keywords:
            prompt += f"\nKeywords: {', '.join(keywords)}"
        if text:
            prompt += f"\n\nText found in the screenshot:\n{text}"
        return await self._ask(image, prompt)
