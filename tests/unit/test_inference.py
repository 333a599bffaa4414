"""Unit tests for the vision inference client."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from screenshot_semantic.errors import ImageReadError
from screenshot_semantic.inference import InferenceClient, ScreenshotImage, load_image

IMAGE = ScreenshotImage(data=b"\x89PNG", media_type="image/png")


def chat_response(content):
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    return response


@pytest.mark.asyncio
class TestInferenceClient:
    """Request shape and light response parsing."""

    async def test_ocr_parses_json(self):
        with patch("screenshot_semantic.inference.AsyncOpenAI") as mock_client:
            mock_create = AsyncMock(
                return_value=chat_response('{"text": "Hello", "confidence": 0.9}')
            )
            mock_client.return_value.chat.completions.create = mock_create

            client = InferenceClient(api_key="test-key")
            result = await client.extract_all_text(IMAGE)

            assert result == {"text": "Hello", "confidence": 0.9}
            call_kwargs = mock_create.call_args[1]
            assert call_kwargs["model"] == "gpt-4o-mini"
            assert call_kwargs["response_format"] == {"type": "json_object"}
            image_part = call_kwargs["messages"][0]["content"][1]
            assert image_part["image_url"]["url"].startswith("data:image/png;base64,")

    async def test_non_json_output_returned_raw(self):
        with patch("screenshot_semantic.inference.AsyncOpenAI") as mock_client:
            mock_client.return_value.chat.completions.create = AsyncMock(
                return_value=chat_response("just some text")
            )

            client = InferenceClient(api_key="test-key")

            assert await client.extract_all_text(IMAGE) == "just some text"

    async def test_plain_text_extraction(self):
        with patch("screenshot_semantic.inference.AsyncOpenAI") as mock_client:
            mock_create = AsyncMock(return_value=chat_response("Invoice 42\nTotal due\n"))
            mock_client.return_value.chat.completions.create = mock_create

            client = InferenceClient(api_key="test-key")

            assert await client.extract_text(IMAGE) == "Invoice 42\nTotal due"
            assert "response_format" not in mock_create.call_args[1]

    async def test_title_is_stripped(self):
        with patch("screenshot_semantic.inference.AsyncOpenAI") as mock_client:
            mock_create = AsyncMock(return_value=chat_response("  Build results \n"))
            mock_client.return_value.chat.completions.create = mock_create

            client = InferenceClient(api_key="test-key")
            title = await client.generate_title(IMAGE, "all tests passed")

            assert title == "Build results"
            assert "response_format" not in mock_create.call_args[1]

    async def test_empty_choices(self):
        with patch("screenshot_semantic.inference.AsyncOpenAI") as mock_client:
            response = MagicMock()
            response.choices = []
            mock_client.return_value.chat.completions.create = AsyncMock(return_value=response)

            client = InferenceClient(api_key="test-key")

            assert await client.generate_description(IMAGE, "text") is None

    async def test_comprehensive_prompt_includes_context(self):
        with patch("screenshot_semantic.inference.AsyncOpenAI") as mock_client:
            mock_create = AsyncMock(return_value=chat_response("A description"))
            mock_client.return_value.chat.completions.create = mock_create

            client = InferenceClient(api_key="test-key")
            await client.generate_comprehensive_description(
                IMAGE, "invoice total", "Invoice", ["invoice", "billing"]
            )

            prompt = mock_create.call_args[1]["messages"][0]["content"][0]["text"]
            assert "Working title: Invoice" in prompt
            assert "Keywords: invoice, billing" in prompt
            assert "invoice total" in prompt

    async def test_sdk_errors_propagate(self):
        with patch("screenshot_semantic.inference.AsyncOpenAI") as mock_client:
            mock_client.return_value.chat.completions.create = AsyncMock(
                side_effect=RuntimeError("rate limited")
            )

            client = InferenceClient(api_key="test-key")

            with pytest.raises(RuntimeError):
                await client.classify(IMAGE)

    async def test_load_image(self, make_image):
        image = await load_image(make_image("shot.png"))

        assert image.media_type == "image/png"
        assert image.data.startswith(b"\x89PNG")

    async def test_load_missing_image(self, tmp_path):
        with pytest.raises(ImageReadError):
            await load_image(str(tmp_path / "missing.png"))


class TestInferenceClientSetup:
    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        with pytest.raises(ValueError):
            InferenceClient()
