"""Shared fixtures: fake remote clients and on-disk screenshots."""

import string
from unittest.mock import AsyncMock

import pytest

PNG_HEADER = b"\x89PNG\r\n\x1a\n"

OCR_TEXT = (
    "def sort_items(items):\n"
    "    return sorted(items, key=lambda item: item.priority)\n"
    "Visual Studio Code - inventory.py"
)


def letter_vector(text: str) -> list[float]:
    """Fixed 26-dim bag-of-letters embedding: similar text, similar vector."""
    lowered = text.lower()
    return [float(lowered.count(c)) for c in string.ascii_lowercase]


@pytest.fixture
def mock_embedder():
    """Mock embedder returning deterministic fixed-length vectors."""
    embedder = AsyncMock()
    embedder.generate.side_effect = letter_vector
    embedder.dimensions = 26
    return embedder


@pytest.fixture
def mock_inference():
    """Mock vision client where every call succeeds."""
    inference = AsyncMock()
    inference.extract_all_text.return_value = {"text": OCR_TEXT, "confidence": 0.93}
    inference.extract_text.return_value = None
    inference.classify.return_value = {
        "content_type": "code",
        "app_detected": "VS Code",
        "url_detected": None,
    }
    inference.generate_title.return_value = "Sorting inventory items in Python"
    inference.generate_description.return_value = (
        "A Python function in VS Code that sorts inventory items by priority."
    )
    inference.generate_comprehensive_description.return_value = (
        "Screenshot of Visual Studio Code showing a Python function named "
        "sort_items that sorts inventory items by their priority attribute."
    )
    return inference


@pytest.fixture
def make_image(tmp_path):
    """Factory writing a small fake PNG and returning its path."""

    def _make(name: str = "shot.png", payload: bytes = b"pixels") -> str:
        path = tmp_path / name
        path.write_bytes(PNG_HEADER + payload)
        return str(path)

    return _make
