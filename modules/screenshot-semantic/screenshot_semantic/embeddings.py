"""OpenAI embedding generation wrapper."""

import logging
import os
from typing import Optional

from openai import AsyncOpenAI, OpenAIError

from .errors import EmbeddingError

logger = logging.getLogger(__name__)


class EmbeddingGenerator:
    """OpenAI embedding API wrapper for screenshot search.

    Uses text-embedding-3-small by default:
    - 1536 dimensions
    - 8191 token ceiling per input, hence the character budget
    """

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        api_key: Optional[str] = None,
        max_input_chars: int = 8000,
    ):
        self.model = model
        self.dimensions = 1536
        self.max_input_chars = max_input_chars

        # Validate API key is provided
        final_api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not final_api_key:
            raise ValueError(
                "OpenAI API key required. Set OPENAI_API_KEY environment variable "
                "or pass api_key parameter."
            )

        self.client = AsyncOpenAI(api_key=final_api_key)

    async def generate(self, content: str) -> list[float]:
        """Generate embedding for single content.

        Content longer than ``max_input_chars`` is truncated, not rejected.

        Args:
            content: Text to embed

        Returns:
            Vector of floats

        Raises:
            EmbeddingError: If content is empty, the API call fails or the
                response carries no vector
        """
        if not content or not content.strip():
            raise EmbeddingError("Empty text provided for embedding")

        limited = content[: self.max_input_chars]
        logger.debug("Creating embedding for %d chars", len(limited))

        try:
            response = await self.client.embeddings.create(
                model=self.model, input=limited
            )
        except OpenAIError as e:
            raise EmbeddingError(f"Embedding API call failed: {e}") from e

        if not response.data:
            raise EmbeddingError("Embedding response contained no data")
        embedding = response.data[0].embedding
        if not embedding:
            raise EmbeddingError("Embedding response contained an empty vector")
        return [float(x) for x in embedding]
