"""Hybrid search: lexical matches from SQLite merged with semantic matches."""

import asyncio
import logging
import sqlite3
from typing import Optional

from .metadata import MetadataStore
from .models import SearchResultEntry, SemanticMatch
from .storage import EmbeddingStore

logger = logging.getLogger(__name__)


class HybridSearch:
    """Unified search entry point.

    Merge policy:
    - Semantic hits first, scored by cosine similarity
    - Lexical hits appended only for ids not already present
    - Truncated to ``limit``

    Semantic search is optional. When it is missing or fails the query
    degrades to lexical results.
    """

    def __init__(
        self,
        metadata: MetadataStore,
        embeddings: Optional[EmbeddingStore] = None,
        config: Optional[dict] = None,
    ):
        config = config or {}
        self.metadata = metadata
        self.embeddings = embeddings
        self.default_limit = config.get("search_limit", 50)

    async def search(
        self, query: str, limit: Optional[int] = None
    ) -> list[SearchResultEntry]:
        limit = self.default_limit if limit is None else limit
        if not query or not query.strip() or limit <= 0:
            return []

        lexical_task = asyncio.create_task(self._lexical(query, limit))
        semantic: list[SemanticMatch] = []
        if self.embeddings is not None:
            try:
                semantic = await self.embeddings.search_by_text(query, limit)
            except Exception as e:
                logger.error("Semantic search failed, falling back to text search: %s", e)
        else:
            logger.debug("No embedding store configured, using text search only")
        lexical = await lexical_task

        return self.merge(semantic, lexical, limit)

    async def _lexical(self, query: str, limit: int) -> list[SearchResultEntry]:
        try:
            screenshots = await asyncio.to_thread(
                self.metadata.search_screenshots, query, limit
            )
        except sqlite3.Error as e:
            logger.error("Text search failed: %s", e)
            return []
        return [
            SearchResultEntry(
                artifact_id=screenshot.id,
                source="lexical",
                screenshot=screenshot,
            )
            for screenshot in screenshots
        ]

    def merge(
        self,
        semantic: list[SemanticMatch],
        lexical: list[SearchResultEntry],
        limit: int,
    ) -> list[SearchResultEntry]:
        merged: dict[str, SearchResultEntry] = {}
        for match in semantic:
            if match.id in merged:
                continue
            screenshot = self.metadata.get_screenshot(match.id)
            if screenshot is None:
                # Indexed but no longer known to the metadata store.
                continue
            merged[match.id] = SearchResultEntry(
                artifact_id=match.id,
                relevance_score=match.score,
                source="semantic",
                screenshot=screenshot,
                metadata=self.metadata.get_metadata(match.id),
            )
        for entry in lexical:
            if entry.artifact_id not in merged:
                merged[entry.artifact_id] = entry

        logger.info(
            "Combined search results: %d semantic, %d text, %d merged",
            len(semantic),
            len(lexical),
            len(merged),
        )
        return list(merged.values())[:limit]
