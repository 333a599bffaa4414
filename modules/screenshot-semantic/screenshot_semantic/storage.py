"""JSON-backed embedding index with cosine similarity search."""

import asyncio
import json
import logging
import math
import os
import tempfile
from pathlib import Path
from typing import Optional, Sequence

from .embeddings import EmbeddingGenerator
from .errors import DimensionMismatchError, EmbeddingError, EmbeddingIndexError
from .fallback import first_usable
from .heuristics import compose_comprehensive_description
from .inference import InferenceClient, load_image
from .models import AnalysisResult, EmbeddingRecord, SemanticMatch, now_ms

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """dot(a, b) / (|a| * |b|).

    A zero vector scores 0.0 against anything.

    Raises:
        DimensionMismatchError: If the vectors differ in length
    """
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))

    dot = norm_a = norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


class EmbeddingStore:
    """Screenshot embedding index persisted as a single JSON document.

    Design decisions:
    - In-memory dict keyed by screenshot id, insertion ordered
    - Every mutation rewrites the whole file via temp file + os.replace,
      so readers never see a half-written index
    - One vector length per store; a mismatch is rejected, never padded
    - Search ties keep insertion order (stable sort)
    """

    def __init__(
        self,
        index_path: Path,
        embeddings: Optional[EmbeddingGenerator] = None,
        inference: Optional[InferenceClient] = None,
        config: Optional[dict] = None,
    ):
        """Open (or create) the index at ``index_path``.

        Args:
            index_path: JSON document holding ``{items, lastUpdated}``
            embeddings: Embedding generator (default: EmbeddingGenerator())
            inference: Used to regenerate a description when none is given
            config: Optional configuration:
                - embedding_model: OpenAI model (default: text-embedding-3-small)
                - embed_max_chars: input budget per embedding call (default: 8000)

        Raises:
            EmbeddingIndexError: If an existing index cannot be loaded
        """
        config = config or {}
        self.index_path = Path(index_path)
        self.index_path.parent.mkdir(parents=True, exist_ok=True)

        self.embeddings = embeddings or EmbeddingGenerator(
            model=config.get("embedding_model", "text-embedding-3-small"),
            max_input_chars=config.get("embed_max_chars", 8000),
        )
        self.inference = inference

        self._items: dict[str, EmbeddingRecord] = {}
        self._save_lock = asyncio.Lock()
        self._load()

    def _load(self) -> None:
        if not self.index_path.exists():
            return
        try:
            data = json.loads(self.index_path.read_text(encoding="utf-8"))
            items = {
                key: EmbeddingRecord.model_validate(value)
                for key, value in (data.get("items") or {}).items()
            }
        except (OSError, ValueError, AttributeError) as e:
            raise EmbeddingIndexError(
                f"Failed to load embedding index {self.index_path}: {e}"
            ) from e

        lengths = {len(record.vector) for record in items.values()}
        if len(lengths) > 1:
            raise EmbeddingIndexError(
                f"Embedding index {self.index_path} mixes vector lengths "
                f"{sorted(lengths)}; rebuild it"
            )
        self._items = items
        logger.info("Loaded %d embeddings from %s", len(items), self.index_path)

    @property
    def dimensions(self) -> Optional[int]:
        """Vector length shared by every record, or None while empty."""
        for record in self._items.values():
            return len(record.vector)
        return None

    def count(self) -> int:
        return len(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._items

    def get(self, item_id: str) -> Optional[EmbeddingRecord]:
        return self._items.get(item_id)

    async def add_image(
        self,
        item_id: str,
        image_path: str,
        metadata: Optional[AnalysisResult] = None,
    ) -> None:
        """Index a screenshot. A no-op when ``item_id`` is already indexed.

        Text to embed comes from, in order: the supplied comprehensive
        description, a freshly generated one, or the other metadata fields.

        Raises:
            EmbeddingError: If no vector could be produced
            DimensionMismatchError: If the vector length differs from the index
        """
        if item_id in self._items:
            logger.info("Image %s already indexed, skipping", item_id)
            return

        content = await first_usable(
            "embedding content",
            [
                lambda: metadata.comprehensive_description if metadata else None,
                lambda: self._regenerate_description(image_path, metadata),
                lambda: self._compose_from_metadata(metadata),
            ],
        )
        await self._add(item_id, image_path, "image", content, metadata)

    async def add_text(
        self,
        item_id: str,
        text: str,
        metadata: Optional[AnalysisResult] = None,
    ) -> None:
        """Index free text with no backing file."""
        if item_id in self._items:
            logger.info("Text %s already indexed, skipping", item_id)
            return
        await self._add(item_id, "", "text", text, metadata)

    async def _add(
        self,
        item_id: str,
        path: str,
        kind: str,
        content: Optional[str],
        metadata: Optional[AnalysisResult],
    ) -> None:
        if not content or not content.strip():
            raise EmbeddingError(f"No content to embed for {item_id}")

        vector = await self.embeddings.generate(content)
        if not vector:
            raise EmbeddingError(f"Failed to create embedding for {item_id}")
        expected = self.dimensions
        if expected is not None and len(vector) != expected:
            raise DimensionMismatchError(expected, len(vector))

        # Another caller may have indexed the same id while we awaited.
        if item_id in self._items:
            logger.info("%s was indexed concurrently, keeping existing record", item_id)
            return

        self._items[item_id] = EmbeddingRecord(
            id=item_id,
            path=path,
            kind=kind,
            vector=vector,
            source_text=content,
            metadata=metadata.model_dump(exclude_none=True) if metadata else {},
        )
        logger.info("Added %s to embedding index (%d items)", item_id, len(self._items))
        await self.save()

    async def _regenerate_description(
        self, image_path: str, metadata: Optional[AnalysisResult]
    ) -> Optional[str]:
        if self.inference is None:
            return None
        metadata = metadata or AnalysisResult()
        image = await load_image(image_path)
        return await self.inference.generate_comprehensive_description(
            image, metadata.ocr_text or "", metadata.title, metadata.keywords or None
        )

    @staticmethod
    def _compose_from_metadata(metadata: Optional[AnalysisResult]) -> str:
        metadata = metadata or AnalysisResult()
        return compose_comprehensive_description(
            description=metadata.description,
            ocr_text=metadata.ocr_text,
            title=metadata.title,
            keywords=metadata.keywords,
        )

    async def search_by_text(self, query: str, k: int = 10) -> list[SemanticMatch]:
        """Top ``k`` records by cosine similarity to ``query``.

        Raises:
            EmbeddingError: If the query cannot be embedded
            DimensionMismatchError: If the query vector length differs
        """
        if not self._items or k <= 0:
            return []

        query_vector = await self.embeddings.generate(query)
        matches = [
            SemanticMatch(
                id=item_id,
                score=cosine_similarity(query_vector, record.vector),
                record=record,
            )
            for item_id, record in self._items.items()
        ]
        matches.sort(key=lambda match: match.score, reverse=True)
        return matches[:k]

    async def remove_item(self, item_id: str) -> None:
        if self._items.pop(item_id, None) is not None:
            logger.info("Removed %s from embedding index", item_id)
            await self.save()

    async def update_path(self, item_id: str, new_path: str) -> bool:
        """Point a record at its renamed file. Returns False if not indexed."""
        record = self._items.get(item_id)
        if record is None:
            return False
        if record.path != new_path:
            self._items[item_id] = record.model_copy(update={"path": new_path})
            await self.save()
        return True

    async def purge_stale(self) -> int:
        """Drop records whose backing file is gone. Saves once, if anything changed.

        Returns:
            Number of records removed
        """
        removed = 0
        for item_id, record in list(self._items.items()):
            if not record.path:
                continue
            try:
                exists = await asyncio.to_thread(os.path.exists, record.path)
            except OSError as e:
                logger.warning("Error checking %s, removing embedding: %s", record.path, e)
                exists = False
            # The record may have been removed or repointed while the check ran.
            if not exists and self._items.get(item_id) is record:
                logger.info("Removing stale embedding for deleted file %s", record.path)
                del self._items[item_id]
                removed += 1

        if removed:
            await self.save()
            logger.info("Purged %d stale embeddings (%d remain)", removed, len(self._items))
        return removed

    async def save(self) -> None:
        """Write the whole index atomically."""
        async with self._save_lock:
            document = {
                "items": {
                    item_id: record.model_dump(mode="json")
                    for item_id, record in self._items.items()
                },
                "lastUpdated": now_ms(),
            }
            payload = json.dumps(document)
            await asyncio.to_thread(self._write_atomic, payload)
        logger.debug("Saved %d embeddings to %s", len(self._items), self.index_path)

    def _write_atomic(self, payload: str) -> None:
        fd, tmp_path = tempfile.mkstemp(
            dir=self.index_path.parent, prefix=self.index_path.name, suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.index_path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
