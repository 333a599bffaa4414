"""Wiring: build every component from one Settings object."""

import logging
from dataclasses import dataclass
from typing import Optional

from .config import Settings, configure_logging
from .embeddings import EmbeddingGenerator
from .errors import EmbeddingIndexError
from .indexer import ScreenshotIndexer
from .inference import InferenceClient
from .metadata import MetadataStore
from .pipeline import AnalysisPipeline
from .search import HybridSearch
from .smart_folders import SmartFolderEvaluator
from .storage import EmbeddingStore

logger = logging.getLogger(__name__)


@dataclass
class ScreenshotServices:
    settings: Settings
    metadata: MetadataStore
    embeddings: Optional[EmbeddingStore]
    pipeline: AnalysisPipeline
    indexer: ScreenshotIndexer
    search: HybridSearch
    smart_folders: SmartFolderEvaluator

    async def close(self) -> None:
        if self.embeddings is not None:
            await self.embeddings.save()
        self.metadata.close()


def build_services(
    settings: Optional[Settings] = None,
    *,
    inference: Optional[InferenceClient] = None,
    embedder: Optional[EmbeddingGenerator] = None,
) -> ScreenshotServices:
    """Create the stores, pipeline and search service.

    Semantic search is optional: if the embedding store cannot be set up
    (no API key, unreadable index) the error is logged and search runs
    on text alone.

    Raises:
        ValueError: If no OpenAI API key is available for the inference client
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    config = settings.model_dump()

    inference = inference or InferenceClient(
        model=settings.vision_model, api_key=settings.openai_api_key
    )
    metadata = MetadataStore(settings.resolved_database_path())

    embeddings: Optional[EmbeddingStore] = None
    try:
        embedder = embedder or EmbeddingGenerator(
            model=settings.embedding_model,
            api_key=settings.openai_api_key,
            max_input_chars=settings.embed_max_chars,
        )
        embeddings = EmbeddingStore(
            settings.resolved_embedding_index_path(),
            embeddings=embedder,
            inference=inference,
            config=config,
        )
    except (ValueError, EmbeddingIndexError) as e:
        logger.error("Embedding service not available, semantic search disabled: %s", e)

    pipeline = AnalysisPipeline(inference, config)
    return ScreenshotServices(
        settings=settings,
        metadata=metadata,
        embeddings=embeddings,
        pipeline=pipeline,
        indexer=ScreenshotIndexer(pipeline, metadata, embeddings, config),
        search=HybridSearch(metadata, embeddings, config),
        smart_folders=SmartFolderEvaluator(metadata),
    )
