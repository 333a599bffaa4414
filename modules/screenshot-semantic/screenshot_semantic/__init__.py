"""Screenshot content analysis with hybrid text and semantic search."""

__version__ = "1.0.0"

from .models import AnalysisResult, EmbeddingRecord, Screenshot, SearchResultEntry
from .embeddings import EmbeddingGenerator
from .inference import InferenceClient
from .pipeline import AnalysisPipeline
from .storage import EmbeddingStore, cosine_similarity
from .metadata import MetadataStore
from .smart_folders import SmartFolderEvaluator, parse_filter_rule
from .search import HybridSearch
from .indexer import ScreenshotIndexer
from .service import build_services

__all__ = [
    "AnalysisResult",
    "EmbeddingRecord",
    "Screenshot",
    "SearchResultEntry",
    "EmbeddingGenerator",
    "InferenceClient",
    "AnalysisPipeline",
    "EmbeddingStore",
    "cosine_similarity",
    "MetadataStore",
    "SmartFolderEvaluator",
    "parse_filter_rule",
    "HybridSearch",
    "ScreenshotIndexer",
    "build_services",
]
