"""embedsync: per-tenant embedding generation and batch reconciliation.

Renders changed products and documents to markdown, vectorizes them
directly or through provider batch jobs, and writes the vectors back into
each tenant's schema.
"""

__version__ = "0.1.0"

from embedsync._pipeline import EmbeddingPipeline
from embedsync.config import PipelineSettings
from embedsync.exceptions import (
    BatchJobFailedError,
    EmbedSyncError,
    NotFoundError,
    ProviderError,
    StorageError,
    ValidationError,
)
from embedsync.markdown import (
    DocumentMarkdownRenderer,
    MarkdownRenderer,
    ProductMarkdownRenderer,
    RendererRegistry,
)
from embedsync.modes import (
    BatchProcessingMode,
    DirectProcessingMode,
    ProcessingModeStrategy,
    select_processing_mode,
)
from embedsync.orchestrator import GenerationOrchestrator
from embedsync.providers import EmbeddingProvider, OpenAIEmbeddingProvider, ProviderRegistry
from embedsync.reconciler import BatchReconciler
from embedsync.store import ModificationLedger, TenantConfigLookup, TenantEmbeddingStore
from embedsync.types import (
    EmbeddingConfig,
    EmbeddingEntity,
    EmbeddingItem,
    EmbeddingResult,
    EmbeddingStatus,
    GenerationSummary,
    ModificationStatus,
    ProcessingMode,
    ReconciliationSummary,
)

__all__ = [
    "BatchJobFailedError",
    "BatchProcessingMode",
    "BatchReconciler",
    "DirectProcessingMode",
    "DocumentMarkdownRenderer",
    "EmbedSyncError",
    "EmbeddingConfig",
    "EmbeddingEntity",
    "EmbeddingItem",
    "EmbeddingPipeline",
    "EmbeddingProvider",
    "EmbeddingResult",
    "EmbeddingStatus",
    "GenerationOrchestrator",
    "GenerationSummary",
    "MarkdownRenderer",
    "ModificationLedger",
    "ModificationStatus",
    "NotFoundError",
    "OpenAIEmbeddingProvider",
    "PipelineSettings",
    "ProcessingMode",
    "ProcessingModeStrategy",
    "ProductMarkdownRenderer",
    "ProviderError",
    "ProviderRegistry",
    "ReconciliationSummary",
    "RendererRegistry",
    "StorageError",
    "TenantConfigLookup",
    "TenantEmbeddingStore",
    "ValidationError",
    "select_processing_mode",
]
