"""Pipeline data types — statuses, entity snapshots, embedding results, run summaries."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from datetime import datetime


# ------------------------------------------------------------------
# Enums
# ------------------------------------------------------------------


class EmbeddingStatus(Enum):
    """Lifecycle of an embedding record."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ModificationStatus(Enum):
    """Lifecycle of a modification request."""

    PENDING = "pending"
    REVIEWED = "reviewed"


class ProcessingMode(Enum):
    """How vectors are obtained from the provider."""

    DIRECT = "direct"
    BATCH = "batch"


PRODUCT_EMBEDDINGS = "product_embeddings"
DOCUMENT_EMBEDDINGS = "document_embeddings"


# ------------------------------------------------------------------
# Tenant configuration
# ------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class EmbeddingConfig:
    """Embedding settings of one tenant schema.

    Attributes:
        schema_name: Tenant schema the configuration was read from.
        embedding_model: Provider model identifier, e.g. ``text-embedding-3-small``.
        batch_embedding: Use the provider's asynchronous batch API.
        vector_dimensions: Dimensionality declared for the model, if known.
    """

    schema_name: str
    embedding_model: str
    batch_embedding: bool = False
    vector_dimensions: int | None = None


# ------------------------------------------------------------------
# Source entity snapshots
# ------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CategoryInfo:
    id: str
    name: str
    description: str | None = None


@dataclass(frozen=True, slots=True)
class ProductDetailsInfo:
    id: str
    price: float
    currency: str
    detailed_description: str | None = None


@dataclass(frozen=True, slots=True)
class ProductSnapshot:
    """Read-only view of a product and its joined details and category."""

    id: str
    name: str
    type: str
    description: str | None = None
    image_url: str | None = None
    is_embedded: bool = False
    is_featured: bool = False
    details: ProductDetailsInfo | None = None
    category: CategoryInfo | None = None


@dataclass(frozen=True, slots=True)
class DocumentSnapshot:
    """Read-only view of a document."""

    id: str
    name: str
    url: str | None = None
    type: str | None = None
    is_embedded: bool = False


@dataclass(frozen=True, slots=True)
class EmbeddingEntity:
    """An embedding record joined with the source entity it describes.

    Attributes:
        id: Embedding record id. Used as the batch correlation id.
        table_name: ``product_embeddings`` or ``document_embeddings``.
        source: The joined product or document.
        status: Current embedding status.
        content_markdown: Markdown stored with the record, if any.
        embedding_model: Model the record was (or is being) embedded with.
        batch_id: Outstanding provider batch job id, if any.
    """

    id: str
    table_name: str
    source: ProductSnapshot | DocumentSnapshot
    status: EmbeddingStatus = EmbeddingStatus.PENDING
    content_markdown: str = ""
    embedding_model: str | None = None
    batch_id: str | None = None


# ------------------------------------------------------------------
# Provider I/O
# ------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class EmbeddingItem:
    """One rendered entity ready for vectorization."""

    entity_id: str
    entity_type: str
    schema_name: str
    markdown: str


@dataclass(frozen=True, slots=True)
class EmbeddingResult:
    """Outcome of vectorizing (or submitting) one item.

    ``embedding`` is non-null exactly when ``status`` is ``COMPLETED``.
    Batch placeholders carry ``batch_id`` and ``PROCESSING``; items that
    errored inside a completed batch carry ``FAILED``.
    """

    entity_id: str
    entity_type: str
    schema_name: str
    embedding: list[float] | None = None
    status: EmbeddingStatus = EmbeddingStatus.PENDING
    original_text: str = ""
    batch_id: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "entityId": self.entity_id,
            "entityType": self.entity_type,
            "schemaName": self.schema_name,
            "status": self.status.value,
            "hasEmbedding": self.embedding is not None,
            "batchId": self.batch_id,
            "error": self.error,
        }


# ------------------------------------------------------------------
# Ledger records
# ------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PendingModification:
    """A pending change on a tenant table, joined with the tenant's config.

    Attributes:
        id: Company modification id, passed back to ``mark_as_reviewed``.
        modification_request_id: The underlying modification request.
        schema_name: Tenant schema.
        table_name: Embedding table that needs refreshing.
        config: Embedding configuration of the tenant.
    """

    id: str
    modification_request_id: str
    schema_name: str
    table_name: str
    config: EmbeddingConfig


@dataclass(frozen=True, slots=True)
class BatchJobInfo:
    """An outstanding provider batch submission for one tenant table."""

    id: str
    modification_request_id: str
    schema_name: str
    table_name: str
    created_at: datetime | None = None


# ------------------------------------------------------------------
# Run summaries
# ------------------------------------------------------------------


@dataclass
class ModificationResult:
    """Per-tenant outcome of a generation run."""

    schema: str
    table: str
    model: str
    batch_mode: bool
    vector_dimensions: int | None
    markdown_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema": self.schema,
            "table": self.table,
            "model": self.model,
            "batchMode": self.batch_mode,
            "vectorDimensions": self.vector_dimensions,
            "markdownCount": self.markdown_count,
        }


@dataclass
class GenerationSummary:
    """Result of ``GenerationOrchestrator.run``."""

    pending_modifications: int = 0
    processed_modifications: int = 0
    markdown_generated: int = 0
    modifications: list[ModificationResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "pendingModifications": self.pending_modifications,
            "processedModifications": self.processed_modifications,
            "markdownGenerated": self.markdown_generated,
            "modifications": [m.to_dict() for m in self.modifications],
        }


@dataclass(frozen=True, slots=True)
class ProcessingEmbeddingInfo:
    id: str
    batch_id: str
    embedding_model: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "batchId": self.batch_id, "embeddingModel": self.embedding_model}


@dataclass
class BatchRequestResult:
    """Per-job outcome of a reconciliation run."""

    id: str
    schema_name: str
    table_name: str
    reviewed: bool = False
    processing_embeddings: list[ProcessingEmbeddingInfo] = field(default_factory=list)
    embedding_results: list[EmbeddingResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "schemaName": self.schema_name,
            "tableName": self.table_name,
            "reviewed": self.reviewed,
            "processingEmbeddings": [p.to_dict() for p in self.processing_embeddings],
            "embeddingResults": [r.to_dict() for r in self.embedding_results],
        }


@dataclass
class ReconciliationSummary:
    """Result of ``BatchReconciler.run``."""

    requests: list[BatchRequestResult] = field(default_factory=list)

    @property
    def pending_batch_requests(self) -> int:
        return len(self.requests)

    def to_dict(self) -> dict[str, Any]:
        return {
            "pendingBatchRequests": self.pending_batch_requests,
            "requests": [r.to_dict() for r in self.requests],
        }
