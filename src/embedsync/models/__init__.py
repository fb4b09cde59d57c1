"""SQLModel database models for embedsync."""

from embedsync.models.ledger import (
    CompanyModification,
    CompanyRequest,
    ModelDetails,
    ModificationRequest,
)
from embedsync.models.tenant import (
    AIConfig,
    Document,
    DocumentEmbedding,
    EmbeddingRecordBase,
    Product,
    ProductCategory,
    ProductDetails,
    ProductEmbedding,
)

TENANT_TABLES = [
    m.__table__  # type: ignore[attr-defined]
    for m in (
        ProductCategory,
        Product,
        ProductDetails,
        Document,
        ProductEmbedding,
        DocumentEmbedding,
        AIConfig,
    )
]
"""Tables that exist once per tenant schema."""

LEDGER_TABLES = [
    m.__table__  # type: ignore[attr-defined]
    for m in (ModificationRequest, CompanyModification, CompanyRequest, ModelDetails)
]
"""Tables shared by all tenants (the ``public`` schema in production)."""

__all__ = [
    "LEDGER_TABLES",
    "TENANT_TABLES",
    "AIConfig",
    "CompanyModification",
    "CompanyRequest",
    "Document",
    "DocumentEmbedding",
    "EmbeddingRecordBase",
    "ModelDetails",
    "ModificationRequest",
    "Product",
    "ProductCategory",
    "ProductDetails",
    "ProductEmbedding",
]
