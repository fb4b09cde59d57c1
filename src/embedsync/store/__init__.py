"""Storage layer — tenant embedding store, modification ledger, schema scoping."""

from embedsync.store.dialect import (
    create_tables,
    get_dialect,
    schema_options,
    validate_schema_name,
)
from embedsync.store.ledger import ModificationLedger, TenantConfigLookup
from embedsync.store.tenant import SUPPORTED_TABLES, TenantEmbeddingStore

__all__ = [
    "SUPPORTED_TABLES",
    "ModificationLedger",
    "TenantConfigLookup",
    "TenantEmbeddingStore",
    "create_tables",
    "get_dialect",
    "schema_options",
    "validate_schema_name",
]
