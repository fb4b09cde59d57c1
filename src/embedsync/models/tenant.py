"""Tenant-scoped tables — source entities, embedding records, AI config.

These models carry no schema.  Every statement against them is bound to
a tenant schema at execution time through ``schema_translate_map`` (see
:mod:`embedsync.store.dialect`), so one set of classes serves all tenants.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import JSON, DateTime
from sqlmodel import Field, SQLModel


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Source entities
# ---------------------------------------------------------------------------


class ProductCategory(SQLModel, table=True):
    __tablename__ = "product_categories"

    id: str = Field(default_factory=_uuid, primary_key=True)
    name: str
    description: str | None = Field(default=None)
    created_at: datetime = Field(default_factory=_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=_now, sa_type=DateTime(timezone=True))


class Product(SQLModel, table=True):
    __tablename__ = "products"

    id: str = Field(default_factory=_uuid, primary_key=True)
    category_id: str | None = Field(default=None)
    name: str
    type: str = Field(default="product")
    description: str | None = Field(default=None)
    image_url: str | None = Field(default=None)
    is_embedded: bool = Field(default=False)
    is_featured: bool = Field(default=False)
    created_at: datetime = Field(default_factory=_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=_now, sa_type=DateTime(timezone=True))
    deleted_at: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))


class ProductDetails(SQLModel, table=True):
    __tablename__ = "product_details"

    id: str = Field(default_factory=_uuid, primary_key=True)
    product_id: str
    price: float = Field(default=0.0)
    currency: str = Field(default="USD")
    detailed_description: str | None = Field(default=None)
    created_at: datetime = Field(default_factory=_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=_now, sa_type=DateTime(timezone=True))


class Document(SQLModel, table=True):
    __tablename__ = "documents"

    id: str = Field(default_factory=_uuid, primary_key=True)
    name: str
    url: str | None = Field(default=None)
    type: str | None = Field(default=None)
    is_embedded: bool = Field(default=False)
    created_at: datetime = Field(default_factory=_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=_now, sa_type=DateTime(timezone=True))
    deleted_at: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))


# ---------------------------------------------------------------------------
# Embedding records
# ---------------------------------------------------------------------------


class EmbeddingRecordBase(SQLModel):
    """Shared fields of an embedding record.  Subclass with ``table=True``.

    ``embedding`` is set only when ``embedding_status`` is ``completed``;
    ``batch_id`` only while a provider batch job is outstanding.
    """

    id: str = Field(default_factory=_uuid, primary_key=True)
    content_markdown: str = Field(default="")
    embedding: list[float] | None = Field(default=None, sa_type=JSON(none_as_null=True))
    embedding_model: str = Field(default="")
    embedding_status: str = Field(default="pending")
    batch_id: str | None = Field(default=None)
    created_at: datetime = Field(default_factory=_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=_now, sa_type=DateTime(timezone=True))


class ProductEmbedding(EmbeddingRecordBase, table=True):
    __tablename__ = "product_embeddings"

    product_id: str = Field(unique=True)


class DocumentEmbedding(EmbeddingRecordBase, table=True):
    __tablename__ = "document_embeddings"

    document_id: str
    is_chunk: bool = Field(default=False)


# ---------------------------------------------------------------------------
# Tenant AI configuration
# ---------------------------------------------------------------------------


class AIConfig(SQLModel, table=True):
    """Per-tenant assistant configuration; only the embedding fields are read here."""

    __tablename__ = "ai_config"

    id: str = Field(default_factory=_uuid, primary_key=True)
    embedding_model: str | None = Field(default=None)
    batch_embedding: bool = Field(default=False)
    created_at: datetime = Field(default_factory=_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=_now, sa_type=DateTime(timezone=True))
    deleted_at: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))
