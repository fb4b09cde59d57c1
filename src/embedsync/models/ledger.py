"""Shared ("public" schema) tables — modification requests and batch jobs."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from embedsync.models.tenant import _now, _uuid


class ModificationRequest(SQLModel, table=True):
    """A tenant table that needs its embeddings refreshed.

    Status moves ``pending → reviewed`` and never back; rows are never
    hard-deleted.
    """

    __tablename__ = "modification_requests"

    id: str = Field(default_factory=_uuid, primary_key=True)
    schema_name: str = Field(index=True)
    table_name: str
    status: str = Field(default="pending", index=True)
    created_at: datetime = Field(default_factory=_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=_now, sa_type=DateTime(timezone=True))
    deleted_at: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))


class CompanyModification(SQLModel, table=True):
    """Links a modification request to the generation run that consumes it."""

    __tablename__ = "company_modifications"

    id: str = Field(default_factory=_uuid, primary_key=True)
    modification_request_id: str = Field(index=True)
    created_at: datetime = Field(default_factory=_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=_now, sa_type=DateTime(timezone=True))
    deleted_at: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))


class CompanyRequest(SQLModel, table=True):
    """An outstanding provider batch job for one tenant table."""

    __tablename__ = "company_requests"

    id: str = Field(default_factory=_uuid, primary_key=True)
    modification_request_id: str = Field(index=True)
    created_at: datetime = Field(default_factory=_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=_now, sa_type=DateTime(timezone=True))
    deleted_at: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))


class ModelDetails(SQLModel, table=True):
    """Catalogue of embedding models and their vector sizes."""

    __tablename__ = "models_details"

    id: str = Field(default_factory=_uuid, primary_key=True)
    name: str = Field(unique=True)
    vector_number: int | None = Field(default=None)
