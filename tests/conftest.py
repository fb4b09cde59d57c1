"""Shared fixtures for embedsync tests.

Tenant schemas are emulated on SQLite with ``ATTACH DATABASE``; the shared
ledger tables live unqualified in the main database.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import select

from embedsync.models import LEDGER_TABLES, TENANT_TABLES
from embedsync.store import (
    ModificationLedger,
    TenantConfigLookup,
    TenantEmbeddingStore,
    create_tables,
    schema_options,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine

TENANT_A = "tenant_a"
TENANT_B = "tenant_b"
TENANTS = (TENANT_A, TENANT_B)


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine with ledger and tenant tables created."""
    eng = create_async_engine("sqlite+aiosqlite://", echo=False, poolclass=StaticPool)

    @event.listens_for(eng.sync_engine, "connect")
    def _attach_tenants(dbapi_connection: Any, connection_record: Any) -> None:
        cursor = dbapi_connection.cursor()
        for schema in TENANTS:
            cursor.execute(f"ATTACH DATABASE ':memory:' AS {schema}")
        cursor.close()

    async with eng.begin() as conn:
        await create_tables(conn, LEDGER_TABLES)
        for schema in TENANTS:
            await create_tables(conn, TENANT_TABLES, schema)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def store(session_factory) -> TenantEmbeddingStore:
    return TenantEmbeddingStore(session_factory, dialect="sqlite")


@pytest.fixture
def config_lookup(session_factory) -> TenantConfigLookup:
    return TenantConfigLookup(session_factory, public_schema=None)


@pytest.fixture
def ledger(session_factory, config_lookup) -> ModificationLedger:
    return ModificationLedger(session_factory, config_lookup, dialect="sqlite", schema=None)


@pytest.fixture
def seed(session_factory):
    """``await seed(schema, *rows)`` inserts model instances into *schema*."""

    async def _seed(schema: str | None, *rows: Any) -> None:
        async with session_factory() as session, session.begin():
            await session.connection(execution_options=schema_options(schema))
            session.add_all(rows)

    return _seed


@pytest.fixture
def fetch(session_factory):
    """``await fetch(schema, Model)`` returns every row of *Model* in *schema*."""

    async def _fetch(schema: str | None, model: type, *where: Any) -> list[Any]:
        async with session_factory() as session:
            result = await session.execute(
                select(model).where(*where),
                execution_options=schema_options(schema),
            )
            return list(result.scalars().all())

    return _fetch
