"""Dialect-aware SQL helpers — tenant schema scoping, date functions."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from embedsync.exceptions import ValidationError

if TYPE_CHECKING:
    from sqlalchemy import Engine, Table
    from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

_SCHEMA_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")


def get_dialect(engine: Engine | AsyncEngine) -> str:
    """Return 'sqlite', 'postgresql', or the raw dialect name."""
    # AsyncEngine wraps a sync engine
    sync_engine = getattr(engine, "sync_engine", engine)
    name = sync_engine.dialect.name
    if name in ("postgresql", "postgres"):
        return "postgresql"
    return name


def validate_schema_name(schema: str) -> str:
    """Return *schema* unchanged if it is a plain SQL identifier.

    Tenant schema names come from data rows, so anything that is not a
    simple identifier is rejected before it reaches a statement.
    """
    if not isinstance(schema, str) or not _SCHEMA_RE.match(schema):
        raise ValidationError(f"Invalid tenant schema name: {schema!r}")
    return schema


def schema_options(schema: str | None) -> dict[str, Any]:
    """Execution options that bind schema-less models to *schema*.

    The dialect quotes the translated name as an identifier, so no SQL is
    ever built from the tenant string.  ``None`` leaves tables unqualified.
    """
    if schema is None:
        return {}
    return {"schema_translate_map": {None: validate_schema_name(schema)}}


def now_expression(dialect: str) -> Any:
    """Return a dialect-appropriate 'now' expression for SQL.

    - SQLite: func.datetime('now')
    - PostgreSQL: func.now()
    """
    from sqlalchemy import func

    if dialect == "sqlite":
        return func.datetime("now")
    return func.now()


async def create_tables(
    conn: AsyncConnection,
    tables: list[Table],
    schema: str | None = None,
) -> None:
    """Create *tables* inside *schema* if they do not exist yet."""
    from sqlmodel import SQLModel

    scoped = await conn.execution_options(**schema_options(schema))
    await scoped.run_sync(
        lambda c: SQLModel.metadata.create_all(c, tables=tables, checkfirst=True)
    )
