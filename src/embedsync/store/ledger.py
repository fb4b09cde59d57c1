"""ModificationLedger and TenantConfigLookup — the shared change-tracking tables."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from embedsync.exceptions import EmbedSyncError, NotFoundError, StorageError
from embedsync.models.ledger import (
    CompanyModification,
    CompanyRequest,
    ModelDetails,
    ModificationRequest,
)
from embedsync.models.tenant import AIConfig
from embedsync.types import (
    BatchJobInfo,
    EmbeddingConfig,
    ModificationStatus,
    PendingModification,
)

from .dialect import now_expression, schema_options

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class TenantConfigLookup:
    """Reads a tenant's embedding configuration.

    ``ai_config`` lives in the tenant schema while the model catalogue
    (``models_details``) is shared, so the lookup is two scoped queries.
    """

    def __init__(
        self,
        session_factory: Callable[..., AsyncSession],
        public_schema: str | None = "public",
    ) -> None:
        self._session_factory = session_factory
        self.public_schema = public_schema

    async def get(self, schema_name: str) -> EmbeddingConfig:
        """Return the embedding config of *schema_name*.

        Raises ``NotFoundError`` when the tenant has no active AI config or
        no embedding model set.
        """
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(AIConfig.embedding_model, AIConfig.batch_embedding)
                    .where(AIConfig.deleted_at.is_(None))  # type: ignore[union-attr]
                    .limit(1),
                    execution_options=schema_options(schema_name),
                )
                row = result.first()
                if row is None or not row.embedding_model:
                    raise NotFoundError(f"No AI configuration found for schema: {schema_name}")

                dims = await session.execute(
                    select(ModelDetails.vector_number).where(
                        ModelDetails.name == row.embedding_model
                    ),
                    execution_options=schema_options(self.public_schema),
                )
                vector_dimensions = dims.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageError(f"Config lookup failed for schema {schema_name}: {e}") from e

        return EmbeddingConfig(
            schema_name=schema_name,
            embedding_model=row.embedding_model,
            batch_embedding=bool(row.batch_embedding),
            vector_dimensions=vector_dimensions,
        )


class ModificationLedger:
    """Pending modification requests and outstanding batch jobs.

    All tables live in *schema* (``public`` in production, ``None`` for an
    unqualified database such as SQLite).
    """

    def __init__(
        self,
        session_factory: Callable[..., AsyncSession],
        config_lookup: TenantConfigLookup,
        dialect: str = "sqlite",
        schema: str | None = "public",
    ) -> None:
        self._session_factory = session_factory
        self._config_lookup = config_lookup
        self.dialect = dialect
        self.schema = schema

    # ------------------------------------------------------------------
    # Generation side
    # ------------------------------------------------------------------

    async def get_pending_modifications_with_config(self) -> list[PendingModification]:
        """Pending modifications, oldest first, each joined with its tenant config.

        Tenants without a usable configuration are logged and left out;
        their modifications stay pending.
        """
        cm, mr = CompanyModification, ModificationRequest
        stmt = (
            select(cm.id, cm.modification_request_id, mr.schema_name, mr.table_name)
            .join(mr, cm.modification_request_id == mr.id)  # type: ignore[arg-type]
            .where(
                mr.status == ModificationStatus.PENDING.value,
                mr.deleted_at.is_(None),  # type: ignore[union-attr]
                cm.deleted_at.is_(None),  # type: ignore[union-attr]
            )
            .order_by(mr.created_at)
        )
        rows = await self._fetch_all(stmt)

        pending: list[PendingModification] = []
        for row in rows:
            try:
                config = await self._config_lookup.get(row.schema_name)
            except EmbedSyncError as e:
                logger.warning("Skipping modification %s: %s", row.id, e)
                continue
            pending.append(
                PendingModification(
                    id=row.id,
                    modification_request_id=row.modification_request_id,
                    schema_name=row.schema_name,
                    table_name=row.table_name,
                    config=config,
                )
            )
        logger.info("Found %d pending modifications with config", len(pending))
        return pending

    async def mark_as_reviewed(self, company_modification_id: str) -> bool:
        """Flip the request behind a company modification to ``reviewed``."""
        request_id = (
            select(CompanyModification.modification_request_id)
            .where(
                CompanyModification.id == company_modification_id,
                CompanyModification.deleted_at.is_(None),  # type: ignore[union-attr]
            )
            .scalar_subquery()
        )
        updated = await self._review(request_id)
        if not updated:
            logger.warning(
                "No company modification found to mark as reviewed: %s", company_modification_id
            )
        return updated

    async def create_batch_job(self, schema_name: str, table_name: str) -> str:
        """Record an outstanding batch job for *schema_name*/*table_name*.

        Inserts a fresh pending modification request plus the job row that
        points at it, in one transaction.  Returns the job id.
        """
        request = ModificationRequest(
            schema_name=schema_name,
            table_name=table_name,
            status=ModificationStatus.PENDING.value,
        )
        job = CompanyRequest(modification_request_id=request.id)
        job_id = job.id
        try:
            async with self._session_factory() as session, session.begin():
                await session.connection(execution_options=schema_options(self.schema))
                session.add(request)
                session.add(job)
        except SQLAlchemyError as e:
            raise StorageError(
                f"Failed to create batch job for {schema_name}.{table_name}: {e}"
            ) from e
        logger.info(
            "Created batch job %s for schema %s, table %s", job_id, schema_name, table_name
        )
        return job_id

    # ------------------------------------------------------------------
    # Reconciliation side
    # ------------------------------------------------------------------

    async def get_pending_batch_jobs(self) -> list[BatchJobInfo]:
        """Batch jobs whose modification request is still pending, oldest first."""
        cr, mr = CompanyRequest, ModificationRequest
        stmt = (
            select(
                cr.id,
                cr.modification_request_id,
                cr.created_at,
                mr.schema_name,
                mr.table_name,
            )
            .join(mr, cr.modification_request_id == mr.id)  # type: ignore[arg-type]
            .where(
                cr.deleted_at.is_(None),  # type: ignore[union-attr]
                mr.deleted_at.is_(None),  # type: ignore[union-attr]
                mr.status == ModificationStatus.PENDING.value,
            )
            .order_by(cr.created_at)
        )
        rows = await self._fetch_all(stmt)
        logger.info("Found %d pending batch jobs", len(rows))
        return [
            BatchJobInfo(
                id=row.id,
                modification_request_id=row.modification_request_id,
                schema_name=row.schema_name,
                table_name=row.table_name,
                created_at=row.created_at,
            )
            for row in rows
        ]

    async def mark_batch_job_reviewed(self, batch_job_id: str) -> bool:
        """Flip the request behind a batch job to ``reviewed``."""
        request_id = (
            select(CompanyRequest.modification_request_id)
            .where(
                CompanyRequest.id == batch_job_id,
                CompanyRequest.deleted_at.is_(None),  # type: ignore[union-attr]
            )
            .scalar_subquery()
        )
        updated = await self._review(request_id)
        if not updated:
            logger.warning("No batch job found to mark as reviewed: %s", batch_job_id)
        return updated

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _fetch_all(self, stmt):
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    stmt, execution_options=schema_options(self.schema)
                )
                return result.all()
        except SQLAlchemyError as e:
            logger.error("Ledger query failed: %s", e, exc_info=True)
            raise StorageError(f"Ledger query failed: {e}") from e

    async def _review(self, request_id) -> bool:
        mr = ModificationRequest
        stmt = (
            update(mr)
            .where(mr.id == request_id, mr.deleted_at.is_(None))  # type: ignore[union-attr]
            .values(
                status=ModificationStatus.REVIEWED.value,
                updated_at=now_expression(self.dialect),
            )
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._session_factory() as session, session.begin():
                await session.connection(execution_options=schema_options(self.schema))
                result = await session.execute(stmt)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to mark request as reviewed: {e}") from e
        return bool(result.rowcount)
