"""TenantEmbeddingStore — schema-scoped reads and writes of embedding records."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from embedsync.exceptions import StorageError, ValidationError
from embedsync.models.tenant import (
    Document,
    DocumentEmbedding,
    Product,
    ProductCategory,
    ProductDetails,
    ProductEmbedding,
)
from embedsync.types import (
    DOCUMENT_EMBEDDINGS,
    PRODUCT_EMBEDDINGS,
    CategoryInfo,
    DocumentSnapshot,
    EmbeddingEntity,
    EmbeddingStatus,
    ProductDetailsInfo,
    ProductSnapshot,
)

from .dialect import now_expression, schema_options

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession

    from embedsync.types import EmbeddingResult

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Per-table query shapes
# ---------------------------------------------------------------------------


def _bulk_update(model: type) -> Any:
    """ORM ``UPDATE`` that leaves the session's identity map alone."""
    return update(model).execution_options(synchronize_session=False)


def _product_query() -> Select:
    return (
        select(ProductEmbedding, Product, ProductDetails, ProductCategory)
        .join(Product, ProductEmbedding.product_id == Product.id)  # type: ignore[arg-type]
        .outerjoin(ProductDetails, ProductDetails.product_id == Product.id)  # type: ignore[arg-type]
        .outerjoin(ProductCategory, Product.category_id == ProductCategory.id)  # type: ignore[arg-type]
    )


def _product_entity(row: Any) -> EmbeddingEntity:
    record, product, details, category = row
    return EmbeddingEntity(
        id=record.id,
        table_name=PRODUCT_EMBEDDINGS,
        source=ProductSnapshot(
            id=product.id,
            name=product.name,
            type=product.type,
            description=product.description,
            image_url=product.image_url,
            is_embedded=product.is_embedded,
            is_featured=product.is_featured,
            details=ProductDetailsInfo(
                id=details.id,
                price=details.price,
                currency=details.currency,
                detailed_description=details.detailed_description,
            )
            if details is not None
            else None,
            category=CategoryInfo(
                id=category.id,
                name=category.name,
                description=category.description,
            )
            if category is not None
            else None,
        ),
        status=EmbeddingStatus(record.embedding_status),
        content_markdown=record.content_markdown,
        embedding_model=record.embedding_model or None,
        batch_id=record.batch_id,
    )


def _document_query() -> Select:
    return select(DocumentEmbedding, Document).join(
        Document,
        DocumentEmbedding.document_id == Document.id,  # type: ignore[arg-type]
    )


def _document_entity(row: Any) -> EmbeddingEntity:
    record, document = row
    return EmbeddingEntity(
        id=record.id,
        table_name=DOCUMENT_EMBEDDINGS,
        source=DocumentSnapshot(
            id=document.id,
            name=document.name,
            url=document.url,
            type=document.type,
            is_embedded=document.is_embedded,
        ),
        status=EmbeddingStatus(record.embedding_status),
        content_markdown=record.content_markdown,
        embedding_model=record.embedding_model or None,
        batch_id=record.batch_id,
    )


@dataclass(frozen=True)
class _TableSpec:
    """How one embedding table joins to its source entity."""

    record_model: type
    source_model: type
    foreign_key: str
    query: Callable[[], Select]
    to_entity: Callable[[Any], EmbeddingEntity]

    @property
    def source_fk(self) -> Any:
        return getattr(self.record_model, self.foreign_key)


_TABLES: dict[str, _TableSpec] = {
    PRODUCT_EMBEDDINGS: _TableSpec(
        record_model=ProductEmbedding,
        source_model=Product,
        foreign_key="product_id",
        query=_product_query,
        to_entity=_product_entity,
    ),
    DOCUMENT_EMBEDDINGS: _TableSpec(
        record_model=DocumentEmbedding,
        source_model=Document,
        foreign_key="document_id",
        query=_document_query,
        to_entity=_document_entity,
    ),
}

SUPPORTED_TABLES: frozenset[str] = frozenset(_TABLES)


class TenantEmbeddingStore:
    """Database-backed embedding store scoped per tenant schema.

    Holds only a session factory and the dialect name.  Every call opens
    its own session and transaction, and every statement in it is bound
    to the tenant schema passed in.  No transaction spans more than one
    call, so a run interrupted half-way leaves records in states that the
    next run's status queries pick up again.
    """

    def __init__(
        self,
        session_factory: Callable[..., AsyncSession],
        dialect: str = "sqlite",
    ) -> None:
        self._session_factory = session_factory
        self.dialect = dialect

    @staticmethod
    def _spec(table_name: str) -> _TableSpec:
        spec = _TABLES.get(table_name)
        if spec is None:
            raise ValidationError(f"Unsupported table name: {table_name}")
        return spec

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_pending_embeddings(
        self, schema_name: str, table_name: str
    ) -> list[EmbeddingEntity]:
        """Records still waiting for a vector whose source is not yet embedded."""
        spec = self._spec(table_name)
        record, source = spec.record_model, spec.source_model
        stmt = (
            spec.query()
            .where(
                record.embedding_status == EmbeddingStatus.PENDING.value,
                record.batch_id.is_(None),
                source.is_embedded == False,  # noqa: E712
                source.deleted_at.is_(None),
            )
            .order_by(record.created_at)
        )
        entities = await self._fetch(stmt, schema_name, spec)
        logger.info(
            "Found %d pending %s in schema %s", len(entities), table_name, schema_name
        )
        return entities

    async def get_processing_embeddings_with_batch_id(
        self, schema_name: str, table_name: str
    ) -> list[EmbeddingEntity]:
        """Records waiting on an outstanding provider batch job."""
        spec = self._spec(table_name)
        record = spec.record_model
        stmt = (
            spec.query()
            .where(
                record.embedding_status == EmbeddingStatus.PROCESSING.value,
                record.embedding.is_(None),
                record.batch_id.is_not(None),
            )
            .order_by(record.created_at)
        )
        entities = await self._fetch(stmt, schema_name, spec)
        logger.info(
            "Found %d processing %s with a batch id in schema %s",
            len(entities),
            table_name,
            schema_name,
        )
        return entities

    async def _fetch(
        self, stmt: Select, schema_name: str, spec: _TableSpec
    ) -> list[EmbeddingEntity]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    stmt, execution_options=schema_options(schema_name)
                )
                rows = result.all()
        except SQLAlchemyError as e:
            logger.error("Query failed in schema %s: %s", schema_name, e, exc_info=True)
            raise StorageError(f"Query failed in schema {schema_name}: {e}") from e

        entities: list[EmbeddingEntity] = []
        for row in rows:
            try:
                entities.append(spec.to_entity(row))
            except ValueError:
                logger.warning(
                    "Skipping embedding %s with unknown status %r",
                    row[0].id,
                    row[0].embedding_status,
                )
        return entities

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def store_embeddings(
        self,
        results: list[EmbeddingResult],
        schema_name: str,
        table_name: str,
        embedding_model: str,
    ) -> None:
        """Persist the outcome of a generation run.

        - vector present: status ``completed``, markdown stored, source marked embedded
        - batch placeholder: status ``processing`` with the job's ``batch_id``
        - neither: back to ``pending`` so the next run retries it
        """
        spec = self._spec(table_name)
        record = spec.record_model
        now = now_expression(self.dialect)

        async def _write(session: AsyncSession) -> None:
            for result in results:
                values: dict[str, Any] = {
                    "embedding_model": embedding_model,
                    "content_markdown": result.original_text,
                    "updated_at": now,
                }
                if result.embedding is not None:
                    values.update(
                        embedding=result.embedding,
                        embedding_status=EmbeddingStatus.COMPLETED.value,
                        batch_id=None,
                    )
                elif result.batch_id:
                    values.update(
                        embedding=None,
                        embedding_status=EmbeddingStatus.PROCESSING.value,
                        batch_id=result.batch_id,
                    )
                else:
                    values.update(
                        embedding=None,
                        embedding_status=EmbeddingStatus.PENDING.value,
                        batch_id=None,
                    )
                await session.execute(
                    _bulk_update(record).where(record.id == result.entity_id).values(**values)
                )
                if result.embedding is not None:
                    await self._mark_source_embedded(session, spec, result.entity_id)

        await self._run_write(_write, schema_name)
        logger.info(
            "Stored %d %s in schema %s using model %s",
            len(results),
            table_name,
            schema_name,
            embedding_model,
        )

    async def update_completed_embeddings(
        self,
        results: list[EmbeddingResult],
        schema_name: str,
        table_name: str,
        embedding_model: str,
    ) -> int:
        """Write vectors that a batch job delivered.  Returns the number written.

        ``content_markdown`` is left as stored at submission time.
        """
        spec = self._spec(table_name)
        record = spec.record_model
        now = now_expression(self.dialect)
        written = 0

        async def _write(session: AsyncSession) -> None:
            nonlocal written
            for result in results:
                if result.embedding is None:
                    logger.debug("Skipping embedding %s - embedding is null", result.entity_id)
                    continue
                await session.execute(
                    _bulk_update(record)
                    .where(record.id == result.entity_id)
                    .values(
                        embedding=result.embedding,
                        embedding_model=embedding_model,
                        embedding_status=EmbeddingStatus.COMPLETED.value,
                        batch_id=None,
                        updated_at=now,
                    )
                )
                await self._mark_source_embedded(session, spec, result.entity_id)
                written += 1

        await self._run_write(_write, schema_name)
        logger.info(
            "Updated %d completed %s in schema %s", written, table_name, schema_name
        )
        return written

    async def mark_failed_embeddings(
        self,
        results: list[EmbeddingResult],
        schema_name: str,
        table_name: str,
    ) -> int:
        """Move still-processing records whose batch line errored to ``failed``."""
        spec = self._spec(table_name)
        record = spec.record_model
        ids = [r.entity_id for r in results if r.status is EmbeddingStatus.FAILED]
        if not ids:
            return 0
        now = now_expression(self.dialect)
        updated = 0

        async def _write(session: AsyncSession) -> None:
            nonlocal updated
            res = await session.execute(
                _bulk_update(record)
                .where(
                    record.id.in_(ids),
                    record.embedding_status == EmbeddingStatus.PROCESSING.value,
                )
                .values(
                    embedding=None,
                    embedding_status=EmbeddingStatus.FAILED.value,
                    batch_id=None,
                    updated_at=now,
                )
            )
            updated = res.rowcount or 0

        await self._run_write(_write, schema_name)
        logger.warning(
            "Marked %d %s as failed in schema %s", updated, table_name, schema_name
        )
        return updated

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _mark_source_embedded(
        self, session: AsyncSession, spec: _TableSpec, record_id: str
    ) -> None:
        record, source = spec.record_model, spec.source_model
        source_id = (
            select(spec.source_fk).where(record.id == record_id).scalar_subquery()
        )
        await session.execute(
            _bulk_update(source)
            .where(source.id == source_id)
            .values(is_embedded=True, updated_at=now_expression(self.dialect))
        )

    async def _run_write(
        self,
        work: Callable[[AsyncSession], Any],
        schema_name: str,
    ) -> None:
        """Run *work* in one transaction bound to *schema_name*."""
        options = schema_options(schema_name)
        try:
            async with self._session_factory() as session, session.begin():
                await session.connection(execution_options=options)
                await work(session)
        except SQLAlchemyError as e:
            logger.error("Write failed in schema %s: %s", schema_name, e, exc_info=True)
            raise StorageError(f"Write failed in schema {schema_name}: {e}") from e
