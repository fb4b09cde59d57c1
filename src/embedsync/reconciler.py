"""BatchReconciler — collects finished batch-job vectors into tenant storage."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from embedsync.exceptions import BatchJobFailedError
from embedsync.types import (
    BatchRequestResult,
    EmbeddingResult,
    EmbeddingStatus,
    ProcessingEmbeddingInfo,
    ReconciliationSummary,
)

if TYPE_CHECKING:
    from embedsync.providers import ProviderRegistry
    from embedsync.store import ModificationLedger, TenantEmbeddingStore
    from embedsync.types import BatchJobInfo, EmbeddingEntity

logger = logging.getLogger(__name__)


@dataclass
class _BatchGroup:
    batch_id: str
    model: str
    record_ids: list[str] = field(default_factory=list)


def group_by_batch(entities: list[EmbeddingEntity]) -> list[_BatchGroup]:
    """Group processing records by ``(batch_id, embedding_model)``, first-seen order.

    Records missing either value cannot be polled and are logged and left out.
    """
    groups: dict[tuple[str, str], _BatchGroup] = {}
    for entity in entities:
        if not entity.batch_id or not entity.embedding_model:
            logger.warning(
                "Skipping embedding %s - missing batch id or embedding model", entity.id
            )
            continue
        key = (entity.batch_id, entity.embedding_model)
        group = groups.get(key)
        if group is None:
            group = groups[key] = _BatchGroup(batch_id=key[0], model=key[1])
        group.record_ids.append(entity.id)
    return list(groups.values())


class BatchReconciler:
    """Polls every outstanding batch job and writes back what has finished.

    Args:
        ledger: Source of pending batch jobs.
        store: Tenant embedding storage.
        providers: Resolves a record's embedding model to its provider.
        review_on_terminal_only: Mark a job reviewed only once every one of
            its groups has reached a terminal state.  When ``False`` a job is
            marked reviewed after a single poll, whatever the outcome.
        mark_failed_items: Write ``failed`` for records whose line errored
            inside a completed batch.  When ``False`` they stay ``processing``.
            Records of a batch that failed as a whole are always marked
            ``failed``.
    """

    def __init__(
        self,
        ledger: ModificationLedger,
        store: TenantEmbeddingStore,
        providers: ProviderRegistry,
        *,
        review_on_terminal_only: bool = True,
        mark_failed_items: bool = True,
    ) -> None:
        self._ledger = ledger
        self._store = store
        self._providers = providers
        self.review_on_terminal_only = review_on_terminal_only
        self.mark_failed_items = mark_failed_items

    async def run(self) -> ReconciliationSummary:
        jobs = await self._ledger.get_pending_batch_jobs()
        summary = ReconciliationSummary()

        for job in jobs:
            try:
                result = await self._reconcile(job)
            except Exception as e:
                logger.error(
                    "Failed to reconcile batch job %s (%s.%s): %s",
                    job.id,
                    job.schema_name,
                    job.table_name,
                    e,
                    exc_info=True,
                )
                result = BatchRequestResult(
                    id=job.id, schema_name=job.schema_name, table_name=job.table_name
                )
            summary.requests.append(result)

        logger.info(
            "Reconciliation run: %d batch jobs checked, %d reviewed",
            summary.pending_batch_requests,
            sum(1 for r in summary.requests if r.reviewed),
        )
        return summary

    async def _reconcile(self, job: BatchJobInfo) -> BatchRequestResult:
        schema, table = job.schema_name, job.table_name
        entities = await self._store.get_processing_embeddings_with_batch_id(schema, table)

        result = BatchRequestResult(
            id=job.id,
            schema_name=schema,
            table_name=table,
            processing_embeddings=[
                ProcessingEmbeddingInfo(
                    id=e.id, batch_id=e.batch_id or "", embedding_model=e.embedding_model or ""
                )
                for e in entities
            ],
        )

        all_terminal = True
        for group in group_by_batch(entities):
            results, terminal = await self._poll_group(group, schema, table)
            result.embedding_results.extend(results)
            all_terminal = all_terminal and terminal

        if all_terminal or not self.review_on_terminal_only:
            result.reviewed = await self._ledger.mark_batch_job_reviewed(job.id)
        else:
            logger.info("Batch job %s still has outstanding groups; leaving it pending", job.id)
        return result

    async def _poll_group(
        self, group: _BatchGroup, schema: str, table: str
    ) -> tuple[list[EmbeddingResult], bool]:
        """Poll one group and persist its outcome.

        Returns the results and whether the group reached a terminal state.
        Poll and storage errors are logged and leave the records as they were.
        A failed batch moves all of its records to ``failed``.
        """
        try:
            provider = self._providers.get(group.model)
            results = await provider.get_batch_embeddings(
                group.batch_id, group.record_ids, schema, table
            )
        except BatchJobFailedError as e:
            logger.error("Batch %s (model %s) failed: %s", group.batch_id, group.model, e)
            return await self._fail_group(group, schema, table, str(e))
        except Exception as e:
            logger.error(
                "Failed to poll batch %s (model %s): %s",
                group.batch_id,
                group.model,
                e,
                exc_info=True,
            )
            return [], False

        if any(r.status is EmbeddingStatus.PROCESSING for r in results):
            return results, False

        try:
            completed = [r for r in results if r.embedding is not None]
            if completed:
                await self._store.update_completed_embeddings(completed, schema, table, group.model)
            if self.mark_failed_items:
                await self._store.mark_failed_embeddings(results, schema, table)
        except Exception as e:
            logger.error(
                "Failed to store results of batch %s: %s", group.batch_id, e, exc_info=True
            )
            return results, False

        logger.info(
            "Batch %s: %d/%d embeddings completed",
            group.batch_id,
            len(completed),
            len(group.record_ids),
        )
        return results, True

    async def _fail_group(
        self, group: _BatchGroup, schema: str, table: str, error: str
    ) -> tuple[list[EmbeddingResult], bool]:
        """Mark every record of a failed, cancelled or expired batch as ``failed``."""
        results = [
            EmbeddingResult(
                entity_id=record_id,
                entity_type=table,
                schema_name=schema,
                status=EmbeddingStatus.FAILED,
                batch_id=group.batch_id,
                error=error,
            )
            for record_id in group.record_ids
        ]
        try:
            await self._store.mark_failed_embeddings(results, schema, table)
        except Exception as e:
            logger.error(
                "Failed to mark records of batch %s as failed: %s",
                group.batch_id,
                e,
                exc_info=True,
            )
            return results, False
        return results, True
