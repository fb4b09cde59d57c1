"""GenerationOrchestrator — turns pending modifications into stored embeddings."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from embedsync.modes import select_processing_mode
from embedsync.types import (
    EmbeddingItem,
    GenerationSummary,
    ModificationResult,
    ProcessingMode,
)

if TYPE_CHECKING:
    from embedsync.markdown import MarkdownRenderer, RendererRegistry
    from embedsync.providers import ProviderRegistry
    from embedsync.store import ModificationLedger, TenantEmbeddingStore
    from embedsync.types import EmbeddingEntity, PendingModification

logger = logging.getLogger(__name__)


class GenerationOrchestrator:
    """Processes every pending modification once.

    For each modification: load the pending records of its tenant table,
    render them to markdown, vectorize them in the tenant's mode, persist
    the results, and mark the modification reviewed.  Batch mode also
    records an outstanding batch job for the reconciler to pick up.

    A failure in one modification is logged and does not stop the others.
    """

    def __init__(
        self,
        ledger: ModificationLedger,
        store: TenantEmbeddingStore,
        renderers: RendererRegistry,
        providers: ProviderRegistry,
    ) -> None:
        self._ledger = ledger
        self._store = store
        self._renderers = renderers
        self._providers = providers

    async def run(self) -> GenerationSummary:
        modifications = await self._ledger.get_pending_modifications_with_config()
        summary = GenerationSummary(pending_modifications=len(modifications))

        for modification in modifications:
            try:
                result = await self._process(modification)
            except Exception as e:
                logger.error(
                    "Failed to process modification %s (%s.%s): %s",
                    modification.id,
                    modification.schema_name,
                    modification.table_name,
                    e,
                    exc_info=True,
                )
                continue
            summary.modifications.append(result)
            summary.markdown_generated += result.markdown_count

        summary.processed_modifications = len(summary.modifications)
        logger.info(
            "Generation run: %d/%d modifications processed, %d markdown documents",
            summary.processed_modifications,
            summary.pending_modifications,
            summary.markdown_generated,
        )
        return summary

    async def _process(self, modification: PendingModification) -> ModificationResult:
        schema = modification.schema_name
        table = modification.table_name
        config = modification.config

        renderer = self._renderers.get(table)
        entities = await self._store.get_pending_embeddings(schema, table)
        items = self._render(entities, schema, table, renderer)

        provider = self._providers.get(config.embedding_model)
        mode = select_processing_mode(config.batch_embedding, provider)
        batch_mode = mode.mode is ProcessingMode.BATCH

        if items:
            logger.info(
                "Embedding %d %s in schema %s (%s mode, model %s)",
                len(items),
                table,
                schema,
                mode.mode.value,
                config.embedding_model,
            )
            results = await mode.process(items, provider)
            await self._store.store_embeddings(results, schema, table, config.embedding_model)

        # The job goes in first so processing records are never left without one.
        if batch_mode and items:
            await self._ledger.create_batch_job(schema, table)
        await self._ledger.mark_as_reviewed(modification.id)

        return ModificationResult(
            schema=schema,
            table=table,
            model=config.embedding_model,
            batch_mode=batch_mode,
            vector_dimensions=config.vector_dimensions,
            markdown_count=len(items),
        )

    @staticmethod
    def _render(
        entities: list[EmbeddingEntity],
        schema: str,
        table: str,
        renderer: MarkdownRenderer,
    ) -> list[EmbeddingItem]:
        items: list[EmbeddingItem] = []
        for entity in entities:
            try:
                markdown = renderer.render(entity)
            except Exception as e:
                logger.warning("Skipping %s %s: render failed: %s", table, entity.id, e)
                continue
            items.append(
                EmbeddingItem(
                    entity_id=entity.id,
                    entity_type=table,
                    schema_name=schema,
                    markdown=markdown,
                )
            )
        return items
