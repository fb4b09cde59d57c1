"""EmbeddingPipeline — wires storage, renderers, and providers into the two runs."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from embedsync.exceptions import ValidationError
from embedsync.markdown import RendererRegistry
from embedsync.orchestrator import GenerationOrchestrator
from embedsync.providers import ProviderRegistry
from embedsync.reconciler import BatchReconciler
from embedsync.store import (
    ModificationLedger,
    TenantConfigLookup,
    TenantEmbeddingStore,
    get_dialect,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncEngine

    from embedsync.config import PipelineSettings

logger = logging.getLogger(__name__)

GENERATE_ACTION = "generate_embeddings"
CHECK_ACTION = "check_embedding_status"

# Scheduler action names and HTTP paths both resolve to an action.
_PATH_ACTIONS: dict[str, str] = {
    "/embedding/generate": GENERATE_ACTION,
    "/embedding/check": CHECK_ACTION,
}


class EmbeddingPipeline:
    """Async facade over the generation and reconciliation runs.

    Owns the database engine unless one is passed in::

        async with EmbeddingPipeline(PipelineSettings.from_env()) as pipeline:
            summary = await pipeline.run_generation()

    *providers* defaults to every OpenAI model, configured from *settings*.
    """

    def __init__(
        self,
        settings: PipelineSettings,
        *,
        engine: AsyncEngine | None = None,
        providers: ProviderRegistry | None = None,
        renderers: RendererRegistry | None = None,
    ) -> None:
        self.settings = settings
        self._engine = engine
        self._owns_engine = engine is None
        self._providers = providers or ProviderRegistry.with_openai(
            api_key=settings.openai_api_key,
            timeout=settings.openai_timeout,
            max_retries=settings.openai_max_retries,
        )
        self._renderers = renderers or RendererRegistry()
        self._orchestrator: GenerationOrchestrator | None = None
        self._reconciler: BatchReconciler | None = None
        self._routes: dict[str, Callable[[], Awaitable[dict[str, Any]]]] = {
            GENERATE_ACTION: self.run_generation,
            CHECK_ACTION: self.run_reconciliation,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Create the engine (if not injected) and wire the components."""
        if self._orchestrator is not None:
            return
        if self._engine is None:
            self._engine = create_async_engine(self.settings.database_url, echo=False)

        session_factory = async_sessionmaker(
            self._engine, class_=AsyncSession, expire_on_commit=False
        )
        dialect = get_dialect(self._engine)
        schema = self.settings.public_schema

        lookup = TenantConfigLookup(session_factory, public_schema=schema)
        ledger = ModificationLedger(session_factory, lookup, dialect=dialect, schema=schema)
        store = TenantEmbeddingStore(session_factory, dialect=dialect)

        self._orchestrator = GenerationOrchestrator(
            ledger, store, self._renderers, self._providers
        )
        self._reconciler = BatchReconciler(
            ledger,
            store,
            self._providers,
            review_on_terminal_only=self.settings.review_on_terminal_only,
            mark_failed_items=self.settings.mark_failed_items,
        )
        logger.debug("Pipeline opened on %s (%s)", self._engine.url, dialect)

    async def close(self) -> None:
        """Close providers and dispose the engine if this pipeline created it."""
        await self._providers.close()
        if self._engine is not None and self._owns_engine:
            await self._engine.dispose()
            self._engine = None
        self._orchestrator = None
        self._reconciler = None

    async def __aenter__(self) -> EmbeddingPipeline:
        await self.open()
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def run_generation(self) -> dict[str, Any]:
        """Embed every pending modification.  Returns the JSON summary."""
        await self.open()
        assert self._orchestrator is not None
        summary = await self._orchestrator.run()
        return summary.to_dict()

    async def run_reconciliation(self) -> dict[str, Any]:
        """Poll every outstanding batch job.  Returns the JSON summary."""
        await self.open()
        assert self._reconciler is not None
        summary = await self._reconciler.run()
        return summary.to_dict()

    async def handle_event(self, event: Mapping[str, Any]) -> dict[str, Any]:
        """Route a scheduler or HTTP event to its run.

        Accepts ``{"action": "generate_embeddings" | "check_embedding_status"}``
        or ``{"path": "/embedding/generate" | "/embedding/check"}``.
        """
        action = resolve_action(event)
        logger.info("Handling event action %s", action)
        return await self._routes[action]()


def resolve_action(event: Mapping[str, Any]) -> str:
    """Return the action an event asks for, or raise ``ValidationError``."""
    if not isinstance(event, Mapping):
        raise ValidationError(f"Event must be an object, got {type(event).__name__}")

    action = event.get("action")
    if action is None and event.get("path") is not None:
        path = str(event["path"]).rstrip("/") or "/"
        action = _PATH_ACTIONS.get(path)
        if action is None:
            raise ValidationError(f"Unknown path: {event['path']}")

    if action not in (GENERATE_ACTION, CHECK_ACTION):
        raise ValidationError(f"Unknown action: {action}")
    return action


__all__ = [
    "CHECK_ACTION",
    "GENERATE_ACTION",
    "EmbeddingPipeline",
    "resolve_action",
]
