"""EmbeddingProvider protocol."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from embedsync.types import EmbeddingItem, EmbeddingResult


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Async protocol for a model that vectorizes text directly or via batch jobs.

    Implementations return exactly one :class:`EmbeddingResult` per input,
    in input order, with ``entity_id`` preserved.
    """

    @property
    def provider_name(self) -> str:
        """Short vendor name, e.g. ``openai``."""
        ...

    @property
    def model_name(self) -> str:
        """Model identifier the provider is bound to."""
        ...

    async def generate_embeddings(self, items: list[EmbeddingItem]) -> list[EmbeddingResult]:
        """Vectorize every item now, one request per item, issued concurrently."""
        ...

    async def generate_batch_embeddings(
        self, items: list[EmbeddingItem]
    ) -> list[EmbeddingResult]:
        """Submit one asynchronous job for all items and return placeholders."""
        ...

    async def get_batch_embeddings(
        self,
        batch_id: str,
        item_ids: list[str],
        schema_name: str,
        entity_type: str,
    ) -> list[EmbeddingResult]:
        """Poll *batch_id* and return one result per id in *item_ids*."""
        ...

    def supports_batch_processing(self) -> bool:
        """Whether ``generate_batch_embeddings`` is available."""
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...
