"""Processing modes — direct (synchronous) and batch (asynchronous job) vectorization."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from embedsync.exceptions import ValidationError
from embedsync.types import ProcessingMode

if TYPE_CHECKING:
    from embedsync.providers import EmbeddingProvider
    from embedsync.types import EmbeddingItem, EmbeddingResult


@runtime_checkable
class ProcessingModeStrategy(Protocol):
    """How a set of items is handed to a provider."""

    mode: ProcessingMode

    @property
    def max_batch_size(self) -> int:
        """Nominal items per provider call.  A planning hint, not enforced."""
        ...

    def is_supported_for(self, provider: EmbeddingProvider) -> bool: ...

    async def process(
        self, items: list[EmbeddingItem], provider: EmbeddingProvider
    ) -> list[EmbeddingResult]: ...


class DirectProcessingMode:
    """One request per item; vectors come back in the same run."""

    mode = ProcessingMode.DIRECT

    @property
    def max_batch_size(self) -> int:
        return 1

    def is_supported_for(self, provider: EmbeddingProvider) -> bool:
        return True

    async def process(
        self, items: list[EmbeddingItem], provider: EmbeddingProvider
    ) -> list[EmbeddingResult]:
        return await provider.generate_embeddings(items)


class BatchProcessingMode:
    """One provider batch job for all items; vectors arrive on a later poll."""

    mode = ProcessingMode.BATCH

    @property
    def max_batch_size(self) -> int:
        return 100

    def is_supported_for(self, provider: EmbeddingProvider) -> bool:
        return provider.supports_batch_processing()

    async def process(
        self, items: list[EmbeddingItem], provider: EmbeddingProvider
    ) -> list[EmbeddingResult]:
        return await provider.generate_batch_embeddings(items)


_MODES: dict[ProcessingMode, ProcessingModeStrategy] = {
    ProcessingMode.DIRECT: DirectProcessingMode(),
    ProcessingMode.BATCH: BatchProcessingMode(),
}


def get_processing_mode(mode: ProcessingMode) -> ProcessingModeStrategy:
    return _MODES[mode]


def select_processing_mode(
    batch_embedding: bool, provider: EmbeddingProvider
) -> ProcessingModeStrategy:
    """Pick the strategy for a tenant's ``batch_embedding`` flag.

    Raises ``ValidationError`` if *provider* cannot run the chosen mode.
    Nothing is sent to the provider before this check passes.
    """
    mode = ProcessingMode.BATCH if batch_embedding else ProcessingMode.DIRECT
    strategy = get_processing_mode(mode)
    if not strategy.is_supported_for(provider):
        raise ValidationError(
            f"Processing mode '{mode.value}' is not supported for provider "
            f"'{provider.provider_name}' with model '{provider.model_name}'"
        )
    return strategy
