"""Embedding providers — protocol, implementations, and the model registry."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from embedsync.exceptions import ValidationError
from embedsync.providers._protocol import EmbeddingProvider
from embedsync.providers.openai import MODEL_DIMENSIONS, OpenAIEmbeddingProvider

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Maps model identifiers to embedding providers.

    Providers are built on first use and cached, so a model whose
    credentials are missing only fails the tenants that actually use it.
    """

    def __init__(self) -> None:
        self._factories: dict[str, Callable[[], EmbeddingProvider]] = {}
        self._instances: dict[str, EmbeddingProvider] = {}

    @classmethod
    def with_openai(cls, **openai_kwargs: Any) -> ProviderRegistry:
        """Registry with every known OpenAI embedding model registered.

        *openai_kwargs* (``api_key``, ``timeout``, ``max_retries``) are
        passed to each :class:`OpenAIEmbeddingProvider`.
        """
        registry = cls()
        for model in MODEL_DIMENSIONS:
            registry.register(
                model,
                lambda m=model: OpenAIEmbeddingProvider(model=m, **openai_kwargs),
            )
        return registry

    def register(self, model_name: str, factory: Callable[[], EmbeddingProvider]) -> None:
        """Register *factory* for *model_name*, dropping any cached instance."""
        self._factories[model_name] = factory
        self._instances.pop(model_name, None)

    def is_supported(self, model_name: str) -> bool:
        return model_name in self._factories

    def get(self, model_name: str) -> EmbeddingProvider:
        """Return the provider for *model_name* or raise ``ValidationError``."""
        provider = self._instances.get(model_name)
        if provider is not None:
            return provider
        factory = self._factories.get(model_name)
        if factory is None:
            raise ValidationError(f"Unsupported embedding model: {model_name}")
        provider = factory()
        self._instances[model_name] = provider
        return provider

    async def close(self) -> None:
        """Close every provider created so far."""
        for name, provider in list(self._instances.items()):
            try:
                await provider.close()
            except Exception:
                logger.warning("Failed to close provider for %s", name, exc_info=True)
        self._instances.clear()


__all__ = [
    "MODEL_DIMENSIONS",
    "EmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "ProviderRegistry",
]
