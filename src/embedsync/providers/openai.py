"""OpenAIEmbeddingProvider — direct and batch embeddings via OpenAI's API."""

from __future__ import annotations

import asyncio
import logging
import os
import uuid
from typing import TYPE_CHECKING, Any

import openai
from openai import AsyncOpenAI

from embedsync.exceptions import BatchJobFailedError, ProviderError, ValidationError
from embedsync.providers.batch_format import (
    COMPLETED_STATUS,
    COMPLETION_WINDOW,
    EMBEDDINGS_ENDPOINT,
    FAILED_STATUSES,
    IN_FLIGHT_STATUSES,
    build_batch_lines,
    parse_batch_output,
)
from embedsync.types import EmbeddingResult, EmbeddingStatus

if TYPE_CHECKING:
    from embedsync.types import EmbeddingItem

logger = logging.getLogger(__name__)

# Embedding models this provider serves, with their native dimensions.
MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class OpenAIEmbeddingProvider:
    """Async embedding provider backed by the OpenAI Embeddings and Batch APIs.

    Direct mode issues one ``embeddings.create`` call per item, all started
    before any is awaited.  Batch mode uploads a JSONL file and creates a
    batch job whose lines are tagged with the embedding record id.

    The API key comes from *api_key* or the ``OPENAI_API_KEY`` environment
    variable; without one, construction raises ``ValidationError``.
    """

    def __init__(
        self,
        *,
        model: str = "text-embedding-3-small",
        dimensions: int | None = None,
        api_key: str | None = None,
        max_retries: int = 2,
        timeout: float = 60.0,
    ) -> None:
        resolved_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not resolved_key:
            msg = (
                "No OpenAI API key provided. Pass api_key= or set the "
                "OPENAI_API_KEY environment variable."
            )
            raise ValidationError(msg)

        self._model = model
        self._dimensions = dimensions
        self._client = AsyncOpenAI(
            api_key=resolved_key,
            max_retries=max_retries,
            timeout=timeout,
        )

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def provider_name(self) -> str:
        return "openai"

    @property
    def model_name(self) -> str:
        """Return the model name."""
        return self._model

    def supports_batch_processing(self) -> bool:
        return True

    # ------------------------------------------------------------------
    # Direct mode
    # ------------------------------------------------------------------

    async def generate_embeddings(self, items: list[EmbeddingItem]) -> list[EmbeddingResult]:
        """Embed every item with its own request, all in flight at once."""
        if not items:
            return []

        # Every call settles before the first error is raised.
        responses = await asyncio.gather(
            *(self._create(item.markdown) for item in items), return_exceptions=True
        )
        errors = [r for r in responses if isinstance(r, BaseException)]
        if errors:
            first = errors[0]
            if isinstance(first, openai.OpenAIError):
                raise ProviderError(f"OpenAI embeddings request failed: {first}") from first
            raise first

        results: list[EmbeddingResult] = []
        for item, response in zip(items, responses, strict=True):
            embedding = response.data[0].embedding if response.data else None
            results.append(
                EmbeddingResult(
                    entity_id=item.entity_id,
                    entity_type=item.entity_type,
                    schema_name=item.schema_name,
                    embedding=embedding,
                    status=EmbeddingStatus.COMPLETED if embedding else EmbeddingStatus.PENDING,
                    original_text=item.markdown,
                )
            )
        return results

    async def _create(self, text: str) -> Any:
        kwargs: dict[str, Any] = {
            "model": self._model,
            "input": text,
            "encoding_format": "float",
        }
        if self._dimensions is not None:
            kwargs["dimensions"] = self._dimensions
        return await self._client.embeddings.create(**kwargs)

    # ------------------------------------------------------------------
    # Batch mode
    # ------------------------------------------------------------------

    async def generate_batch_embeddings(
        self, items: list[EmbeddingItem]
    ) -> list[EmbeddingResult]:
        """Upload a JSONL job and return one ``PROCESSING`` placeholder per item."""
        if not items:
            return []

        payload = build_batch_lines(items, self._model).encode()
        filename = f"batch_{uuid.uuid4()}.jsonl"
        try:
            uploaded = await self._client.files.create(
                file=(filename, payload, "application/jsonl"),
                purpose="batch",
            )
            batch = await self._client.batches.create(
                input_file_id=uploaded.id,
                endpoint=EMBEDDINGS_ENDPOINT,
                completion_window=COMPLETION_WINDOW,
            )
        except openai.OpenAIError as e:
            raise ProviderError(f"OpenAI batch submission failed: {e}") from e

        logger.info("Submitted batch %s with %d items (model %s)", batch.id, len(items), self._model)
        return [
            EmbeddingResult(
                entity_id=item.entity_id,
                entity_type=item.entity_type,
                schema_name=item.schema_name,
                embedding=None,
                status=EmbeddingStatus.PROCESSING,
                original_text=item.markdown,
                batch_id=batch.id,
            )
            for item in items
        ]

    async def get_batch_embeddings(
        self,
        batch_id: str,
        item_ids: list[str],
        schema_name: str,
        entity_type: str,
    ) -> list[EmbeddingResult]:
        """Poll *batch_id*.

        - still running: one ``PROCESSING`` placeholder per id
        - failed / cancelled / expired: ``BatchJobFailedError``
        - completed: one result per id; ids missing from the output or
          whose line errored come back ``FAILED`` with no embedding
        """
        if not batch_id:
            raise ValidationError("Batch ID is required")
        if not item_ids:
            raise ValidationError("Item IDs are required")

        try:
            batch = await self._client.batches.retrieve(batch_id)
        except openai.OpenAIError as e:
            raise ProviderError(f"Failed to retrieve batch {batch_id}: {e}") from e

        def _result(item_id: str, **kwargs: Any) -> EmbeddingResult:
            return EmbeddingResult(
                entity_id=item_id,
                entity_type=entity_type,
                schema_name=schema_name,
                batch_id=batch_id,
                **kwargs,
            )

        status = batch.status
        if status in IN_FLIGHT_STATUSES:
            logger.info("Batch %s is still %s", batch_id, status)
            return [_result(i, status=EmbeddingStatus.PROCESSING) for i in item_ids]

        if status in FAILED_STATUSES:
            errors = getattr(batch.errors, "data", None) or []
            detail = (errors[0].message if errors else None) or "Unknown error"
            raise BatchJobFailedError(f"Batch {batch_id} failed with status: {status}. Error: {detail}")

        if status != COMPLETED_STATUS:
            raise ValidationError(f"Batch {batch_id} is in unexpected status: {status}")

        if not batch.output_file_id:
            raise ValidationError(f"Batch {batch_id} is completed but has no output file")

        try:
            content = await self._client.files.content(batch.output_file_id)
        except openai.OpenAIError as e:
            raise ProviderError(f"Failed to download output of batch {batch_id}: {e}") from e

        outcomes = parse_batch_output(content.text)
        results: list[EmbeddingResult] = []
        for item_id in item_ids:
            outcome = outcomes.get(item_id)
            if outcome is not None and outcome.embedding is not None:
                results.append(
                    _result(item_id, embedding=outcome.embedding, status=EmbeddingStatus.COMPLETED)
                )
            else:
                error = outcome.error if outcome is not None else "missing from batch output"
                results.append(_result(item_id, status=EmbeddingStatus.FAILED, error=error))
        return results

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying httpx client."""
        await self._client.close()
