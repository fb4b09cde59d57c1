"""JSONL wire format of the embeddings batch API.

Submission, one object per line::

    {"custom_id": "<record id>", "method": "POST", "url": "/v1/embeddings",
     "body": {"model": "...", "input": "<markdown>", "encoding_format": "float"}}

Output, one object per line::

    {"custom_id": "<record id>", "response": {"status_code": 200,
     "body": {"data": [{"embedding": [...]}]}}, "error": null}

The ``custom_id`` is the only link between a result line and the record
it belongs to.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from embedsync.types import EmbeddingItem

logger = logging.getLogger(__name__)

EMBEDDINGS_ENDPOINT = "/v1/embeddings"
COMPLETION_WINDOW = "24h"

# Provider batch statuses
IN_FLIGHT_STATUSES = frozenset({"validating", "in_progress", "finalizing"})
FAILED_STATUSES = frozenset({"failed", "cancelled", "cancelling", "expired"})
COMPLETED_STATUS = "completed"


@dataclass(frozen=True, slots=True)
class BatchLineOutcome:
    """Parsed result of one output line."""

    custom_id: str
    embedding: list[float] | None = None
    error: str | None = None


def build_batch_lines(items: list[EmbeddingItem], model: str) -> str:
    """Serialize *items* as a JSONL submission payload."""
    lines = [
        json.dumps(
            {
                "custom_id": item.entity_id,
                "method": "POST",
                "url": EMBEDDINGS_ENDPOINT,
                "body": {
                    "model": model,
                    "input": item.markdown,
                    "encoding_format": "float",
                },
            }
        )
        for item in items
    ]
    return "\n".join(lines)


def _line_error(record: dict[str, Any]) -> str | None:
    error = record.get("error")
    if error:
        return error.get("message") if isinstance(error, dict) else str(error)
    response = record.get("response") or {}
    if response.get("error"):
        err = response["error"]
        return err.get("message") if isinstance(err, dict) else str(err)
    status = response.get("status_code")
    if isinstance(status, int) and status >= 400:
        return f"status code {status}"
    return None


def _line_embedding(record: dict[str, Any]) -> list[float] | None:
    body = (record.get("response") or {}).get("body") or {}
    data = body.get("data") or []
    if not data or not isinstance(data[0], dict):
        return None
    return data[0].get("embedding") or None


def parse_batch_output(text: str) -> dict[str, BatchLineOutcome]:
    """Parse a JSONL output file into outcomes keyed by ``custom_id``.

    Blank and unparsable lines are skipped (the latter logged); lines
    without a ``custom_id`` cannot be matched and are dropped.
    """
    outcomes: dict[str, BatchLineOutcome] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError:
            logger.warning("Failed to parse batch output line: %.200s", line)
            continue
        if not isinstance(record, dict) or not record.get("custom_id"):
            continue

        custom_id = str(record["custom_id"])
        error = _line_error(record)
        embedding = None if error else _line_embedding(record)
        if error is None and embedding is None:
            error = "no embedding in response"
        if error is not None:
            logger.warning("Item %s failed in batch: %s", custom_id, error)
        outcomes[custom_id] = BatchLineOutcome(
            custom_id=custom_id, embedding=embedding, error=error
        )
    return outcomes
