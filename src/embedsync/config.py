"""PipelineSettings — runtime configuration read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import find_dotenv, load_dotenv

from embedsync.exceptions import ValidationError

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValidationError(f"{name} must be a boolean, got {raw!r}")


def _env_number(name: str, default: float, cast: type) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ValidationError(f"{name} must be a number, got {raw!r}") from e


@dataclass
class PipelineSettings:
    """Settings for one pipeline process.

    Attributes:
        database_url: SQLAlchemy async URL of the multi-tenant database.
        public_schema: Schema holding the shared ledger tables.  ``None``
            leaves them unqualified (SQLite).
        openai_api_key: Key for the OpenAI embedding models.
        openai_timeout: Per-request timeout in seconds.
        openai_max_retries: Retries the OpenAI client performs on its own.
        review_on_terminal_only: Keep a batch job pending until every batch
            behind it is finished.
        mark_failed_items: Write ``failed`` for items that errored inside a
            completed batch.
        log_level: Root log level used by the CLI.
    """

    database_url: str
    public_schema: str | None = "public"
    openai_api_key: str | None = None
    openai_timeout: float = 60.0
    openai_max_retries: int = 2
    review_on_terminal_only: bool = True
    mark_failed_items: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, *, dotenv: bool = True) -> PipelineSettings:
        """Build settings from ``EMBEDSYNC_*`` and ``OPENAI_API_KEY``.

        The nearest ``.env`` file at or above the working directory is loaded first unless
        *dotenv* is false; variables already set take precedence.
        """
        if dotenv:
            load_dotenv(find_dotenv(usecwd=True))

        database_url = os.getenv("EMBEDSYNC_DATABASE_URL")
        if not database_url:
            raise ValidationError("EMBEDSYNC_DATABASE_URL is not set")

        public_schema = os.getenv("EMBEDSYNC_PUBLIC_SCHEMA", "public").strip() or None

        return cls(
            database_url=database_url,
            public_schema=public_schema,
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_timeout=_env_number("EMBEDSYNC_OPENAI_TIMEOUT", 60.0, float),
            openai_max_retries=int(_env_number("EMBEDSYNC_OPENAI_MAX_RETRIES", 2, int)),
            review_on_terminal_only=_env_bool("EMBEDSYNC_REVIEW_ON_TERMINAL_ONLY", True),
            mark_failed_items=_env_bool("EMBEDSYNC_MARK_FAILED_ITEMS", True),
            log_level=os.getenv("EMBEDSYNC_LOG_LEVEL", "INFO").upper(),
        )
