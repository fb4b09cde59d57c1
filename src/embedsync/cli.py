"""embedsync CLI — run the pipeline once from a scheduler or a shell."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

import click

from embedsync import __version__
from embedsync._pipeline import EmbeddingPipeline
from embedsync.config import PipelineSettings
from embedsync.exceptions import EmbedSyncError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


def _run(
    settings: PipelineSettings,
    call: Callable[[EmbeddingPipeline], Awaitable[dict[str, Any]]],
) -> None:
    async def _main() -> dict[str, Any]:
        async with EmbeddingPipeline(settings) as pipeline:
            return await call(pipeline)

    try:
        result = asyncio.run(_main())
    except EmbedSyncError as e:
        raise click.ClickException(str(e)) from e
    click.echo(json.dumps(result, indent=2, default=str))


@click.group()
@click.version_option(version=__version__, prog_name="embedsync")
@click.option(
    "--log-level",
    default=None,
    help="Override EMBEDSYNC_LOG_LEVEL (DEBUG, INFO, WARNING, ...).",
)
@click.pass_context
def main(ctx: click.Context, log_level: str | None) -> None:
    """Keep per-tenant embeddings in sync with data changes."""
    try:
        settings = PipelineSettings.from_env()
    except EmbedSyncError as e:
        raise click.ClickException(str(e)) from e
    if log_level:
        settings.log_level = log_level.upper()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = settings


@main.command()
@click.pass_obj
def generate(settings: PipelineSettings) -> None:
    """Embed every pending modification."""
    _run(settings, lambda p: p.run_generation())


@main.command()
@click.pass_obj
def reconcile(settings: PipelineSettings) -> None:
    """Poll outstanding batch jobs and store finished vectors."""
    _run(settings, lambda p: p.run_reconciliation())


@main.command()
@click.argument("action_or_path")
@click.pass_obj
def event(settings: PipelineSettings, action_or_path: str) -> None:
    """Handle a scheduler event.

    ACTION_OR_PATH is an action name (generate_embeddings,
    check_embedding_status) or a path (/embedding/generate, /embedding/check).
    """
    key = "path" if action_or_path.startswith("/") else "action"
    _run(settings, lambda p: p.handle_event({key: action_or_path}))

