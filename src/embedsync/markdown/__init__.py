"""Markdown renderers — canonical text per embedding table."""

from __future__ import annotations

from embedsync.exceptions import ValidationError
from embedsync.markdown._base import MarkdownRenderer, format_number
from embedsync.markdown.document import DocumentMarkdownRenderer
from embedsync.markdown.product import ProductMarkdownRenderer


class RendererRegistry:
    """Maps embedding table names to markdown renderers."""

    def __init__(self) -> None:
        self._renderers: dict[str, MarkdownRenderer] = {}
        self.register(ProductMarkdownRenderer())
        self.register(DocumentMarkdownRenderer())

    def register(self, renderer: MarkdownRenderer) -> None:
        """Add or replace the renderer for ``renderer.table_name``."""
        self._renderers[renderer.table_name] = renderer

    def is_supported(self, table_name: str) -> bool:
        return table_name in self._renderers

    def get(self, table_name: str) -> MarkdownRenderer:
        """Return the renderer for *table_name* or raise ``ValidationError``."""
        renderer = self._renderers.get(table_name)
        if renderer is None:
            raise ValidationError(f"Unsupported table name: {table_name}")
        return renderer

    @property
    def supported_tables(self) -> list[str]:
        return sorted(self._renderers)


__all__ = [
    "DocumentMarkdownRenderer",
    "MarkdownRenderer",
    "ProductMarkdownRenderer",
    "RendererRegistry",
    "format_number",
]
