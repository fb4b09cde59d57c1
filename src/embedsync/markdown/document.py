"""DocumentMarkdownRenderer — name, URL, type."""

from __future__ import annotations

from typing import TYPE_CHECKING

from embedsync.types import DOCUMENT_EMBEDDINGS, DocumentSnapshot

if TYPE_CHECKING:
    from embedsync.types import EmbeddingEntity


class DocumentMarkdownRenderer:
    """Renders a document heading followed by its URL and type, when present."""

    @property
    def table_name(self) -> str:
        return DOCUMENT_EMBEDDINGS

    def render(self, entity: EmbeddingEntity) -> str:
        document = entity.source
        if not isinstance(document, DocumentSnapshot):
            msg = f"Expected a document for {entity.id}, got {type(document).__name__}"
            raise TypeError(msg)

        markdown = f"# {document.name}\n\n"
        if document.url:
            markdown += f"**URL:** {document.url}\n\n"
        if document.type:
            markdown += f"**Type:** {document.type}\n\n"
        return markdown.strip()
