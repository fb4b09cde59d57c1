"""ProductMarkdownRenderer — name, type, description, category, pricing."""

from __future__ import annotations

from typing import TYPE_CHECKING

from embedsync.markdown._base import format_number
from embedsync.types import PRODUCT_EMBEDDINGS, ProductSnapshot

if TYPE_CHECKING:
    from embedsync.types import EmbeddingEntity


class ProductMarkdownRenderer:
    """Renders a product with its category and pricing details.

    Optional sections (description, category, pricing, and the optional
    lines inside them) are omitted entirely when the data is absent.
    """

    @property
    def table_name(self) -> str:
        return PRODUCT_EMBEDDINGS

    def render(self, entity: EmbeddingEntity) -> str:
        product = entity.source
        if not isinstance(product, ProductSnapshot):
            msg = f"Expected a product for {entity.id}, got {type(product).__name__}"
            raise TypeError(msg)

        parts = [f"# {product.name}\n\n", f"**Product Type:** {product.type}\n\n"]

        if product.description:
            parts.append(f"## Description\n{product.description}\n\n")

        category = product.category
        if category is not None:
            parts.append("## Category\n")
            parts.append(f"**Category:** {category.name}\n")
            if category.description:
                parts.append(f"**Category Description:** {category.description}\n")
            parts.append("\n")

        details = product.details
        if details is not None:
            parts.append("## Pricing\n")
            parts.append(f"**Price:** {details.currency} {format_number(details.price)}\n")
            if details.detailed_description:
                parts.append(f"**Detailed Description:** {details.detailed_description}\n")
            parts.append("\n")

        return "".join(parts).strip()
