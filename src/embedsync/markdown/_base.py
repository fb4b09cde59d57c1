"""MarkdownRenderer protocol and shared formatting helpers."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from embedsync.types import EmbeddingEntity


@runtime_checkable
class MarkdownRenderer(Protocol):
    """Turns one embedding entity into the canonical text that gets vectorized.

    Output must be deterministic: the same entity always renders to the
    same bytes, otherwise unchanged rows would drift in vector space.
    """

    @property
    def table_name(self) -> str:
        """Embedding table this renderer handles."""
        ...

    def render(self, entity: EmbeddingEntity) -> str:
        """Return the markdown for *entity*."""
        ...


def format_number(value: float | int | Decimal) -> str:
    """Render a price the way it reads to a person: ``20`` not ``20.0``."""
    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return str(int(value))
        return format(value.normalize(), "f")
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
