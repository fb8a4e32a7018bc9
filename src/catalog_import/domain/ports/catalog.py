"""Ports for the external catalog backends (read lookups and element writes)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping

    from catalog_import.domain.model import AttributeValue, ElementType


@dataclass(frozen=True, slots=True, kw_only=True)
class CatalogElement:
    """Snapshot of an existing element as returned by the read backend."""

    id: str
    element_type: str
    attributes: Mapping[str, AttributeValue] = field(default_factory=dict)

    @property
    def name(self) -> str:
        value = self.attributes.get("name")
        return "" if value is None else str(value)


@dataclass(frozen=True, slots=True)
class WrittenElement:
    id: str
    outcome: Literal["written"] = "written"


@dataclass(frozen=True, slots=True)
class RejectedWrite:
    message: str
    outcome: Literal["rejected"] = "rejected"


type WriteResult = WrittenElement | RejectedWrite


@runtime_checkable
class ElementReader(Protocol):
    """Read-only lookups used for duplicate detection and previews.

    Implementations raise ``BackendUnavailableError`` when the backend cannot be
    reached and must never mutate state.
    """

    def find_by_key(self, element_type: ElementType, field: str, value: str) -> str | None: ...

    def get_element(self, element_id: str) -> CatalogElement | None: ...


@runtime_checkable
class ElementWriter(Protocol):
    """Upsert-by-id write interface; ``element_id=None`` creates a new element."""

    def upsert(
        self,
        element_type: ElementType,
        element_id: str | None,
        attributes: Mapping[str, AttributeValue],
    ) -> WriteResult: ...


@runtime_checkable
class CatalogBackend(ElementReader, ElementWriter, Protocol):
    """Backend offering both the read and the write side."""
