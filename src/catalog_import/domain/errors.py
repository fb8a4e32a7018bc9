"""Exception hierarchy for the import pipeline."""

from __future__ import annotations


class CatalogImportError(Exception):
    """Base class for all import pipeline errors."""


class ParseError(CatalogImportError):
    """Raised when input text cannot produce a header row."""


class MappingError(CatalogImportError):
    """Raised when a mapping set cannot feed validation."""

    def __init__(self, message: str, *, missing: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.missing = missing


class BackendUnavailableError(CatalogImportError):
    """Raised by adapters when the read or write backend cannot be reached."""


class BackendResponseError(CatalogImportError):
    """Raised by adapters when the backend answers with a status or payload they cannot use."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BatchIdentityError(CatalogImportError):
    """Batch id misuse by a caller; treat as an internal bug."""

    def __init__(self, message: str, *, batch_id: str) -> None:
        super().__init__(message)
        self.batch_id = batch_id


class DuplicateBatchError(BatchIdentityError):
    """Raised when a batch id is registered twice."""


class UnknownBatchError(BatchIdentityError):
    """Raised when an operation requires a batch that does not exist."""


class BatchConflictError(CatalogImportError):
    """Raised when execution is requested for a batch that already left PENDING."""

    def __init__(self, message: str, *, batch_id: str, status: str) -> None:
        super().__init__(message)
        self.batch_id = batch_id
        self.status = status


class ImmutableBatchError(CatalogImportError):
    """Raised when a terminal batch or a backwards status move is requested."""


class UnknownDuplicateRowError(CatalogImportError, KeyError):
    """Raised when a strategy is assigned to a row without a duplicate match."""

    def __init__(self, row_index: int) -> None:
        super().__init__(row_index)
        self.row_index = row_index

    def __str__(self) -> str:
        return f"Row {self.row_index} has no duplicate match"
