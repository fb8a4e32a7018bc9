"""CSV/TSV tokenization into header rows and raw string-keyed rows.

The delimiter is chosen once per document from the header line and applied to
every following line. Quoting follows RFC 4180: quoted fields may contain the
delimiter and newlines, and a doubled quote unescapes to one quote.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from itertools import chain
from logging import getLogger
from typing import TYPE_CHECKING, Final

from catalog_import.domain.errors import ParseError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

    from catalog_import.domain.model import RawRow

log = getLogger(__name__)

DEFAULT_CHUNK_SIZE: Final[int] = 200
PREVIEW_ROW_COUNT: Final[int] = 10
MAX_HEADER_LENGTH: Final[int] = 256
DELIMITERS: Final[tuple[str, ...]] = (",", ";", "\t")

EMPTY_INPUT_MESSAGE: Final[str] = "CSV content is empty."
NO_HEADERS_MESSAGE: Final[str] = "No valid headers found in CSV."


@dataclass(frozen=True, slots=True, kw_only=True)
class ParseResult:
    headers: tuple[str, ...]
    rows: tuple[RawRow, ...]
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    delimiter: str = ","

    @property
    def total_rows(self) -> int:
        return len(self.rows)

    @property
    def ok(self) -> bool:
        return not self.errors

    def preview(self, limit: int = PREVIEW_ROW_COUNT) -> tuple[RawRow, ...]:
        return self.rows[:limit]


@dataclass(frozen=True, slots=True, kw_only=True)
class RowBatch:
    """One chunk of a batched parse; row indices continue across chunks."""

    batch_index: int
    headers: tuple[str, ...]
    first_row_index: int
    rows: tuple[RawRow, ...]
    warnings: tuple[str, ...] = ()


def decode_upload(raw: bytes) -> str:
    """Decode uploaded bytes, preferring UTF-8 (with or without BOM) over Latin-1."""

    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        log.debug("Upload is not valid UTF-8, decoding as latin-1")
        return raw.decode("latin-1")


def detect_delimiter(header_line: str) -> str:
    """Return the candidate delimiter occurring most often in ``header_line``."""

    best = DELIMITERS[0]
    best_count = 0
    for candidate in DELIMITERS:
        count = header_line.count(candidate)
        if count > best_count:
            best, best_count = candidate, count
    return best


def parse_csv(content: str) -> ParseResult:
    """Parse a whole document, reporting problems as data rather than raising."""

    try:
        document = _Document.open(io.StringIO(content, newline=""))
    except ParseError as exc:
        return ParseResult(headers=(), rows=(), errors=(str(exc),))

    rows: list[RawRow] = []
    warnings: list[str] = []
    errors = list(document.header_errors)
    try:
        for _row_index, row, row_warnings in document.iter_rows():
            rows.append(row)
            warnings.extend(row_warnings)
    except ParseError as exc:
        errors.append(str(exc))

    log.debug(
        "Parsed %d rows with %d headers (delimiter %r)",
        len(rows),
        len(document.headers),
        document.delimiter,
    )
    return ParseResult(
        headers=document.headers,
        rows=tuple(rows),
        errors=tuple(errors),
        warnings=tuple(warnings),
        delimiter=document.delimiter,
    )


class RowBatches:
    """Single-use iterator over the chunks of one document.

    ``headers`` and ``delimiter`` are known as soon as the header line is read,
    before any row is consumed.
    """

    def __init__(self, document: _Document, chunk_size: int) -> None:
        self.headers = document.headers
        self.delimiter = document.delimiter
        self._chunks = _chunked(document, chunk_size)

    def __iter__(self) -> RowBatches:
        return self

    def __next__(self) -> RowBatch:
        return next(self._chunks)


def iter_csv_batches(
    source: str | Iterable[str],
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> RowBatches:
    """Lazily parse ``source`` in chunks of ``chunk_size`` rows.

    ``source`` is either the document text or an iterable of lines (for example
    a file opened with ``newline=""``). The header line is read immediately, so
    empty or headerless input raises :class:`ParseError` before iteration.
    Malformed quoting raises :class:`ParseError` from the chunk that reaches it.
    """

    if chunk_size < 1:
        raise ValueError("chunk_size must be at least 1")
    lines = io.StringIO(source, newline="") if isinstance(source, str) else source
    document = _Document.open(lines)
    if document.header_errors:
        raise ParseError("; ".join(document.header_errors))
    return RowBatches(document, chunk_size)


def _chunked(document: _Document, chunk_size: int) -> Iterator[RowBatch]:
    batch_index = 0
    first_row_index = 1
    rows: list[RawRow] = []
    warnings: list[str] = []
    for _row_index, row, row_warnings in document.iter_rows():
        rows.append(row)
        warnings.extend(row_warnings)
        if len(rows) == chunk_size:
            yield RowBatch(
                batch_index=batch_index,
                headers=document.headers,
                first_row_index=first_row_index,
                rows=tuple(rows),
                warnings=tuple(warnings),
            )
            batch_index += 1
            first_row_index += len(rows)
            rows, warnings = [], []
    if rows:
        yield RowBatch(
            batch_index=batch_index,
            headers=document.headers,
            first_row_index=first_row_index,
            rows=tuple(rows),
            warnings=tuple(warnings),
        )


@dataclass(slots=True)
class _Document:
    headers: tuple[str, ...]
    header_errors: tuple[str, ...]
    delimiter: str
    _records: Iterator[list[str]]

    @classmethod
    def open(cls, lines: Iterable[str]) -> _Document:
        iterator = iter(lines)
        header_line = _first_content_line(iterator)
        if header_line is None:
            raise ParseError(EMPTY_INPUT_MESSAGE)
        header_line = header_line.removeprefix("\ufeff")
        delimiter = detect_delimiter(header_line)
        records = csv.reader(
            chain([header_line], iterator),
            delimiter=delimiter,
            quotechar='"',
            doublequote=True,
            skipinitialspace=True,
            strict=True,
        )
        header_fields = next(records, [])
        headers = tuple(value.strip() for value in header_fields)
        if not any(headers):
            raise ParseError(NO_HEADERS_MESSAGE)
        return cls(
            headers=headers,
            header_errors=_header_errors(headers),
            delimiter=delimiter,
            _records=records,
        )

    def iter_rows(self) -> Iterator[tuple[int, RawRow, tuple[str, ...]]]:
        row_index = 0
        width = len(self.headers)
        for fields in self._guarded(lambda: row_index + 1):
            if _is_blank(fields):
                continue
            row_index += 1
            row = {
                header: fields[position].strip() if position < len(fields) else ""
                for position, header in enumerate(self.headers)
            }
            warnings: tuple[str, ...] = ()
            extra = len(fields) - width
            if extra > 0 and any(value.strip() for value in fields[width:]):
                warnings = (f"Row {row_index}: {extra} value(s) beyond the header row ignored.",)
            yield row_index, row, warnings

    def _guarded(self, next_row: Callable[[], int]) -> Iterator[list[str]]:
        while True:
            try:
                fields = next(self._records)
            except StopIteration:
                return
            except csv.Error as exc:
                raise ParseError(f"Row {next_row()}: Parse error - {exc}") from exc
            yield fields


def _first_content_line(lines: Iterator[str]) -> str | None:
    for line in lines:
        if line.strip():
            return line
    return None


def _is_blank(fields: list[str]) -> bool:
    return len(fields) <= 1 and not "".join(fields).strip()


def _header_errors(headers: tuple[str, ...]) -> tuple[str, ...]:
    errors: list[str] = []
    seen: set[str] = set()
    for header in headers:
        if len(header) > MAX_HEADER_LENGTH:
            errors.append(
                f'Header "{header[:40]}..." exceeds maximum length of {MAX_HEADER_LENGTH}.'
            )
        if header and header in seen:
            errors.append(f'Duplicate header "{header}".')
        seen.add(header)
    return tuple(errors)
