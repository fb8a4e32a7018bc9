"""CSV export of error report entries."""

from __future__ import annotations

import csv
import io
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Iterable

    from catalog_import.domain.model import ErrorReportEntry

ERROR_REPORT_COLUMNS: Final[tuple[str, ...]] = ("Row", "Field", "Value", "Error")


def export_error_report(entries: Iterable[ErrorReportEntry]) -> str:
    """Render ``entries`` as CSV ordered by row, keeping field order within a row."""

    buffer = io.StringIO(newline="")
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL)
    writer.writerow(ERROR_REPORT_COLUMNS)
    for entry in sorted(entries, key=lambda item: item.row):
        writer.writerow((entry.row, entry.field, entry.value, entry.message))
    return buffer.getvalue()
