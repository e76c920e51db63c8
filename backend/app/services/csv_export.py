"""Render stored rows back to CSV text."""
import csv
import io
import re
from collections.abc import Iterable, Iterator, Mapping, Sequence
from datetime import date

from app.models.csv_file import CellValue


def _cell(value: CellValue) -> str:
    return "" if value is None else str(value)


def export_rows(
    headers: Sequence[str],
    rows: Iterable[Mapping[str, CellValue]],
) -> Iterator[str]:
    """Yield the CSV one line at a time: header first, then each row in order.

    Missing keys and nulls become empty fields; numbers use their str() form.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")

    def flush() -> str:
        line = buffer.getvalue()
        buffer.seek(0)
        buffer.truncate(0)
        return line

    writer.writerow(headers)
    yield flush()
    for row in rows:
        writer.writerow([_cell(row.get(h)) for h in headers])
        yield flush()


_UNSAFE_FILENAME = re.compile(r'[\\/:*?"<>|\r\n]+')


def export_filename(batch_name: str | None, today: date) -> str:
    base = _UNSAFE_FILENAME.sub("_", batch_name or "").strip() or "export"
    return f"{base}_{today.isoformat()}.csv"
