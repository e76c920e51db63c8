"""CSV text -> ordered headers + header-keyed row mappings.

Rules:
- the first record with a non-blank field is the header row; headers are trimmed
- empty records are skipped
- NUL characters are rejected; PostgreSQL JSONB cannot store them
- short rows get ``None`` for the missing trailing headers, long rows lose
  their extra fields
- quoted fields may hold commas, doubled quotes and newlines
- any tokenizer error fails the whole parse with ``ParseError``

Duplicate headers are kept in ``headers`` but collapse inside each row
mapping (the last value wins). ``ParsedCsv.duplicate_headers`` names them so
callers can warn; this is a known limitation, not a guarantee.
"""
import csv
import io
from collections import Counter
from dataclasses import dataclass, field

from app.core.errors import ParseError
from app.models.csv_file import CellValue


@dataclass(frozen=True)
class ParseIssue:
    """One problem found while parsing. ``row`` is the 1-based source line, None for file-level issues."""

    code: str
    message: str
    row: int | None = None

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "row": self.row}


@dataclass
class ParsedCsv:
    headers: list[str]
    rows: list[dict[str, CellValue]] = field(default_factory=list)

    @property
    def duplicate_headers(self) -> list[str]:
        counts = Counter(self.headers)
        return [h for h, n in counts.items() if n > 1]

    def preview(self, count: int) -> list[dict[str, CellValue]]:
        return self.rows[:count]


def _is_empty_record(record: list[str]) -> bool:
    return not record or record == [""]


def _is_blank_record(record: list[str]) -> bool:
    return all(not value.strip() for value in record)


def parse_csv(text: str) -> ParsedCsv:
    """Parse CSV ``text``. Raises ParseError; never returns partial data."""
    nul_at = text.find("\x00")
    if nul_at != -1:
        raise ParseError([
            ParseIssue(
                code="InvalidCharacter",
                message="CSV contains a NUL character",
                row=text.count("\n", 0, nul_at) + 1,
            )
        ])

    reader = csv.reader(io.StringIO(text, newline=""), strict=True)
    headers: list[str] | None = None
    rows: list[dict[str, CellValue]] = []

    try:
        for record in reader:
            if _is_empty_record(record):
                continue
            if headers is None:
                if _is_blank_record(record):
                    continue
                headers = [h.strip() for h in record]
                continue

            row: dict[str, CellValue] = {}
            for position, header in enumerate(headers):
                row[header] = record[position] if position < len(record) else None
            rows.append(row)
    except csv.Error as exc:
        raise ParseError([ParseIssue(code="MalformedRow", message=str(exc), row=reader.line_num)])

    if headers is None:
        raise ParseError([ParseIssue(code="MissingHeader", message="CSV file has no header row")])

    return ParsedCsv(headers=headers, rows=rows)


def parse_csv_bytes(content: bytes) -> ParsedCsv:
    """Decode UTF-8 (BOM tolerated) and parse."""
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ParseError([
            ParseIssue(
                code="InvalidEncoding",
                message=f"File is not valid UTF-8 (byte offset {exc.start})",
            )
        ])
    return parse_csv(text)
