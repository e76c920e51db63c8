"""System field schemas, column-mapping suggestions and mapping validation.

Everything here is pure: no database, no I/O. A mapping is
``{field_key: csv_header | None}``; it is never persisted.
"""
import re
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass

from app.core.errors import MappingValidationError
from app.models.csv_file import BatchType


@dataclass(frozen=True)
class SystemField:
    key: str
    label: str
    required: bool = False


SYSTEM_FIELDS: dict[str, list[SystemField]] = {
    BatchType.Company.value: [
        SystemField("companyName", "Company Name", required=True),
        SystemField("industry", "Industry"),
        SystemField("website", "Website"),
        SystemField("employeeCount", "Employee Count"),
        SystemField("annualRevenue", "Annual Revenue"),
        SystemField("country", "Country"),
        SystemField("state", "State/Province"),
        SystemField("city", "City"),
        SystemField("size", "Size"),
        SystemField("revenue", "Revenue"),
        SystemField("founded", "Founded"),
    ],
    BatchType.People.value: [
        SystemField("firstName", "First Name", required=True),
        SystemField("lastName", "Last Name", required=True),
        SystemField("email", "Email"),
        SystemField("phone", "Phone"),
        SystemField("title", "Title"),
        SystemField("company", "Company"),
        SystemField("location", "Location"),
        SystemField("industry", "Industry"),
    ],
}


def fields_for(batch_type: str) -> list[SystemField]:
    """Schema for a batch category. Raises KeyError for unknown categories."""
    return SYSTEM_FIELDS[batch_type]


# ─── Suggestion ───

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize(value: str) -> str:
    return _NON_ALNUM.sub("", value.lower())


def _matches(header: str, target: str) -> bool:
    return header == target or target in header or header in target


def suggest_mapping(
    headers: Sequence[str],
    fields: Sequence[SystemField],
) -> dict[str, str | None]:
    """Greedy best-effort mapping of each field to the first plausible header.

    A header matches when its normalized form equals, contains, or is
    contained in the normalized key or label. Headers are not consumed, so one
    header can be suggested for several fields; the validator catches that.
    """
    normalized = [(h, normalize(h)) for h in headers]
    mapping: dict[str, str | None] = {}
    for f in fields:
        key, label = normalize(f.key), normalize(f.label)
        mapping[f.key] = next(
            (
                header
                for header, norm in normalized
                if norm and (_matches(norm, key) or _matches(norm, label))
            ),
            None,
        )
    return mapping


# ─── Validation ───

MISSING_REQUIRED_FIELD = "MissingRequiredField"
DUPLICATE_COLUMN_MAPPING = "DuplicateColumnMapping"
UNKNOWN_COLUMN = "UnknownColumn"


@dataclass(frozen=True)
class MappingIssue:
    code: str
    message: str

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


def validate_mapping(
    fields: Sequence[SystemField],
    mapping: dict[str, str | None],
    headers: Sequence[str] | None = None,
) -> dict[str, MappingIssue]:
    """Return ``{field_key: issue}`` for every violation; empty means valid.

    Only schema fields are checked. Empty strings count as unmapped.
    """
    chosen = {f.key: (mapping.get(f.key) or None) for f in fields}
    usage = Counter(h for h in chosen.values() if h is not None)
    known = set(headers) if headers is not None else None

    errors: dict[str, MappingIssue] = {}
    for f in fields:
        header = chosen[f.key]
        if header is None:
            if f.required:
                errors[f.key] = MappingIssue(MISSING_REQUIRED_FIELD, f"{f.label} is required")
        elif usage[header] > 1:
            errors[f.key] = MappingIssue(
                DUPLICATE_COLUMN_MAPPING, f"Column '{header}' is mapped to multiple fields"
            )
        elif known is not None and header not in known:
            errors[f.key] = MappingIssue(UNKNOWN_COLUMN, f"Column '{header}' is not in the file")
    return errors


def ensure_valid_mapping(
    fields: Sequence[SystemField],
    mapping: dict[str, str | None],
    headers: Sequence[str] | None = None,
) -> None:
    errors = validate_mapping(fields, mapping, headers)
    if errors:
        raise MappingValidationError(errors)
