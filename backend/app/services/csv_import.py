"""CSV batch import: parse, check owner, validate mapping, store artifact, persist.

The file record and all of its rows are written in one transaction; a
failure anywhere in that step leaves nothing behind.
"""
import logging
import uuid
from dataclasses import dataclass, field
from pathlib import PurePath

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import StorageError, Unauthorized
from app.models.csv_file import BatchType, CellValue, CsvFile, CsvRow
from app.services import storage as storage_svc
from app.services.csv_parser import ParsedCsv, parse_csv, parse_csv_bytes
from app.services.field_mapping import ensure_valid_mapping, fields_for

logger = logging.getLogger(__name__)


@dataclass
class ImportOutcome:
    csv_file: CsvFile
    preview: list[dict[str, CellValue]] = field(default_factory=list)


def default_batch_name(original_name: str) -> str:
    return PurePath(original_name).stem or original_name


def _parse(content: bytes | str) -> ParsedCsv:
    if isinstance(content, str):
        return parse_csv(content)
    return parse_csv_bytes(content)


async def _discard_artifact(object_name: str) -> None:
    try:
        await run_in_threadpool(storage_svc.delete_object, settings.MINIO_BUCKET_NAME, object_name)
    except Exception as exc:
        logger.warning("Could not remove orphaned upload %s: %s", object_name, exc)


async def import_batch(
    db: AsyncSession,
    owner_id: uuid.UUID | None,
    content: bytes | str,
    original_name: str,
    batch_name: str | None = None,
    batch_type: str | None = None,
    field_mappings: dict[str, str | None] | None = None,
) -> ImportOutcome:
    """Create one CsvFile and its CsvRows from raw CSV content.

    Args:
        db: Session the import runs in. Committed on success, rolled back on failure.
        owner_id: Authenticated owner; None raises Unauthorized.
        content: Raw upload bytes (UTF-8) or already-decoded text.
        original_name: Filename as uploaded; also the default batch name.
        batch_name: Display name. Defaults to ``original_name`` without extension.
        batch_type: Category, defaults to ``settings.DEFAULT_BATCH_TYPE``.
        field_mappings: Optional ``{field_key: header}`` chosen by the user.
            Validated against the category schema and parsed headers, never stored.

    Raises:
        ParseError, Unauthorized, MappingValidationError, StorageError.
    """
    parsed = _parse(content)

    if owner_id is None:
        raise Unauthorized()

    batch_type = BatchType(batch_type or settings.DEFAULT_BATCH_TYPE).value
    batch_name = (batch_name or "").strip() or default_batch_name(original_name)

    if field_mappings is not None:
        ensure_valid_mapping(fields_for(batch_type), field_mappings, parsed.headers)

    if parsed.duplicate_headers:
        logger.warning(
            "Duplicate CSV headers in %s; later columns overwrite earlier ones: %s",
            original_name,
            parsed.duplicate_headers,
        )

    file_id = uuid.uuid4()
    file_name = f"{file_id}{PurePath(original_name).suffix.lower() or '.csv'}"
    object_name = storage_svc.artifact_key(file_name)
    raw = content.encode("utf-8") if isinstance(content, str) else content

    try:
        await run_in_threadpool(
            storage_svc.upload_file, settings.MINIO_BUCKET_NAME, object_name, raw
        )
    except Exception as exc:
        logger.error("MinIO upload failed for %s: %s", original_name, exc, exc_info=True)
        raise StorageError("Failed to store uploaded file. Please try again.") from exc

    csv_file = CsvFile(
        id=file_id,
        user_id=owner_id,
        file_name=file_name,
        original_name=original_name,
        batch_name=batch_name,
        batch_type=batch_type,
        column_headers=parsed.headers,
        row_count=len(parsed.rows),
        storage_path=object_name,
    )

    try:
        db.add(csv_file)
        await db.flush()
        if parsed.rows:
            await db.execute(
                insert(CsvRow),
                [
                    {"csv_file_id": file_id, "row_index": index, "row_data": row}
                    for index, row in enumerate(parsed.rows)
                ],
            )
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Import of %s failed while writing rows", original_name, exc_info=True)
        await _discard_artifact(object_name)
        raise StorageError("Failed to save imported data. Please try again.") from exc

    await db.refresh(csv_file)
    logger.info(
        "Imported %s as file %s (%d rows, %d columns)",
        original_name,
        file_id,
        csv_file.row_count,
        len(parsed.headers),
    )
    return ImportOutcome(csv_file=csv_file, preview=parsed.preview(settings.PREVIEW_ROW_COUNT))
