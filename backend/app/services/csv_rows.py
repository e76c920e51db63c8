"""Owner-scoped reads and writes over imported files and their rows.

Every lookup filters on the owner; a file or row that exists but belongs to
someone else raises the same NotFound as one that does not exist.
"""
import logging
import math
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Literal

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import delete, false, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import NotFound
from app.models.csv_file import CellValue, CsvFile, CsvRow
from app.services import storage as storage_svc

logger = logging.getLogger(__name__)

SortDirection = Literal["asc", "desc"]


@dataclass
class RowPage:
    csv_file: CsvFile
    rows: list[CsvRow]
    total_count: int
    page: int
    limit: int

    @property
    def page_count(self) -> int:
        return math.ceil(self.total_count / self.limit)


# ─── Files ───

async def list_files(db: AsyncSession, owner_id: uuid.UUID) -> list[CsvFile]:
    """Owner's files, newest first."""
    stmt = (
        select(CsvFile)
        .where(CsvFile.user_id == owner_id)
        .order_by(CsvFile.created_at.desc())
    )
    return list((await db.execute(stmt)).scalars().all())


async def get_file(db: AsyncSession, file_id: uuid.UUID, owner_id: uuid.UUID) -> CsvFile:
    stmt = select(CsvFile).where(CsvFile.id == file_id, CsvFile.user_id == owner_id)
    csv_file = (await db.execute(stmt)).scalar_one_or_none()
    if csv_file is None:
        raise NotFound("CSV file")
    return csv_file


# ─── Rows ───

def row_filter(headers: Sequence[str], needle: str):
    """Case-sensitive substring match against the text of any column value.

    LIKE wildcards in ``needle`` are escaped, so ``%`` and ``_`` match literally.
    """
    columns = list(dict.fromkeys(headers))
    if not columns:
        return false()
    return or_(
        *(CsvRow.row_data[column].astext.contains(needle, autoescape=True) for column in columns)
    )


async def list_rows(
    db: AsyncSession,
    file_id: uuid.UUID,
    owner_id: uuid.UUID,
    page: int = 1,
    limit: int = settings.DEFAULT_PAGE_SIZE,
    sort: SortDirection = "asc",
    filter_text: str | None = None,
) -> RowPage:
    """One page of a file's rows ordered by import position.

    The filter narrows both the page and ``total_count``.
    """
    if page < 1 or limit < 1:
        raise ValueError("page and limit must be >= 1")

    csv_file = await get_file(db, file_id, owner_id)

    conditions = [CsvRow.csv_file_id == csv_file.id]
    if filter_text:
        conditions.append(row_filter(csv_file.column_headers, filter_text))

    count_stmt = select(func.count()).select_from(CsvRow).where(*conditions)
    total = (await db.execute(count_stmt)).scalar_one()

    order = CsvRow.row_index.desc() if sort == "desc" else CsvRow.row_index.asc()
    stmt = (
        select(CsvRow)
        .where(*conditions)
        .order_by(order)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    rows = list((await db.execute(stmt)).scalars().all())

    return RowPage(csv_file=csv_file, rows=rows, total_count=total, page=page, limit=limit)


async def all_row_data(db: AsyncSession, csv_file: CsvFile) -> list[dict[str, CellValue]]:
    """Every row's values in import order, for export."""
    stmt = (
        select(CsvRow.row_data)
        .where(CsvRow.csv_file_id == csv_file.id)
        .order_by(CsvRow.row_index.asc())
    )
    return list((await db.execute(stmt)).scalars().all())


async def update_row(
    db: AsyncSession,
    row_id: uuid.UUID,
    owner_id: uuid.UUID,
    row_data: Mapping[str, CellValue],
) -> CsvRow:
    """Replace a row's whole value mapping. The caller sends the complete mapping."""
    stmt = (
        select(CsvRow)
        .join(CsvFile, CsvRow.csv_file_id == CsvFile.id)
        .where(CsvRow.id == row_id, CsvFile.user_id == owner_id)
    )
    row = (await db.execute(stmt)).scalar_one_or_none()
    if row is None:
        raise NotFound("CSV row")

    row.row_data = dict(row_data)
    await db.commit()
    await db.refresh(row)
    return row


async def delete_file(db: AsyncSession, file_id: uuid.UUID, owner_id: uuid.UUID) -> None:
    """Delete a file and its rows; then try to remove the raw upload.

    Losing the artifact cleanup is logged and ignored; the records are already gone.
    """
    csv_file = await get_file(db, file_id, owner_id)
    storage_path = csv_file.storage_path

    await db.execute(delete(CsvRow).where(CsvRow.csv_file_id == csv_file.id))
    await db.delete(csv_file)
    await db.commit()
    logger.info("Deleted CSV file %s", file_id)

    if storage_path:
        try:
            await run_in_threadpool(
                storage_svc.delete_object, settings.MINIO_BUCKET_NAME, storage_path
            )
        except Exception as exc:
            logger.warning("Failed to delete upload %s from storage: %s", storage_path, exc)
