"""CSV batch endpoints: parse, map, import, browse, edit, export, delete."""
import logging
import uuid
from datetime import date
from typing import Annotated, Literal
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from fastapi.responses import StreamingResponse
from pydantic import TypeAdapter, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.deps import CurrentUser
from app.core.errors import InvalidUpload, UploadTooLarge
from app.core.limiter import limiter
from app.db.session import get_session
from app.models.csv_file import BatchType
from app.schemas.csv_file import (
    CsvFileListResponse,
    CsvFileOut,
    CsvRowOut,
    DeleteResponse,
    MappingResponse,
    MappingSuggestRequest,
    MappingValidateRequest,
    MappingValidationResponse,
    Pagination,
    ParsePreviewResponse,
    RowPageResponse,
    RowUpdate,
    RowUpdateResponse,
    SchemaResponse,
    SystemFieldOut,
    UploadResponse,
)
from app.services import csv_import as import_svc
from app.services import csv_rows as rows_svc
from app.services.csv_export import export_filename, export_rows
from app.services.csv_parser import parse_csv_bytes
from app.services.field_mapping import ensure_valid_mapping, fields_for, suggest_mapping

logger = logging.getLogger(__name__)

router = APIRouter()

_mapping_adapter = TypeAdapter(dict[str, str | None])


# ─── Helpers ───

async def _read_upload(upload: UploadFile | None) -> bytes:
    """Transport checks: present, CSV by extension or MIME type, non-empty, within size cap."""
    if upload is None:
        raise InvalidUpload("No file uploaded.")

    filename = upload.filename or ""
    if not filename.lower().endswith(".csv") and upload.content_type != "text/csv":
        raise InvalidUpload("Only CSV files are allowed.")

    content = await upload.read()
    if not content:
        raise InvalidUpload("Uploaded file is empty.")
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise UploadTooLarge(len(content), settings.MAX_UPLOAD_BYTES)
    return content


def _parse_mappings_form(raw: str | None) -> dict[str, str | None] | None:
    if raw is None or not raw.strip():
        return None
    try:
        return _mapping_adapter.validate_json(raw)
    except ValidationError:
        raise InvalidUpload("field_mappings must be a JSON object of field key to column name.")


# ─── Schemas & mapping ───

@router.get("/schemas/{batch_type}", response_model=SchemaResponse, summary="System fields for a batch type")
async def get_schema(batch_type: BatchType, current_user: CurrentUser):
    return SchemaResponse(
        batch_type=batch_type,
        fields=[SystemFieldOut.model_validate(f) for f in fields_for(batch_type.value)],
    )


@router.post("/mappings/suggest", response_model=MappingResponse, summary="Suggest column mappings")
async def suggest_mappings(body: MappingSuggestRequest, current_user: CurrentUser):
    return MappingResponse(
        batch_type=body.batch_type,
        field_mappings=suggest_mapping(body.headers, fields_for(body.batch_type.value)),
    )


@router.post(
    "/mappings/validate",
    response_model=MappingValidationResponse,
    summary="Validate column mappings (422 with per-field reasons on failure)",
)
async def validate_mappings(body: MappingValidateRequest, current_user: CurrentUser):
    ensure_valid_mapping(fields_for(body.batch_type.value), body.field_mappings, body.headers)
    return MappingValidationResponse(valid=True)


# ─── POST /csv/parse ───

@router.post("/parse", response_model=ParsePreviewResponse, summary="Parse a CSV without saving it")
async def parse_upload(
    current_user: CurrentUser,
    csv_file: Annotated[UploadFile | None, File()] = None,
    batch_type: Annotated[BatchType, Form()] = BatchType.Company,
):
    content = await _read_upload(csv_file)
    parsed = parse_csv_bytes(content)
    return ParsePreviewResponse(
        column_headers=parsed.headers,
        duplicate_headers=parsed.duplicate_headers,
        total_records=len(parsed.rows),
        preview=parsed.preview(settings.PREVIEW_ROW_COUNT),
        suggested_mappings=suggest_mapping(parsed.headers, fields_for(batch_type.value)),
    )


# ─── POST /csv/upload ───

@router.post(
    "/upload",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Import a CSV file as a new batch",
)
@limiter.limit(settings.UPLOAD_RATE_LIMIT)
async def upload_csv(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_session)],
    current_user: CurrentUser,
    csv_file: Annotated[UploadFile | None, File()] = None,
    batch_name: Annotated[str | None, Form()] = None,
    batch_type: Annotated[BatchType, Form()] = BatchType.Company,
    field_mappings: Annotated[str | None, Form()] = None,
):
    content = await _read_upload(csv_file)
    outcome = await import_svc.import_batch(
        db,
        owner_id=current_user.id,
        content=content,
        original_name=csv_file.filename or "upload.csv",
        batch_name=batch_name,
        batch_type=batch_type.value,
        field_mappings=_parse_mappings_form(field_mappings),
    )
    return UploadResponse(
        csv_file=CsvFileOut.model_validate(outcome.csv_file),
        preview=outcome.preview,
    )


# ─── GET /csv/files ───

@router.get("/files", response_model=CsvFileListResponse, summary="List my imported files, newest first")
async def list_files(
    db: Annotated[AsyncSession, Depends(get_session)],
    current_user: CurrentUser,
):
    files = await rows_svc.list_files(db, current_user.id)
    return CsvFileListResponse(csv_files=[CsvFileOut.model_validate(f) for f in files])


# ─── GET /csv/{file_id}/data ───

@router.get("/{file_id}/data", response_model=RowPageResponse, summary="Page through a file's rows")
async def get_rows(
    file_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    current_user: CurrentUser,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    sort: Literal["asc", "desc"] = Query(default="asc"),
    filter_text: str | None = Query(default=None, alias="filter"),
):
    result = await rows_svc.list_rows(
        db, file_id, current_user.id, page=page, limit=limit, sort=sort, filter_text=filter_text
    )
    return RowPageResponse(
        data=[CsvRowOut.model_validate(r) for r in result.rows],
        pagination=Pagination(
            page=result.page,
            limit=result.limit,
            total=result.total_count,
            pages=result.page_count,
        ),
        csv_file=CsvFileOut.model_validate(result.csv_file),
    )


# ─── GET /csv/{file_id}/export ───

@router.get("/{file_id}/export", summary="Download every row of a file as CSV")
async def export_file(
    file_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    current_user: CurrentUser,
):
    csv_file = await rows_svc.get_file(db, file_id, current_user.id)
    rows = await rows_svc.all_row_data(db, csv_file)
    filename = export_filename(csv_file.batch_name, date.today())
    ascii_name = filename.encode("ascii", "ignore").decode() or "export.csv"
    return StreamingResponse(
        export_rows(csv_file.column_headers, rows),
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"
        },
    )


# ─── PUT /csv/rows/{row_id} ───

@router.put("/rows/{row_id}", response_model=RowUpdateResponse, summary="Replace a row's values")
async def update_row(
    row_id: uuid.UUID,
    body: RowUpdate,
    db: Annotated[AsyncSession, Depends(get_session)],
    current_user: CurrentUser,
):
    row = await rows_svc.update_row(db, row_id, current_user.id, body.row_data)
    return RowUpdateResponse(row=CsvRowOut.model_validate(row))


# ─── DELETE /csv/{file_id} ───

@router.delete("/{file_id}", response_model=DeleteResponse, summary="Delete a file and all of its rows")
async def delete_file(
    file_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    current_user: CurrentUser,
):
    await rows_svc.delete_file(db, file_id, current_user.id)
    return DeleteResponse()
