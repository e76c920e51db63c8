"""Pydantic schemas for CSV batch endpoints."""
import uuid
from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator

from app.models.csv_file import BatchType

# Cells accept text, finite numbers or null; booleans and nested values are rejected
FiniteFloat = Annotated[float, Field(strict=True, allow_inf_nan=False)]
Cell = StrictStr | StrictInt | FiniteFloat | None


# ─── File metadata ───

class CsvFileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    file_name: str
    original_name: str
    batch_name: str
    batch_type: str
    column_headers: list[str]
    row_count: int
    uploaded_at: datetime = Field(validation_alias="created_at")


class CsvFileListResponse(BaseModel):
    csv_files: list[CsvFileOut]


class UploadResponse(BaseModel):
    success: bool = True
    csv_file: CsvFileOut
    preview: list[dict[str, Any]]


# ─── Rows ───

class CsvRowOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    csv_file_id: uuid.UUID
    row_index: int
    row_data: dict[str, Any]


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class RowPageResponse(BaseModel):
    data: list[CsvRowOut]
    pagination: Pagination
    csv_file: CsvFileOut


class RowUpdate(BaseModel):
    row_data: dict[str, Cell]

    @field_validator("row_data")
    @classmethod
    def reject_nul(cls, value: dict[str, Any]) -> dict[str, Any]:
        # JSONB cannot store \u0000 in keys or text values
        for key, cell in value.items():
            if "\x00" in key or (isinstance(cell, str) and "\x00" in cell):
                raise ValueError("row_data must not contain NUL characters")
        return value


class RowUpdateResponse(BaseModel):
    success: bool = True
    row: CsvRowOut


class DeleteResponse(BaseModel):
    success: bool = True


# ─── Mapping ───

class SystemFieldOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key: str
    label: str
    required: bool


class SchemaResponse(BaseModel):
    batch_type: BatchType
    fields: list[SystemFieldOut]


class MappingSuggestRequest(BaseModel):
    batch_type: BatchType = BatchType.Company
    headers: list[str]


class MappingValidateRequest(BaseModel):
    batch_type: BatchType = BatchType.Company
    field_mappings: dict[str, str | None]
    headers: list[str] | None = None


class MappingResponse(BaseModel):
    batch_type: BatchType
    field_mappings: dict[str, str | None]


class MappingValidationResponse(BaseModel):
    valid: bool = True


class ParsePreviewResponse(BaseModel):
    column_headers: list[str]
    duplicate_headers: list[str]
    total_records: int
    preview: list[dict[str, Any]]
    suggested_mappings: dict[str, str | None]
