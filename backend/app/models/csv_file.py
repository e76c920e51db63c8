import enum
import uuid
from typing import Any

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, TimestampMixin, UUIDMixin


class BatchType(str, enum.Enum):
    Company = "Company"
    People = "People"


# A cell is a scalar: text, a number, or null
CellValue = str | int | float | None


class CsvFile(Base, UUIDMixin, TimestampMixin):
    """One completed CSV upload (a "batch") and its metadata."""

    __tablename__ = "csv_files"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)  # stored artifact name
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    batch_name: Mapped[str] = mapped_column(String(255), nullable=False)
    batch_type: Mapped[str] = mapped_column(String(50), nullable=False, default=BatchType.Company.value)
    column_headers: Mapped[list[str]] = mapped_column(nullable=False, default=list)
    row_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    storage_path: Mapped[str | None] = mapped_column(String(500), nullable=True)  # MinIO object key

    user: Mapped["User"] = relationship("User", back_populates="csv_files")  # noqa: F821
    rows: Mapped[list["CsvRow"]] = relationship(
        "CsvRow",
        back_populates="csv_file",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="CsvRow.row_index",
    )


class CsvRow(Base, UUIDMixin, TimestampMixin):
    """One parsed data record, keyed by the file's original headers."""

    __tablename__ = "csv_rows"
    __table_args__ = (
        UniqueConstraint("csv_file_id", "row_index", name="uq_csv_rows_file_index"),
    )

    csv_file_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("csv_files.id", ondelete="CASCADE"), nullable=False, index=True
    )
    row_index: Mapped[int] = mapped_column(Integer, nullable=False)  # zero-based, fixed at import
    row_data: Mapped[dict[str, Any]] = mapped_column(nullable=False, default=dict)

    csv_file: Mapped["CsvFile"] = relationship("CsvFile", back_populates="rows")
