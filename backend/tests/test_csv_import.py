"""Tests for the CSV import orchestrator.

The AsyncSession and MinIO calls are mocked; assertions cover what gets
persisted, in what order, and what is left behind on failure.
"""
import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from app.core.errors import MappingValidationError, ParseError, StorageError, Unauthorized
from app.models.csv_file import CsvFile
from app.services.csv_import import default_batch_name, import_batch

OWNER_ID = uuid.UUID("f96955d0-752f-4e0c-b1dc-d26d8dd1460e")
SAMPLE = b"name,age\nAlice,30\nBob,\n"


# ─── Helpers ──────────────────────────────────────────────────────────────────

def _mock_db() -> MagicMock:
    db = MagicMock()
    db.flush = AsyncMock()
    db.execute = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.refresh = AsyncMock()
    return db


def _added_file(db: MagicMock) -> CsvFile:
    db.add.assert_called_once()
    csv_file = db.add.call_args.args[0]
    assert isinstance(csv_file, CsvFile)
    return csv_file


# ─── Success ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_import_creates_file_then_rows_in_one_commit():
    db = _mock_db()

    with patch("app.services.storage.upload_file") as upload:
        outcome = await import_batch(
            db,
            owner_id=OWNER_ID,
            content=SAMPLE,
            original_name="people.csv",
            batch_name="Test",
            batch_type="People",
        )

    csv_file = _added_file(db)
    assert outcome.csv_file is csv_file
    assert csv_file.user_id == OWNER_ID
    assert csv_file.batch_name == "Test"
    assert csv_file.batch_type == "People"
    assert csv_file.column_headers == ["name", "age"]
    assert csv_file.row_count == 2
    assert csv_file.original_name == "people.csv"
    assert csv_file.file_name == f"{csv_file.id}.csv"
    assert csv_file.storage_path == f"csv-uploads/{csv_file.id}.csv"

    # Artifact stored with the raw bytes
    upload.assert_called_once()
    assert upload.call_args.args[1] == csv_file.storage_path
    assert upload.call_args.args[2] == SAMPLE

    # File flushed before rows are inserted; rows carry contiguous indices
    db.flush.assert_awaited_once()
    db.execute.assert_awaited_once()
    inserted = db.execute.call_args.args[1]
    assert inserted == [
        {"csv_file_id": csv_file.id, "row_index": 0, "row_data": {"name": "Alice", "age": "30"}},
        {"csv_file_id": csv_file.id, "row_index": 1, "row_data": {"name": "Bob", "age": ""}},
    ]
    db.commit.assert_awaited_once()
    db.rollback.assert_not_awaited()
    db.refresh.assert_awaited_once_with(csv_file)

    assert outcome.preview == [{"name": "Alice", "age": "30"}, {"name": "Bob", "age": ""}]


@pytest.mark.asyncio
async def test_preview_is_capped_at_five_rows():
    db = _mock_db()
    content = "n\n" + "\n".join(str(i) for i in range(12)) + "\n"

    with patch("app.services.storage.upload_file"):
        outcome = await import_batch(db, OWNER_ID, content, "numbers.csv")

    assert outcome.csv_file.row_count == 12
    assert outcome.preview == [{"n": str(i)} for i in range(5)]
    assert [r["row_index"] for r in db.execute.call_args.args[1]] == list(range(12))


@pytest.mark.asyncio
async def test_defaults_for_name_and_category():
    db = _mock_db()

    with patch("app.services.storage.upload_file"):
        outcome = await import_batch(db, OWNER_ID, SAMPLE, "Q3 leads.CSV", batch_name="  ")

    assert outcome.csv_file.batch_name == "Q3 leads"
    assert outcome.csv_file.batch_type == "Company"
    assert outcome.csv_file.file_name.endswith(".csv")


def test_default_batch_name_strips_extension():
    assert default_batch_name("customers.csv") == "customers"
    assert default_batch_name("noext") == "noext"


@pytest.mark.asyncio
async def test_header_only_file_creates_file_without_rows():
    db = _mock_db()

    with patch("app.services.storage.upload_file"):
        outcome = await import_batch(db, OWNER_ID, b"a,b\n", "empty.csv")

    assert outcome.csv_file.row_count == 0
    db.execute.assert_not_awaited()
    db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_valid_field_mappings_are_accepted_and_not_stored():
    db = _mock_db()
    mappings = {"firstName": "name", "lastName": "age"}

    with patch("app.services.storage.upload_file"):
        outcome = await import_batch(
            db, OWNER_ID, SAMPLE, "p.csv", batch_type="People", field_mappings=mappings
        )

    assert not hasattr(outcome.csv_file, "field_mappings")
    db.commit.assert_awaited_once()


# ─── Failures ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_parse_error_persists_nothing():
    db = _mock_db()

    with patch("app.services.storage.upload_file") as upload:
        with pytest.raises(ParseError):
            await import_batch(db, OWNER_ID, b'name\n"unterminated\n', "bad.csv")

    upload.assert_not_called()
    db.add.assert_not_called()
    db.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_parse_error_reported_before_missing_owner():
    with pytest.raises(ParseError):
        await import_batch(_mock_db(), None, b'name\n"unterminated\n', "bad.csv")


@pytest.mark.asyncio
async def test_missing_owner_is_unauthorized():
    db = _mock_db()

    with patch("app.services.storage.upload_file") as upload:
        with pytest.raises(Unauthorized):
            await import_batch(db, None, SAMPLE, "people.csv")

    upload.assert_not_called()
    db.add.assert_not_called()


@pytest.mark.asyncio
async def test_invalid_mapping_persists_nothing():
    db = _mock_db()

    with patch("app.services.storage.upload_file") as upload:
        with pytest.raises(MappingValidationError) as exc_info:
            await import_batch(
                db,
                OWNER_ID,
                SAMPLE,
                "p.csv",
                batch_type="People",
                field_mappings={"firstName": "name", "lastName": "name"},
            )

    assert set(exc_info.value.errors) == {"firstName", "lastName"}
    upload.assert_not_called()
    db.add.assert_not_called()


@pytest.mark.asyncio
async def test_artifact_upload_failure_raises_storage_error():
    db = _mock_db()

    with patch("app.services.storage.upload_file", side_effect=RuntimeError("minio down")):
        with pytest.raises(StorageError) as exc_info:
            await import_batch(db, OWNER_ID, SAMPLE, "people.csv")

    assert "minio" not in exc_info.value.message
    db.add.assert_not_called()
    db.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_row_insert_failure_rolls_back_and_removes_artifact():
    db = _mock_db()
    db.execute.side_effect = OperationalError("INSERT INTO csv_rows", {}, Exception("connection reset"))

    with patch("app.services.storage.upload_file"), \
         patch("app.services.storage.delete_object") as delete_object:
        with pytest.raises(StorageError) as exc_info:
            await import_batch(db, OWNER_ID, SAMPLE, "people.csv")

    csv_file = _added_file(db)
    db.rollback.assert_awaited_once()
    db.commit.assert_not_awaited()
    delete_object.assert_called_once()
    assert delete_object.call_args.args[1] == csv_file.storage_path
    assert "connection reset" not in exc_info.value.message


@pytest.mark.asyncio
async def test_artifact_cleanup_failure_still_raises_storage_error():
    db = _mock_db()
    db.flush.side_effect = OperationalError("INSERT INTO csv_files", {}, Exception("boom"))

    with patch("app.services.storage.upload_file"), \
         patch("app.services.storage.delete_object", side_effect=RuntimeError("minio down")):
        with pytest.raises(StorageError):
            await import_batch(db, OWNER_ID, SAMPLE, "people.csv")

    db.rollback.assert_awaited_once()
