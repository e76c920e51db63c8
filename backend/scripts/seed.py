"""Seed script: creates a development user and one sample batch.

Idempotent: skips the user and the batch when they already exist.
Run: python scripts/seed.py
"""
import asyncio
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.core.config import settings
from app.core.errors import StorageError
from app.core.security import hash_password
from app.models.csv_file import CsvFile
from app.models.user import User
from app.services.csv_import import import_batch

SAMPLE_CSV = """Company Name,Industry,Website,Country
Acme Corp,Manufacturing,acme.example,US
Globex,"Energy, Utilities",globex.example,DE
Initech,Software,initech.example,US
"""


async def seed():
    engine = create_async_engine(settings.DATABASE_URL)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False)

    async with SessionLocal() as db:
        user = (
            await db.execute(select(User).where(User.email == "demo@example.com"))
        ).scalar_one_or_none()
        if user is None:
            user = User(
                email="demo@example.com",
                name="Demo User",
                password_hash=hash_password("changeme123"),
                is_active=True,
            )
            db.add(user)
            await db.commit()
            print(f"Created user {user.email}")

        existing = (
            await db.execute(
                select(CsvFile).where(CsvFile.user_id == user.id, CsvFile.batch_name == "Sample companies")
            )
        ).scalar_one_or_none()
        if existing is None:
            try:
                outcome = await import_batch(
                    db,
                    owner_id=user.id,
                    content=SAMPLE_CSV,
                    original_name="sample_companies.csv",
                    batch_name="Sample companies",
                    batch_type="Company",
                )
                print(f"Imported {outcome.csv_file.row_count} sample rows")
            except StorageError as exc:
                print(f"Sample import skipped: {exc.message}")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed())
