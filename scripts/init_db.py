"""Create all tables directly from the table metadata (local development)."""

import asyncio

from sqlalchemy import text

from app.config import settings
from app.database import engine
from app.models import all_metadata


async def init_db() -> None:
    """Create every table that does not exist yet."""
    async with engine.begin() as conn:
        if not settings.is_sqlite:
            await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))

        for metadata in all_metadata:
            await conn.run_sync(metadata.create_all)

    await engine.dispose()
    print("✓ Database initialized successfully!")


if __name__ == "__main__":
    asyncio.run(init_db())
