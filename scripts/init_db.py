"""Create all tables directly from the table metadata (development only)."""

import asyncio

from medix.database import engine
from medix.models import metadata


async def init_db() -> None:
    """Create every table that does not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    await engine.dispose()
    print("✓ Database initialized successfully!")


if __name__ == "__main__":
    asyncio.run(init_db())
