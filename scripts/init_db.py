"""Script to initialize the database."""

import asyncio

from elderwatch.database import engine
from elderwatch.models import metadata


async def init_db() -> None:
    """Create the identity, role and relationship tables."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    await engine.dispose()
    print(f"✓ Database initialized: {', '.join(sorted(metadata.tables))}")


if __name__ == "__main__":
    asyncio.run(init_db())
