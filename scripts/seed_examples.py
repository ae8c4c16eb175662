# scripts/seed_examples.py
import asyncio

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import setup_logging
from app.db.session import AsyncSessionLocal
from app.models.examples import Example

DEFAULT_COUNT = 103  # 超過一頁上限，分頁連結才看得出效果


async def seed_examples(db: AsyncSession, count: int = DEFAULT_COUNT) -> int:
    db.add_all(
        Example(name=f"Example {i}", description=f"This is the description for example {i}")
        for i in range(1, count + 1)
    )
    await db.commit()
    return count


async def main():
    setup_logging()
    logger.info("Start seeding...")
    async with AsyncSessionLocal() as db:
        seeded = await seed_examples(db)
    logger.info("Seeded {} examples.", seeded)


if __name__ == "__main__":
    asyncio.run(main())
