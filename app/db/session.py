# app/db/session.py
from typing import AsyncGenerator

from loguru import logger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.config import settings

# ---- Engine ----
DATABASE_URL = settings.DATABASE_URL
_is_sqlite = DATABASE_URL.startswith("sqlite")

# pool_pre_ping 讓連線池自我檢查；SQLite（測試）不共用連線，避免跨事件圈
engine = create_async_engine(
    DATABASE_URL,
    echo=settings.DB_ECHO,
    pool_pre_ping=not _is_sqlite,
    **({"poolclass": NullPool} if _is_sqlite else {}),
)

# ---- Session factory ----
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ---- Dependency ----
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI 依賴：產生一個 AsyncSession，並在完成後總是關閉。
    未 commit 的變更在 close 時自動 rollback。
    """
    session: AsyncSession = AsyncSessionLocal()
    try:
        yield session
    finally:
        await session.close()


async def check_database_health() -> bool:
    """SELECT 1 探針，供 /health 與 /readyz 使用。"""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("Database health check failed: {}", e)
        return False
