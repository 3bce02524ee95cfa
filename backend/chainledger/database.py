from __future__ import annotations
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from chainledger.config import get_settings

settings = get_settings()


def normalize_database_url(url: str) -> str:
    # Hosted Postgres hands out postgresql:// but SQLAlchemy async needs postgresql+asyncpg://
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


engine = create_async_engine(
    normalize_database_url(settings.database_url),
    echo=False,
    future=True,
)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def init_db(bind: AsyncEngine | None = None):
    # Import all models so they are registered with Base.metadata
    import chainledger.models  # noqa: F401
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
