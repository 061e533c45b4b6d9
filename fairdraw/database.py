from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool, StaticPool
import logging
import urllib.parse

from . import config

logger = logging.getLogger(__name__)

DATABASE_URL = config.DATABASE_URL

# Если нет DATABASE_URL, используем SQLite
if not DATABASE_URL:
    logger.warning("DATABASE_URL not set, using in-memory SQLite")
    DATABASE_URL = "sqlite+aiosqlite:///:memory:"
else:
    # Преобразуем postgres:// в postgresql+asyncpg://
    if DATABASE_URL.startswith("postgres://"):
        DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql+asyncpg://", 1)
    elif DATABASE_URL.startswith("postgresql://"):
        DATABASE_URL = DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://", 1)

    # asyncpg не понимает sslmode, заменяем на ssl=require
    if "sslmode=" in DATABASE_URL:
        parsed = urllib.parse.urlparse(DATABASE_URL)
        query_params = urllib.parse.parse_qs(parsed.query)
        query_params.pop('sslmode', None)
        query_params['ssl'] = ['require']
        new_query = urllib.parse.urlencode(query_params, doseq=True)
        DATABASE_URL = urllib.parse.urlunparse(parsed._replace(query=new_query))

logger.info(f"Using database: {DATABASE_URL.split('@')[-1]}")


def make_engine(url: str):
    if url.startswith("sqlite"):
        if ":memory:" in url:
            # in-memory база живет, пока открыто соединение: одно на весь процесс
            return create_async_engine(url, echo=False, poolclass=StaticPool)
        return create_async_engine(url, echo=False, poolclass=NullPool)
    return create_async_engine(
        url,
        echo=False,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10
    )


engine = make_engine(DATABASE_URL)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)

Base = declarative_base()


async def get_db():
    async with async_session_maker() as session:
        try:
            yield session
        except SQLAlchemyError:
            logger.exception("Database session error")
            await session.rollback()
            raise


async def init_db():
    """Create tables"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database initialized successfully")
