import logging

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base
from tenacity import retry, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

Base = declarative_base()


class Database:
    """Owns the engine and session factory for one process.

    Opened by the application lifespan and closed on shutdown; services never
    reach for a module-level engine.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.echo = echo
        self.engine: AsyncEngine | None = None
        self.session_factory: async_sessionmaker[AsyncSession] | None = None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        reraise=True,
    )
    async def connect(self):
        if self.engine is not None:
            return
        engine = create_async_engine(
            self.url,
            echo=self.echo,
            pool_pre_ping=True,
        )
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception:
            await engine.dispose()
            raise

        self.engine = engine
        self.session_factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
            autocommit=False,
        )
        logger.info(f"Database connected ({engine.dialect.name}).")

    async def create_all(self):
        async with self._require_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> bool:
        try:
            async with self._require_engine().connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception:
            logger.exception("Database ping failed")
            return False

    def session(self) -> AsyncSession:
        if self.session_factory is None:
            raise RuntimeError("Database is not connected")
        return self.session_factory()

    async def close(self):
        if self.engine is not None:
            await self.engine.dispose()
            logger.info("Database connection closed.")
        self.engine = None
        self.session_factory = None

    def _require_engine(self) -> AsyncEngine:
        if self.engine is None:
            raise RuntimeError("Database is not connected")
        return self.engine


async def get_db_async(request: Request):
    session = request.app.state.database.session()
    try:
        yield session
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()
