"""Async engine and session handling for the provisioning database."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from gtm_infra.common.config import InfraSettings, get_settings
from gtm_infra.common.models import Base

# Registers every table on Base.metadata.
import gtm_infra.tiers.models  # noqa: F401
import gtm_infra.provisions.models  # noqa: F401


def ensure_sqlite_directory(url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return
    if not parsed.database or parsed.database == ":memory:":
        return
    Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)


class DatabaseManager:
    """Owns the engine; hands out sessions that commit on success."""

    def __init__(self, settings: InfraSettings | None = None):
        self._settings = settings or get_settings()
        self.engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def is_ready(self) -> bool:
        return self._session_factory is not None

    def _require_engine(self) -> AsyncEngine:
        if self.engine is None:
            raise RuntimeError("Database not initialized; await init() before use")
        return self.engine

    async def init(self) -> None:
        if self.is_ready:
            return
        url = self._settings.db_url
        ensure_sqlite_directory(url)
        self.engine = create_async_engine(url, echo=False)
        self._session_factory = async_sessionmaker(self.engine, expire_on_commit=False)

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """One unit of work: commit when the block exits cleanly, otherwise roll back."""
        self._require_engine()
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        async with self._require_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        if self.engine is None:
            return
        await self.engine.dispose()
        self.engine = None
        self._session_factory = None
