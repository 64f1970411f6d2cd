"""Datastore client — the SQL home of the credential table.

Owns the one async engine behind ``SQLCredentialStore``. ``db.engine`` picks
the backend (aiosqlite file for single-node use, asyncpg for a shared
PostgreSQL) and must agree with the scheme of ``db.dsn``. Opening the
datastore creates ``provisioned_credentials`` when it does not exist yet.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from wallet_provisioning.config.settings import DatabaseEngine

if TYPE_CHECKING:
    from sqlalchemy.orm import DeclarativeBase

    from wallet_provisioning.config.settings import DatabaseConfig


def create_engine(config: DatabaseConfig) -> AsyncEngine:
    """Build the async engine for the configured backend.

    Raises:
        ValueError: If ``config.dsn`` points at a different backend than
            ``config.engine``.
    """
    scheme = config.dsn.split(":", 1)[0].split("+", 1)[0].lower()
    if scheme != config.engine.value:
        msg = f"Database DSN scheme {scheme!r} does not match engine {config.engine.value!r}"
        raise ValueError(msg)

    kwargs: dict[str, Any] = {
        "echo": config.debug_sql,
    }
    # SQLite has no connection pool to size
    if config.engine == DatabaseEngine.POSTGRESQL:
        kwargs["pool_size"] = config.max_idle_connections
        kwargs["max_overflow"] = config.max_open_connections - config.max_idle_connections
        kwargs["pool_pre_ping"] = True

    return create_async_engine(config.dsn, **kwargs)


class Datastore:
    """Holds the engine and session factory the SQL credential store writes through.

    Usage::

        ds = Datastore(config.db)
        await ds.open(base=Base)
        store = SQLCredentialStore(ds)
        ...
        await ds.close()
    """

    def __init__(self, config: DatabaseConfig) -> None:
        self._config = config
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        """Return the underlying async engine.

        Raises:
            RuntimeError: If the datastore is not open.
        """
        if self._engine is None:
            msg = "Datastore is not open. Call open() first."
            raise RuntimeError(msg)
        return self._engine

    async def open(self, *, base: type[DeclarativeBase] | None = None) -> None:
        """Connect and, given *base*, create the credential table if missing."""
        self._engine = create_engine(self._config)
        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        if base is not None:
            async with self._engine.begin() as conn:
                await conn.run_sync(base.metadata.create_all)

    async def close(self) -> None:
        """Dispose the engine and release all connections."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None

    def session(self) -> AsyncSession:
        """Start a session for one credential read or write.

        Raises:
            RuntimeError: If the datastore is not open.
        """
        if self._session_factory is None:
            msg = "Datastore is not open. Call open() first."
            raise RuntimeError(msg)
        return self._session_factory()

    @property
    def is_open(self) -> bool:
        """Check if the datastore is open."""
        return self._engine is not None
