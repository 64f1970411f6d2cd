"""Tests for the datastore client backing the SQL credential store."""

from __future__ import annotations

import pytest
from sqlalchemy import inspect

from wallet_provisioning.config.settings import DatabaseConfig
from wallet_provisioning.credentials.models import Base
from wallet_provisioning.datastore.client import Datastore, create_engine

MEMORY_DSN = "sqlite+aiosqlite:///:memory:"


# ---------------------------------------------------------------------------
# Engine factory
# ---------------------------------------------------------------------------


class TestCreateEngine:
    async def test_sqlite_engine(self) -> None:
        engine = create_engine(DatabaseConfig(engine="sqlite", dsn=MEMORY_DSN, debug_sql=True))
        assert engine.dialect.name == "sqlite"
        assert engine.echo is True
        await engine.dispose()

    def test_postgres_engine_rejects_sqlite_dsn(self) -> None:
        with pytest.raises(ValueError, match="does not match engine 'postgresql'"):
            create_engine(DatabaseConfig(engine="postgresql", dsn=MEMORY_DSN))

    def test_sqlite_engine_rejects_postgres_dsn(self) -> None:
        config = DatabaseConfig(engine="sqlite", dsn="postgresql+asyncpg://u:p@db/wallets")
        with pytest.raises(ValueError, match="'postgresql'"):
            create_engine(config)


# ---------------------------------------------------------------------------
# Datastore lifecycle
# ---------------------------------------------------------------------------


class TestDatastore:
    async def test_open_creates_credential_table(self) -> None:
        ds = Datastore(DatabaseConfig(dsn=MEMORY_DSN))
        assert not ds.is_open
        await ds.open(base=Base)
        assert ds.is_open
        async with ds.engine.connect() as conn:
            tables = await conn.run_sync(lambda sync: inspect(sync).get_table_names())
        assert "provisioned_credentials" in tables
        await ds.close()
        assert not ds.is_open

    async def test_session_requires_open(self) -> None:
        ds = Datastore(DatabaseConfig(dsn=MEMORY_DSN))
        with pytest.raises(RuntimeError, match="not open"):
            ds.session()
        with pytest.raises(RuntimeError, match="not open"):
            _ = ds.engine

    async def test_close_is_idempotent(self) -> None:
        ds = Datastore(DatabaseConfig(dsn=MEMORY_DSN))
        await ds.open()
        await ds.close()
        await ds.close()
        assert not ds.is_open
