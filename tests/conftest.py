"""Shared fixtures: settings, an app on a throwaway database, and an HTTP client.

Tests run against SQLite in a temp dir by default. Point
BLOBVAULT_TEST_DATABASE_URL at PostgreSQL (postgresql+asyncpg://...) to run
the same suite there; each test then gets its own schema.
"""
import contextlib
import os
import uuid

import httpx
import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

from blobvault.config import Settings
from blobvault.main import create_app

TEST_DATABASE_URL = os.environ.get("BLOBVAULT_TEST_DATABASE_URL", "")


@pytest.fixture
async def settings_factory(tmp_path):
    """Build Settings for a test, isolated from the host's env file."""
    schema = f"test_{uuid.uuid4().hex[:12]}"

    def _make(**overrides) -> Settings:
        values = {
            "DATABASE_URL": TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'blobvault.db'}",
            "STORAGE_SCHEMA": schema,
            "HEALTH_DISK_PATH": str(tmp_path),
            "HEALTH_MIN_FREE_DISK_RATIO": 0.0,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    yield _make

    if TEST_DATABASE_URL.startswith("postgresql"):
        engine = create_async_engine(TEST_DATABASE_URL)
        async with engine.begin() as conn:
            await conn.execute(text(f'DROP SCHEMA IF EXISTS "{schema}" CASCADE'))
        await engine.dispose()


@pytest.fixture
def settings(settings_factory) -> Settings:
    return settings_factory()


@pytest.fixture
async def client_factory(settings_factory):
    """Start an app with the given setting overrides and return a client for it."""
    async with contextlib.AsyncExitStack() as stack:

        async def _make(**overrides) -> httpx.AsyncClient:
            app = create_app(settings_factory(**overrides))
            await stack.enter_async_context(app.router.lifespan_context(app))
            transport = httpx.ASGITransport(app=app)
            return await stack.enter_async_context(
                httpx.AsyncClient(transport=transport, base_url="http://test")
            )

        yield _make


@pytest.fixture
async def client(client_factory) -> httpx.AsyncClient:
    return await client_factory()
