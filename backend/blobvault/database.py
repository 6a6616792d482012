"""Async SQLAlchemy engine and session factory.

Routes get a session per request and wrap it in a store:
    def get_store(db: AsyncSession = Depends(get_db), settings=Depends(get_request_settings)):
        return VersionedStore(db, settings)

    @router.get("/versions/{path:path}")
    async def list_versions(path: str, store: VersionedStore = Depends(get_store)):
        return await store.list_versions(normalize_path(path))

PostgreSQL (asyncpg) is the production backend. SQLite (aiosqlite) is
supported for development and tests; there every transaction opens with
BEGIN IMMEDIATE so writers are serialized the way the File row lock
serializes them on PostgreSQL.
"""
from fastapi import Request
from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from blobvault.config import Settings


def schema_for(dialect_name: str, settings: Settings) -> str | None:
    """Schema the storage tables live in, or None where schemas don't apply."""
    return None if dialect_name == "sqlite" else settings.STORAGE_SCHEMA


def build_engine(settings: Settings) -> AsyncEngine:
    url = make_url(settings.DATABASE_URL)
    if url.get_backend_name() == "sqlite":
        engine = create_async_engine(url, echo=False, connect_args={"timeout": 30})
        _serialize_sqlite_writers(engine)
        return engine

    return create_async_engine(
        url,
        echo=False,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
        execution_options={"schema_translate_map": {None: settings.STORAGE_SCHEMA}},
    )


def _serialize_sqlite_writers(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        # Stop the driver from issuing its own deferred BEGIN
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db(request: Request):
    """FastAPI dependency that yields an async DB session."""
    async with request.app.state.sessionmaker() as session:
        try:
            yield session
        finally:
            await session.close()
