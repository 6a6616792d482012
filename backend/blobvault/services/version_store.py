"""Transactional versioned storage of blobs.

Every put to a path runs one transaction that:
  1. creates the StoredFile row if missing (INSERT .. ON CONFLICT DO NOTHING,
     so a racing creator blocks on the unique index and then sees the row),
  2. takes an exclusive lock on that row (SELECT .. FOR UPDATE),
  3. inserts version N+1 and bumps files.latest_version,
  4. commits, releasing the lock.

Puts to the same path are therefore totally ordered and get gap-free version
numbers; puts to different paths lock different rows and never wait on each
other. Any failure rolls the whole unit back.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import func, insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.schema import CreateSchema

from blobvault.config import Settings
from blobvault.errors import NotFound, StorageUnavailable
from blobvault.models import Base, FileVersion, StoredFile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileUpload:
    path: str
    content_type: str
    original_length: int
    sha256_hex: str
    compression: str | None
    stored_bytes: bytes


@dataclass(frozen=True)
class VersionMetadata:
    version: int
    content_type: str
    size: int
    sha256_hex: str
    compression: str | None
    inserted_at: datetime


@dataclass(frozen=True)
class StoredVersion:
    path: str
    version: int
    content_type: str
    size: int
    sha256_hex: str
    compression: str | None
    stored_bytes: bytes
    inserted_at: datetime


def _as_utc(ts: datetime) -> datetime:
    # SQLite hands back naive UTC timestamps
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


class VersionedStore:
    """Files and their versions, backed by one AsyncSession."""

    def __init__(self, session: AsyncSession, settings: Settings):
        self.session = session
        self.settings = settings

    @property
    def dialect_name(self) -> str:
        return self.session.bind.dialect.name

    async def initialize(self) -> None:
        """Create schema, tables and indexes if absent. Safe on every start."""
        try:
            async with self.session.begin():
                conn = await self.session.connection()
                if self.dialect_name == "postgresql":
                    await conn.execute(CreateSchema(self.settings.STORAGE_SCHEMA, if_not_exists=True))
                await conn.run_sync(Base.metadata.create_all)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Storage initialization failed: {e}")
            raise StorageUnavailable("Storage backend could not be initialized") from e
        logger.info(f"Storage initialized ({self.dialect_name})")

    async def put(self, upload: FileUpload) -> StoredVersion:
        """Store a new version of ``upload.path`` and return it."""
        try:
            async with self.session.begin():
                file_id, latest = await self._lock_file(upload.path)
                version = latest + 1
                result = await self.session.execute(
                    insert(FileVersion)
                    .values(
                        file_id=file_id,
                        version_number=version,
                        content_type=upload.content_type,
                        file_size=upload.original_length,
                        sha256_hex=upload.sha256_hex,
                        compression=upload.compression,
                        data=upload.stored_bytes,
                    )
                    .returning(FileVersion.inserted_at)
                )
                inserted_at = result.scalar_one()
                await self.session.execute(
                    update(StoredFile)
                    .where(StoredFile.id == file_id)
                    .values(latest_version=version)
                )
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Saving {upload.path} failed, transaction rolled back: {e}")
            raise StorageUnavailable("Storage backend failed while saving the file") from e

        logger.info(
            f"Stored {upload.path} v{version} ({upload.original_length} bytes, "
            f"codec={upload.compression or 'none'})"
        )
        return StoredVersion(
            path=upload.path,
            version=version,
            content_type=upload.content_type,
            size=upload.original_length,
            sha256_hex=upload.sha256_hex,
            compression=upload.compression,
            stored_bytes=upload.stored_bytes,
            inserted_at=_as_utc(inserted_at),
        )

    async def _lock_file(self, path: str) -> tuple[int, int]:
        """Ensure the StoredFile row exists, lock it, and return (id, latest version).

        The cached counter is cross-checked against the highest stored
        version number so a drifted counter can never hand out a used number.
        """
        insert_stmt = pg_insert if self.dialect_name == "postgresql" else sqlite_insert
        await self.session.execute(
            insert_stmt(StoredFile)
            .values(path=path)
            .on_conflict_do_nothing(index_elements=["path"])
        )
        row = (
            await self.session.execute(
                select(StoredFile.id, StoredFile.latest_version)
                .where(StoredFile.path == path)
                .with_for_update()
            )
        ).one()
        highest = (
            await self.session.execute(
                select(func.max(FileVersion.version_number)).where(FileVersion.file_id == row.id)
            )
        ).scalar_one()
        if highest is not None and highest != row.latest_version:
            logger.warning(
                f"Version counter for {path} is {row.latest_version} but highest stored is {highest}"
            )
        return row.id, max(row.latest_version, highest or 0)

    async def get(self, path: str, version: int | None = None) -> StoredVersion:
        """Latest version of ``path``, or the exact ``version``. Raises NotFound."""
        query = (
            select(
                StoredFile.path,
                FileVersion.version_number,
                FileVersion.content_type,
                FileVersion.file_size,
                FileVersion.sha256_hex,
                FileVersion.compression,
                FileVersion.data,
                FileVersion.inserted_at,
            )
            .join(StoredFile, StoredFile.id == FileVersion.file_id)
            .where(StoredFile.path == path)
        )
        if version is not None:
            query = query.where(FileVersion.version_number == version)
        else:
            query = query.order_by(FileVersion.version_number.desc())

        try:
            async with self.session.begin():
                row = (await self.session.execute(query.limit(1))).first()
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Reading {path} failed: {e}")
            raise StorageUnavailable("Storage backend failed while reading the file") from e

        if row is None:
            if version is None:
                raise NotFound(f"File '{path}' not found")
            raise NotFound(f"Version {version} of '{path}' not found")
        return StoredVersion(
            path=row.path,
            version=row.version_number,
            content_type=row.content_type,
            size=row.file_size,
            sha256_hex=row.sha256_hex,
            compression=row.compression,
            stored_bytes=row.data,
            inserted_at=_as_utc(row.inserted_at),
        )

    async def list_versions(self, path: str) -> list[VersionMetadata]:
        """All versions of ``path``, newest first. Unknown paths give []."""
        query = (
            select(
                FileVersion.version_number,
                FileVersion.content_type,
                FileVersion.file_size,
                FileVersion.sha256_hex,
                FileVersion.compression,
                FileVersion.inserted_at,
            )
            .join(StoredFile, StoredFile.id == FileVersion.file_id)
            .where(StoredFile.path == path)
            .order_by(FileVersion.version_number.desc())
        )
        try:
            async with self.session.begin():
                rows = (await self.session.execute(query)).all()
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Listing versions of {path} failed: {e}")
            raise StorageUnavailable("Storage backend failed while listing versions") from e

        return [
            VersionMetadata(
                version=r.version_number,
                content_type=r.content_type,
                size=r.file_size,
                sha256_hex=r.sha256_hex,
                compression=r.compression,
                inserted_at=_as_utc(r.inserted_at),
            )
            for r in rows
        ]
