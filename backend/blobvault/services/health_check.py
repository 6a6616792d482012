"""Active health probe: storage, schema, config, codecs, disk and clock.

Each check records "ok", "warning" or "failed" under its name; any error text
goes into ``errors`` under the same name. The report is healthy only when
every check is "ok".
"""
import logging
import os
import shutil
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import func, inspect, select, text
from sqlalchemy.ext.asyncio import AsyncEngine

from blobvault.config import Settings
from blobvault.database import schema_for
from blobvault.services.compression import CODECS, CompressionPolicy

logger = logging.getLogger(__name__)

REQUIRED_TABLES = ("files", "file_versions")
REQUIRED_INDEXES = ("idx_files_path", "idx_fv_file_version")


@dataclass
class HealthReport:
    checks: dict[str, str] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def status(self) -> str:
        if not self.errors and all(v == "ok" for v in self.checks.values()):
            return "OK"
        return "Degraded"

    @property
    def is_healthy(self) -> bool:
        return self.status == "OK"

    @property
    def failed(self) -> list[str]:
        return list(self.errors)

    def fail(self, name: str, message: str, state: str = "failed") -> None:
        self.checks[name] = state
        self.errors[name] = message


class HealthCheckService:
    def __init__(self, engine: AsyncEngine, settings: Settings, compression: CompressionPolicy):
        self.engine = engine
        self.settings = settings
        self.compression = compression

    async def execute(self) -> HealthReport:
        report = HealthReport()
        await self._check_database(report)
        self._check_config(report)
        self._check_compression(report)
        self._check_disk(report)
        await self._check_clock(report)
        if not report.is_healthy:
            logger.warning(f"Health check degraded: {report.errors}")
        return report

    async def _check_database(self, report: HealthReport) -> None:
        schema = schema_for(self.engine.dialect.name, self.settings)
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
                report.checks["database"] = "ok"

                def _inspect(sync_conn):
                    inspector = inspect(sync_conn)
                    tables = [t for t in REQUIRED_TABLES if inspector.has_table(t, schema=schema)]
                    indexes = set()
                    for table in tables:
                        indexes.update(ix["name"] for ix in inspector.get_indexes(table, schema=schema))
                    return tables, indexes

                tables, indexes = await conn.run_sync(_inspect)
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            report.fail("database", str(e) or type(e).__name__)
            return

        if len(tables) < len(REQUIRED_TABLES):
            report.fail("schema", "required tables are missing")
        else:
            report.checks["schema"] = "ok"

        if not all(name in indexes for name in REQUIRED_INDEXES):
            report.fail("indexes", "required indexes missing")
        else:
            report.checks["indexes"] = "ok"

    def _check_config(self, report: HealthReport) -> None:
        if self.settings.MAX_UPLOAD_MB <= 0:
            report.fail("config", "MAX_UPLOAD_MB must be greater than zero")
        elif self.settings.COMPRESSION_ENABLED and self.settings.COMPRESSION_METHOD not in CODECS:
            report.fail("config", "invalid compression method")
        else:
            report.checks["config"] = "ok"

    def _check_compression(self, report: HealthReport) -> None:
        try:
            sample = os.urandom(1024)
            result = self.compression.process(sample, "application/octet-stream")
            round_trip = result.stored_bytes
            if result.decision.should_compress:
                round_trip = self.compression.decompress(result.stored_bytes, result.decision.method)
            if round_trip != sample:
                report.fail("compressionRoundTrip", "round-trip mismatch")
                return
            report.checks["compressionRoundTrip"] = "ok"
        except Exception as e:
            logger.error(f"Compression round-trip failed: {e}")
            report.fail("compressionRoundTrip", str(e) or type(e).__name__)

    def _check_disk(self, report: HealthReport) -> None:
        try:
            usage = shutil.disk_usage(self.settings.HEALTH_DISK_PATH)
        except OSError as e:
            report.fail("diskFree", f"unable to determine disk information: {e}")
            return
        ratio = 1.0 if usage.total == 0 else usage.free / usage.total
        if ratio < self.settings.HEALTH_MIN_FREE_DISK_RATIO:
            report.fail(
                "diskFree",
                f"free space below {self.settings.HEALTH_MIN_FREE_DISK_RATIO:.0%} ({ratio:.2%})",
                state="warning",
            )
        else:
            report.checks["diskFree"] = "ok"

    async def _check_clock(self, report: HealthReport) -> None:
        try:
            async with self.engine.connect() as conn:
                db_now = (await conn.execute(select(func.now()))).scalar_one()
        except Exception as e:
            report.fail("clock", str(e) or type(e).__name__)
            return
        if isinstance(db_now, str):
            db_now = datetime.fromisoformat(db_now)
        if db_now.tzinfo is None:
            db_now = db_now.replace(tzinfo=timezone.utc)
        skew = abs((db_now - datetime.now(timezone.utc)).total_seconds())
        if skew > self.settings.HEALTH_MAX_CLOCK_SKEW_SECONDS:
            report.fail("clock", f"Clock skew {skew:.0f}s")
        else:
            report.checks["clock"] = "ok"
