"""Tests for the /healthz probe."""
from blobvault.config import Settings
from blobvault.database import build_engine
from blobvault.services.compression import CompressionPolicy
from blobvault.services.health_check import HealthCheckService


async def test_health_reports_ok(client) -> None:
    response = await client.get("/healthz")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "OK"
    assert body["failed"] == []
    assert body["checks"] == {
        "database": "ok",
        "schema": "ok",
        "indexes": "ok",
        "config": "ok",
        "compressionRoundTrip": "ok",
        "diskFree": "ok",
        "clock": "ok",
    }
    assert body["version"].startswith("blobvault ")


async def test_health_degrades_when_disk_threshold_unmet(client_factory) -> None:
    client = await client_factory(HEALTH_MIN_FREE_DISK_RATIO=1.0)

    response = await client.get("/healthz")

    assert response.status_code == 503
    body = response.json()
    assert body["status"] == "Degraded"
    assert body["checks"]["diskFree"] == "warning"
    assert body["failed"] == ["diskFree"]


async def test_health_reports_missing_schema(settings: Settings) -> None:
    # Engine on a database the app never initialized
    engine = build_engine(settings)
    try:
        service = HealthCheckService(engine, settings, CompressionPolicy(settings))
        report = await service.execute()
    finally:
        await engine.dispose()

    assert report.checks["database"] == "ok"
    assert report.checks["schema"] == "failed"
    assert report.checks["indexes"] == "failed"
    assert not report.is_healthy


async def test_health_is_exempt_from_api_keys(client_factory) -> None:
    client = await client_factory(API_KEYS="secret")

    assert (await client.get("/healthz")).status_code == 200
