"""Health probe route."""
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from blobvault import __version__
from blobvault.schemas.health import HealthResponse
from blobvault.services.health_check import HealthCheckService

router = APIRouter(tags=["health"])


@router.get("/healthz", response_model=HealthResponse)
async def health_check(request: Request):
    """Aggregate storage, schema, config, codec, disk and clock checks. 503 unless all pass."""
    state = request.app.state
    service = HealthCheckService(state.engine, state.settings, state.compression)
    report = await service.execute()
    body = HealthResponse(
        status=report.status,
        checks=report.checks,
        failed=report.failed,
        errors=report.errors,
        version=f"blobvault {__version__}",
    )
    if report.is_healthy:
        return body
    return JSONResponse(status_code=503, content=body.model_dump())
