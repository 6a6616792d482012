"""FastAPI application entry point."""
import argparse
import logging
import os
from http import HTTPStatus
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from blobvault import __version__
from blobvault.config import CONFIG_ENV_VAR, Settings, get_settings
from blobvault.database import build_engine, build_sessionmaker
from blobvault.errors import BlobVaultError
from blobvault.middleware import ApiKeyMiddleware, PathBaseMiddleware, RequestIdMiddleware
from blobvault.routes.files import router as files_router
from blobvault.routes.health import router as health_router
from blobvault.services.compression import CompressionPolicy
from blobvault.services.version_store import VersionedStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create schema/tables on startup, dispose the engine on shutdown."""
    async with app.state.sessionmaker() as session:
        await VersionedStore(session, app.state.settings).initialize()

    yield

    await app.state.engine.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the app around one immutable settings snapshot."""
    settings = settings or get_settings()

    app = FastAPI(
        title="blobvault",
        version=__version__,
        description="Versioned blob storage over HTTP.",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = build_engine(settings)
    app.state.sessionmaker = build_sessionmaker(app.state.engine)
    app.state.compression = CompressionPolicy(settings)

    # Last added runs first: request id -> path base -> API key
    app.add_middleware(ApiKeyMiddleware, header=settings.API_KEY_HEADER, keys=settings.api_keys)
    app.add_middleware(PathBaseMiddleware, path_base=settings.PATH_BASE)
    app.add_middleware(RequestIdMiddleware)
    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=["ETag", "Content-Range", "Accept-Ranges", "Location"],
        )

    @app.exception_handler(BlobVaultError)
    async def blobvault_error_handler(request: Request, exc: BlobVaultError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.reason}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.reason, "detail": exc.message},
            headers=exc.headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        # Router misses (404, 405) and other framework-raised errors
        reason = HTTPStatus(exc.status_code).phrase.lower().replace(" ", "_").replace("-", "_")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": reason, "detail": exc.detail},
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        detail = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        return JSONResponse(status_code=400, content={"error": "invalid_request", "detail": detail})

    app.include_router(health_router)
    app.include_router(files_router)
    return app


def run(argv: list[str] | None = None) -> None:
    """Console entry point: ``blobvault [--config path/to/config.jsonc]``."""
    import uvicorn

    parser = argparse.ArgumentParser(prog="blobvault")
    parser.add_argument("--config", help="JSON-with-comments config file")
    args = parser.parse_args(argv)
    if args.config:
        os.environ[CONFIG_ENV_VAR] = args.config

    settings = get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(create_app(settings), host=settings.API_HOST, port=settings.API_PORT)


if __name__ == "__main__":
    run()
