"""Files API routes: versioned upload, download with ranges, version listing."""
import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from blobvault.config import Settings, get_request_settings
from blobvault.database import get_db
from blobvault.errors import (
    InvalidPath,
    MissingContentType,
    NotFound,
    PayloadTooLarge,
    UnsatisfiableRange,
    UnsupportedMediaType,
)
from blobvault.schemas.file import UploadResponse, VersionMetadataResponse
from blobvault.services.compression import CompressionPolicy
from blobvault.services.path_normalizer import filename_and_extension, normalize_path
from blobvault.services.range_resolver import ByteRange, RangeVerdict, resolve_range
from blobvault.services.version_store import FileUpload, VersionedStore, VersionMetadata

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/file", tags=["files"])

VERSIONS_PREFIX = "versions"


def get_store(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_request_settings),
) -> VersionedStore:
    return VersionedStore(db, settings)


def get_compression(request: Request) -> CompressionPolicy:
    return request.app.state.compression


# Registered before the catch-all GET so /file/versions/... is not read as a file
@router.get("/versions/{path:path}", response_model=list[VersionMetadataResponse])
async def list_versions(
    path: str,
    store: VersionedStore = Depends(get_store),
):
    """List every version of a file, newest first."""
    normalized = normalize_path(path)
    versions = await store.list_versions(normalized)
    if not versions:
        raise NotFound(f"No versions stored for '{normalized}'")
    return [_version_to_response(v) for v in versions]


@router.post("/{path:path}", response_model=UploadResponse, status_code=201)
async def upload_file(
    path: str,
    request: Request,
    response: Response,
    settings: Settings = Depends(get_request_settings),
    compression: CompressionPolicy = Depends(get_compression),
    store: VersionedStore = Depends(get_store),
):
    """Store the raw request body as the next version of ``path``."""
    normalized = normalize_path(path)
    if normalized.startswith(VERSIONS_PREFIX + "/"):
        # GET /file/versions/... always resolves to the listing route
        raise InvalidPath(f"Paths under '{VERSIONS_PREFIX}/' are reserved for version listings")

    content_type = _media_type(request.headers.get("content-type"))
    if not content_type:
        raise MissingContentType("Content-Type header is required")
    allowed = settings.allowed_content_types
    if allowed and content_type.lower() not in allowed:
        raise UnsupportedMediaType(f"Content type '{content_type}' is not allowed")

    body = await read_body_with_limit(request, settings.max_upload_bytes)
    result = await run_in_threadpool(compression.process, body, content_type)

    stored = await store.put(FileUpload(
        path=normalized,
        content_type=content_type,
        original_length=len(body),
        sha256_hex=result.sha256_hex,
        compression=result.decision.method,
        stored_bytes=result.stored_bytes,
    ))

    response.headers["ETag"] = _etag(stored.sha256_hex)
    response.headers["Location"] = f"{request.scope.get('root_path', '')}/file/{quote(normalized)}"
    return {
        "path": stored.path,
        "version": stored.version,
        "size": stored.size,
        "digest_hex": stored.sha256_hex,
        "codec": stored.compression or "none",
    }


@router.get("/{path:path}")
async def download_file(
    path: str,
    request: Request,
    version: int | None = Query(None, ge=1),
    compression: CompressionPolicy = Depends(get_compression),
    store: VersionedStore = Depends(get_store),
):
    """Download the latest (or a given) version, honouring If-None-Match and Range."""
    normalized = normalize_path(path)
    stored = await store.get(normalized, version)

    etag = _etag(stored.sha256_hex)
    headers = {"ETag": etag, "Accept-Ranges": "bytes"}
    if etag_matches(request.headers.get("if-none-match"), etag):
        return Response(status_code=304, headers=headers)

    payload = stored.stored_bytes
    if stored.compression:
        payload = await run_in_threadpool(compression.decompress, payload, stored.compression)

    outcome = resolve_range(request.headers.get("range"), len(payload))
    if outcome is RangeVerdict.UNSATISFIABLE:
        raise UnsatisfiableRange(len(payload), headers=headers)

    name, _ = filename_and_extension(normalized)
    headers["Content-Disposition"] = f"inline; filename*=UTF-8''{quote(name)}"

    if isinstance(outcome, ByteRange):
        headers["Content-Range"] = outcome.content_range(len(payload))
        return Response(
            content=payload[outcome.start:outcome.end + 1],
            status_code=206,
            media_type=stored.content_type,
            headers=headers,
        )
    return Response(content=payload, media_type=stored.content_type, headers=headers)


async def read_body_with_limit(request: Request, limit: int) -> bytes:
    """Buffer the request body, failing as soon as it exceeds ``limit`` bytes."""
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > limit:
        raise PayloadTooLarge(f"Body exceeds the {limit} byte upload limit")

    buffer = bytearray()
    async for chunk in request.stream():
        if len(buffer) + len(chunk) > limit:
            logger.warning(f"Aborted upload to {request.url.path}: over {limit} bytes")
            raise PayloadTooLarge(f"Body exceeds the {limit} byte upload limit")
        buffer.extend(chunk)
    return bytes(buffer)


def etag_matches(header: str | None, etag: str) -> bool:
    """Weak comparison of an If-None-Match header against ``etag``."""
    if not header:
        return False
    for candidate in header.split(","):
        candidate = candidate.strip()
        if candidate == "*":
            return True
        if candidate.startswith("W/"):
            candidate = candidate[2:]
        if candidate == etag:
            return True
    return False


def _etag(sha256_hex: str) -> str:
    return f'"{sha256_hex}"'


def _media_type(header: str | None) -> str:
    if not header:
        return ""
    return header.split(";", 1)[0].strip()


def _version_to_response(meta: VersionMetadata) -> dict:
    """Convert a version snapshot to response dict."""
    return {
        "version": meta.version,
        "content_type": meta.content_type,
        "size": meta.size,
        "digest_hex": meta.sha256_hex,
        "codec": meta.compression or "none",
        "inserted_at": meta.inserted_at,
    }
