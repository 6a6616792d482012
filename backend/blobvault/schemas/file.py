"""File upload and version listing response schemas."""
from datetime import datetime
from blobvault.schemas.base import CamelModel


class UploadResponse(CamelModel):
    path: str
    version: int
    size: int
    digest_hex: str
    codec: str  # codec name or "none"


class VersionMetadataResponse(CamelModel):
    version: int
    content_type: str
    size: int
    digest_hex: str
    codec: str
    inserted_at: datetime
