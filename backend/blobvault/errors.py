"""Exception hierarchy for blobvault.

Every error carries the HTTP status it maps to and a machine-readable reason
string. The exception handler in ``blobvault.main`` renders them as
``{"error": reason, "detail": message}``.
"""


class BlobVaultError(Exception):
    """Base exception for all blobvault failures."""

    status_code: int = 500
    reason: str = "internal_error"

    def __init__(self, message: str = "", headers: dict[str, str] | None = None):
        self.message = message or self.reason.replace("_", " ")
        self.headers = headers or {}
        super().__init__(self.message)


class InvalidPath(BlobVaultError):
    """Malformed path or path traversal attempt."""
    status_code = 400
    reason = "invalid_path"


class MissingContentType(BlobVaultError):
    status_code = 400
    reason = "missing_content_type"


class UnsupportedMediaType(BlobVaultError):
    status_code = 415
    reason = "unsupported_media_type"


class PayloadTooLarge(BlobVaultError):
    status_code = 413
    reason = "payload_too_large"


class NotFound(BlobVaultError):
    status_code = 404
    reason = "not_found"


class UnsatisfiableRange(BlobVaultError):
    """Range request that cannot be served against the resource length."""
    status_code = 416
    reason = "unsatisfiable_range"

    def __init__(self, length: int, headers: dict[str, str] | None = None):
        super().__init__(
            f"Range not satisfiable for resource of {length} bytes",
            headers={**(headers or {}), "Content-Range": f"bytes */{length}"},
        )


class UnsupportedCodec(BlobVaultError):
    """Compression method the codec registry does not know."""
    status_code = 500
    reason = "unsupported_codec"


class CorruptPayload(BlobVaultError):
    """Stored bytes could not be decoded with the recorded codec."""
    status_code = 500
    reason = "corrupt_payload"


class StorageUnavailable(BlobVaultError):
    """Transient backend failure. Not retried by the server."""
    status_code = 503
    reason = "storage_unavailable"
