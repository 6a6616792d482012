"""Compression decision and codecs for stored payloads.

Two codecs are supported: ``gzip`` (fast, universally readable) and
``brotli`` (higher ratio). The digest recorded for a version is always the
SHA-256 of the original bytes, computed before any compression.
"""
import gzip
import hashlib
import logging
import zlib
from dataclasses import dataclass

import brotli

from blobvault.errors import CorruptPayload, UnsupportedCodec

logger = logging.getLogger(__name__)

# Level name -> (gzip compresslevel, brotli quality)
LEVELS = {
    "fastest": (1, 1),
    "optimal": (6, 5),
}


class GzipCodec:
    name = "gzip"

    @staticmethod
    def compress(data: bytes, level: str) -> bytes:
        # mtime=0 keeps the output deterministic for identical input
        return gzip.compress(data, compresslevel=LEVELS[level][0], mtime=0)

    @staticmethod
    def decompress(data: bytes) -> bytes:
        try:
            return gzip.decompress(data)
        except (OSError, EOFError, zlib.error) as e:
            raise CorruptPayload(f"gzip payload could not be decoded: {e}") from e


class BrotliCodec:
    name = "brotli"

    @staticmethod
    def compress(data: bytes, level: str) -> bytes:
        return brotli.compress(data, quality=LEVELS[level][1])

    @staticmethod
    def decompress(data: bytes) -> bytes:
        try:
            return brotli.decompress(data)
        except brotli.error as e:
            raise CorruptPayload(f"brotli payload could not be decoded: {e}") from e


CODECS = {
    GzipCodec.name: GzipCodec,
    BrotliCodec.name: BrotliCodec,
}


def get_codec(method: str):
    """Look up a codec by name. Unknown names raise UnsupportedCodec."""
    codec = CODECS.get(method.lower())
    if codec is None:
        raise UnsupportedCodec(f"Unsupported compression method '{method}'")
    return codec


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


@dataclass(frozen=True)
class CompressionDecision:
    should_compress: bool
    method: str | None = None


@dataclass(frozen=True)
class CompressionResult:
    decision: CompressionDecision
    stored_bytes: bytes
    sha256_hex: str


class CompressionPolicy:
    """Decides whether to compress a payload and applies the chosen codec.

    Built from a Settings snapshot; holds no mutable state.
    """

    def __init__(self, settings):
        self.enabled = settings.COMPRESSION_ENABLED
        self.method = settings.COMPRESSION_METHOD
        self.level = settings.COMPRESSION_LEVEL
        self.no_compression = frozenset(settings.no_compression_content_types)
        # Fail at construction, not on the first upload
        get_codec(self.method)

    def decide(self, content_type: str) -> CompressionDecision:
        normalized = content_type.strip().lower()
        if normalized in self.no_compression:
            return CompressionDecision(False, None)
        if not self.enabled:
            return CompressionDecision(False, None)
        return CompressionDecision(True, self.method)

    def resolve_level(self) -> str:
        return self.level

    def process(self, data: bytes, content_type: str) -> CompressionResult:
        """Hash the original bytes, then compress them if the policy says so."""
        decision = self.decide(content_type)
        digest = sha256_hex(data)
        if not decision.should_compress:
            return CompressionResult(decision, data, digest)

        stored = get_codec(decision.method).compress(data, self.resolve_level())
        logger.debug(
            f"Compressed {len(data)} -> {len(stored)} bytes with {decision.method} ({content_type})"
        )
        return CompressionResult(decision, stored, digest)

    def decompress(self, data: bytes, method: str) -> bytes:
        return get_codec(method).decompress(data)
