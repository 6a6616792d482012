"""Canonical storage keys from raw, client-supplied paths."""
import re

from blobvault.errors import InvalidPath

_SEPARATORS = re.compile(r"[/\\]")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def normalize_path(raw: str) -> str:
    """Turn a raw path into a slash-separated key.

    Both ``/`` and ``\\`` separate segments; segments are trimmed, and empty
    or ``.`` segments are dropped. ``..`` anywhere is rejected, as is a path
    with nothing left after cleaning. NUL and other control characters are
    rejected in any segment.
    """
    if raw is None or not raw.strip():
        raise InvalidPath("Path cannot be empty")

    segments = []
    for segment in _SEPARATORS.split(raw):
        if _CONTROL_CHARS.search(segment):
            raise InvalidPath("Path contains control characters")
        trimmed = segment.strip()
        if not trimmed or trimmed == ".":
            continue
        if trimmed == "..":
            raise InvalidPath("Path traversal is not allowed")
        segments.append(trimmed)

    if not segments:
        raise InvalidPath("Path must contain at least one segment")
    return "/".join(segments)


def file_name(key: str) -> str:
    return key.rsplit("/", 1)[-1]


def filename_and_extension(key: str) -> tuple[str, str | None]:
    """Split the last segment of a key into name and extension.

    A dot in first or last position does not start an extension, so
    ``.bashrc`` and ``notes.`` have none.
    """
    name = file_name(key)
    index = name.rfind(".")
    if index <= 0 or index == len(name) - 1:
        return name, None
    return name, name[index + 1:]
