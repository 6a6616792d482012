"""Unit tests for path normalization."""
import pytest

from blobvault.errors import InvalidPath
from blobvault.services.path_normalizer import file_name, filename_and_extension, normalize_path


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("folder/sub/file.txt", "folder/sub/file.txt"),
        ("/folder//sub/./file.txt", "folder/sub/file.txt"),
        ("folder\\sub\\file.txt", "folder/sub/file.txt"),
        ("  docs / report.pdf /", "docs/report.pdf"),
        ("a/./b\\/c", "a/b/c"),
    ],
)
def test_normalize_cleans_path(raw: str, expected: str) -> None:
    assert normalize_path(raw) == expected


@pytest.mark.parametrize("raw", ["../../etc/passwd", "a/../b", "a\\..\\b", "a/ .. /b"])
def test_normalize_rejects_traversal(raw: str) -> None:
    with pytest.raises(InvalidPath):
        normalize_path(raw)


@pytest.mark.parametrize("raw", ["a\x00b.txt", "docs/line\nbreak.txt", "tab\there/x", "bell\x07/x", "del\x7f.txt", " \x01 /x"])
def test_normalize_rejects_control_characters(raw: str) -> None:
    with pytest.raises(InvalidPath):
        normalize_path(raw)


@pytest.mark.parametrize("raw", ["", "   ", "/", "//./", "\\ . \\"])
def test_normalize_rejects_empty(raw: str) -> None:
    with pytest.raises(InvalidPath):
        normalize_path(raw)


@pytest.mark.parametrize(
    "raw",
    ["a/b/c", "/x//y/", "w\\x/./y", " spaced / name.txt ", "...", "a/.hidden/..dots"],
)
def test_normalize_is_idempotent_and_has_no_bad_segments(raw: str) -> None:
    once = normalize_path(raw)
    assert normalize_path(once) == once
    segments = once.split("/")
    assert "" not in segments
    assert ".." not in segments
    assert not once.startswith("/") and not once.endswith("/")


@pytest.mark.parametrize(
    ("key", "name", "extension"),
    [
        ("a/b/file.txt", "file.txt", "txt"),
        ("file", "file", None),
        ("folder/file.tar.gz", "file.tar.gz", "gz"),
        ("dir/.bashrc", ".bashrc", None),
        ("dir/notes.", "notes.", None),
    ],
)
def test_filename_and_extension(key: str, name: str, extension: str | None) -> None:
    assert file_name(key) == name
    assert filename_and_extension(key) == (name, extension)
