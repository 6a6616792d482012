"""Unit tests for settings validation and the JSONC config source."""
import pytest
from pydantic import ValidationError

from blobvault.config import CONFIG_ENV_VAR, Settings, load_jsonc, strip_json_comments


def make_settings(**values) -> Settings:
    return Settings(_env_file=None, **values)


def test_defaults_are_valid() -> None:
    settings = make_settings()

    assert settings.COMPRESSION_METHOD == "gzip"
    assert settings.COMPRESSION_LEVEL == "optimal"
    assert settings.max_upload_bytes == 50 * 1024 * 1024
    assert settings.api_keys == []


def test_rejects_non_positive_upload_limit() -> None:
    with pytest.raises(ValidationError):
        make_settings(MAX_UPLOAD_MB=0)


def test_rejects_unknown_compression_method() -> None:
    with pytest.raises(ValidationError):
        make_settings(COMPRESSION_METHOD="deflate")


def test_rejects_unknown_compression_level() -> None:
    with pytest.raises(ValidationError):
        make_settings(COMPRESSION_LEVEL="smallest")


def test_method_and_level_are_case_insensitive() -> None:
    settings = make_settings(COMPRESSION_METHOD="Brotli", COMPRESSION_LEVEL="Fastest")

    assert settings.COMPRESSION_METHOD == "brotli"
    assert settings.COMPRESSION_LEVEL == "fastest"


@pytest.mark.parametrize(("raw", "expected"), [("", ""), ("/", ""), ("/api/", "/api"), ("/api", "/api")])
def test_path_base_is_normalized(raw: str, expected: str) -> None:
    assert make_settings(PATH_BASE=raw).PATH_BASE == expected


def test_path_base_must_be_absolute() -> None:
    with pytest.raises(ValidationError):
        make_settings(PATH_BASE="api")


def test_rejects_bad_schema_name() -> None:
    with pytest.raises(ValidationError):
        make_settings(STORAGE_SCHEMA="storage; drop table files")


def test_content_type_lists_are_trimmed_and_deduplicated() -> None:
    settings = make_settings(
        ALLOWED_CONTENT_TYPES=" text/plain, ,TEXT/PLAIN,application/json ",
        NO_COMPRESSION_CONTENT_TYPES=["image/png", "Image/PNG", ""],
    )

    assert settings.allowed_content_types == ["text/plain", "application/json"]
    assert settings.no_compression_content_types == ["image/png"]


def test_api_keys_are_trimmed() -> None:
    assert make_settings(API_KEYS=" one , two,one,").api_keys == ["one", "two"]


def test_settings_are_frozen() -> None:
    settings = make_settings()

    with pytest.raises(ValidationError):
        settings.MAX_UPLOAD_MB = 1


def test_strip_json_comments_keeps_strings_intact() -> None:
    text = '{\n  // line comment\n  "url": "http://host//path", /* block */ "n": 1\n}'

    assert strip_json_comments(text).replace(" ", "").replace("\n", "") == '{"url":"http://host//path","n":1}'


def test_jsonc_file_feeds_settings(tmp_path, monkeypatch) -> None:
    config = tmp_path / "config.jsonc"
    config.write_text(
        """
        {
          // storage tuning
          "max_upload_mb": 5,
          "COMPRESSION_METHOD": "brotli", /* higher ratio */
          "NO_COMPRESSION_CONTENT_TYPES": ["image/png", "video/mp4"]
        }
        """,
        encoding="utf-8",
    )
    monkeypatch.setenv(CONFIG_ENV_VAR, str(config))

    settings = make_settings()

    assert settings.MAX_UPLOAD_MB == 5
    assert settings.COMPRESSION_METHOD == "brotli"
    assert settings.no_compression_content_types == ["image/png", "video/mp4"]


def test_env_overrides_jsonc_file(tmp_path, monkeypatch) -> None:
    config = tmp_path / "config.jsonc"
    config.write_text('{"MAX_UPLOAD_MB": 5}', encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(config))
    monkeypatch.setenv("MAX_UPLOAD_MB", "7")

    assert make_settings().MAX_UPLOAD_MB == 7


def test_jsonc_must_be_an_object(tmp_path) -> None:
    config = tmp_path / "config.jsonc"
    config.write_text("[1, 2]", encoding="utf-8")

    with pytest.raises(ValueError):
        load_jsonc(config)
