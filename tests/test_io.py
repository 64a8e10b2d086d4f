"""
Tests for options file I/O and settings
"""

from pathlib import Path

import pytest

from quantopts.errors import OptionsDecodeError
from quantopts.schema import (
    OpSet,
    QuantizationOptions,
    detect_format,
    dumps_options,
    load_options,
    loads_options,
    save_options,
)
from quantopts.settings import Settings, get_settings, reset_settings


class TestDetectFormat:
    """Test format detection from file extensions."""

    @pytest.mark.parametrize("name, fmt", [
        ("options.json", "json"),
        ("options.pbtxt", "text"),
        ("options.textproto", "text"),
        ("OPTIONS.PB", "binary"),
        ("options.binpb", "binary"),
    ])
    def test_known_extensions(self, name, fmt):
        assert detect_format(name) == fmt

    def test_unknown_extension_uses_default(self):
        assert detect_format("options.cfg") == "json"

    def test_default_from_environment(self, monkeypatch):
        monkeypatch.setenv("QUANTOPTS_DEFAULT_FORMAT", "text")
        reset_settings()
        assert detect_format("options.cfg") == "text"


class TestSettings:
    """Test environment settings."""

    def test_defaults(self):
        settings = get_settings()
        assert settings.log_level == "WARNING"
        assert settings.default_format == "json"

    def test_cached(self):
        assert get_settings() is get_settings()

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("QUANTOPTS_LOG_LEVEL", "debug")
        monkeypatch.setenv("QUANTOPTS_DEFAULT_FORMAT", "BINARY")
        reset_settings()
        settings = get_settings()
        assert settings.log_level == "DEBUG"
        assert settings.default_format == "binary"

    def test_invalid_format(self):
        with pytest.raises(ValueError):
            Settings(default_format="yaml")


class TestLoadSave:
    """Test reading and writing files."""

    @pytest.mark.parametrize("name", ["options.json", "options.pbtxt", "options.pb"])
    def test_save_then_load(self, tmp_path: Path, full_options, name):
        path = save_options(full_options, tmp_path / name)
        assert path.exists()
        assert load_options(path) == full_options

    def test_explicit_format_overrides_extension(self, tmp_path: Path, w8a8_options):
        path = save_options(w8a8_options, tmp_path / "options.cfg", fmt="binary")
        assert load_options(path, fmt="binary") == w8a8_options
        with pytest.raises(OptionsDecodeError):
            load_options(path)  # default json

    def test_creates_parent_dirs(self, tmp_path: Path, w8a8_options):
        path = save_options(w8a8_options, tmp_path / "nested" / "dir" / "options.json")
        assert path.exists()

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_options(tmp_path / "missing.json")

    def test_handwritten_json_file(self, tmp_path: Path):
        path = tmp_path / "options.json"
        path.write_text('{"opSet": "XLA", "minNumElementsForWeights": "-1"}')
        options = load_options(path)
        assert options.op_set == OpSet.XLA
        assert options.min_num_elements_for_weights == -1


class TestPayloads:
    """Test in-memory encode/decode."""

    def test_dumps_types(self, w8a8_options):
        assert isinstance(dumps_options(w8a8_options, "binary"), bytes)
        assert isinstance(dumps_options(w8a8_options, "json"), str)
        assert isinstance(dumps_options(w8a8_options, "text"), str)

    def test_loads_bytes_as_text(self, w8a8_options):
        payload = dumps_options(w8a8_options, "text").encode("utf-8")
        assert loads_options(payload, "text") == w8a8_options

    def test_binary_requires_bytes(self):
        with pytest.raises(TypeError):
            loads_options("", "binary")

    def test_unknown_format(self):
        with pytest.raises(ValueError):
            loads_options("{}", "yaml")

    def test_invalid_utf8(self):
        with pytest.raises(OptionsDecodeError):
            loads_options(b"\xff\xfe", "json")

    def test_empty_json_object(self):
        assert loads_options("{}", "JSON") == QuantizationOptions()
