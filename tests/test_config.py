"""Tests for TOML configuration loading."""

from __future__ import annotations

import pytest

from shared.config import DecoderConfig, GlobalConfig, ScopeConfig, get_config


def test_defaults():
    config = ScopeConfig()
    assert config.global_settings == GlobalConfig()
    assert config.decoder.demangle is True
    assert config.decoder.min_symbol_size == 0
    assert config.decoder.max_file_size == 1 << 30
    assert config.global_settings.max_display == 30


def test_load_file(tmp_path):
    path = tmp_path / "symscope.toml"
    path.write_text(
        '[global]\nlog_level = "DEBUG"\nmax_display = 5\n'
        "[decoder]\ndemangle = false\nmin_symbol_size = 16\n",
        encoding="utf-8",
    )
    config = ScopeConfig.load(path)
    assert config.global_settings.log_level == "DEBUG"
    assert config.global_settings.max_display == 5
    assert config.global_settings.log_json is False
    assert config.decoder == DecoderConfig(demangle=False, min_symbol_size=16)


def test_unknown_keys_ignored(tmp_path):
    path = tmp_path / "symscope.toml"
    path.write_text("[decoder]\nnot_a_key = 1\n[other]\nx = 2\n", encoding="utf-8")
    assert ScopeConfig.load(path) == ScopeConfig()


def test_explicit_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        ScopeConfig.load(tmp_path / "missing.toml")


def test_to_dict():
    data = ScopeConfig().to_dict()
    assert data["decoder"]["demangle"] is True
    assert data["global_settings"]["log_level"] == "INFO"


def test_get_config_caches(tmp_path):
    path = tmp_path / "symscope.toml"
    path.write_text("[global]\nmax_display = 7\n", encoding="utf-8")
    first = get_config(path)
    assert first.global_settings.max_display == 7
    assert get_config() is first
