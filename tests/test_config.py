"""Tests for receiptbox config loading."""

import os
import tempfile

import pytest

from receiptbox.config import ReceiptsConfig, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "ANTHROPIC_API_KEY",
        "GEMINI_API_KEY",
        "RECEIPTS_DATABASE_PATH",
        "ENABLE_VISION_FALLBACK",
    ):
        monkeypatch.delenv(name, raising=False)


def _load_toml(content: bytes) -> ReceiptsConfig:
    with tempfile.NamedTemporaryFile(suffix=".toml", delete=False) as f:
        f.write(content)
        f.flush()
        config = load_config(f.name)
    os.unlink(f.name)
    return config


def test_load_config_defaults():
    """Loading with no path returns all defaults."""
    config = load_config()
    assert isinstance(config, ReceiptsConfig)
    assert config.store.dir == "~/receipts"
    assert config.database.path == "~/receipts.db"
    assert config.extraction.backend == "claude"
    assert config.extraction.quality_threshold == 80.0
    assert config.extraction.vision_fallback is True
    assert config.extraction.claude.api_key == ""
    assert config.extraction.gemini.model == "gemini-2.0-flash"


def test_load_config_nonexistent_file():
    """Loading a nonexistent file returns defaults."""
    config = load_config("/nonexistent/path.toml")
    assert config.store.dir == "~/receipts"


def test_load_config_from_toml():
    """Loading a valid TOML file populates config."""
    config = _load_toml(b"""\
[store]
dir = "/data/receipts"

[database]
path = "/data/receipts.db"

[extraction]
backend = "gemini"
quality_threshold = 65
vision_fallback = false

[extraction.gemini]
api_key = "test-key-123"
model = "gemini-pro"
""")
    assert config.store.dir == "/data/receipts"
    assert config.database.path == "/data/receipts.db"
    assert config.extraction.backend == "gemini"
    assert config.extraction.quality_threshold == 65.0
    assert config.extraction.vision_fallback is False
    assert config.extraction.gemini.api_key == "test-key-123"
    assert config.extraction.gemini.model == "gemini-pro"


def test_load_config_env_override(monkeypatch):
    """Environment variables fill values the file leaves unset."""
    monkeypatch.setenv("ANTHROPIC_API_KEY", "env-anthropic-key")
    monkeypatch.setenv("GEMINI_API_KEY", "env-gemini-key")
    monkeypatch.setenv("RECEIPTS_DATABASE_PATH", "/tmp/env.db")

    config = load_config()
    assert config.extraction.claude.api_key == "env-anthropic-key"
    assert config.extraction.gemini.api_key == "env-gemini-key"
    assert config.database.path == "/tmp/env.db"


def test_load_config_file_key_takes_precedence(monkeypatch):
    """Config file API key takes precedence over env var."""
    monkeypatch.setenv("ANTHROPIC_API_KEY", "env-key")
    config = _load_toml(b"""\
[extraction.claude]
api_key = "file-key"
""")
    assert config.extraction.claude.api_key == "file-key"


@pytest.mark.parametrize("value", ["false", "FALSE", "0", "off", "no"])
def test_vision_fallback_disabled_by_env(monkeypatch, value):
    monkeypatch.setenv("ENABLE_VISION_FALLBACK", value)
    assert load_config().extraction.vision_fallback is False


def test_vision_fallback_env_other_values_keep_default(monkeypatch):
    monkeypatch.setenv("ENABLE_VISION_FALLBACK", "yes please")
    assert load_config().extraction.vision_fallback is True


def test_vision_fallback_file_wins_over_env(monkeypatch):
    monkeypatch.setenv("ENABLE_VISION_FALLBACK", "false")
    config = _load_toml(b"""\
[extraction]
vision_fallback = true
""")
    assert config.extraction.vision_fallback is True


def test_load_config_partial_toml():
    """Partial TOML uses defaults for missing sections."""
    config = _load_toml(b"""\
[store]
dir = "/elsewhere"
""")
    assert config.store.dir == "/elsewhere"
    assert config.extraction.backend == "claude"
    assert config.database.path == "~/receipts.db"
