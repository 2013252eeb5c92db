"""TOML configuration loader for receiptbox."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

_FALSE_VALUES = {"false", "0", "no", "off"}


@dataclass
class StoreConfig:
    dir: str = "~/receipts"


@dataclass
class DatabaseConfig:
    path: str = "~/receipts.db"


@dataclass
class ClaudeExtractionConfig:
    api_key: str = ""
    model: str = "claude-sonnet-4-5-20250929"


@dataclass
class GeminiExtractionConfig:
    api_key: str = ""
    model: str = "gemini-2.0-flash"


@dataclass
class ExtractionConfig:
    backend: str = "claude"
    quality_threshold: float = 80.0
    vision_fallback: bool = True
    claude: ClaudeExtractionConfig = field(default_factory=ClaudeExtractionConfig)
    gemini: GeminiExtractionConfig = field(default_factory=GeminiExtractionConfig)


@dataclass
class ReceiptsConfig:
    store: StoreConfig = field(default_factory=StoreConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() not in _FALSE_VALUES


def load_config(path: str | Path | None = None) -> ReceiptsConfig:
    """Load configuration from a TOML file.

    Falls back to defaults if no path is given or the file doesn't exist.
    API keys, the database location and the vision fallback switch can be
    overridden via environment variables when the file leaves them unset.
    """
    raw: dict = {}

    if path is not None:
        p = Path(path)
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    sto = raw.get("store", {})
    dbs = raw.get("database", {})
    ext = raw.get("extraction", {})

    claude_cfg = ext.get("claude", {})
    gemini_cfg = ext.get("gemini", {})

    # Resolve API keys: config file → environment variable
    claude_api_key = claude_cfg.get("api_key", "") or os.environ.get(
        "ANTHROPIC_API_KEY", ""
    )
    gemini_api_key = gemini_cfg.get("api_key", "") or os.environ.get(
        "GEMINI_API_KEY", ""
    )

    db_path = dbs.get("path", "") or os.environ.get(
        "RECEIPTS_DATABASE_PATH", ""
    ) or DatabaseConfig.path

    if "vision_fallback" in ext:
        vision_fallback = bool(ext["vision_fallback"])
    else:
        vision_fallback = _env_flag("ENABLE_VISION_FALLBACK", True)

    return ReceiptsConfig(
        store=StoreConfig(
            dir=sto.get("dir", "~/receipts"),
        ),
        database=DatabaseConfig(
            path=db_path,
        ),
        extraction=ExtractionConfig(
            backend=ext.get("backend", "claude"),
            quality_threshold=float(ext.get("quality_threshold", 80.0)),
            vision_fallback=vision_fallback,
            claude=ClaudeExtractionConfig(
                api_key=claude_api_key,
                model=claude_cfg.get("model", "claude-sonnet-4-5-20250929"),
            ),
            gemini=GeminiExtractionConfig(
                api_key=gemini_api_key,
                model=gemini_cfg.get("model", "gemini-2.0-flash"),
            ),
        ),
    )
