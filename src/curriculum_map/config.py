"""
config.py — Central settings for the curriculum map package
===========================================================
All configuration is loaded from environment variables / .env file.
Copy .env.example → .env to override the defaults.

Unrecognised enum values (propagation mode, theme) and non-numeric integers
fall back to their defaults instead of failing at start-up.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from curriculum_map.models import PropagationMode, ThemeId

# Load .env into os.environ (no-op if already set, safe to call multiple times)
load_dotenv(override=False)

# Default database file lives next to the workspace root
_ROOT_DIR = Path(__file__).resolve().parent.parent.parent
_DEFAULT_DB_PATH = _ROOT_DIR / "curriculum_map.db"


# ─── Helpers ────────────────────────────────────────────────────────────────

def _is_placeholder(value: str) -> bool:
    """Return True if the value looks like an unfilled template placeholder."""
    return not value or "<" in value or value.startswith("your-") or value == "PLACEHOLDER"


def _enum_or_default(enum_cls, raw: str, default):
    try:
        return enum_cls(raw.strip().lower())
    except ValueError:
        return default


def _int_or_default(raw: str, default: int) -> int:
    try:
        return int(raw.strip())
    except ValueError:
        return default


# ─── Storage ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class StorageConfig:
    db_path: Path


# ─── Guide behaviour ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class GuideConfig:
    propagation:   PropagationMode
    default_theme: ThemeId


# ─── Authentication ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AuthConfig:
    min_password_length: int


# ─── App-level settings ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class AppConfig:
    log_level: str


# ─── Master settings object ──────────────────────────────────────────────────

@dataclass(frozen=True)
class Settings:
    storage: StorageConfig
    guides:  GuideConfig
    auth:    AuthConfig
    app:     AppConfig

    def status_summary(self) -> dict[str, str]:
        """Return a dict of setting → value for display."""
        return {
            "Database":         str(self.storage.db_path),
            "Propagation":      self.guides.propagation.value,
            "Default theme":    self.guides.default_theme.value,
            "Min password":     str(self.auth.min_password_length),
            "Log level":        self.app.log_level,
        }


def get_settings() -> Settings:
    """Load all configuration from environment variables."""
    _str  = lambda k, d="": os.getenv(k, d).strip()
    _int  = lambda k, d=0: _int_or_default(os.getenv(k, str(d)), d)

    db_raw = _str("CURRICULUM_DB_PATH")
    db_path = Path(db_raw) if not _is_placeholder(db_raw) else _DEFAULT_DB_PATH

    return Settings(
        storage=StorageConfig(
            db_path = db_path,
        ),
        guides=GuideConfig(
            propagation   = _enum_or_default(
                PropagationMode, _str("CURRICULUM_PROPAGATION", "single_hop"),
                PropagationMode.SINGLE_HOP,
            ),
            default_theme = _enum_or_default(
                ThemeId, _str("CURRICULUM_DEFAULT_THEME", "default"), ThemeId.DEFAULT,
            ),
        ),
        auth=AuthConfig(
            min_password_length = max(1, _int("CURRICULUM_MIN_PASSWORD", 6)),
        ),
        app=AppConfig(
            log_level = _str("CURRICULUM_LOG_LEVEL", "WARNING").upper() or "WARNING",
        ),
    )
