from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any
import os

from dotenv import load_dotenv

from .domain.types import GroupSource

load_dotenv()

_PACKAGE_DIR = Path(__file__).parent


def _getenv_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _normalize_group_source(raw: str | None) -> GroupSource:
    value = (raw or "yaml").strip().lower()
    return value if value in {"yaml", "db"} else "yaml"


def _normalize_log_level(raw: str | None) -> str:
    value = (raw or "INFO").strip().upper()
    return value if value in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO"


def _normalize_delimiter(raw: str | None) -> str:
    if not raw:
        return ";"
    return raw[0]


@dataclass(frozen=True)
class Settings:
    db_path: str
    group_source: GroupSource
    groups_file: str
    locale: str
    locales_file: str
    max_workers: int
    csv_delimiter: str
    log_level: str


settings = Settings(
    db_path=os.getenv("DB_PATH", "shop.db"),
    group_source=_normalize_group_source(os.getenv("STATS_GROUP_SOURCE")),
    groups_file=os.getenv("STATS_GROUPS_FILE", str(_PACKAGE_DIR / "stat_groups.yaml")),
    locale=os.getenv("STATS_LOCALE", "de"),
    locales_file=os.getenv("STATS_LOCALES_FILE", str(_PACKAGE_DIR / "locales.yaml")),
    max_workers=max(1, _getenv_int("STATS_MAX_WORKERS", 1)),
    csv_delimiter=_normalize_delimiter(os.getenv("STATS_CSV_DELIMITER")),
    log_level=_normalize_log_level(os.getenv("LOG_LEVEL")),
)

_RUNTIME_OVERRIDES: dict[str, Any] = {}


def get_settings() -> Settings:
    if not _RUNTIME_OVERRIDES:
        return settings
    base = settings
    return Settings(
        db_path=_RUNTIME_OVERRIDES.get("db_path", base.db_path),
        group_source=_RUNTIME_OVERRIDES.get("group_source", base.group_source),
        groups_file=_RUNTIME_OVERRIDES.get("groups_file", base.groups_file),
        locale=_RUNTIME_OVERRIDES.get("locale", base.locale),
        locales_file=_RUNTIME_OVERRIDES.get("locales_file", base.locales_file),
        max_workers=_RUNTIME_OVERRIDES.get("max_workers", base.max_workers),
        csv_delimiter=_RUNTIME_OVERRIDES.get("csv_delimiter", base.csv_delimiter),
        log_level=_RUNTIME_OVERRIDES.get("log_level", base.log_level),
    )


def update_settings(overrides: dict[str, Any]) -> Settings:
    normalized: dict[str, Any] = {}
    for key, value in overrides.items():
        if value is None:
            continue
        if key == "group_source":
            normalized[key] = _normalize_group_source(str(value))
        elif key == "log_level":
            normalized[key] = _normalize_log_level(str(value))
        elif key == "csv_delimiter":
            normalized[key] = _normalize_delimiter(str(value))
        elif key == "max_workers":
            normalized[key] = max(1, int(value))
        else:
            normalized[key] = value
    _RUNTIME_OVERRIDES.update(normalized)
    return get_settings()


def reset_settings() -> Settings:
    """Drop all runtime overrides and return the environment-derived settings."""
    _RUNTIME_OVERRIDES.clear()
    return settings
