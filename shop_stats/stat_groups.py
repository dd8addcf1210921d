"""
Statistic group catalog.

Loads StatGroupConfig entries from a YAML file. The parsed catalog is cached
per path and re-read only when the file's modification time changes.
"""
from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from .stats.errors import StatsConfigurationError
from .stats.models import StatGroupConfig, StatGroupsFile

logger = logging.getLogger(__name__)

_CONFIG_CACHE: dict[str, tuple[float, StatGroupsFile]] = {}


def load_stat_groups_config(path: str | Path, force_reload: bool = False) -> StatGroupsFile:
    """
    Load statistic group definitions from a YAML file.

    Args:
        path: Location of the YAML catalog
        force_reload: Re-read the file even if the cached copy is current

    Returns:
        StatGroupsFile with all group definitions (empty if the file is missing)
    """
    config_path = Path(path)
    if not config_path.exists():
        logger.warning("Statistic group catalog not found: %s", config_path)
        return StatGroupsFile(groups=[])

    key = str(config_path.resolve())
    current_mtime = config_path.stat().st_mtime
    cached = _CONFIG_CACHE.get(key)
    if not force_reload and cached is not None and cached[0] == current_mtime:
        return cached[1]

    with open(config_path, "r", encoding="utf-8") as f:
        try:
            raw_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise StatsConfigurationError(f"Cannot parse {config_path}: {exc}") from exc

    try:
        parsed = StatGroupsFile(**raw_config)
    except (TypeError, ValidationError) as exc:
        raise StatsConfigurationError(f"Invalid statistic group catalog {config_path}: {exc}") from exc

    _CONFIG_CACHE[key] = (current_mtime, parsed)
    logger.info("Loaded %d statistic group(s) from %s", len(parsed.groups), config_path.name)
    return parsed


def get_stat_groups(path: str | Path) -> list[StatGroupConfig]:
    """Return the configured groups ordered by position."""
    return sorted(load_stat_groups_config(path).groups, key=lambda g: g.position)


def clear_cache() -> None:
    _CONFIG_CACHE.clear()
