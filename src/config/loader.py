"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers (later layers override earlier):

  1. ``config/config.yaml`` -- static defaults checked into the repo
  2. ``.env`` file          -- local overrides (not committed)
  3. Environment variables  -- set per machine / per run

The YAML file is grouped by concern; :data:`_YAML_FIELD_MAP` maps each
``section.key`` onto a flat :class:`Settings` field.  Only values that were
actually provided by the environment (or ``.env``) override the YAML, so a
Settings default never clobbers an explicit YAML value.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from src.config.settings import Settings
from src.utils.errors import ConfigurationError

_DEFAULT_CONFIG_PATH = "config/config.yaml"

_YAML_FIELD_MAP: dict[tuple[str, str], str] = {
    ("archive", "root"): "archive_root",
    ("archive", "backup_dir"): "backup_dir",
    ("archive", "history_path"): "history_path",
    ("archive", "log_file"): "log_file",
    ("sections", "csv"): "sections_csv",
    ("sections", "completed_path"): "completed_sections_path",
    ("fetch", "request_delay"): "request_delay",
    ("fetch", "request_timeout"): "request_timeout",
    ("fetch", "user_agent"): "user_agent",
    ("fetch", "max_pages"): "max_pages",
    ("pagination", "topics_per_page"): "topics_per_page",
    ("pagination", "section_param"): "section_param",
    ("pagination", "offset_param"): "offset_param",
    ("pagination", "topic_param"): "topic_param",
    ("pagination", "selector"): "pagination_selector",
    ("pagination", "count_topic_pages"): "count_topic_pages",
    ("quota", "storage_quota_bytes"): "storage_quota_bytes",
    ("quota", "storage_warning_percent"): "storage_warning_percent",
    ("quota", "backup_every_sections"): "backup_every_sections",
    ("metrics", "history_window"): "history_window",
    ("app", "env"): "app_env",
    ("logging", "level"): "log_level",
}


def _read_yaml(path: str) -> dict:
    config_path = Path(path)
    if not config_path.exists():
        return {}
    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(message=f"invalid YAML: {exc}", path=str(config_path)) from exc
    if not isinstance(data, dict):
        raise ConfigurationError(message="top level must be a mapping", path=str(config_path))
    return data


def load_config(path: str = _DEFAULT_CONFIG_PATH) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Environment variables (via Settings) override YAML values where keys overlap.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Fully resolved, nested configuration dictionary.
    """
    yaml_config = _read_yaml(path)

    try:
        settings = Settings()
    except ValueError as exc:
        raise ConfigurationError(message=f"invalid environment setting: {exc}", path=path) from exc

    env_overrides: dict[str, dict[str, Any]] = {}
    for (section, key), field_name in _YAML_FIELD_MAP.items():
        if field_name in settings.model_fields_set:
            env_overrides.setdefault(section, {})[key] = getattr(settings, field_name)

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def load_settings(path: str = _DEFAULT_CONFIG_PATH) -> Settings:
    """Build a validated :class:`Settings` from YAML plus environment."""
    resolved = load_config(path)
    values: dict[str, Any] = {}
    for (section, key), field_name in _YAML_FIELD_MAP.items():
        group = resolved.get(section)
        if isinstance(group, dict) and key in group:
            values[field_name] = group[key]
    try:
        return Settings(**values)
    except ValueError as exc:
        raise ConfigurationError(message=str(exc), path=path) from exc


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
