"""Configuration management for Work Log.

Settings live in a YAML file (``~/.work-log/config.yml`` by default) and are
addressed with dotted keys such as ``cloud.table``. Whatever the file leaves
out is filled from ``ConfigManager.DEFAULT_CONFIG``; the merged result is
checked against ``CONFIG_SCHEMA`` on load and on every change.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Iterator, Optional

import yaml  # type: ignore[import-untyped]
from jsonschema import Draft7Validator  # type: ignore[import-untyped]
from jsonschema.exceptions import best_match  # type: ignore[import-untyped]

from work_log.core.cloud import DATABASE_URL_ENV

logger = logging.getLogger(__name__)

_IDENTIFIER_PATTERN = "^[a-z_][a-z0-9_]*$"
_MISSING = object()


def _merged(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict with ``override`` laid over ``base`` section by section."""
    result = copy.deepcopy(base)
    for key, value in override.items():
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            result[key] = _merged(current, value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def _flatten(section: dict[str, Any], prefix: str = "") -> Iterator[str]:
    for key, value in section.items():
        dotted = f"{prefix}.{key}" if prefix else key
        if isinstance(value, dict):
            yield from _flatten(value, dotted)
        else:
            yield dotted


class ConfigManager:
    """Load, validate and persist the Work Log settings file."""

    DEFAULT_CONFIG: dict[str, Any] = {
        "version": "1.0",
        "general": {
            "data_dir": "~/.work-log/data",
            "admin_name": "Admin Jay",
        },
        "storage": {
            "backend": "local",
        },
        "cloud": {
            "database_url": None,
            "table": "work_records",
            "channel": "work_records_changes",
            "poll_interval": 5,
        },
        "records": {
            "recheck_date_on_edit": False,
        },
        "export": {
            "directory": ".",
        },
        "logging": {
            "level": "WARNING",
            "file": None,
        },
    }

    CONFIG_SCHEMA: dict[str, Any] = {
        "type": "object",
        "properties": {
            "version": {"type": "string"},
            "general": {
                "type": "object",
                "properties": {
                    "data_dir": {"type": "string"},
                    "admin_name": {"type": "string", "minLength": 1},
                },
            },
            "storage": {
                "type": "object",
                "properties": {
                    "backend": {"type": "string", "enum": ["local", "cloud"]},
                },
            },
            "cloud": {
                "type": "object",
                "properties": {
                    "database_url": {"type": ["string", "null"]},
                    "table": {"type": "string", "pattern": _IDENTIFIER_PATTERN},
                    "channel": {"type": "string", "pattern": _IDENTIFIER_PATTERN},
                    "poll_interval": {"type": "number", "exclusiveMinimum": 0, "maximum": 300},
                },
            },
            "records": {
                "type": "object",
                "properties": {
                    "recheck_date_on_edit": {"type": "boolean"},
                },
            },
            "export": {
                "type": "object",
                "properties": {
                    "directory": {"type": "string"},
                },
            },
            "logging": {
                "type": "object",
                "properties": {
                    "level": {
                        "type": "string",
                        "enum": ["DEBUG", "INFO", "WARNING", "ERROR"],
                    },
                    "file": {"type": ["string", "null"]},
                },
            },
        },
        "required": ["version"],
    }

    _validator = Draft7Validator(CONFIG_SCHEMA)

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to config file. Defaults to ~/.work-log/config.yml

        Raises:
            ValueError: If the file on disk was unreadable or invalid. It is
                moved aside to ``config.yml.backup`` and defaults are written
                before the error is raised.
        """
        if config_path is None:
            config_path = Path.home() / ".work-log" / "config.yml"
        self.config_path = Path(config_path)
        self._config: dict[str, Any] = copy.deepcopy(self.DEFAULT_CONFIG)

        if not self.config_path.exists():
            self.save()
            return

        try:
            self._config = _merged(self.DEFAULT_CONFIG, self._read_file())
            self.validate()
        except ValueError as e:
            backup_path = self._quarantine()
            raise ValueError(
                f"Config validation failed, backed up to {backup_path}. Using defaults. Error: {e}"
            ) from e

    def _read_file(self) -> dict[str, Any]:
        try:
            with open(self.config_path, encoding="utf-8") as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid configuration: {e}") from e
        if loaded is None:
            return {}
        if not isinstance(loaded, dict):
            raise ValueError("Invalid configuration: top level must be a mapping")
        return loaded

    def _quarantine(self) -> Path:
        """Move the rejected file aside and write defaults in its place."""
        backup_path = self.config_path.with_suffix(".yml.backup")
        self.config_path.replace(backup_path)
        logger.warning(f"Rejected config moved to {backup_path}")
        self._config = copy.deepcopy(self.DEFAULT_CONFIG)
        self.save()
        return backup_path

    def _lookup(self, key: str) -> Any:
        node: Any = self._config
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return _MISSING
            node = node[part]
        return node

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value by dotted key.

        Missing keys and keys explicitly set to null both yield ``default``.

        Example:
            >>> config.get('storage.backend')
            'local'
            >>> config.get('cloud.database_url', 'unset')
            'unset'
        """
        value = self._lookup(key)
        if value is _MISSING or value is None:
            return default
        return value

    def set(self, key: str, value: Any) -> None:
        """Set a value by dotted key and save.

        Raises:
            ValueError: If the result fails validation; nothing is changed
        """
        section, _, leaf = key.rpartition(".")
        patch: dict[str, Any] = {leaf: value}
        for part in reversed(section.split(".") if section else []):
            patch = {part: patch}

        candidate = _merged(self._config, patch)
        self._check(candidate)
        self._config = candidate
        self.save()
        logger.debug(f"Config {key} set to {value!r}")

    def _check(self, config: dict[str, Any]) -> None:
        error = best_match(self._validator.iter_errors(config))
        if error is not None:
            where = ".".join(str(p) for p in error.absolute_path)
            detail = f"{where}: {error.message}" if where else error.message
            raise ValueError(f"Invalid configuration: {detail}")

    def validate(self) -> bool:
        """Validate the current settings.

        Raises:
            ValueError: If configuration is invalid
        """
        self._check(self._config)
        return True

    def save(self) -> None:
        """Write settings to disk through a temporary file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.config_path.with_suffix(".yml.tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self._config, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
        temp_path.replace(self.config_path)

    def reset(self) -> None:
        self._config = copy.deepcopy(self.DEFAULT_CONFIG)
        self.save()

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._config)

    def get_all_keys(self, prefix: str = "") -> list[str]:
        """Dotted keys of every leaf setting, optionally under one section."""
        section = self._config if not prefix else self._lookup(prefix)
        if not isinstance(section, dict):
            return []
        return list(_flatten(section, prefix))

    def data_dir(self) -> Path:
        """Local data directory with ``~`` expanded."""
        return Path(self.get("general.data_dir")).expanduser()

    def database_url(self) -> Optional[str]:
        """Database URL, preferring the environment variable."""
        return os.environ.get(DATABASE_URL_ENV) or self.get("cloud.database_url")
