"""User and shared settings stored as YAML.

Two settings files are merged over the built-in defaults:

1. Shared settings (``{root}/config.yaml``, lowest priority)
2. User settings (``~/.versionscope/config.yaml``, highest priority)

Example ``config.yaml``::

    proxy:
      enable: true
      url: http://127.0.0.1:7890
    storage:
      sdk_path: /data/runtimes
    legacy_version_file:
      enable: true
      strategy: specified
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigFileError
from .utils import deep_merge

logger = logging.getLogger(__name__)

SPECIFIED_STRATEGY = "specified"
LATEST_INSTALLED_STRATEGY = "latest_installed"
LATEST_AVAILABLE_STRATEGY = "latest_available"
LEGACY_STRATEGIES = (SPECIFIED_STRATEGY, LATEST_INSTALLED_STRATEGY, LATEST_AVAILABLE_STRATEGY)

DEFAULT_SETTINGS: dict[str, Any] = {
    "proxy": {"enable": False, "url": ""},
    "storage": {"sdk_path": ""},
    "legacy_version_file": {"enable": True, "strategy": SPECIFIED_STRATEGY},
    "cache": {"available_hook_duration": 12 * 60 * 60},
}


@dataclass(frozen=True)
class Settings:
    """Typed view of the merged settings."""

    proxy_enable: bool = False
    proxy_url: str = ""
    sdk_path: str = ""
    legacy_enable: bool = True
    legacy_strategy: str = SPECIFIED_STRATEGY
    available_hook_duration: int = 12 * 60 * 60

    @property
    def proxy(self) -> str | None:
        if self.proxy_enable and self.proxy_url:
            return self.proxy_url
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Settings":
        merged = deep_merge(DEFAULT_SETTINGS, data)
        for name, default in DEFAULT_SETTINGS.items():
            if not isinstance(merged.get(name), dict):
                merged[name] = dict(default)
        strategy = merged["legacy_version_file"].get("strategy") or SPECIFIED_STRATEGY
        if strategy not in LEGACY_STRATEGIES:
            logger.warning(f"Unknown legacy version file strategy '{strategy}', using '{SPECIFIED_STRATEGY}'")
            strategy = SPECIFIED_STRATEGY
        return cls(
            proxy_enable=bool(merged["proxy"].get("enable")),
            proxy_url=str(merged["proxy"].get("url") or ""),
            sdk_path=str(merged["storage"].get("sdk_path") or ""),
            legacy_enable=bool(merged["legacy_version_file"].get("enable")),
            legacy_strategy=strategy,
            available_hook_duration=int(merged["cache"].get("available_hook_duration") or 0),
        )


class SettingsManager:
    """Reads and writes the shared and user settings files.

    Args:
        user_path: User settings file (highest priority)
        shared_path: Shared settings file (lower priority), optional
    """

    def __init__(self, user_path: Path, shared_path: Path | None = None):
        self.user_path = user_path
        self.shared_path = shared_path if shared_path != user_path else None

    def get_merged_settings(self) -> dict[str, Any]:
        """Get merged settings.

        Merge order (later overrides earlier):
        1. Built-in defaults
        2. Shared settings
        3. User settings

        Returns:
            Merged settings dictionary
        """
        merged = deep_merge({}, DEFAULT_SETTINGS)

        if self.shared_path:
            shared = self._read_yaml(self.shared_path)
            if shared:
                merged = deep_merge(merged, shared)

        user = self._read_yaml(self.user_path)
        if user:
            merged = deep_merge(merged, user)

        return merged

    def load(self) -> Settings:
        return Settings.from_dict(self.get_merged_settings())

    def update_settings(self, updates: dict[str, Any], shared: bool = False) -> None:
        """Deep merge ``updates`` into the user (or shared) settings file."""
        target = self.shared_path if shared and self.shared_path else self.user_path
        self._update_yaml(target, updates)
        logger.info(f"Updated settings in {target}")

    # ===== Private Helpers =====

    def _read_yaml(self, path: Path) -> dict[str, Any] | None:
        """Read YAML file.

        Args:
            path: Path to YAML file

        Returns:
            Dictionary from YAML or None if the file doesn't exist or can't be read
        """
        if not path.exists():
            return None

        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to read settings from {path}: {e}")
            return None

        if data is None:
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring settings in {path}: expected a mapping")
            return None
        return data

    def _write_yaml(self, path: Path, data: dict[str, Any]) -> None:
        """Write YAML file.

        Raises:
            ConfigFileError: If write fails
        """
        path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(path, "w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigFileError(f"Failed to write settings to {path}: {e}") from e

    def _update_yaml(self, path: Path, updates: dict[str, Any]) -> None:
        existing = self._read_yaml(path) or {}
        merged = deep_merge(existing, updates)
        self._write_yaml(path, merged)
