"""
Stepgate — Configuration Loader

Layered config loading with environment profile support:

  Tier 1: Base YAML (stepgate.yaml in the project root)
  Tier 2: Per-environment overlay files (config/{env}.yaml merged over base)
  Tier 3: Environment variable overrides (SG_* prefix)

Active environment is set via SG_ENV (default: "dev").

Usage:
    from gating.config_loader import get_config, NavigationSettings

    config = get_config()
    cooldown = config.get("navigation.cooldown_ms", 250)

    settings = NavigationSettings.from_config(config)
"""

from __future__ import annotations

import copy
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from gating.rate_limit import DEFAULT_COOLDOWN_MS, CooldownConfig

logger = logging.getLogger("stepgate.config")

DEFAULT_BASE_FILE = "stepgate.yaml"


class ConfigLoader:
    """
    Hierarchical config loader with deep merge.

    Merge order (later overrides earlier):
      1. Base YAML files
      2. Environment overlay (config/{env}.yaml)
      3. Environment variable overrides (SG_* prefix)
    """

    def __init__(
        self,
        env: str = "dev",
        project_root: str = ".",
        base_files: list[str] | None = None,
    ):
        self.env = env
        self.project_root = Path(project_root)
        self.base_files = base_files or [DEFAULT_BASE_FILE]
        self._data: dict[str, Any] = {}
        self._source_log: list[str] = []
        self._loaded = False

    def load(self) -> dict[str, Any]:
        """Load and merge all config tiers. Returns merged dict."""
        self._data = {}
        self._source_log = []

        for base_file in self.base_files:
            base_path = self.project_root / base_file
            if base_path.exists():
                self._data = deep_merge(self._data, _read_yaml(base_path))
                self._source_log.append(f"base:{base_file}")

        overlay_path = self.project_root / "config" / f"{self.env}.yaml"
        if overlay_path.exists():
            self._data = deep_merge(self._data, _read_yaml(overlay_path))
            self._source_log.append(f"overlay:config/{self.env}.yaml")

        env_overrides = _load_env_overrides()
        if env_overrides:
            self._data = deep_merge(self._data, env_overrides)
            self._source_log.append(f"env_vars({len(env_overrides)} keys)")

        self._data["_config_meta"] = {
            "env": self.env,
            "sources": self._source_log,
            "project_root": str(self.project_root),
        }

        self._loaded = True
        logger.info(
            "Config loaded: env=%s sources=%s",
            self.env, self._source_log,
        )
        return self._data

    def get(self, dotted_key: str, default: Any = None) -> Any:
        """
        Get a value by dotted key path.

        Example: config.get("navigation.cooldown_ms", 250)
        """
        if not self._loaded:
            self.load()

        current = self._data
        for k in dotted_key.split("."):
            if isinstance(current, dict) and k in current:
                current = current[k]
            else:
                return default
        return current

    def get_all(self) -> dict[str, Any]:
        if not self._loaded:
            self.load()
        return copy.deepcopy(self._data)

    @property
    def sources(self) -> list[str]:
        return list(self._source_log)


def _read_yaml(path: Path) -> dict[str, Any]:
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        logger.warning("Ignoring %s: top level is not a mapping", path)
        return {}
    return data


# ═══════════════════════════════════════════════════════════════════
# Deep Merge
# ═══════════════════════════════════════════════════════════════════

def deep_merge(base: dict, overlay: dict) -> dict:
    """
    Deep merge overlay into base. Overlay values win.
    Dicts are merged recursively. Lists and scalars are replaced.
    """
    result = copy.deepcopy(base)
    for key, value in overlay.items():
        if (
            key in result
            and isinstance(result[key], dict)
            and isinstance(value, dict)
        ):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


# ═══════════════════════════════════════════════════════════════════
# Environment Variable Overrides
# ═══════════════════════════════════════════════════════════════════

_ENV_MAPPINGS: dict[str, str] = {
    "SG_NAV_COOLDOWN_MS": "navigation.cooldown_ms",
    "SG_LOG_LEVEL": "logging.level",
    "SG_LOG_FORMAT": "logging.format",
}


def _load_env_overrides() -> dict[str, Any]:
    """
    Load SG_* environment variables and map to config paths.
    Also supports arbitrary SG_CONFIG__path__to__key for unmapped overrides.
    """
    result: dict[str, Any] = {}

    for env_key, config_path in _ENV_MAPPINGS.items():
        value = os.environ.get(env_key)
        if value is not None:
            _set_nested(result, config_path.split("."), _auto_convert(value))

    for key, value in os.environ.items():
        if key.startswith("SG_CONFIG__"):
            config_path = key[len("SG_CONFIG__"):].lower().replace("__", ".")
            _set_nested(result, config_path.split("."), _auto_convert(value))

    return result


def _set_nested(d: dict, keys: list[str], value: Any) -> None:
    for k in keys[:-1]:
        d = d.setdefault(k, {})
    d[keys[-1]] = value


def _auto_convert(value: str) -> Any:
    """Convert string values to appropriate types."""
    if value.lower() in ("true", "yes"):
        return True
    if value.lower() in ("false", "no"):
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value


# ═══════════════════════════════════════════════════════════════════
# Typed Settings
# ═══════════════════════════════════════════════════════════════════

@dataclass
class NavigationSettings:
    """Settings consumed by the navigation controller and CLI."""
    cooldown_ms: float = DEFAULT_COOLDOWN_MS
    log_level: str = "INFO"
    log_format: str = "json"
    empty_message: str = "No steps configured."

    @staticmethod
    def from_config(config: ConfigLoader) -> NavigationSettings:
        cooldown = config.get("navigation.cooldown_ms", DEFAULT_COOLDOWN_MS)
        try:
            cooldown = float(cooldown)
        except (TypeError, ValueError):
            logger.warning(
                "navigation.cooldown_ms=%r is not a number; using %s",
                cooldown, DEFAULT_COOLDOWN_MS,
            )
            cooldown = DEFAULT_COOLDOWN_MS
        return NavigationSettings(
            cooldown_ms=cooldown,
            log_level=str(config.get("logging.level", "INFO")),
            log_format=str(config.get("logging.format", "json")),
            empty_message=str(config.get("navigation.empty_message", "No steps configured.")),
        )

    def cooldown_config(self) -> CooldownConfig:
        return CooldownConfig(cooldown_ms=self.cooldown_ms)


# ═══════════════════════════════════════════════════════════════════
# Singleton / Module-level Access
# ═══════════════════════════════════════════════════════════════════

_instance: ConfigLoader | None = None


def get_config(
    env: str | None = None,
    project_root: str | None = None,
) -> ConfigLoader:
    """
    Get or create the singleton config loader.
    First call initializes; subsequent calls return cached instance.
    """
    global _instance
    if _instance is None:
        _env = env or os.environ.get("SG_ENV", "dev")
        _root = project_root or os.environ.get("SG_PROJECT_ROOT", ".")
        _instance = ConfigLoader(env=_env, project_root=_root)
        _instance.load()
    return _instance


def load_config(
    env: str = "dev",
    project_root: str = ".",
    base_files: list[str] | None = None,
) -> ConfigLoader:
    """Create a fresh (non-singleton) config loader."""
    loader = ConfigLoader(env=env, project_root=project_root, base_files=base_files)
    loader.load()
    return loader


def reset_config():
    """Reset singleton for testing."""
    global _instance
    _instance = None
