"""
ConfigLoader for YAML-based configuration with environment variable interpolation.
"""

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import jsonschema
import yaml

from remindq.errors import ConfigError

logger = logging.getLogger(__name__)

_loader: Optional["ConfigLoader"] = None


class ConfigLoader:
    """
    Loads and manages YAML configuration with environment variable interpolation.
    """

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """
        Initialize the configuration loader.

        Args:
            config_path: Optional explicit path to config.yaml
        """
        self.env = os.getenv("REMINDQ_ENV", "").strip().lower() or None
        self.config_path = self._find_config_path(config_path)
        self.schema_path = Path(__file__).parent / "schema" / "config_schema.json"
        self.config = self._load_config()
        env_label = self.env or "production"
        logger.debug(f"ConfigLoader: env={env_label}, config={self.config_path}")

    def _find_config_path(self, config_path: Optional[Union[str, Path]] = None) -> Path:
        """
        Find the configuration file path.

        Looks in the following locations (in order):
        1. Explicit path provided to constructor
        2. Path specified by REMINDQ_CONFIG environment variable
        3. Current working directory
        4. User's config directory (~/.config/remindq/)
        5. Project root directory

        When ``REMINDQ_ENV`` is set (e.g. ``dev``), each directory is first checked
        for ``config.{env}.yaml`` before falling back to ``config.yaml``.

        Returns:
            Path to the configuration file (which may not exist)
        """
        if config_path:
            path = Path(config_path)
            if path.exists():
                return path
            raise ConfigError(f"Specified config path does not exist: {path}")

        env_path = os.getenv("REMINDQ_CONFIG")
        if env_path:
            path = Path(env_path)
            if path.exists():
                return path
            logger.warning(f"Config path from environment variable does not exist: {path}")

        candidates: List[str] = []
        if self.env:
            candidates.append(f"config.{self.env}.yaml")
        candidates.append("config.yaml")

        search_dirs = [
            Path.cwd(),
            Path.home() / ".config" / "remindq",
            Path(__file__).parent.parent.parent,
        ]
        for directory in search_dirs:
            for name in candidates:
                candidate = directory / name
                if candidate.exists():
                    return candidate

        logger.debug("No config.yaml found. Using defaults and environment variables.")
        return Path.cwd() / "config.yaml"

    def _load_schema(self) -> Dict[str, Any]:
        """Load the JSON schema used for validation."""
        if not self.schema_path.exists():
            logger.warning(f"Schema file not found: {self.schema_path}")
            return {}
        with open(self.schema_path, "r") as f:
            return json.load(f)

    def _interpolate_env_vars(self, value: Any) -> Any:
        """
        Recursively interpolate environment variables in configuration values.

        Replaces "${ENV_VAR}" or "$ENV_VAR" with the value of the environment variable.
        Unset variables become empty strings so that env fallbacks still apply.
        """
        if isinstance(value, str):
            pattern = r"\${([^}]+)}|\$([a-zA-Z0-9_]+)"

            def replace_env_var(match):
                env_var = match.group(1) or match.group(2)
                return os.environ.get(env_var, "")

            return re.sub(pattern, replace_env_var, value)
        elif isinstance(value, list):
            return [self._interpolate_env_vars(item) for item in value]
        elif isinstance(value, dict):
            return {k: self._interpolate_env_vars(v) for k, v in value.items()}
        else:
            return value

    def _validate_config(self, config: Dict[str, Any], schema: Dict[str, Any]) -> None:
        """
        Validate the configuration against the schema.

        Raises:
            ConfigError: If validation fails
        """
        if not schema:
            return

        try:
            jsonschema.validate(instance=config, schema=schema)
        except jsonschema.exceptions.ValidationError as e:
            path = " -> ".join([str(p) for p in e.path])
            message = f"Configuration validation error: {e.message}"
            if path:
                message = f"{message} (at {path})"
            raise ConfigError(message) from e

    def _load_config(self) -> Dict[str, Any]:
        """
        Load and validate the configuration file.

        Raises:
            ConfigError: If the configuration file cannot be loaded or is invalid
        """
        if not self.config_path.exists():
            return self._get_default_config()

        try:
            with open(self.config_path, "r") as f:
                config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            error_msg = f"Error parsing {self.config_path.name}: {e}"
            logger.error(error_msg)
            raise ConfigError(error_msg) from e
        except OSError as e:
            raise ConfigError(f"Error reading configuration: {e}") from e

        if not isinstance(config, dict):
            raise ConfigError(f"{self.config_path.name} must contain a mapping at the top level")

        config = self._interpolate_env_vars(config)
        self._validate_config(config, self._load_schema())
        return self._deep_merge(self._get_default_config(), config)

    def _get_default_config(self) -> Dict[str, Any]:
        """Baseline defaults merged under the config file.

        Keys with a REMINDQ_* environment fallback are left out so the
        environment still applies when the file does not set them.
        """
        return {
            "store": {"retry_attempts": 3},
            "lock": {
                "timeout_seconds": 60,
                "poll_interval_seconds": 2,
                "ttl_seconds": 600,
            },
            "reminders": {
                "max_ahead_hours": 72,
                "default_cc": [],
            },
            "agent": {},
            "notifications": {},
            "database": {},
            "logging": {},
        }

    def _deep_merge(self, base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
        """Deep-merge *overlay* into *base* (overlay wins on leaf conflicts)."""
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
                merged[key] = self._deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged

    def get_config(self) -> Dict[str, Any]:
        return self.config

    def get_section(self, name: str) -> Dict[str, Any]:
        """Return a top-level section, or an empty dict."""
        return self.config.get(name) or {}

    def get_store_config(self) -> Dict[str, Any]:
        return self.get_section("store")

    def get_lock_config(self) -> Dict[str, Any]:
        return self.get_section("lock")

    def get_database_config(self) -> Dict[str, Any]:
        return self.get_section("database")

    def get_reminders_config(self) -> Dict[str, Any]:
        return self.get_section("reminders")

    def get_agent_config(self) -> Dict[str, Any]:
        return self.get_section("agent")

    def get_notifications_config(self) -> Dict[str, Any]:
        return self.get_section("notifications")

    def get_logging_config(self) -> Dict[str, Any]:
        return self.get_section("logging")


def get_config_loader() -> ConfigLoader:
    """Return the singleton loader, creating it from the default search path."""
    global _loader
    if _loader is None:
        _loader = ConfigLoader()
    return _loader


def init_config_loader(config_path: Optional[Union[str, Path]] = None) -> ConfigLoader:
    """Replace the singleton with a loader for *config_path*."""
    global _loader
    _loader = ConfigLoader(config_path)
    return _loader


def reset_config_loader() -> None:
    """Clear the singleton so the next call re-reads the configuration."""
    global _loader
    _loader = None
