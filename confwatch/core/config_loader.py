"""Configuration loader for confwatch.yaml files."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .types import BackendConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "confwatch.yaml"
NODES_ENV_VAR = "CONFWATCH_BACKEND_NODES"


class ConfigLoader:
    """Handles loading and parsing of confwatch.yaml configuration files."""

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """Initialize config loader.

        Args:
            config_path: Path to confwatch.yaml file. If None, looks in current
                directory and parent directories.
        """
        self.config_path = self._find_config_file(config_path)
        self._config: Optional[Dict[str, Any]] = None

    def _find_config_file(
        self, config_path: Optional[Union[str, Path]] = None
    ) -> Optional[Path]:
        """Find the confwatch.yaml file.

        Args:
            config_path: Explicit path to config file, or None to search.

        Returns:
            Path to config file if found, None otherwise.
        """
        if config_path is not None:
            path = Path(config_path)
            if path.exists():
                return path
            return None

        current = Path.cwd()
        while current != current.parent:
            candidate = current / CONFIG_FILENAME
            if candidate.exists():
                return candidate
            current = current.parent

        candidate = current / CONFIG_FILENAME
        if candidate.exists():
            return candidate

        return None

    def load(self) -> Dict[str, Any]:
        """Load the configuration file.

        Returns:
            Parsed configuration dictionary, or empty dict if no config file.

        Raises:
            ValueError: If the config file is invalid YAML.
        """
        if self.config_path is None:
            return {}

        if self._config is not None:
            return self._config

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                self._config = yaml.safe_load(f) or {}
                return self._config
        except yaml.YAMLError as e:
            raise ValueError(
                f"Invalid {CONFIG_FILENAME} at {self.config_path}: {e}"
            ) from e
        except OSError as e:
            logger.warning("Could not read %s: %s", self.config_path, e)
            return {}

    def backend_names(self) -> List[str]:
        """Names of the backends declared in the config file."""
        return list((self.load().get("backends") or {}).keys())

    def get_backend_config(self, name: str) -> Optional[BackendConfig]:
        """Get settings for a named backend.

        ``CONFWATCH_BACKEND_NODES`` (comma separated) overrides the
        configured node list.

        Args:
            name: Backend name under ``backends:``.

        Returns:
            BackendConfig, or None if the backend is not declared.
        """
        raw = (self.load().get("backends") or {}).get(name)
        if raw is None:
            return None
        if not isinstance(raw, dict):
            raise ValueError(f"Backend {name} in {self.config_path} must be a mapping")
        cfg = BackendConfig.from_dict(raw, name=name)
        override = os.getenv(NODES_ENV_VAR)
        if override:
            cfg.nodes = [n.strip() for n in override.split(",") if n.strip()]
        return cfg
