"""Configuration loading: defaults < file < environment."""

import copy
import json
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError
from pydantic_settings import SettingsError

from .env_extractor import EnvironmentConfigExtractor
from .exceptions import ConfigurationError
from .settings import SupervisorSettings


class ConfigurationManager:
    """Builds validated SupervisorSettings from a config file and the environment."""

    def __init__(self, env_extractor: Optional[EnvironmentConfigExtractor] = None):
        self.env_extractor = env_extractor or EnvironmentConfigExtractor()

    def load_settings(self, config_file: Optional[str] = None) -> SupervisorSettings:
        """Load settings with hierarchy: defaults < file < environment.

        Args:
            config_file: Optional YAML or JSON configuration file

        Returns:
            Validated settings

        Raises:
            ConfigurationError: If the file cannot be parsed or values are invalid
        """
        config: Dict[str, Any] = {}

        if config_file:
            config = self._load_config_file(Path(config_file))

        env_config = self.env_extractor.extract_environment_config()
        if env_config:
            config = self._merge_configurations(config, env_config)

        try:
            return SupervisorSettings(**config)
        except ValidationError as e:
            raise ConfigurationError(
                "Configuration validation failed",
                {"validation_errors": [err["msg"] for err in e.errors()]},
            )
        except SettingsError as e:
            raise ConfigurationError(
                "Invalid environment configuration",
                {"error": str(e)},
            )

    def _load_config_file(self, file_path: Path) -> Dict[str, Any]:
        """Load configuration from YAML or JSON file."""
        try:
            content = file_path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(
                f"Failed to read configuration file: {file_path}",
                {"error": str(e)},
            )

        try:
            if file_path.suffix.lower() == ".json":
                data = json.loads(content)
            else:
                data = yaml.safe_load(content)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                f"Invalid configuration file format: {file_path}",
                {"parse_error": str(e)},
            )

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration file must contain a mapping: {file_path}"
            )
        return data

    def _merge_configurations(
        self, base: Dict[str, Any], override: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Deep merge two configuration dictionaries."""
        result = copy.deepcopy(base)

        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._merge_configurations(result[key], value)
            else:
                result[key] = value

        return result

    @staticmethod
    def settings_as_dict(settings: SupervisorSettings) -> Dict[str, Any]:
        """Plain, serializable view of the effective settings."""
        return settings.model_dump(mode="json")
