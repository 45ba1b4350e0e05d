"""Environment variable configuration extraction for the proxy supervisor."""

import os
from typing import Any, Dict, List, Union

import structlog

from .exceptions import ConfigurationError

logger = structlog.get_logger(__name__)


class EnvironmentConfigExtractor:
    """Extracts configuration from environment variables with systematic mapping."""

    ENV_PREFIX = "PROXY_SUPERVISOR_"

    # Environment variable to configuration path mappings
    ENV_MAPPINGS = {
        # Probe / supervision
        "PROXY_SUPERVISOR_HOST": "host",
        "PROXY_SUPERVISOR_SOCKS_PORT": "socks_port",
        "PROXY_SUPERVISOR_CONTROL_PORT": "control_port",
        "PROXY_SUPERVISOR_RETRY_WAIT_SECONDS": "retry_wait_seconds",
        "PROXY_SUPERVISOR_START_ATTEMPTS": "start_attempts",
        "PROXY_SUPERVISOR_FAILURE_EXIT_CODE": "failure_exit_code",
        "PROXY_SUPERVISOR_PARTIAL_STATE_POLICY": "partial_state_policy",
        "PROXY_SUPERVISOR_PAUSE_ON_FAILURE": "pause_on_failure",
        # Executable discovery
        "PROXY_SUPERVISOR_EXECUTABLE_NAME": "executable_name",
        "PROXY_SUPERVISOR_SEARCH_PATHS": "launcher_search_paths",
        "PROXY_SUPERVISOR_PROXY_LOG_FILE": "proxy_log_file",
        "TOR_DIR": "tor_dir",
        "PROXY_SUPERVISOR_TOR_DIR": "tor_dir",
        # Logging configuration
        "PROXY_SUPERVISOR_LOG_LEVEL": "logging.level",
        "PROXY_SUPERVISOR_LOG_FILE_PATH": "logging.file_path",
        "PROXY_SUPERVISOR_LOG_JSON_FORMAT": "logging.json_format",
    }

    BOOLEAN_PATHS = ["pause_on_failure", "logging.json_format"]
    INTEGER_PATHS = ["socks_port", "control_port", "start_attempts", "failure_exit_code"]
    FLOAT_PATHS = ["retry_wait_seconds"]
    LIST_PATHS = ["launcher_search_paths"]

    def extract_environment_config(self) -> Dict[str, Any]:
        """Extract configuration from environment variables.

        Later mappings win when two variables target the same path, so the
        prefixed ``PROXY_SUPERVISOR_TOR_DIR`` overrides the bare ``TOR_DIR``.

        Returns:
            Dict containing configuration values extracted from environment

        Raises:
            ConfigurationError: If a variable cannot be converted to its type
        """
        config: Dict[str, Any] = {}

        for env_var, config_path in self.ENV_MAPPINGS.items():
            if env_var in os.environ:
                value = self.convert_env_value(os.environ[env_var], config_path)
                self.set_nested_config(config, config_path, value)
                logger.debug("Environment override", variable=env_var, path=config_path)

        return config

    def convert_env_value(
        self, env_value: str, config_path: str
    ) -> Union[str, int, bool, float, List[str]]:
        """Convert environment variable value to appropriate type.

        Args:
            env_value: Raw environment variable value
            config_path: Configuration path for type inference

        Returns:
            Converted value with appropriate type
        """
        if config_path in self.BOOLEAN_PATHS:
            return env_value.lower() in ("true", "1", "yes", "on", "enabled")

        if config_path in self.INTEGER_PATHS:
            try:
                return int(env_value)
            except ValueError:
                raise ConfigurationError(
                    f"Invalid integer value for {config_path}: {env_value}"
                )

        if config_path in self.FLOAT_PATHS:
            try:
                return float(env_value)
            except ValueError:
                raise ConfigurationError(
                    f"Invalid number value for {config_path}: {env_value}"
                )

        if config_path in self.LIST_PATHS:
            return [part for part in env_value.split(os.pathsep) if part]

        return env_value

    def set_nested_config(self, config: Dict[str, Any], path: str, value: Any):
        """Set nested configuration value using dot notation.

        Args:
            config: Configuration dictionary to modify
            path: Dot-separated path (e.g., 'logging.level')
            value: Value to set
        """
        keys = path.split(".")
        current = config

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def get_environment_documentation(self) -> Dict[str, str]:
        """Get documentation for all supported environment variables."""
        return {
            "PROXY_SUPERVISOR_HOST": "Loopback address for the control port (default: 127.0.0.1)",
            "PROXY_SUPERVISOR_SOCKS_PORT": "SOCKS port to probe (default: 9050)",
            "PROXY_SUPERVISOR_CONTROL_PORT": "Control port to probe (default: 9051)",
            "PROXY_SUPERVISOR_RETRY_WAIT_SECONDS": "Seconds to wait after starting the proxy (default: 15)",
            "PROXY_SUPERVISOR_START_ATTEMPTS": "Start+verify cycles before giving up (default: 1)",
            "PROXY_SUPERVISOR_FAILURE_EXIT_CODE": "Exit code when the proxy cannot be confirmed (default: 10101)",
            "PROXY_SUPERVISOR_PARTIAL_STATE_POLICY": "'kill' or 'wait' when only one port listens (default: kill)",
            "PROXY_SUPERVISOR_PAUSE_ON_FAILURE": "Pause for operator acknowledgement on failure (default: true)",
            "PROXY_SUPERVISOR_EXECUTABLE_NAME": "Proxy executable name (default: tor)",
            "PROXY_SUPERVISOR_SEARCH_PATHS": f"Extra directories to search, '{os.pathsep}'-separated",
            "PROXY_SUPERVISOR_PROXY_LOG_FILE": "File receiving the proxy's stdout (default: discarded)",
            "TOR_DIR": "Directory containing the proxy executable",
            "PROXY_SUPERVISOR_TOR_DIR": "Same as TOR_DIR, takes precedence",
            "PROXY_SUPERVISOR_LOG_LEVEL": "Log level: DEBUG, INFO, WARNING, ERROR (default: INFO)",
            "PROXY_SUPERVISOR_LOG_FILE_PATH": "Log file path (default: none)",
            "PROXY_SUPERVISOR_LOG_JSON_FORMAT": "Render logs as JSON (default: false)",
        }
