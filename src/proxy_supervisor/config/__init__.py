"""Configuration management package for the proxy supervisor."""

from .config_manager import ConfigurationManager
from .env_extractor import EnvironmentConfigExtractor
from .exceptions import (
    PROXY_START_FAILED_EXIT_CODE,
    ConfigurationError,
    LaunchError,
    ProxyStartError,
    SupervisorError,
)
from .settings import LoggingConfig, PartialStatePolicy, SupervisorSettings

__all__ = [
    "ConfigurationManager",
    "ConfigurationError",
    "EnvironmentConfigExtractor",
    "LaunchError",
    "LoggingConfig",
    "PartialStatePolicy",
    "PROXY_START_FAILED_EXIT_CODE",
    "ProxyStartError",
    "SupervisorError",
    "SupervisorSettings",
]
