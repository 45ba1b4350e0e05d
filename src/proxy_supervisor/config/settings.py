"""Application configuration settings."""

import sys
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import PROXY_START_FAILED_EXIT_CODE

DEFAULT_SOCKS_PORT = 9050
DEFAULT_CONTROL_PORT = 9051


def default_launcher_search_paths() -> List[str]:
    """Directories checked for the Tor binary before falling back to PATH."""
    return [str(Path.home() / ".tor_bundle" / "Tor")]


class PartialStatePolicy(str, Enum):
    """What to do when only one of the two proxy ports is listening."""

    KILL = "kill"
    WAIT = "wait"


class LoggingConfig(BaseSettings):
    """Logging configuration settings."""

    model_config = SettingsConfigDict(env_prefix="PROXY_SUPERVISOR_LOG_")

    level: str = Field(default="INFO", description="Log level")
    file_path: Optional[str] = Field(default=None, description="Log file path")
    json_format: bool = Field(default=False, description="Use JSON log format")


class SupervisorSettings(BaseSettings):
    """Settings for the proxy liveness supervisor."""

    model_config = SettingsConfigDict(
        env_prefix="PROXY_SUPERVISOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    host: str = Field(default="127.0.0.1", description="Loopback address the proxy binds")
    socks_port: int = Field(default=DEFAULT_SOCKS_PORT, ge=1, le=65535, description="SOCKS port")
    control_port: int = Field(
        default=DEFAULT_CONTROL_PORT, ge=1, le=65535, description="Control port"
    )
    retry_wait_seconds: float = Field(
        default=15.0, ge=0, description="Wait after spawning before re-probing"
    )
    start_attempts: int = Field(
        default=1, ge=1, description="Start+verify cycles before giving up"
    )
    failure_exit_code: int = Field(
        default=PROXY_START_FAILED_EXIT_CODE,
        ge=1,
        description="Exit code when the proxy cannot be confirmed",
    )
    executable_name: str = Field(default="tor", description="Proxy executable name")
    tor_dir: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("proxy_supervisor_tor_dir", "tor_dir"),
        description="Optional directory containing the proxy executable",
    )
    launcher_search_paths: List[str] = Field(
        default_factory=default_launcher_search_paths,
        description="Directories prepended to PATH when they hold the executable",
    )
    partial_state_policy: PartialStatePolicy = Field(
        default=PartialStatePolicy.KILL,
        description="Handling of a half-started proxy",
    )
    pause_on_failure: bool = Field(
        default=True, description="Wait for operator acknowledgement on failure"
    )
    proxy_log_file: Optional[str] = Field(
        default=None, description="File receiving the spawned proxy's stdout"
    )

    @model_validator(mode="after")
    def _check_distinct_ports(self) -> "SupervisorSettings":
        if self.socks_port == self.control_port:
            raise ValueError("socks_port and control_port must differ")
        return self

    @property
    def ports(self) -> List[int]:
        """SOCKS port first, control port second."""
        return [self.socks_port, self.control_port]

    @property
    def executable_file_name(self) -> str:
        """Platform-specific file name of the proxy executable."""
        if sys.platform == "win32" and not self.executable_name.lower().endswith(".exe"):
            return f"{self.executable_name}.exe"
        return self.executable_name

    def get_search_paths(self) -> List[Path]:
        """All candidate directories for the executable, tor_dir first."""
        paths = []
        if self.tor_dir:
            paths.append(Path(self.tor_dir).expanduser())
        paths.extend(Path(p).expanduser() for p in self.launcher_search_paths)
        return paths

    def tor_arguments(self) -> List[str]:
        """Fixed command-line flags passed to the proxy process."""
        return [
            "--allow-missing-torrc",
            "--ignore-missing-torrc",
            "--clientonly", "1",
            "--socksport", str(self.socks_port),
            "--controlport", f"{self.host}:{self.control_port}",
            "--log", "notice stdout",
            "--clientuseipv6", "1",
        ]

    def start_command(self) -> List[str]:
        """Full command line used to start the proxy."""
        return [self.executable_file_name, *self.tor_arguments()]
