"""Supervisor and configuration exceptions."""

from typing import Any, Dict, Optional

# Reserved process exit code for "proxy failed to start"
PROXY_START_FAILED_EXIT_CODE = 10101


class SupervisorError(Exception):
    """Base error with user-friendly message and optional details."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize error with message and optional details."""
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return formatted error message with details if available."""
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class ConfigurationError(SupervisorError):
    """Configuration-related error."""


class ProxyStartError(SupervisorError):
    """The proxy could not be confirmed listening after a start attempt."""

    def __init__(
        self,
        message: str,
        exit_code: int = PROXY_START_FAILED_EXIT_CODE,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.exit_code = exit_code
        super().__init__(message, details)


class LaunchError(SupervisorError):
    """The environment/launch script is missing or exited non-zero."""

    def __init__(
        self,
        message: str,
        return_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.return_code = return_code
        super().__init__(message, details)
