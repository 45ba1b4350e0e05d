"""Pytest configuration and shared fixtures."""

import logging
import os
from typing import Optional

import pytest
import structlog

from proxy_supervisor.config import SupervisorSettings
from proxy_supervisor.management.port_probe import PortCheckResult, ProbeReport


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the developer's own supervisor variables out of the tests."""
    for name in list(os.environ):
        if name.startswith("PROXY_SUPERVISOR_") or name == "TOR_DIR":
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers bound to streams that a CliRunner run may have closed."""
    yield
    logging.getLogger().handlers.clear()
    structlog.reset_defaults()


@pytest.fixture
def settings() -> SupervisorSettings:
    """Settings that never sleep, pause or look at the real home directory."""
    return SupervisorSettings(
        retry_wait_seconds=0,
        pause_on_failure=False,
        launcher_search_paths=[],
    )


def make_report(
    socks: bool,
    control: bool,
    socks_port: int = 9050,
    control_port: int = 9051,
    owner: Optional[str] = "tor",
) -> ProbeReport:
    """Build a ProbeReport with the given listening states."""
    return ProbeReport(
        socks=PortCheckResult(
            port=socks_port,
            is_listening=socks,
            owner_process_name=owner if socks else None,
            owner_pid=4242 if socks else None,
        ),
        control=PortCheckResult(
            port=control_port,
            is_listening=control,
            owner_process_name=owner if control else None,
            owner_pid=4242 if control else None,
        ),
    )


@pytest.fixture
def report_factory():
    """Expose make_report to tests."""
    return make_report
