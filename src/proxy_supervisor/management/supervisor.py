"""Start/verify supervision of the local Tor proxy."""

import sys
import time
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import click
import structlog

from ..config.exceptions import ProxyStartError
from ..config.settings import PartialStatePolicy, SupervisorSettings
from .port_probe import ProbeReport, probe_listening
from .process_control import kill_processes_by_name, prepare_launch_environment, spawn_detached

logger = structlog.get_logger(__name__)


class SupervisionState(Enum):
    """Phases of one supervision cycle."""

    INIT = "init"
    STARTING = "starting"
    VERIFYING = "verifying"
    ALREADY_RUNNING = "already_running"
    STARTED_SUCCESSFULLY = "started_successfully"
    START_FAILED = "start_failed"


class SupervisionOutcome(Enum):
    """Terminal result of ensure_running."""

    ALREADY_RUNNING = "already_running"
    STARTED_SUCCESSFULLY = "started_successfully"
    START_FAILED = "start_failed"

    @property
    def is_success(self) -> bool:
        return self is not SupervisionOutcome.START_FAILED


_STATUS_LINES = {
    SupervisionState.INIT: "Checking for a running Tor proxy...",
    SupervisionState.STARTING: "Tor proxy not running, starting it...",
    SupervisionState.VERIFYING: "Verifying Tor proxy ports...",
    SupervisionState.ALREADY_RUNNING: "Tor proxy is already running.",
    SupervisionState.STARTED_SUCCESSFULLY: "Tor proxy started successfully.",
    SupervisionState.START_FAILED: "Tor proxy failed to start.",
}


def status_line(state: SupervisionState) -> str:
    """Operator-facing text for a phase transition."""
    return _STATUS_LINES[state]


class ProxyLivenessSupervisor:
    """Ensures the proxy listens on both its SOCKS and control ports.

    Collaborators are injectable so the state machine can run against fake
    socket tables and process spawners.
    """

    def __init__(
        self,
        settings: Optional[SupervisorSettings] = None,
        probe: Optional[Callable[..., ProbeReport]] = None,
        spawn: Optional[Callable[..., int]] = None,
        kill: Optional[Callable[[str], int]] = None,
        sleep: Optional[Callable[[float], None]] = None,
        on_transition: Optional[Callable[[SupervisionState], None]] = None,
    ):
        self.settings = settings or SupervisorSettings()
        self._probe = probe or probe_listening
        self._spawn = spawn or spawn_detached
        self._kill = kill or kill_processes_by_name
        self._sleep = sleep or time.sleep
        self._on_transition = on_transition
        self.transitions: List[SupervisionState] = []
        self.last_report: Optional[ProbeReport] = None
        self.last_diagnostic: Optional[str] = None

    def _enter(self, state: SupervisionState) -> None:
        self.transitions.append(state)
        logger.info("Supervision state", state=state.value)
        if self._on_transition:
            self._on_transition(state)

    def probe(self) -> ProbeReport:
        """Probe both proxy ports once."""
        self.last_report = self._probe(
            self.settings.socks_port, self.settings.control_port, host=self.settings.host
        )
        return self.last_report

    def _start(
        self,
        start_command: List[str],
        launcher_search_paths: Sequence[Path],
    ) -> bool:
        """Spawn the proxy. Returns False if the process could not be started."""
        env, _ = prepare_launch_environment(start_command[0], launcher_search_paths)
        try:
            self._spawn(start_command, env=env, log_file=self.settings.proxy_log_file)
        except OSError as e:
            self.last_diagnostic = (
                f"Could not start '{start_command[0]}': {e}. "
                "Check the Tor installation and that it is on PATH or in TOR_DIR."
            )
            logger.error("Proxy spawn failed", command=start_command[0], error=str(e))
            return False
        return True

    def ensure_running(
        self,
        start_command: Optional[List[str]] = None,
        retry_wait_seconds: Optional[float] = None,
        launcher_search_paths: Optional[Sequence[Path]] = None,
    ) -> SupervisionOutcome:
        """Make sure the proxy is listening, starting it if necessary.

        A partial state (only one port listening) is handled by the configured
        policy: ``kill`` terminates every process named like the executable
        before spawning, ``wait`` first gives it one wait period to finish
        starting. The grace period does not count as a start attempt; if the
        proxy is still partial afterwards the regular kill-and-start cycle runs.

        Args:
            start_command: Command line for the proxy (default: from settings)
            retry_wait_seconds: Delay between spawning and re-probing
            launcher_search_paths: Directories checked for the executable

        Returns:
            SupervisionOutcome: Terminal outcome of the cycle(s)
        """
        settings = self.settings
        command = list(start_command or settings.start_command())
        wait = settings.retry_wait_seconds if retry_wait_seconds is None else retry_wait_seconds
        search_paths = (
            settings.get_search_paths() if launcher_search_paths is None else launcher_search_paths
        )
        self.transitions = []
        self.last_diagnostic = None

        self._enter(SupervisionState.INIT)
        report = self.probe()
        if report.all_listening:
            self._enter(SupervisionState.ALREADY_RUNNING)
            return SupervisionOutcome.ALREADY_RUNNING

        if report.is_partial and settings.partial_state_policy is PartialStatePolicy.WAIT:
            logger.warning("Partial proxy state, waiting for it to finish starting")
            self._sleep(wait)
            self._enter(SupervisionState.VERIFYING)
            report = self.probe()
            if report.all_listening:
                self._enter(SupervisionState.ALREADY_RUNNING)
                return SupervisionOutcome.ALREADY_RUNNING

        for attempt in range(1, settings.start_attempts + 1):
            self._enter(SupervisionState.STARTING)
            logger.info("Start attempt", attempt=attempt, of=settings.start_attempts)

            if report.is_partial:
                logger.warning(
                    "Partial proxy state, killing stale process",
                    socks_listening=report.socks.is_listening,
                    control_listening=report.control.is_listening,
                )
                self._kill(settings.executable_name)

            if not self._start(command, search_paths):
                break

            self._sleep(wait)

            self._enter(SupervisionState.VERIFYING)
            report = self.probe()
            if report.all_listening:
                self._enter(SupervisionState.STARTED_SUCCESSFULLY)
                return SupervisionOutcome.STARTED_SUCCESSFULLY

        if self.last_diagnostic is None:
            self.last_diagnostic = (
                f"Tor proxy is not listening on ports {settings.socks_port} and "
                f"{settings.control_port} after starting it. Check the Tor installation "
                "and that it is on PATH or in TOR_DIR."
            )
        logger.error("Proxy failed to start", diagnostic=self.last_diagnostic)
        self._enter(SupervisionState.START_FAILED)
        return SupervisionOutcome.START_FAILED

    def require_running(self, **kwargs) -> SupervisionOutcome:
        """Like ensure_running, but raises ProxyStartError on failure."""
        outcome = self.ensure_running(**kwargs)
        if not outcome.is_success:
            raise ProxyStartError(
                self.last_diagnostic or "Tor proxy failed to start",
                exit_code=self.settings.failure_exit_code,
                details={
                    "socks_port": self.settings.socks_port,
                    "control_port": self.settings.control_port,
                },
            )
        return outcome


def supervise(
    settings: Optional[SupervisorSettings] = None,
    supervisor: Optional[ProxyLivenessSupervisor] = None,
) -> int:
    """Run one supervision cycle, terminating the caller on failure.

    Prints a status line at each phase transition. On failure the diagnostic
    is printed, the operator is asked to acknowledge it (when interactive and
    enabled), and ``SystemExit`` is raised with the sentinel exit code.

    Returns:
        int: 0 when the proxy is confirmed running
    """
    if supervisor is None:
        supervisor = ProxyLivenessSupervisor(
            settings, on_transition=lambda state: click.echo(status_line(state))
        )
    settings = supervisor.settings

    try:
        supervisor.require_running()
    except ProxyStartError as e:
        click.echo(f"Error: {e.message}", err=True)
        if settings.pause_on_failure:
            click.pause()
        sys.exit(e.exit_code)
    return 0
