"""Listening-port probe backed by the OS socket and process tables."""

import socket
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

import psutil
import structlog

from ..config.logging import log_performance

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PortCheckResult:
    """Listening state of one TCP port."""

    port: int
    is_listening: bool
    owner_process_name: Optional[str] = None
    owner_pid: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "port": self.port,
            "is_listening": self.is_listening,
            "owner_process_name": self.owner_process_name,
            "owner_pid": self.owner_pid,
        }


@dataclass(frozen=True)
class ProbeReport:
    """Probe results for the SOCKS and control ports."""

    socks: PortCheckResult
    control: PortCheckResult

    @property
    def results(self) -> List[PortCheckResult]:
        return [self.socks, self.control]

    @property
    def all_listening(self) -> bool:
        return self.socks.is_listening and self.control.is_listening

    @property
    def none_listening(self) -> bool:
        return not self.socks.is_listening and not self.control.is_listening

    @property
    def is_partial(self) -> bool:
        """Exactly one of the two ports is listening."""
        return self.socks.is_listening != self.control.is_listening

    def to_dict(self) -> Dict[str, Any]:
        return {
            "socks": self.socks.to_dict(),
            "control": self.control.to_dict(),
            "all_listening": self.all_listening,
        }


def _resolve_process_name(pid: Optional[int]) -> Optional[str]:
    """Owner name for a pid, or None if it is gone or not visible to us."""
    if not pid:
        return None
    try:
        return psutil.Process(pid).name()
    except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
        return None


def _is_port_accepting(host: str, port: int, timeout: float = 1.0) -> bool:
    """Check whether something accepts TCP connections on host:port."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.settimeout(timeout)
            return sock.connect_ex((host, port)) == 0
    except OSError:
        return False


def check_ports(ports: Iterable[int], host: str = "127.0.0.1") -> Dict[int, PortCheckResult]:
    """Query the socket table for listeners on each of ``ports``.

    The first LISTEN entry found for a port wins. If the socket table is not
    readable by this user, a plain connect probe against ``host`` decides
    instead and owners are reported as unknown.

    Args:
        ports: TCP port numbers to check
        host: Address used by the connect fallback

    Returns:
        Dict[int, PortCheckResult]: One result per requested port
    """
    wanted = list(ports)

    try:
        connections = psutil.net_connections(kind="tcp")
    except psutil.AccessDenied:
        logger.warning(
            "Socket table not readable, falling back to connect probe",
            host=host,
            ports=wanted,
        )
        return {
            port: PortCheckResult(port=port, is_listening=_is_port_accepting(host, port))
            for port in wanted
        }

    listeners: Dict[int, Optional[int]] = {}
    for conn in connections:
        if conn.status != psutil.CONN_LISTEN or not conn.laddr:
            continue
        port = conn.laddr.port
        if port in wanted and port not in listeners:
            listeners[port] = conn.pid

    results = {}
    for port in wanted:
        if port in listeners:
            pid = listeners[port]
            results[port] = PortCheckResult(
                port=port,
                is_listening=True,
                owner_process_name=_resolve_process_name(pid),
                owner_pid=pid,
            )
        else:
            results[port] = PortCheckResult(port=port, is_listening=False)
    return results


def probe_listening(socks_port: int, control_port: int, host: str = "127.0.0.1") -> ProbeReport:
    """Probe the proxy's SOCKS and control ports.

    Args:
        socks_port: SOCKS (data-plane) port
        control_port: Control port
        host: Loopback address for the connect fallback

    Returns:
        ProbeReport: Fresh results for both ports
    """
    start_time = time.time()
    results = check_ports([socks_port, control_port], host=host)
    report = ProbeReport(socks=results[socks_port], control=results[control_port])

    log_performance(logger, "probe_listening", (time.time() - start_time) * 1000)
    for result in report.results:
        logger.info(
            "Port probed",
            port=result.port,
            listening=result.is_listening,
            owner=result.owner_process_name,
            pid=result.owner_pid,
        )
    return report
