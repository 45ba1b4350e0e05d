"""Proxy supervision package: port probing, process control and launching."""

from .launch_wrapper import LaunchResult, run_launch_wrapper
from .port_probe import PortCheckResult, ProbeReport, probe_listening
from .process_control import kill_processes_by_name, spawn_detached
from .supervisor import (
    ProxyLivenessSupervisor,
    SupervisionOutcome,
    SupervisionState,
    supervise,
)

__all__ = [
    "LaunchResult",
    "PortCheckResult",
    "ProbeReport",
    "ProxyLivenessSupervisor",
    "SupervisionOutcome",
    "SupervisionState",
    "kill_processes_by_name",
    "probe_listening",
    "run_launch_wrapper",
    "spawn_detached",
    "supervise",
]
