"""Process spawning, lookup and forced termination helpers."""

import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import psutil
import structlog

logger = structlog.get_logger(__name__)


def _normalize_name(name: str) -> str:
    name = name.lower()
    return name[:-4] if name.endswith(".exe") else name


def find_in_search_paths(file_name: str, search_paths: Sequence[Path]) -> Optional[Path]:
    """First directory in ``search_paths`` that contains ``file_name``."""
    for directory in search_paths:
        if (Path(directory) / file_name).is_file():
            return Path(directory)
    return None


def prepare_launch_environment(
    file_name: str, search_paths: Sequence[Path], base_env: Optional[Dict[str, str]] = None
) -> Tuple[Dict[str, str], Optional[Path]]:
    """Build the child environment, prepending the executable's directory to PATH.

    Args:
        file_name: Executable file name (platform suffix included)
        search_paths: Candidate directories, checked in order
        base_env: Environment to start from (default: current environment)

    Returns:
        Tuple of (environment, directory the executable was found in or None)
    """
    env = dict(os.environ if base_env is None else base_env)
    found_dir = find_in_search_paths(file_name, search_paths)
    if found_dir is not None:
        current = env.get("PATH", "")
        env["PATH"] = f"{found_dir}{os.pathsep}{current}" if current else str(found_dir)
        logger.info("Executable found in search path", directory=str(found_dir))
    return env, found_dir


def _get_popen_creation_flags() -> Dict[str, Any]:
    """Returns platform-specific flags that detach the child from this console."""
    if sys.platform == "win32":
        return {
            "creationflags": subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
        }
    return {"start_new_session": True}


def spawn_detached(
    command: List[str],
    env: Optional[Dict[str, str]] = None,
    log_file: Optional[str] = None,
) -> int:
    """Start ``command`` as an independent background process.

    The handle is not retained; the child outlives this process.

    Args:
        command: Executable followed by its arguments
        env: Environment for the child
        log_file: File receiving the child's stdout and stderr (default: discarded)

    Returns:
        int: PID of the spawned process

    Raises:
        OSError: If the executable cannot be found or started
    """
    # Resolve against the child's PATH, not ours
    search_path = (env or os.environ).get("PATH")
    executable = shutil.which(command[0], path=search_path)
    if executable is None:
        raise FileNotFoundError(f"Executable not found: {command[0]}")

    argv = [executable, *command[1:]]
    popen_kwargs = _get_popen_creation_flags()

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "ab") as output:
            process = subprocess.Popen(
                argv,
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=output,
                stderr=subprocess.STDOUT,
                **popen_kwargs,
            )
    else:
        process = subprocess.Popen(
            argv,
            env=env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            **popen_kwargs,
        )

    logger.info("Process spawned", executable=executable, pid=process.pid, log_file=log_file)
    return process.pid


def find_processes_by_name(name: str) -> List[psutil.Process]:
    """All visible processes whose name matches ``name`` (``.exe`` optional)."""
    target = _normalize_name(name)
    matches = []
    for proc in psutil.process_iter(["name"]):
        proc_name = proc.info.get("name")
        if proc_name and _normalize_name(proc_name) == target:
            matches.append(proc)
    return matches


def kill_processes_by_name(name: str, timeout: float = 5.0) -> int:
    """Force-kill every process named ``name``.

    Finding nothing to kill, or a process exiting before it is killed, is
    not an error.

    Args:
        name: Executable name
        timeout: Seconds to wait for killed processes to disappear

    Returns:
        int: Number of processes killed
    """
    killed = []
    for proc in find_processes_by_name(name):
        try:
            proc.kill()
            killed.append(proc)
            logger.warning("Force-killed stale process", name=name, pid=proc.pid)
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied:
            logger.error("Not permitted to kill process", name=name, pid=proc.pid)

    if killed:
        _, alive = psutil.wait_procs(killed, timeout=timeout)
        for proc in alive:
            logger.warning("Process still alive after kill", name=name, pid=proc.pid)
    else:
        logger.info("No matching process to kill", name=name)

    return len(killed)
