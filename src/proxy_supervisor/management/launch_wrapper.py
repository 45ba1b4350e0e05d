"""Launches a colocated executable through its environment-setup script."""

import os
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional

import structlog

from ..config.exceptions import LaunchError

logger = structlog.get_logger(__name__)


@dataclass
class LaunchResult:
    """Outcome of a delegated launch."""

    exe_name: str
    exe_path: Path
    base_path: Path
    env_script: Path
    return_code: int


def resolve_launch_paths(
    env_script: Path,
    wrapper_dir: Optional[str] = None,
    relative_log_base: str = "..",
) -> Dict[str, Path]:
    """Wrapper directory (trailing separator stripped) and the log base relative to it."""
    exe_path = Path(wrapper_dir) if wrapper_dir else Path(env_script).parent
    exe_path = exe_path.resolve()
    return {"exe_path": exe_path, "base_path": (exe_path / relative_log_base).resolve()}


def build_script_command(env_script: Path) -> List[str]:
    """Interpreter invocation for a script based on its suffix."""
    suffix = env_script.suffix.lower()
    if suffix in (".bat", ".cmd"):
        return ["cmd", "/c", str(env_script)]
    if suffix == ".sh":
        return ["sh", str(env_script)]
    if suffix == ".py":
        return [sys.executable, str(env_script)]
    return [str(env_script)]


def run_launch_wrapper(
    exe_name: str,
    env_script: str,
    relative_log_base: str = "..",
    wrapper_dir: Optional[str] = None,
    echo: Optional[Callable[[str], None]] = None,
    runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> LaunchResult:
    """Run the environment script that launches ``exe_name``.

    The script receives ``PROXY_EXE``, ``PROXY_EXE_PATH`` and
    ``PROXY_BASE_PATH`` in its environment and is responsible for starting
    the executable.

    Args:
        exe_name: Executable expected next to the wrapper
        env_script: Environment-setup script to execute
        relative_log_base: Log output base, relative to the wrapper directory
        wrapper_dir: Directory of the executable (default: the script's directory)
        echo: Callback used to display the resolved paths
        runner: subprocess.run compatible callable

    Returns:
        LaunchResult: Paths used and the script's exit status

    Raises:
        LaunchError: If the script is missing, cannot be run, or exits non-zero
    """
    script = Path(env_script)
    if not script.is_file():
        raise LaunchError(f"Environment script not found: {script}")
    script = script.resolve()

    paths = resolve_launch_paths(script, wrapper_dir, relative_log_base)
    exe_path, base_path = paths["exe_path"], paths["base_path"]

    if echo:
        echo(f"Executable path: {exe_path}")
        echo(f"Base path: {base_path}")
    logger.info("Launching", exe=exe_name, exe_path=str(exe_path), base_path=str(base_path))

    if not (exe_path / exe_name).exists():
        logger.warning("Executable not found next to wrapper", exe=exe_name, exe_path=str(exe_path))

    env = os.environ.copy()
    env.update({
        "PROXY_EXE": exe_name,
        "PROXY_EXE_PATH": str(exe_path),
        "PROXY_BASE_PATH": str(base_path),
    })

    command = build_script_command(script)
    try:
        completed = runner(command, env=env, cwd=str(exe_path), check=False)
    except OSError as e:
        raise LaunchError(
            f"Could not run environment script: {script}",
            details={"error": str(e)},
        )

    if completed.returncode != 0:
        logger.error("Environment script failed", script=str(script), return_code=completed.returncode)
        raise LaunchError(
            f"Environment script exited with code {completed.returncode}: {script}",
            return_code=completed.returncode,
        )

    logger.info("Environment script completed", script=str(script))
    return LaunchResult(
        exe_name=exe_name,
        exe_path=exe_path,
        base_path=base_path,
        env_script=script,
        return_code=completed.returncode,
    )
