"""Main CLI entry point for the proxy liveness supervisor.

Run without a command it behaves like ``proxy-supervisor ensure``: make sure
Tor is listening on its SOCKS and control ports, starting it if needed, and
exit with the sentinel code 10101 when it cannot be confirmed.
"""

import json
import sys
from typing import Optional, Union

import click
import yaml

from . import __version__
from .config import (
    ConfigurationError,
    ConfigurationManager,
    EnvironmentConfigExtractor,
    LaunchError,
    SupervisorError,
    SupervisorSettings,
)
from .config.logging import configure_logging
from .management import probe_listening, run_launch_wrapper, supervise


class CLIError(Exception):
    """Base CLI error with user-friendly messages."""

    def __init__(self, message: str, suggestion: Optional[str] = None):
        self.message = message
        self.suggestion = suggestion
        super().__init__(message)


def handle_cli_error(error: Union[CLIError, SupervisorError], pause: bool = False):
    """Global CLI error handler. Optionally waits for a keypress before exiting."""
    if isinstance(error, CLIError):
        click.echo(f"Error: {error.message}", err=True)
        if error.suggestion:
            click.echo(f"Suggestion: {error.suggestion}", err=True)
    else:
        click.echo(f"Error: {error}", err=True)

    if pause:
        click.pause()
    sys.exit(1)


def _settings(ctx: click.Context) -> SupervisorSettings:
    return ctx.obj["settings"]


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="proxy-supervisor")
@click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose output with detailed logging"
)
@click.option(
    "--quiet", "-q", is_flag=True, help="Enable quiet mode with minimal output"
)
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False),
    help="Configuration file path (YAML or JSON)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool, config: Optional[str]):
    """Local Tor proxy liveness supervisor.

    Checks that Tor is listening on its SOCKS (9050) and control (9051)
    ports, starts it when it is not, and launches dependent executables
    once it is.

    \b
    Examples:
      proxy-supervisor
      proxy-supervisor probe --format json
      proxy-supervisor launch merge_mining_proxy ./env_setup.sh --require-proxy
      proxy-supervisor config env-help
    """
    if verbose and quiet:
        raise click.BadParameter("Cannot use both --verbose and --quiet options")

    ctx.ensure_object(dict)
    try:
        settings = ConfigurationManager().load_settings(config)
    except ConfigurationError as error:
        handle_cli_error(error)

    level = settings.logging.level
    if verbose:
        level = "DEBUG"
    elif quiet:
        level = "ERROR"
    configure_logging(
        level=level,
        log_file=settings.logging.file_path,
        json_logs=settings.logging.json_format,
    )

    ctx.obj["settings"] = settings
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet

    if ctx.invoked_subcommand is None:
        ctx.invoke(ensure)


@cli.command()
@click.option(
    "--wait",
    "-w",
    type=click.FloatRange(min=0),
    help="Seconds to wait after starting Tor before re-checking (default: 15)",
)
@click.option(
    "--no-pause", is_flag=True, help="Do not wait for a keypress after a failure"
)
@click.pass_context
def ensure(ctx: click.Context, wait: Optional[float], no_pause: bool):
    """Make sure the Tor proxy is running.

    Exits 0 when Tor is listening on both ports, either already or after
    starting it. Exits with the sentinel code (default 10101) when Tor
    cannot be confirmed after the start attempt.
    """
    settings = _settings(ctx)
    updates = {}
    if wait is not None:
        updates["retry_wait_seconds"] = wait
    if no_pause:
        updates["pause_on_failure"] = False
    if updates:
        settings = settings.model_copy(update=updates)

    supervise(settings)


@cli.command()
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
@click.pass_context
def probe(ctx: click.Context, output_format: str):
    """Show whether the SOCKS and control ports are listening.

    Exits 0 when both are listening, 1 otherwise. Never starts anything.
    """
    settings = _settings(ctx)
    report = probe_listening(settings.socks_port, settings.control_port, host=settings.host)

    if output_format == "json":
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        click.echo(f"{'ROLE':<8} {'PORT':<6} {'LISTENING':<10} OWNER")
        for role, result in (("socks", report.socks), ("control", report.control)):
            owner = result.owner_process_name or "-"
            if result.owner_pid:
                owner = f"{owner} ({result.owner_pid})"
            listening = "yes" if result.is_listening else "no"
            click.echo(f"{role:<8} {result.port:<6} {listening:<10} {owner}")

    ctx.exit(0 if report.all_listening else 1)


@cli.command()
@click.argument("exe_name")
@click.argument("env_script", type=click.Path(dir_okay=False))
@click.option(
    "--wrapper-dir",
    type=click.Path(file_okay=False),
    help="Directory holding the executable (default: the script's directory)",
)
@click.option(
    "--log-base",
    default="..",
    show_default=True,
    help="Log output base, relative to the executable directory",
)
@click.option(
    "--require-proxy", is_flag=True, help="Ensure the Tor proxy is running first"
)
@click.option(
    "--no-pause", is_flag=True, help="Do not wait for a keypress before exiting"
)
@click.pass_context
def launch(
    ctx: click.Context,
    exe_name: str,
    env_script: str,
    wrapper_dir: Optional[str],
    log_base: str,
    require_proxy: bool,
    no_pause: bool,
):
    """Launch EXE_NAME through its environment script ENV_SCRIPT.

    The script runs with PROXY_EXE, PROXY_EXE_PATH and PROXY_BASE_PATH set.
    A failing script makes this command exit 1.

    \b
    Examples:
      proxy-supervisor launch merge_mining_proxy ./runtime/env_setup.sh
      proxy-supervisor launch merge_mining_proxy.exe .\\runtime\\env.bat --require-proxy
    """
    settings = _settings(ctx)
    if no_pause:
        settings = settings.model_copy(update={"pause_on_failure": False})

    if require_proxy:
        supervise(settings)

    try:
        run_launch_wrapper(
            exe_name,
            env_script,
            relative_log_base=log_base,
            wrapper_dir=wrapper_dir,
            echo=click.echo,
        )
    except LaunchError as error:
        handle_cli_error(
            CLIError(str(error), suggestion="Check the environment script and that it exits 0"),
            pause=settings.pause_on_failure,
        )

    if not no_pause:
        click.pause()


@cli.command()
@click.argument("action", type=click.Choice(["show", "env-help"]))
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["yaml", "json"]),
    default="yaml",
    help="Output format for 'show'",
)
@click.pass_context
def config(ctx: click.Context, action: str, output_format: str):
    """Show effective configuration or the supported environment variables."""
    if action == "env-help":
        docs = EnvironmentConfigExtractor().get_environment_documentation()
        width = max(len(name) for name in docs)
        for name, description in docs.items():
            click.echo(f"{name:<{width}}  {description}")
        return

    data = ConfigurationManager.settings_as_dict(_settings(ctx))
    if output_format == "json":
        click.echo(json.dumps(data, indent=2))
    else:
        click.echo(yaml.safe_dump(data, sort_keys=False).rstrip())


if __name__ == "__main__":
    cli()
