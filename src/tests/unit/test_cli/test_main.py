"""Tests for the main CLI module."""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from proxy_supervisor.config import ConfigurationError, LaunchError
from proxy_supervisor.main import CLIError, cli, handle_cli_error

SUPERVISOR_MODULE = "proxy_supervisor.management.supervisor"


class TestCLI:
    """Test the main CLI functionality."""

    def setup_method(self):
        """Set up test fixtures."""
        self.runner = CliRunner()

    def test_cli_help(self):
        result = self.runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "Tor proxy liveness supervisor" in result.output
        for command in ("ensure", "probe", "launch", "config"):
            assert command in result.output

    def test_cli_version(self):
        result = self.runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "proxy-supervisor" in result.output
        assert "0.1.0" in result.output

    def test_cli_verbose_quiet_conflict(self):
        result = self.runner.invoke(cli, ["--verbose", "--quiet", "probe"])

        assert result.exit_code != 0
        assert "Cannot use both --verbose and --quiet" in result.output

    def test_invalid_config_file(self, tmp_path):
        config_file = tmp_path / "broken.yaml"
        config_file.write_text("socks_port: [9050\n")

        result = self.runner.invoke(cli, ["--config", str(config_file), "probe"])

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_malformed_environment_variable(self, monkeypatch):
        monkeypatch.setenv("PROXY_SUPERVISOR_LAUNCHER_SEARCH_PATHS", "/opt/tor")

        result = self.runner.invoke(cli, ["probe"])

        assert result.exit_code == 1
        assert "Error: Invalid environment configuration" in result.output


class TestEnsureCommand:
    """Test the ensure command and the bare invocation."""

    def setup_method(self):
        self.runner = CliRunner()

    def test_already_running(self, report_factory):
        with patch(f"{SUPERVISOR_MODULE}.probe_listening", return_value=report_factory(True, True)), \
                patch(f"{SUPERVISOR_MODULE}.spawn_detached") as spawn:
            result = self.runner.invoke(cli, ["ensure", "--no-pause"])

        assert result.exit_code == 0
        assert "already running" in result.output
        spawn.assert_not_called()

    def test_bare_invocation_runs_ensure(self, report_factory):
        with patch(f"{SUPERVISOR_MODULE}.probe_listening", return_value=report_factory(True, True)):
            result = self.runner.invoke(cli, [])

        assert result.exit_code == 0
        assert "already running" in result.output

    def test_started_successfully(self, report_factory):
        reports = [report_factory(False, False), report_factory(True, True)]
        with patch(f"{SUPERVISOR_MODULE}.probe_listening", side_effect=reports), \
                patch(f"{SUPERVISOR_MODULE}.spawn_detached", return_value=999) as spawn:
            result = self.runner.invoke(cli, ["ensure", "--wait", "0", "--no-pause"])

        assert result.exit_code == 0
        assert "started successfully" in result.output
        spawn.assert_called_once()

    def test_start_failed_exits_with_sentinel(self, report_factory):
        reports = [report_factory(False, False), report_factory(False, False)]
        with patch(f"{SUPERVISOR_MODULE}.probe_listening", side_effect=reports), \
                patch(f"{SUPERVISOR_MODULE}.spawn_detached", return_value=999):
            result = self.runner.invoke(cli, ["ensure", "--wait", "0", "--no-pause"])

        assert result.exit_code == 10101
        assert "failed to start" in result.output

    def test_exit_code_from_environment(self, report_factory, monkeypatch):
        monkeypatch.setenv("PROXY_SUPERVISOR_FAILURE_EXIT_CODE", "77")
        reports = [report_factory(False, False), report_factory(False, False)]
        with patch(f"{SUPERVISOR_MODULE}.probe_listening", side_effect=reports), \
                patch(f"{SUPERVISOR_MODULE}.spawn_detached", return_value=999):
            result = self.runner.invoke(cli, ["ensure", "--wait", "0", "--no-pause"])

        assert result.exit_code == 77


class TestProbeCommand:
    """Test the probe command."""

    def setup_method(self):
        self.runner = CliRunner()

    def test_table_output(self, report_factory):
        with patch("proxy_supervisor.main.probe_listening", return_value=report_factory(True, True)):
            result = self.runner.invoke(cli, ["probe"])

        assert result.exit_code == 0
        assert "socks" in result.output
        assert "9051" in result.output
        assert "tor (4242)" in result.output

    def test_json_output_not_listening(self, report_factory):
        with patch("proxy_supervisor.main.probe_listening", return_value=report_factory(True, False)):
            result = self.runner.invoke(cli, ["probe", "--format", "json"])

        assert result.exit_code == 1
        data = json.loads(result.output[result.output.index("{"):])
        assert data["socks"]["is_listening"] is True
        assert data["control"]["is_listening"] is False
        assert data["all_listening"] is False


class TestLaunchCommand:
    """Test the launch command."""

    def setup_method(self):
        self.runner = CliRunner()

    def test_launch_delegates(self):
        with patch("proxy_supervisor.main.run_launch_wrapper") as wrapper, \
                patch("proxy_supervisor.main.supervise") as supervise:
            result = self.runner.invoke(
                cli, ["launch", "merge_mining_proxy", "env.sh", "--no-pause"]
            )

        assert result.exit_code == 0
        supervise.assert_not_called()
        args, kwargs = wrapper.call_args
        assert args == ("merge_mining_proxy", "env.sh")
        assert kwargs["wrapper_dir"] is None
        assert kwargs["relative_log_base"] == ".."

    def test_launch_custom_log_base(self):
        with patch("proxy_supervisor.main.run_launch_wrapper") as wrapper:
            result = self.runner.invoke(
                cli,
                ["launch", "merge_mining_proxy", "env.sh", "--log-base", "../logs", "--no-pause"],
            )

        assert result.exit_code == 0
        assert wrapper.call_args[1]["relative_log_base"] == "../logs"

    def test_launch_requires_proxy(self):
        with patch("proxy_supervisor.main.run_launch_wrapper") as wrapper, \
                patch("proxy_supervisor.main.supervise", return_value=0) as supervise:
            result = self.runner.invoke(
                cli,
                ["launch", "merge_mining_proxy", "env.sh", "--require-proxy", "--no-pause"],
            )

        assert result.exit_code == 0
        supervise.assert_called_once()
        wrapper.assert_called_once()

    def test_launch_failure(self):
        with patch(
            "proxy_supervisor.main.run_launch_wrapper",
            side_effect=LaunchError("Environment script exited with code 2: env.sh", return_code=2),
        ):
            result = self.runner.invoke(
                cli, ["launch", "merge_mining_proxy", "env.sh", "--no-pause"]
            )

        assert result.exit_code == 1
        assert "exited with code 2" in result.output
        assert "Suggestion:" in result.output


class TestConfigCommand:
    """Test the config command."""

    def setup_method(self):
        self.runner = CliRunner()

    def test_show_yaml(self):
        result = self.runner.invoke(cli, ["config", "show"])

        assert result.exit_code == 0
        assert "socks_port: 9050" in result.output
        assert "failure_exit_code: 10101" in result.output

    def test_show_json_with_config_file(self, tmp_path):
        config_file = tmp_path / "supervisor.yaml"
        config_file.write_text("retry_wait_seconds: 3\n")

        result = self.runner.invoke(
            cli, ["--config", str(config_file), "config", "show", "--format", "json"]
        )

        assert result.exit_code == 0
        data = json.loads(result.output[result.output.index("{"):])
        assert data["retry_wait_seconds"] == 3

    def test_env_help(self):
        result = self.runner.invoke(cli, ["config", "env-help"])

        assert result.exit_code == 0
        assert "TOR_DIR" in result.output
        assert "PROXY_SUPERVISOR_SOCKS_PORT" in result.output


def test_cli_error_keeps_suggestion():
    error = CLIError("Tor not found", suggestion="Set TOR_DIR")

    assert error.message == "Tor not found"
    assert error.suggestion == "Set TOR_DIR"


def test_handle_cli_error_reports_supervisor_errors(capsys):
    error = ConfigurationError("Invalid environment configuration", {"error": "bad list"})

    with pytest.raises(SystemExit) as exc_info:
        handle_cli_error(error)

    assert exc_info.value.code == 1
    captured = capsys.readouterr()
    assert "Error: Invalid environment configuration" in captured.err
    assert "Suggestion:" not in captured.err
