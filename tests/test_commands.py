"""
Tests for the click entry point.

Author: Chainshell Team
License: MIT
"""

import pytest
import yaml
from click.testing import CliRunner

from chainshell.cli.commands import cli, main
from chainshell.cli.session import EXIT_STARTUP_FAILURE

from conftest import ZERO_ADDRESS


@pytest.fixture
def runner(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("CHAINSHELL_NODE__DIFFICULTY_BITS", "0")
    monkeypatch.setenv("NO_COLOR", "1")
    return CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging(mocker):
    """Keep the entry point from replacing the test log sinks."""
    return mocker.patch("chainshell.cli.commands.configure_logging")


class TestShellEntryPoint:
    """Test suite for running the shell from the command line."""

    def test_one_shot_command(self, runner, tmp_path, quiet_logging):
        result = runner.invoke(cli, ["--data-dir", str(tmp_path / "data"), "wallet", "balance", ZERO_ADDRESS])

        assert result.exit_code == 0
        assert "Local blockchain height: 0" in result.output
        assert "Balance of" in result.output
        assert "Goodbye!" in result.output
        quiet_logging.assert_called_once()
        assert quiet_logging.call_args.kwargs["verbose"] is False

    def test_one_shot_keeps_shell_flags(self, runner, tmp_path):
        data_dir = tmp_path / "data"
        result = runner.invoke(cli, ["--data-dir", str(data_dir), "wallet", "create", "alice", "-kc"])

        assert result.exit_code == 0
        assert "Wallet stored in keychain" in result.output
        assert (data_dir / "keychain" / "alice.key").exists()

    def test_interactive_reads_stdin(self, runner, tmp_path):
        result = runner.invoke(
            cli,
            ["--data-dir", str(tmp_path / "data"), "--central"],
            input="peers\nexit\n",
        )
        assert result.exit_code == 0
        assert "No known peers" in result.output

    def test_invalid_config_exits_with_failure(self, runner, tmp_path):
        bad = tmp_path / "bad.yaml"
        bad.write_text("node:\n  difficulty_bits: 99\n")
        result = runner.invoke(cli, ["--config", str(bad), "peers"])
        assert result.exit_code == EXIT_STARTUP_FAILURE
        assert "invalid configuration" in result.output

    def test_main_returns_status(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("CHAINSHELL_NODE__DIFFICULTY_BITS", "0")
        assert main(["--data-dir", str(tmp_path / "data"), "peers"]) == 0


class TestConfigCommand:
    """Test suite for 'chainshell config'."""

    def test_init_show_validate(self, runner, tmp_path):
        path = tmp_path / "chainshell.yaml"

        result = runner.invoke(cli, ["--config", str(path), "config", "--init"])
        assert result.exit_code == 0
        assert yaml.safe_load(path.read_text())["node"]["node_type"] == "peer"

        result = runner.invoke(cli, ["--config", str(path), "config", "--validate"])
        assert result.exit_code == 0

        result = runner.invoke(cli, ["--config", str(path), "--central", "config", "--show"])
        assert result.exit_code == 0
        assert "node_type: central" in result.output

    def test_init_refuses_overwrite(self, runner, tmp_path):
        path = tmp_path / "chainshell.yaml"
        path.write_text("{}\n")
        result = runner.invoke(cli, ["--config", str(path), "config", "--init"])
        assert result.exit_code == EXIT_STARTUP_FAILURE

    def test_validate_rejects_bad_file(self, runner, tmp_path):
        path = tmp_path / "chainshell.yaml"
        path.write_text("node:\n  peers: [nope]\n")
        result = runner.invoke(cli, ["--config", str(path), "config", "--validate"])
        assert result.exit_code == EXIT_STARTUP_FAILURE

    def test_no_option(self, runner):
        result = runner.invoke(cli, ["config"])
        assert "Use --init, --validate, or --show" in result.output
