"""
Unit tests for main CLI interface.

Tests argument parsing, exit codes, scenario plug-in loading and the saved
session commands.
"""

import argparse
import sys
import types
from unittest.mock import AsyncMock, MagicMock, patch
import pytest

from bidi_qa.cli import (
    EXIT_INTERRUPTED,
    EXIT_MERGE_ABORT,
    EXIT_OK,
    EXIT_SETUP_FAILED,
    cmd_run,
    cmd_version,
    create_main_parser,
    execute_plan,
    load_config,
    load_scenarios,
    main,
)
from bidi_qa.core.exceptions import PreflightError, ValidationError, WizardInterruptedError
from bidi_qa.core.workflow import WorkflowManager
from bidi_qa.execution.models import RunReport
from bidi_qa.wizard.models import Action, SessionRecord
from bidi_qa.wizard.session_store import SessionStore


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "bidi-qa.yaml"
    path.write_text(
        f"session_file: {tmp_path / 'state' / 'session.json'}\n"
        f"schools_dir: {tmp_path / 'schools'}\n"
        f"logs_dir: {tmp_path / 'logs'}\n"
    )
    return path


def run_args(**overrides):
    values = {"config": None, "headless": False, "verbose": False}
    values.update(overrides)
    return argparse.Namespace(**values)


class TestParser:
    """Test cases for the argument parser."""

    def test_run_command(self):
        """Test run options."""
        args = create_main_parser().parse_args(
            ["run", "--headless", "--config", "x.yaml", "-v"]
        )

        assert args.command == "run"
        assert args.headless is True
        assert args.verbose is True
        assert args.config == "x.yaml"
        assert args.func is cmd_run

    def test_session_commands(self):
        """Test session subcommands accept a config file."""
        parser = create_main_parser()

        show = parser.parse_args(["session", "show", "--config", "a.yaml"])
        clear = parser.parse_args(["session", "clear"])

        assert show.session_command == "show"
        assert show.config == "a.yaml"
        assert clear.session_command == "clear"
        assert clear.config is None

    def test_version_command(self):
        """Test version parsing."""
        args = create_main_parser().parse_args(["version", "--verbose"])

        assert args.func is cmd_version
        assert args.verbose is True


class TestMain:
    """Test cases for main."""

    def test_no_command_prints_help(self, capsys):
        """Test running without a command."""
        assert main([]) == EXIT_SETUP_FAILED
        assert "usage:" in capsys.readouterr().out

    def test_session_without_subcommand(self, capsys):
        """Test the bare session command prints help."""
        assert main(["session"]) == EXIT_SETUP_FAILED

    def test_version(self, capsys):
        """Test version output."""
        assert main(["version"]) == EXIT_OK
        assert "bidi-qa 0.1.0" in capsys.readouterr().out

    def test_version_verbose(self, capsys):
        """Test verbose version output includes Python."""
        main(["version", "-v"])

        assert "Python " in capsys.readouterr().out


class TestSessionCommands:
    """Test cases for session show and clear."""

    def test_show_masks_password(self, config_file, tmp_path, capsys):
        """Test the saved session is shown without the password."""
        SessionStore(tmp_path / "state" / "session.json").save(
            SessionRecord(
                email="qa@example.edu",
                password="s3cret",
                environment="stg",
                school_id="iwu_colleague_ethos",
            )
        )

        assert main(["session", "show", "--config", str(config_file)]) == EXIT_OK

        out = capsys.readouterr().out
        assert "qa@example.edu" in out
        assert "iwu_colleague_ethos" in out
        assert "s3cret" not in out
        assert "********" in out

    def test_show_without_session(self, config_file, capsys):
        """Test show with nothing saved."""
        assert main(["session", "show", "--config", str(config_file)]) == EXIT_OK
        assert "No saved session" in capsys.readouterr().out

    def test_clear(self, config_file, tmp_path, capsys):
        """Test clear deletes the session file."""
        session_file = tmp_path / "state" / "session.json"
        SessionStore(session_file).save(
            SessionRecord(email="a@b.c", password="p", environment="stg", school_id="s")
        )

        assert main(["session", "clear", "--config", str(config_file)]) == EXIT_OK

        assert not session_file.exists()
        assert "cleared" in capsys.readouterr().out

    def test_bad_config_file(self, tmp_path, capsys):
        """Test a missing config file is a setup failure."""
        code = main(["session", "show", "--config", str(tmp_path / "missing.yaml")])

        assert code == EXIT_SETUP_FAILED
        assert "Configuration error" in capsys.readouterr().out


class TestLoadConfig:
    """Test cases for load_config."""

    def test_flags_override(self, config_file):
        """Test --headless and --verbose."""
        config = load_config(run_args(config=str(config_file), headless=True, verbose=True))

        assert config.headless_mode is True
        assert config.log_level == "DEBUG"


class TestLoadScenarios:
    """Test cases for scenario plug-in loading."""

    def test_registers_from_module(self):
        """Test a module's register_scenarios fills the registry."""
        module = types.ModuleType("acme_scenarios")

        async def update(ctx):
            return True

        def register_scenarios(registry):
            registry.register(Action.UPDATE, update)

        module.register_scenarios = register_scenarios

        with patch.dict(sys.modules, {"acme_scenarios": module}):
            registry = load_scenarios(["acme_scenarios"])

        assert registry.get(Action.UPDATE) is update
        assert len(registry) == 1

    def test_missing_module(self):
        """Test an unknown module is a validation error."""
        with pytest.raises(ValidationError, match="Cannot import scenario module"):
            load_scenarios(["bidi_qa_no_such_scenarios"])

    def test_module_without_register(self):
        """Test a module without register_scenarios is rejected."""
        module = types.ModuleType("empty_scenarios")

        with patch.dict(sys.modules, {"empty_scenarios": module}):
            with pytest.raises(ValidationError, match="register_scenarios"):
                load_scenarios(["empty_scenarios"])

    def test_no_modules(self):
        """Test an empty list gives an empty registry."""
        assert len(load_scenarios([])) == 0


def fake_orchestrator(report=None, error=None, pending=0):
    orchestrator = MagicMock()
    orchestrator.execute = AsyncMock(return_value=report, side_effect=error)
    orchestrator.pending_polls = {MagicMock() for _ in range(pending)}
    orchestrator.wait_for_merge_polls = AsyncMock(return_value=pending)
    return orchestrator


class TestExecutePlan:
    """Test cases for execute_plan exit codes."""

    @pytest.mark.asyncio
    async def test_success_waits_for_polls(self, temp_config, make_plan, tmp_path, capsys):
        """Test a finished run waits for merge polls and exits 0."""
        orchestrator = fake_orchestrator(RunReport(workspace=tmp_path), pending=2)

        with patch("bidi_qa.cli.build_orchestrator", return_value=orchestrator):
            code = await execute_plan(temp_config, make_plan(), MagicMock())

        assert code == EXIT_OK
        orchestrator.wait_for_merge_polls.assert_awaited_once()
        assert "Waiting for 2 merge report(s)" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_merge_abort(self, temp_config, make_plan, tmp_path, capsys):
        """Test an aborted run exits 2 without waiting."""
        report = RunReport(
            workspace=tmp_path, aborted=True, abort_reason="nightly merge running"
        )
        orchestrator = fake_orchestrator(report, pending=1)

        with patch("bidi_qa.cli.build_orchestrator", return_value=orchestrator):
            code = await execute_plan(temp_config, make_plan(), MagicMock())

        assert code == EXIT_MERGE_ABORT
        orchestrator.wait_for_merge_polls.assert_not_called()
        assert "nightly merge running" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_setup_failure(self, temp_config, make_plan, capsys):
        """Test a preflight failure exits 1."""
        orchestrator = fake_orchestrator(
            error=PreflightError("Real-time merges are not currently enabled")
        )

        with patch("bidi_qa.cli.build_orchestrator", return_value=orchestrator):
            code = await execute_plan(temp_config, make_plan(), MagicMock())

        assert code == EXIT_SETUP_FAILED
        assert "Real-time merges" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_workflow_manager_reaches_orchestrator(self, temp_config, make_plan, tmp_path):
        """Test the CLI's workflow manager is the one the orchestrator uses."""
        manager = WorkflowManager(temp_config)
        orchestrator = fake_orchestrator(RunReport(workspace=tmp_path))

        with patch("bidi_qa.cli.build_orchestrator", return_value=orchestrator) as mock_build:
            await execute_plan(temp_config, make_plan(), MagicMock(), workflow_manager=manager)

        assert mock_build.call_args.args[3] is manager


class TestCmdRun:
    """Test cases for cmd_run."""

    @patch("bidi_qa.cli.setup_logging")
    @patch("bidi_qa.cli.ConfigurationWizard")
    @patch("bidi_qa.cli.load_config")
    def test_interrupted_wizard(self, mock_load, mock_wizard_class, mock_logging, temp_config, capsys):
        """Test an interrupted wizard exits 130."""
        mock_load.return_value = temp_config
        mock_wizard_class.return_value.gather_plan.side_effect = WizardInterruptedError(
            "Operator input was interrupted", step="email"
        )

        assert cmd_run(run_args()) == EXIT_INTERRUPTED
        assert "Interrupted" in capsys.readouterr().out

    @patch("bidi_qa.cli.execute_plan", new_callable=AsyncMock)
    @patch("bidi_qa.cli.setup_logging")
    @patch("bidi_qa.cli.ConfigurationWizard")
    @patch("bidi_qa.cli.load_config")
    def test_runs_plan(
        self, mock_load, mock_wizard_class, mock_logging, mock_execute, temp_config, make_plan
    ):
        """Test the wizard's plan is executed and its exit code returned."""
        plan = make_plan(Action.ALL)
        mock_load.return_value = temp_config
        mock_wizard_class.return_value.gather_plan.return_value = plan
        mock_execute.return_value = EXIT_MERGE_ABORT

        assert cmd_run(run_args()) == EXIT_MERGE_ABORT

        executed_config, executed_plan, registry = mock_execute.await_args.args
        assert executed_config is temp_config
        assert executed_plan is plan
        assert len(registry) == 0
        manager = mock_execute.await_args.kwargs["workflow_manager"]
        assert mock_logging.call_args.args == (temp_config, manager.workflow_id)

    @patch("bidi_qa.cli.load_config")
    def test_invalid_config(self, mock_load, capsys):
        """Test configuration errors exit 1 with each violation listed."""
        mock_load.side_effect = ValidationError(
            "Configuration validation failed", violations=["auth_max_attempts must be at least 1"]
        )

        assert cmd_run(run_args()) == EXIT_SETUP_FAILED
        out = capsys.readouterr().out
        assert "auth_max_attempts must be at least 1" in out
