"""
Main CLI interface for the bi-directional QA runner.

Runs the configuration wizard followed by the orchestrator, and manages the
saved session.
"""

import argparse
import asyncio
import importlib
import sys
from typing import List, Optional

from . import __version__
from .api import CoursedogApiClient, MergeReportPoller, PreflightValidator
from .browser import PlaywrightAuthenticator, PlaywrightNavigator, PlaywrightSessionProvider
from .core.config import Config
from .core.exceptions import BidiQAError, ValidationError, WizardInterruptedError
from .core.logging_config import setup_logging
from .core.workflow import WorkflowManager
from .execution import RunOrchestrator, RunReport, ScenarioRegistry
from .reporting import RunSummaryLogger
from .wizard import ConfigurationWizard, RunPlan, SessionStore


EXIT_OK = 0
EXIT_SETUP_FAILED = 1
EXIT_MERGE_ABORT = 2
EXIT_INTERRUPTED = 130


def load_config(args: argparse.Namespace) -> Config:
    """Build the configuration from file or environment plus CLI flags."""
    config_path = getattr(args, "config", None)
    config = Config.from_file(config_path) if config_path else Config.from_env()
    if getattr(args, "headless", False):
        config.headless_mode = True
    if getattr(args, "verbose", False):
        config.log_level = "DEBUG"
    config.validate()
    return config


def load_scenarios(module_names: List[str]) -> ScenarioRegistry:
    """
    Import scenario modules and let each register its scenarios.

    Raises:
        ValidationError: If a module cannot be imported or has no
            ``register_scenarios`` function
    """
    registry = ScenarioRegistry()
    for name in module_names:
        try:
            module = importlib.import_module(name)
        except ImportError as e:
            raise ValidationError(
                f"Cannot import scenario module {name}: {e}",
                validation_type="scenarios",
                violations=[name],
            )
        register = getattr(module, "register_scenarios", None)
        if not callable(register):
            raise ValidationError(
                f"Scenario module {name} does not define register_scenarios(registry)",
                validation_type="scenarios",
                violations=[name],
            )
        register(registry)
    return registry


def build_orchestrator(
    config: Config,
    plan: RunPlan,
    registry: ScenarioRegistry,
    workflow_manager: Optional[WorkflowManager] = None,
) -> RunOrchestrator:
    """Wire the API, browser and reporting collaborators for a plan."""
    client = CoursedogApiClient(config, plan.email, plan.password)
    summary_logger = RunSummaryLogger()
    return RunOrchestrator(
        config,
        token_provider=client,
        preflight=PreflightValidator(client),
        browser=PlaywrightSessionProvider(config),
        authenticator=PlaywrightAuthenticator(),
        navigator=PlaywrightNavigator(config),
        scenarios=registry,
        merge_poller=MergeReportPoller(client, config, summary_logger),
        summary_logger=summary_logger,
        workflow_manager=workflow_manager,
    )


def print_report(report: RunReport) -> None:
    print()
    print("📊 Run summary")
    print("=" * 40)
    for outcome in report.outcomes:
        icon = "✅" if outcome.succeeded else "❌"
        print(f"   {icon} {outcome.action.value}: {outcome.reason}")
    print(f"📁 Run folder: {report.workspace}")
    if report.aborted:
        print(f"\n⛔ Run aborted: {report.abort_reason}")


async def execute_plan(
    config: Config,
    plan: RunPlan,
    registry: ScenarioRegistry,
    workflow_manager: Optional[WorkflowManager] = None,
) -> int:
    """Execute a plan and wait for its merge polls; returns the exit code."""
    orchestrator = build_orchestrator(config, plan, registry, workflow_manager)
    try:
        report = await orchestrator.execute(plan)
    except BidiQAError as e:
        print(f"❌ Run setup failed: {e.message}")
        return EXIT_SETUP_FAILED

    print_report(report)
    if report.aborted:
        return EXIT_MERGE_ABORT

    pending = len(orchestrator.pending_polls)
    if pending:
        print(f"\n⏳ Waiting for {pending} merge report(s)...")
        await orchestrator.wait_for_merge_polls()
        print("✅ Merge polling finished")
    return EXIT_OK


def cmd_run(args: argparse.Namespace) -> int:
    """Run the wizard, then execute the resulting plan."""
    try:
        config = load_config(args)
        registry = load_scenarios(config.scenario_modules)
    except ValidationError as e:
        print(f"❌ Configuration error: {e.message}")
        for violation in e.violations:
            print(f"   • {violation}")
        return EXIT_SETUP_FAILED

    workflow_manager = WorkflowManager(config)
    setup_logging(config, workflow_manager.workflow_id)
    if not registry:
        print("⚠️  No scenarios registered; every action will be reported as failed.")

    wizard = ConfigurationWizard(
        SessionStore(config.session_file), environment=config.environment
    )
    try:
        plan = wizard.gather_plan()
        print(f"\n🚀 Starting \"{plan.action.value}\" for {plan.school_id}...")
        return asyncio.run(
            execute_plan(config, plan, registry, workflow_manager=workflow_manager)
        )
    except (WizardInterruptedError, KeyboardInterrupt):
        print("\n👋 Interrupted.")
        return EXIT_INTERRUPTED


def cmd_session_show(args: argparse.Namespace) -> int:
    """Print the saved session with the password masked."""
    try:
        config = load_config(args)
    except ValidationError as e:
        print(f"❌ Configuration error: {e.message}")
        return EXIT_SETUP_FAILED

    record = SessionStore(config.session_file).load()
    if record is None:
        print("ℹ️  No saved session.")
        return EXIT_OK

    print(f"💾 Saved session ({config.session_file})")
    print(f"   Email:       {record.email}")
    print(f"   Password:    {'*' * 8}")
    print(f"   Environment: {record.environment}")
    print(f"   School ID:   {record.school_id}")
    return EXIT_OK


def cmd_session_clear(args: argparse.Namespace) -> int:
    """Delete the saved session."""
    try:
        config = load_config(args)
        removed = SessionStore(config.session_file).clear()
    except BidiQAError as e:
        print(f"❌ {e.message}")
        return EXIT_SETUP_FAILED

    print("🗑️  Saved session cleared." if removed else "ℹ️  No saved session.")
    return EXIT_OK


def cmd_version(args: argparse.Namespace) -> int:
    print(f"bidi-qa {__version__}")
    if getattr(args, "verbose", False):
        print(f"Python {sys.version.split()[0]}")
    return EXIT_OK


def create_main_parser() -> argparse.ArgumentParser:
    """Create main CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="bidi-qa",
        description="Bi-directional QA runner for Academic Scheduling and Curriculum Management",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  bidi-qa run
  bidi-qa run --headless --config bidi-qa.yaml
  bidi-qa session show
  bidi-qa session clear
        """,
    )

    config_option = argparse.ArgumentParser(add_help=False)
    config_option.add_argument(
        "--config", metavar="PATH", help="YAML or JSON configuration file"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser(
        "run", parents=[config_option], help="Collect a run plan and execute it"
    )
    run_parser.add_argument(
        "--headless", action="store_true", help="Run the browser without a window"
    )
    run_parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    run_parser.set_defaults(func=cmd_run)

    session_parser = subparsers.add_parser("session", help="Manage the saved session")
    session_commands = session_parser.add_subparsers(dest="session_command")
    show_parser = session_commands.add_parser(
        "show", parents=[config_option], help="Show the saved session"
    )
    show_parser.set_defaults(func=cmd_session_show)
    clear_parser = session_commands.add_parser(
        "clear", parents=[config_option], help="Delete the saved session"
    )
    clear_parser.set_defaults(func=cmd_session_clear)

    version_parser = subparsers.add_parser("version", help="Show version information")
    version_parser.add_argument(
        "--verbose", "-v", action="store_true", help="Show detailed version information"
    )
    version_parser.set_defaults(func=cmd_version)

    return parser


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_main_parser()

    if args is None:
        args = sys.argv[1:]

    parsed_args = parser.parse_args(args)

    if not hasattr(parsed_args, "func"):
        parser.print_help()
        return EXIT_SETUP_FAILED

    return parsed_args.func(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
