"""
Pytest configuration and shared fixtures for runner tests.

Provides a sandboxed configuration, run plans, a scripted wizard prompt and
fake orchestrator collaborators.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
import pytest

from bidi_qa.core.config import Config
from bidi_qa.execution.collaborators import ScenarioRegistry
from bidi_qa.wizard.models import Action, RunPlan, SessionRecord
from bidi_qa.wizard.session_store import SessionStore


@pytest.fixture
def temp_config(tmp_path):
    """Configuration with every path inside a temporary directory."""
    return Config(
        log_level="DEBUG",
        headless_mode=True,
        merge_poll_initial_delay=0,
        merge_poll_interval=0,
        merge_poll_error_backoff=0,
        merge_poll_timeout=10,
        schools_dir=tmp_path / "schools",
        logs_dir=tmp_path / "logs",
        debug_video_dir=tmp_path / "videos",
        session_file=tmp_path / "state" / "session.json",
    )


@pytest.fixture
def session_store(temp_config):
    return SessionStore(temp_config.session_file)


@pytest.fixture
def saved_session(session_store):
    """A complete session saved from an earlier run."""
    record = SessionRecord(
        email="qa@example.edu",
        password="s3cret",
        environment="stg",
        school_id="iwu_colleague_ethos",
    )
    session_store.save(record)
    return record


@pytest.fixture
def make_plan():
    """Factory for run plans with sensible defaults."""

    def _make(action=Action.UPDATE, **overrides):
        values = {
            "email": "qa@example.edu",
            "password": "s3cret",
            "environment": "stg",
            "product_slug": "sm/section-dashboard",
            "school_id": "iwu_colleague_ethos",
            "action": action,
        }
        values.update(overrides)
        return RunPlan(**values)

    return _make


class ScriptedPrompt:
    """Answers wizard prompts from a fixed script and records what was asked."""

    def __init__(self, answers):
        self.answers = list(answers)
        self.messages = []
        self.secret_flags = []

    def __call__(self, message, secret=False):
        self.messages.append(message)
        self.secret_flags.append(secret)
        if not self.answers:
            raise EOFError("script exhausted")
        return self.answers.pop(0)


@pytest.fixture
def scripted_prompt():
    return ScriptedPrompt


@pytest.fixture
def echo_lines():
    """Echo function collecting every line the wizard prints."""
    lines = []

    def _echo(text):
        lines.append(text)

    _echo.lines = lines
    return _echo


class FakeSession:
    """Browser session double counting its close calls."""

    def __init__(self):
        self.seed = AsyncMock()
        self.close_calls = 0

    async def close(self):
        self.close_calls += 1


@pytest.fixture
def collaborators():
    """Fake collaborators for the orchestrator; every action succeeds by default."""
    sessions = []

    async def acquire(environment, output_folder, label, headed):
        session = FakeSession()
        sessions.append(session)
        return session

    browser = MagicMock()
    browser.acquire = AsyncMock(side_effect=acquire)

    navigator = MagicMock()
    navigator.navigate = AsyncMock()
    navigator.merge_in_progress = AsyncMock(return_value=False)

    token_provider = MagicMock()
    token_provider.obtain_auth_token = AsyncMock(return_value="token-123")

    preflight = MagicMock()
    preflight.validate = AsyncMock()

    authenticator = MagicMock()
    authenticator.sign_in = AsyncMock()

    merge_poller = MagicMock()
    merge_poller.poll = AsyncMock()

    summary_logger = MagicMock()

    return SimpleNamespace(
        sessions=sessions,
        browser=browser,
        navigator=navigator,
        token_provider=token_provider,
        preflight=preflight,
        authenticator=authenticator,
        merge_poller=merge_poller,
        summary_logger=summary_logger,
        scenarios=ScenarioRegistry(),
    )


def register_all(registry, result=True):
    """Register one scenario per concrete action returning ``result``."""
    calls = []

    async def scenario(ctx):
        calls.append(ctx)
        return result

    for action in Action:
        if not action.is_aggregate:
            registry.register(action, scenario)
    return calls


@pytest.fixture
def register_scenarios():
    return register_all
