"""
Collaborator interfaces for the run orchestrator.

The orchestrator only talks to these protocols, so the API client, the
Playwright session, the run summary logger and the action scenarios can each
be swapped for fakes in tests or for other implementations.
"""

from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional, Protocol

from ..core.logging_config import get_logger
from ..wizard.models import Action
from .models import ActionContext, OutcomeStatus


class AuthTokenProvider(Protocol):
    """Obtains an API token for a school."""

    async def obtain_auth_token(self, environment: str, school_id: str) -> str: ...


class PreflightCheck(Protocol):
    """Verifies the school's merge settings before any browser work."""

    async def validate(
        self,
        environment: str,
        school_id: str,
        token: str,
        product_slug: str,
        action: Action,
    ) -> None: ...


class BrowserSession(Protocol):
    """One isolated browser context with a single page."""

    async def seed(self, email: str, school_id: str) -> None: ...
    async def close(self) -> None: ...


class BrowserSessionProvider(Protocol):
    """Creates browser sessions."""

    async def acquire(
        self, environment: str, output_folder: Path, label: str, headed: bool
    ) -> BrowserSession: ...


class Authenticator(Protocol):
    """Signs the operator into the product."""

    async def sign_in(
        self,
        session: BrowserSession,
        email: str,
        password: str,
        product_slug: str,
        environment: str,
    ) -> None: ...


class Navigator(Protocol):
    """Moves a signed-in session to a product page."""

    async def navigate(
        self, session: BrowserSession, product_slug: str, environment: str
    ) -> None: ...
    async def merge_in_progress(self, session: BrowserSession) -> bool: ...


class MergePoller(Protocol):
    """Waits for the SIS merge triggered by an action and records its report."""

    async def poll(
        self, environment: str, school_id: str, action: Action, output_folder: Path
    ) -> None: ...


class OutcomeLogger(Protocol):
    """Appends action outcomes to the run's summary log."""

    def append_outcome(
        self,
        workspace_root: Path,
        run_id: str,
        status: OutcomeStatus,
        reason: str,
        timestamp: datetime,
        school_id: str,
        action: Action,
    ) -> None: ...


Scenario = Callable[[ActionContext], Awaitable[bool]]


class ScenarioRegistry:
    """
    Maps concrete actions to the scenarios that perform them.

    Scenario modules expose ``register_scenarios(registry)`` and either call
    :meth:`register` or use :meth:`scenario` as a decorator.
    """

    def __init__(self):
        self._scenarios: Dict[Action, Scenario] = {}
        self.logger = get_logger(__name__)

    def register(self, action: Action, scenario: Scenario) -> None:
        if action.is_aggregate:
            raise ValueError(f"Cannot register a scenario for aggregate action: {action.value}")
        if action in self._scenarios:
            self.logger.warning(f"Replacing scenario registered for {action.value}")
        self._scenarios[action] = scenario

    def scenario(self, action: Action) -> Callable[[Scenario], Scenario]:
        """Decorator form of :meth:`register`."""

        def decorator(func: Scenario) -> Scenario:
            self.register(action, func)
            return func

        return decorator

    def get(self, action: Action) -> Optional[Scenario]:
        return self._scenarios.get(action)

    def __contains__(self, action: Action) -> bool:
        return action in self._scenarios

    def __len__(self) -> int:
        return len(self._scenarios)
