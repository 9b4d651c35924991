"""
Run orchestrator.

Turns a RunPlan into a sequence of concrete actions, runs each one through
its collaborators in a fresh browser session, classifies the outcome and
records it in the run summary. Merge report polling for successful actions
runs as detached asyncio tasks that never hold up the next action.
"""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Optional, Set

from ..core.config import Config
from ..core.exceptions import BidiQAError, MergeInProgressError, NoEligibleRecordError
from ..core.logging_config import get_logger, log_performance
from ..core.workflow import WorkflowContext, WorkflowManager
from ..reporting.run_summary import generate_run_id
from ..wizard.catalog import (
    ACTION_INFO,
    expand_action,
    form_name_for_action,
    resolve_product_slug,
)
from ..wizard.models import Action, RunPlan
from .collaborators import (
    Authenticator,
    AuthTokenProvider,
    BrowserSession,
    BrowserSessionProvider,
    MergePoller,
    Navigator,
    OutcomeLogger,
    PreflightCheck,
    ScenarioRegistry,
)
from .models import (
    SAVED_SUCCESSFULLY,
    ActionContext,
    ActionOutcome,
    OutcomeStatus,
    RunReport,
)
from .workspace import RunWorkspace


MERGE_IN_PROGRESS_MESSAGE = (
    "A sections nightly merge for this school is currently in progress, "
    "please try again later."
)


class RunOrchestrator:
    """
    Executes run plans strictly one action at a time.

    Setup failures (auth token, preflight) propagate to the caller. A nightly
    merge in progress aborts the run. Every other failure is local to its
    action and becomes a failed outcome.
    """

    def __init__(
        self,
        config: Config,
        token_provider: AuthTokenProvider,
        preflight: PreflightCheck,
        browser: BrowserSessionProvider,
        authenticator: Authenticator,
        navigator: Navigator,
        scenarios: ScenarioRegistry,
        merge_poller: MergePoller,
        summary_logger: OutcomeLogger,
        workflow_manager: Optional[WorkflowManager] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Runner configuration
            token_provider: Source of API tokens
            preflight: Merge settings check run before any browser work
            browser: Browser session factory
            authenticator: UI sign-in
            navigator: Product navigation and merge indicator check
            scenarios: Registry of per-action scenarios
            merge_poller: Background merge report poller
            summary_logger: Run summary writer
            workflow_manager: Optional workflow manager for log correlation
        """
        self.config = config
        self.token_provider = token_provider
        self.preflight = preflight
        self.browser = browser
        self.authenticator = authenticator
        self.navigator = navigator
        self.scenarios = scenarios
        self.merge_poller = merge_poller
        self.summary_logger = summary_logger
        self.workflow_manager = workflow_manager or WorkflowManager(config)
        self.logger = get_logger(__name__)

        self._pending_polls: Set[asyncio.Task] = set()

    @property
    def pending_polls(self) -> Set[asyncio.Task]:
        """Merge poll tasks that have not finished yet."""
        return set(self._pending_polls)

    async def execute(self, plan: RunPlan) -> RunReport:
        """
        Execute every action of a plan.

        Args:
            plan: Resolved plan from the configuration wizard

        Returns:
            Report with one outcome per executed action

        Raises:
            AuthenticationError: If no API token can be obtained
            PreflightError: If the school's merge settings forbid the run
        """
        context = self.workflow_manager.start_workflow(metadata=plan.describe())
        logger = get_logger(
            __name__, workflow_id=context.workflow_id, school_id=plan.school_id
        )

        try:
            token = await self.token_provider.obtain_auth_token(
                plan.environment, plan.school_id
            )
            await self.preflight.validate(
                plan.environment, plan.school_id, token, plan.product_slug, plan.action
            )
        except BidiQAError as e:
            logger.error(f"Run setup failed: {e.message}", extra={"metadata": e.to_dict()})
            self.workflow_manager.end_workflow(success=False, error=e)
            raise

        workspace = RunWorkspace(self.config.schools_dir, plan.school_id)
        workspace.create()
        report = RunReport(workspace=workspace.root)

        actions = expand_action(plan.action)
        logger.info(
            f"Running {len(actions)} action(s) in {workspace.root}",
            extra={"metadata": {"actions": [a.value for a in actions]}},
        )

        for action in actions:
            try:
                outcome = await self._run_action(plan, action, workspace, context)
            except MergeInProgressError as e:
                report.aborted = True
                report.abort_reason = e.message
                cancelled = self.cancel_merge_polls()
                logger.warning(
                    f"Run aborted at {action.value}: {e.message}",
                    extra={"metadata": {"cancelled_polls": cancelled}},
                )
                break

            report.outcomes.append(outcome)
            self._record_outcome(outcome, workspace, plan.school_id)

        self.workflow_manager.end_workflow(success=not report.aborted)
        logger.info("Run finished", extra={"metadata": report.summary()})
        return report

    async def _run_action(
        self,
        plan: RunPlan,
        action: Action,
        workspace: RunWorkspace,
        context: WorkflowContext,
    ) -> ActionOutcome:
        info = ACTION_INFO[action]
        product_slug = resolve_product_slug(action, plan.product_slug)
        label = f"{plan.school_id}-{action.value}-debugging-run"
        headed = not self.config.get_effective_headless_mode()
        started = asyncio.get_running_loop().time()

        self.logger.info(
            f"Starting {action.value} on {product_slug}",
            extra={"action": action.value, "school_id": plan.school_id},
        )

        session: Optional[BrowserSession] = None
        folder: Optional[Path] = None
        succeeded = False
        try:
            session = await self.browser.acquire(
                plan.environment, self.config.debug_video_dir, label, headed
            )
            await session.seed(plan.email, plan.school_id)
            await self.authenticator.sign_in(
                session, plan.email, plan.password, product_slug, plan.environment
            )
            await self.navigator.navigate(session, product_slug, plan.environment)

            if await self.navigator.merge_in_progress(session):
                raise MergeInProgressError(MERGE_IN_PROGRESS_MESSAGE, action=action.value)

            folder = workspace.action_folder(action)
            scenario = self.scenarios.get(action)
            if scenario is None:
                reason = f"No scenario registered for action {action.value}"
            else:
                ctx = ActionContext(
                    session=session,
                    folder=folder,
                    plan=plan,
                    action=action,
                    product_slug=product_slug,
                    form_name=form_name_for_action(
                        action, plan.course_form_name, plan.program_form_name
                    ),
                    used_records=context.used_records,
                    timestamp=workspace.stamp,
                )
                succeeded = bool(await scenario(ctx))
                reason = SAVED_SUCCESSFULLY if succeeded else info.save_failure_reason
        except MergeInProgressError:
            raise
        except NoEligibleRecordError as e:
            reason = e.message
        except Exception as e:
            reason = f"{info.error_label}: {e}"
            self.logger.error(
                f"Action {action.value} failed: {e}",
                extra={"action": action.value, "school_id": plan.school_id},
            )
        finally:
            if session is not None:
                await self._close_session(session, action)

        log_performance(
            self.logger,
            f"action:{action.value}",
            asyncio.get_running_loop().time() - started,
            succeeded=succeeded,
        )

        if succeeded:
            self._schedule_merge_poll(plan, action, folder)

        return ActionOutcome(
            action=action,
            status=OutcomeStatus.SUCCEEDED if succeeded else OutcomeStatus.FAILED,
            reason=reason,
            timestamp=datetime.now(),
            run_id=generate_run_id(action),
        )

    async def _close_session(self, session: BrowserSession, action: Action) -> None:
        try:
            await session.close()
        except Exception as e:
            self.logger.warning(f"Failed to close browser session for {action.value}: {e}")

    def _record_outcome(
        self, outcome: ActionOutcome, workspace: RunWorkspace, school_id: str
    ) -> None:
        status_icon = "✅" if outcome.succeeded else "❌"
        self.logger.info(
            f"{status_icon} {outcome.action.value}: {outcome.reason}",
            extra={"action": outcome.action.value, "status": outcome.status.value},
        )
        try:
            self.summary_logger.append_outcome(
                workspace.root,
                outcome.run_id,
                outcome.status,
                outcome.reason,
                outcome.timestamp,
                school_id,
                outcome.action,
            )
        except Exception as e:
            self.logger.error(f"Failed to log outcome to run summary: {e}")

    def _schedule_merge_poll(self, plan: RunPlan, action: Action, folder: Path) -> None:
        task = asyncio.create_task(
            self._poll_merge_report(plan, action, folder),
            name=f"merge-poll-{action.value}",
        )
        self._pending_polls.add(task)
        task.add_done_callback(self._pending_polls.discard)
        self.logger.debug(f"Scheduled merge poll for {action.value}")

    async def _poll_merge_report(self, plan: RunPlan, action: Action, folder: Path) -> None:
        try:
            await self.merge_poller.poll(plan.environment, plan.school_id, action, folder)
        except asyncio.CancelledError:
            self.logger.info(f"Merge poll for {action.value} cancelled")
            raise
        except Exception as e:
            self.logger.error(f"Merge poll for {action.value} failed: {e}")

    async def wait_for_merge_polls(self) -> int:
        """
        Wait for every pending merge poll to finish.

        Returns:
            Number of polls waited on
        """
        tasks = list(self._pending_polls)
        if tasks:
            self.logger.info(f"Waiting for {len(tasks)} merge poll(s) to finish")
            await asyncio.gather(*tasks, return_exceptions=True)
        return len(tasks)

    def cancel_merge_polls(self) -> int:
        """
        Cancel every pending merge poll.

        Returns:
            Number of polls cancelled
        """
        tasks = [t for t in self._pending_polls if not t.done()]
        for task in tasks:
            task.cancel()
        return len(tasks)
