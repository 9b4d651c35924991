"""
Interactive configuration wizard.

Walks the operator through credentials, product, school and action selection
and produces an immutable RunPlan. Each step decides which step "back" returns
to through an explicit transition table; there is no history stack.
"""

import getpass
from typing import Callable, Dict, Optional, Tuple

from ..core.config import VALID_ENVIRONMENTS
from ..core.exceptions import FileOperationError, ValidationError, WizardInterruptedError
from ..core.logging_config import get_logger
from .catalog import (
    ACTION_INFO,
    PRODUCT_MENU,
    PRODUCT_SLUGS,
    action_menu,
    derive_form_prompts,
    is_peoplesoft,
)
from .models import (
    Action,
    DEFAULT_COURSE_FORM_NAME,
    DEFAULT_PROGRAM_FORM_NAME,
    Product,
    PromptKind,
    RunPlan,
    SessionRecord,
    WizardEvent,
    WizardState,
    WizardStep,
)
from .session_store import SessionStore


BACK_COMMANDS = ("back", "b")

# (state, event) -> next state. A missing entry means the event is rejected.
TRANSITIONS: Dict[Tuple[WizardStep, WizardEvent], WizardStep] = {
    (WizardStep.EMAIL, WizardEvent.ADVANCE): WizardStep.PASSWORD,
    (WizardStep.PASSWORD, WizardEvent.BACK): WizardStep.EMAIL,
    (WizardStep.PASSWORD, WizardEvent.ADVANCE): WizardStep.PRODUCT,
    (WizardStep.PRODUCT, WizardEvent.BACK): WizardStep.PASSWORD,
    (WizardStep.PRODUCT, WizardEvent.ADVANCE): WizardStep.SCHOOL_ID,
    (WizardStep.SCHOOL_ID, WizardEvent.BACK): WizardStep.PRODUCT,
    (WizardStep.SCHOOL_ID, WizardEvent.ADVANCE): WizardStep.ACTION,
    (WizardStep.ACTION, WizardEvent.BACK): WizardStep.SCHOOL_ID,
    (WizardStep.ACTION, WizardEvent.ADVANCE): WizardStep.FORM_NAME,
    (WizardStep.ACTION, WizardEvent.COMPLETE): WizardStep.DONE,
    (WizardStep.FORM_NAME, WizardEvent.BACK): WizardStep.ACTION,
    (WizardStep.FORM_NAME, WizardEvent.ADVANCE): WizardStep.FORM_NAME,
    (WizardStep.FORM_NAME, WizardEvent.COMPLETE): WizardStep.DONE,
}

PromptFn = Callable[..., str]
EchoFn = Callable[[str], None]


def default_prompt(message: str, secret: bool = False) -> str:
    """Read one line from the terminal, hiding it for secrets."""
    if secret:
        return getpass.getpass(message)
    return input(message)


def is_back(text: str) -> bool:
    return text.strip().lower() in BACK_COMMANDS


def _choices_hint(count: int) -> str:
    digits = [str(i) for i in range(1, count + 1)]
    return ", ".join(digits[:-1]) + ", or " + digits[-1]


class ConfigurationWizard:
    """
    Finite-state dialogue that collects a valid RunPlan.

    Args:
        session_store: Store the previous session is read from and the new
            one is written to
        environment: Fixed non-production environment set with the password
        prompt: ``prompt(message, secret=False) -> str`` input function
        echo: Output function for menus and messages
    """

    def __init__(
        self,
        session_store: SessionStore,
        environment: str = "stg",
        prompt: Optional[PromptFn] = None,
        echo: Optional[EchoFn] = None,
    ):
        if environment not in VALID_ENVIRONMENTS:
            raise ValidationError(
                f"Wizard cannot target environment {environment!r}",
                validation_type="environment",
                violations=[environment],
            )
        self.session_store = session_store
        self.environment = environment
        self._prompt = prompt or default_prompt
        self._echo = echo or print
        self.logger = get_logger(__name__)

        self.state = WizardState()
        self.previous: Optional[SessionRecord] = None

        self._handlers = {
            WizardStep.EMAIL: self._step_email,
            WizardStep.PASSWORD: self._step_password,
            WizardStep.PRODUCT: self._step_product,
            WizardStep.SCHOOL_ID: self._step_school_id,
            WizardStep.ACTION: self._step_action,
            WizardStep.FORM_NAME: self._step_form_name,
        }

    def gather_plan(self) -> RunPlan:
        """
        Run the dialogue until every required field is resolved.

        Returns:
            The resolved run plan

        Raises:
            WizardInterruptedError: If operator input cannot be obtained
        """
        self.state = WizardState()
        self.previous = self.session_store.load()

        if self.previous and self.previous.email and self.previous.password:
            self.state.email = self.previous.email
            self.state.password = self.previous.password
            self.state.environment = self.environment
            self.state.step = WizardStep.PRODUCT
            self._echo("\n🔁 Reusing saved email and password from previous run.")
            self.logger.info("Reusing saved credentials from previous session")

        while self.state.step is not WizardStep.DONE:
            event = self._handlers[self.state.step]()
            if event is None:
                continue
            self.dispatch(event)

        self._persist_session()
        plan = self._build_plan()
        self.logger.info("Run plan collected", extra={"metadata": plan.describe()})
        return plan

    def dispatch(self, event: WizardEvent) -> bool:
        """
        Apply an event to the current step through the transition table.

        Returns:
            True if the step changed or re-entered, False if rejected
        """
        next_step = TRANSITIONS.get((self.state.step, event))
        if next_step is None:
            if event is WizardEvent.BACK:
                self._echo("  ↳ Cannot go back from the first step.")
            self.logger.debug(
                f"Rejected {event.value} at {self.state.step.value}"
            )
            return False
        self.logger.debug(f"Wizard {self.state.step.value} -> {next_step.value}")
        self.state.step = next_step
        return True

    def _read(self, message: str, secret: bool = False) -> str:
        try:
            value = self._prompt(message, secret=secret)
        except (EOFError, KeyboardInterrupt) as e:
            raise WizardInterruptedError(
                "Operator input was interrupted", step=self.state.step.value
            ) from e
        return value if value is not None else ""

    def _step_email(self) -> Optional[WizardEvent]:
        email = self._read("Email: ")
        if is_back(email):
            return WizardEvent.BACK
        if not email.strip():
            self._echo("  ↳ Email cannot be empty.")
            return None
        self.state.email = email.strip()
        return WizardEvent.ADVANCE

    def _step_password(self) -> Optional[WizardEvent]:
        password = self._read("Enter Password (or b to go back): ", secret=True)
        if is_back(password):
            return WizardEvent.BACK
        if not password.strip():
            self._echo("  ↳ Password cannot be empty.")
            return None
        self.state.password = password
        self.state.environment = self.environment
        return WizardEvent.ADVANCE

    def _step_product(self) -> Optional[WizardEvent]:
        self._echo("\nSelect product:")
        for number, (label, _) in enumerate(PRODUCT_MENU, start=1):
            self._echo(f"  {number}) {label}")
        choice = self._read(
            f"Enter number [1-{len(PRODUCT_MENU)}] (or b to go back): "
        ).strip()

        if is_back(choice):
            return WizardEvent.BACK
        valid = [str(i) for i in range(1, len(PRODUCT_MENU) + 1)]
        if choice not in valid:
            self._echo(f"  ↳ Invalid. Please enter {_choices_hint(len(PRODUCT_MENU))}.")
            return None

        product = PRODUCT_MENU[int(choice) - 1][1]
        self.state.product = product
        self.state.product_slug = PRODUCT_SLUGS[product]
        self.state.action = Action.BOTH if product is Product.BOTH else None
        self.state.pending_prompts.clear()
        return WizardEvent.ADVANCE

    def _step_school_id(self) -> Optional[WizardEvent]:
        saved = self.previous.school_id if self.previous else None
        hint = f" (Press Enter to reuse: {saved})" if saved else ""
        school_id = self._read(
            f"\nSchool ID (e.g. iwu_colleague_ethos){hint} (or b to go back): "
        )

        if is_back(school_id):
            return WizardEvent.BACK
        if not school_id.strip():
            if not saved:
                self._echo("  ↳ School ID cannot be empty.")
                return None
            self.state.school_id = saved
            self._echo(f'  ↳ Using saved school ID: "{saved}"')
        else:
            self.state.school_id = school_id.strip()
        return WizardEvent.ADVANCE

    def _step_action(self) -> Optional[WizardEvent]:
        peoplesoft = is_peoplesoft(self.state.school_id)

        if self.state.product is Product.BOTH:
            # Action was fixed at product selection; keep prompts re-queued by "back"
            if not self.state.pending_prompts:
                self.state.pending_prompts = derive_form_prompts(
                    Action.BOTH, peoplesoft
                )
            if self.state.pending_prompts:
                return WizardEvent.ADVANCE
            return WizardEvent.COMPLETE

        menu = action_menu(self.state.product, peoplesoft)
        self._echo("\nSelect Test Case:")
        for number, action in enumerate(menu, start=1):
            self._echo(f"  {number}) {ACTION_INFO[action].label}")
        choice = self._read(f"Enter number [1-{len(menu)}] (or b to go back): ").strip()

        if is_back(choice):
            return WizardEvent.BACK
        if choice not in [str(i) for i in range(1, len(menu) + 1)]:
            self._echo(f"  ↳ Invalid. Please enter {_choices_hint(len(menu))}.")
            return None

        self.state.action = menu[int(choice) - 1]
        if self.state.product is Product.ACADEMIC_SCHEDULING:
            self.state.pending_prompts.clear()
            return WizardEvent.COMPLETE

        self.state.pending_prompts = derive_form_prompts(self.state.action, peoplesoft)
        if self.state.pending_prompts:
            return WizardEvent.ADVANCE
        return WizardEvent.COMPLETE

    def _step_form_name(self) -> Optional[WizardEvent]:
        kind = self.state.pending_prompts.popleft()
        self.state.current_prompt = kind
        subject = "Course" if kind is PromptKind.COURSE else "Program"

        self._echo(
            f"\n📝 What is {self.state.school_id}'s Form Name for {subject} Creation:"
        )
        self._echo("  1) Enter a custom form name")
        self._echo(f'  2) Press Enter to use default: "{kind.default_name}"')
        value = self._read("Form Name (or press Enter for default, b to go back): ")

        if is_back(value):
            self.state.pending_prompts.appendleft(kind)
            self.state.current_prompt = None
            return WizardEvent.BACK

        if value.strip():
            name = value.strip()
            self._echo(f'  ↳ Using custom form name: "{name}"')
        else:
            name = kind.default_name
            self._echo(f'  ↳ Using default form name: "{name}"')

        if kind is PromptKind.COURSE:
            self.state.course_form_name = name
        else:
            self.state.program_form_name = name
        self.state.current_prompt = None

        if self.state.pending_prompts:
            return WizardEvent.ADVANCE
        return WizardEvent.COMPLETE

    def _persist_session(self) -> None:
        record = SessionRecord(
            email=self.state.email,
            password=self.state.password,
            environment=self.state.environment,
            school_id=self.state.school_id,
        )
        try:
            self.session_store.save(record)
        except FileOperationError as e:
            self._echo("⚠️ Unable to save session data for reuse.")
            self.logger.warning(
                f"Session not saved: {e.message}", extra={"metadata": e.to_dict()}
            )

    def _build_plan(self) -> RunPlan:
        return RunPlan(
            email=self.state.email,
            password=self.state.password,
            environment=self.state.environment,
            product_slug=self.state.product_slug,
            school_id=self.state.school_id,
            action=self.state.action,
            course_form_name=self.state.course_form_name or DEFAULT_COURSE_FORM_NAME,
            program_form_name=self.state.program_form_name
            or DEFAULT_PROGRAM_FORM_NAME,
        )
