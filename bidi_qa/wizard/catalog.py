"""
Product and action catalog.

Menus, per-action metadata, and the pure rules both the wizard and the
orchestrator depend on: PeopleSoft detection, form-prompt derivation,
aggregate expansion, and product slug resolution.
"""

from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional, Tuple

from .models import (
    Action,
    Product,
    PromptKind,
    SECTION_DASHBOARD_SLUG,
    COURSES_SLUG,
    PROGRAMS_SLUG,
)


PEOPLESOFT_MARKER = "_peoplesoft"

PRODUCT_MENU: List[Tuple[str, Product]] = [
    ("Academic Scheduling", Product.ACADEMIC_SCHEDULING),
    ("Curriculum Management", Product.CURRICULUM_MANAGEMENT),
    ("Both Products", Product.BOTH),
]

PRODUCT_SLUGS = {
    Product.ACADEMIC_SCHEDULING: SECTION_DASHBOARD_SLUG,
    Product.CURRICULUM_MANAGEMENT: COURSES_SLUG,
    # Placeholder; each action resolves its own slug at run time
    Product.BOTH: SECTION_DASHBOARD_SLUG,
}

ACADEMIC_SCHEDULING_ACTIONS: List[Action] = [
    Action.UPDATE,
    Action.CREATE,
    Action.CREATE_NO_MEET_NO_PROF,
    Action.EDIT_RELATIONSHIPS,
    Action.CREATE_RELATIONSHIPS,
    Action.INACTIVATE_SECTION,
]

CURRICULUM_MANAGEMENT_ACTIONS: List[Action] = [
    Action.UPDATE_COURSE,
    Action.INACTIVATE_COURSE,
    Action.NEW_COURSE_REVISION,
    Action.CREATE_COURSE,
]

PROGRAM_ACTIONS: List[Action] = [
    Action.UPDATE_PROGRAM,
    Action.CREATE_PROGRAM,
]


@dataclass(frozen=True)
class ActionInfo:
    """Display and failure-reporting metadata for one action."""

    label: str
    category: Optional[Product]
    save_failure_reason: str = ""
    error_label: str = ""


ACTION_INFO = {
    Action.UPDATE: ActionInfo(
        "Update Existing Section",
        Product.ACADEMIC_SCHEDULING,
        "Failed to save section",
        "Section update error",
    ),
    Action.CREATE: ActionInfo(
        "Create New Section Including Meeting and Professor",
        Product.ACADEMIC_SCHEDULING,
        "Failed to save section",
        "Section creation error",
    ),
    Action.CREATE_NO_MEET_NO_PROF: ActionInfo(
        "Create New Section Without Meeting or Professor",
        Product.ACADEMIC_SCHEDULING,
        "Failed to save section",
        "Section creation error",
    ),
    Action.EDIT_RELATIONSHIPS: ActionInfo(
        "Edit Existing Relationships",
        Product.ACADEMIC_SCHEDULING,
        "Relationships edit process failed",
        "Relationships edit error",
    ),
    Action.CREATE_RELATIONSHIPS: ActionInfo(
        "Create New Relationships",
        Product.ACADEMIC_SCHEDULING,
        "Relationships create process failed",
        "Relationships create error",
    ),
    Action.INACTIVATE_SECTION: ActionInfo(
        "Inactivate a Section",
        Product.ACADEMIC_SCHEDULING,
        "Failed to save section",
        "Section inactivation error",
    ),
    Action.UPDATE_COURSE: ActionInfo(
        "Update Course through Direct Edit",
        Product.CURRICULUM_MANAGEMENT,
        "Course update process failed",
        "Course update error",
    ),
    Action.INACTIVATE_COURSE: ActionInfo(
        "Inactivate a Course",
        Product.CURRICULUM_MANAGEMENT,
        "Course inactivation process failed",
        "Course inactivation error",
    ),
    Action.NEW_COURSE_REVISION: ActionInfo(
        "Update Effective Start Date (New Revision)",
        Product.CURRICULUM_MANAGEMENT,
        "Course revision failed during execution",
        "Course revision error",
    ),
    Action.CREATE_COURSE: ActionInfo(
        "Propose New Course",
        Product.CURRICULUM_MANAGEMENT,
        "Course creation failed during execution",
        "Course creation error",
    ),
    Action.UPDATE_PROGRAM: ActionInfo(
        "Update Existing Program",
        Product.CURRICULUM_MANAGEMENT,
        "Program update process failed",
        "Program update error",
    ),
    Action.CREATE_PROGRAM: ActionInfo(
        "Propose New Program",
        Product.CURRICULUM_MANAGEMENT,
        "Program creation failed during execution",
        "Program creation error",
    ),
    Action.ALL: ActionInfo("All of the Above", Product.ACADEMIC_SCHEDULING),
    Action.COURSE_ALL: ActionInfo("All of the Above", Product.CURRICULUM_MANAGEMENT),
    Action.BOTH: ActionInfo("Both Products - All Test Cases", None),
}


def is_peoplesoft(school_id: Optional[str]) -> bool:
    """A school id containing ``_peoplesoft`` marks a PeopleSoft tenant."""
    return bool(school_id) and PEOPLESOFT_MARKER in school_id


def action_menu(product: Product, peoplesoft: bool = False) -> List[Action]:
    """
    Ordered menu of actions for a product.

    Academic Scheduling always has seven entries. Curriculum Management has
    five, or seven for PeopleSoft tenants where the program actions sit
    between the course actions and "All of the Above".
    """
    if product is Product.ACADEMIC_SCHEDULING:
        return ACADEMIC_SCHEDULING_ACTIONS + [Action.ALL]
    if product is Product.CURRICULUM_MANAGEMENT:
        menu = list(CURRICULUM_MANAGEMENT_ACTIONS)
        if peoplesoft:
            menu += PROGRAM_ACTIONS
        return menu + [Action.COURSE_ALL]
    raise ValueError(f"No action menu for product: {product.value}")


def derive_form_prompts(action: Action, peoplesoft: bool) -> Deque[PromptKind]:
    """
    Form-name prompts needed before an action can run.

    Args:
        action: Chosen action (concrete or aggregate)
        peoplesoft: Whether the school is a PeopleSoft tenant

    Returns:
        Ordered queue of prompt kinds, possibly empty
    """
    if action is Action.CREATE_COURSE:
        return deque([PromptKind.COURSE])
    if action in (Action.COURSE_ALL, Action.BOTH):
        prompts = deque([PromptKind.COURSE])
        if peoplesoft:
            prompts.append(PromptKind.PROGRAM)
        return prompts
    if action is Action.CREATE_PROGRAM:
        return deque([PromptKind.PROGRAM])
    return deque()


def expand_action(action: Action) -> List[Action]:
    """Expand an aggregate into its fixed, ordered list of concrete actions."""
    if action is Action.ALL:
        return list(ACADEMIC_SCHEDULING_ACTIONS)
    if action is Action.COURSE_ALL:
        return list(CURRICULUM_MANAGEMENT_ACTIONS)
    if action is Action.BOTH:
        return list(ACADEMIC_SCHEDULING_ACTIONS) + list(CURRICULUM_MANAGEMENT_ACTIONS)
    return [action]


def resolve_product_slug(action: Action, plan_slug: str) -> str:
    """
    Product slug to sign in and navigate to for one concrete action.

    ``update`` and ``inactivateSection`` always land on the section dashboard
    so it is pre-filtered correctly, whatever slug the plan carries.
    """
    if action in PROGRAM_ACTIONS:
        return PROGRAMS_SLUG
    if action in CURRICULUM_MANAGEMENT_ACTIONS:
        return COURSES_SLUG
    if action in (Action.UPDATE, Action.INACTIVATE_SECTION):
        return SECTION_DASHBOARD_SLUG
    return plan_slug


def product_category(action: Action) -> Product:
    """Category folder an action's artifacts are filed under."""
    category = ACTION_INFO[action].category
    return category if category is not None else Product.ACADEMIC_SCHEDULING


def form_name_for_action(
    action: Action, course_form_name: str, program_form_name: str
) -> Optional[str]:
    """Form name a scenario needs, if any."""
    if action is Action.CREATE_COURSE:
        return course_form_name
    if action is Action.CREATE_PROGRAM:
        return program_form_name
    return None
