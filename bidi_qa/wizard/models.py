"""
Data models for the configuration wizard.

Defines the enumerations the wizard and orchestrator share, the persisted
session record, the immutable run plan, and the wizard's transient state.
"""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_COURSE_FORM_NAME = "Propose New Course"
DEFAULT_PROGRAM_FORM_NAME = "Propose New Program"

SECTION_DASHBOARD_SLUG = "sm/section-dashboard"
COURSES_SLUG = "cm/courses"
PROGRAMS_SLUG = "cm/programs"


class Product(Enum):
    """Products an operator can target."""

    ACADEMIC_SCHEDULING = "Academic Scheduling"
    CURRICULUM_MANAGEMENT = "Curriculum Management"
    BOTH = "Both Products"


class Action(Enum):
    """Concrete test scenarios plus the three aggregate markers."""

    # Academic Scheduling
    UPDATE = "update"
    CREATE = "create"
    CREATE_NO_MEET_NO_PROF = "createNoMeetNoProf"
    EDIT_RELATIONSHIPS = "editRelationships"
    CREATE_RELATIONSHIPS = "createRelationships"
    INACTIVATE_SECTION = "inactivateSection"

    # Curriculum Management
    UPDATE_COURSE = "updateCourse"
    INACTIVATE_COURSE = "inactivateCourse"
    NEW_COURSE_REVISION = "newCourseRevision"
    CREATE_COURSE = "createCourse"
    UPDATE_PROGRAM = "updateProgram"
    CREATE_PROGRAM = "createProgram"

    # Aggregates
    ALL = "all"
    COURSE_ALL = "courseAll"
    BOTH = "both"

    @property
    def is_aggregate(self) -> bool:
        return self in (Action.ALL, Action.COURSE_ALL, Action.BOTH)


class PromptKind(Enum):
    """Kinds of form-name prompts the wizard can queue."""

    COURSE = "course"
    PROGRAM = "program"

    @property
    def default_name(self) -> str:
        if self is PromptKind.COURSE:
            return DEFAULT_COURSE_FORM_NAME
        return DEFAULT_PROGRAM_FORM_NAME


class WizardStep(Enum):
    """Wizard states."""

    EMAIL = "email"
    PASSWORD = "password"
    PRODUCT = "product"
    SCHOOL_ID = "schoolId"
    ACTION = "action"
    FORM_NAME = "formName"
    DONE = "done"


class WizardEvent(Enum):
    """Events a wizard step can emit."""

    ADVANCE = "advance"
    BACK = "back"
    COMPLETE = "complete"


def _require_text(value: str, name: str) -> str:
    if value is None or not str(value).strip():
        raise ValueError(f"{name} cannot be empty")
    return value


class SessionRecord(BaseModel):
    """Credentials and last school reused across wizard invocations."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    email: str = Field(..., description="Operator sign-in email")
    password: str = Field(..., description="Operator sign-in password")
    environment: str = Field(..., description="Target environment")
    school_id: str = Field(..., alias="schoolId", description="Last school used")

    @field_validator("email", "password", "environment", "school_id")
    @classmethod
    def validate_not_empty(cls, v, info):
        return _require_text(v, info.field_name)

    def to_json_dict(self) -> dict:
        """Serialise using the on-disk key names."""
        return self.model_dump(by_alias=True)


class RunPlan(BaseModel):
    """Fully resolved wizard output; the orchestrator's only input."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    email: str
    password: str
    environment: str
    product_slug: str
    school_id: str
    action: Action
    course_form_name: str = DEFAULT_COURSE_FORM_NAME
    program_form_name: str = DEFAULT_PROGRAM_FORM_NAME

    @field_validator(
        "email",
        "password",
        "environment",
        "product_slug",
        "school_id",
        "course_form_name",
        "program_form_name",
    )
    @classmethod
    def validate_not_empty(cls, v, info):
        return _require_text(v, info.field_name)

    def describe(self) -> dict:
        """Plan summary without secrets, for logs."""
        return {
            "environment": self.environment,
            "product_slug": self.product_slug,
            "school_id": self.school_id,
            "action": self.action.value,
            "course_form_name": self.course_form_name,
            "program_form_name": self.program_form_name,
        }


@dataclass
class WizardState:
    """Answers accumulated during one wizard invocation."""

    step: WizardStep = WizardStep.EMAIL
    email: Optional[str] = None
    password: Optional[str] = None
    environment: Optional[str] = None
    product: Optional[Product] = None
    product_slug: Optional[str] = None
    school_id: Optional[str] = None
    action: Optional[Action] = None
    pending_prompts: Deque[PromptKind] = field(default_factory=deque)
    current_prompt: Optional[PromptKind] = None
    course_form_name: Optional[str] = None
    program_form_name: Optional[str] = None
