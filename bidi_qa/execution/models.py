"""
Data models for run execution.

Defines the outcome of each executed action, the report returned for a run,
and the context handed to an action scenario.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field

from ..wizard.models import Action, RunPlan


SAVED_SUCCESSFULLY = "Saved successfully"


class OutcomeStatus(Enum):
    """Status recorded for one executed action."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ActionOutcome(BaseModel):
    """Immutable record of how one action ended."""

    model_config = ConfigDict(frozen=True)

    action: Action
    status: OutcomeStatus
    reason: str = Field(..., description="Human-readable success or failure reason")
    timestamp: datetime
    run_id: str

    @property
    def succeeded(self) -> bool:
        return self.status is OutcomeStatus.SUCCEEDED


class RunReport(BaseModel):
    """Result of one orchestrator run."""

    workspace: Path
    outcomes: List[ActionOutcome] = Field(default_factory=list)
    aborted: bool = False
    abort_reason: Optional[str] = None

    @property
    def succeeded_count(self) -> int:
        return sum(1 for o in self.outcomes if o.succeeded)

    @property
    def failed_count(self) -> int:
        return sum(1 for o in self.outcomes if not o.succeeded)

    def summary(self) -> dict:
        """Counts for logs and CLI output."""
        return {
            "workspace": str(self.workspace),
            "total": len(self.outcomes),
            "succeeded": self.succeeded_count,
            "failed": self.failed_count,
            "aborted": self.aborted,
            "abort_reason": self.abort_reason,
        }


@dataclass(frozen=True)
class ActionContext:
    """
    Everything a scenario needs to perform one action.

    ``used_records`` is the run-wide set shared by every action of the run;
    scenarios add the records they act on so later actions pick others.
    """

    session: Any
    folder: Path
    plan: RunPlan
    action: Action
    product_slug: str
    form_name: Optional[str]
    used_records: Set[str]
    timestamp: str
