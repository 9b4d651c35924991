"""
Run execution components.

The orchestrator, its collaborator interfaces, the run workspace and the
outcome models.
"""

from .collaborators import ScenarioRegistry
from .models import ActionContext, ActionOutcome, OutcomeStatus, RunReport
from .orchestrator import RunOrchestrator
from .workspace import RunWorkspace

__all__ = [
    "ScenarioRegistry",
    "ActionContext",
    "ActionOutcome",
    "OutcomeStatus",
    "RunReport",
    "RunOrchestrator",
    "RunWorkspace",
]
