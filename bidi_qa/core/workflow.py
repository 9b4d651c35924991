"""
Workflow management for the bi-directional QA runner.

Handles workflow ID generation, log correlation, and the per-run state shared
by every action of one orchestrator invocation.
"""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Any, Optional, Set

from .config import Config
from .logging_config import get_logger


@dataclass
class WorkflowContext:
    """
    Context information for one orchestrator run.

    ``used_records`` tracks the records (course codes, section ids, ...) that
    scenarios have already acted on in this run. It is created empty for every
    run and shared by reference with every action of that run.
    """

    workflow_id: str
    start_time: float = field(default_factory=time.time)
    config: Optional[Config] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    used_records: Set[str] = field(default_factory=set)

    @property
    def duration(self) -> float:
        """Get current workflow duration in seconds."""
        return time.time() - self.start_time

    @property
    def start_timestamp(self) -> str:
        """Get formatted start timestamp."""
        return datetime.fromtimestamp(self.start_time).isoformat()

    def to_dict(self) -> Dict[str, Any]:
        """Convert workflow context to dictionary."""
        return {
            "workflow_id": self.workflow_id,
            "start_time": self.start_timestamp,
            "duration": self.duration,
            "used_records": len(self.used_records),
            "metadata": self.metadata,
        }


class WorkflowManager:
    """
    Manages workflow start/end logging for one CLI invocation.

    The workflow id is fixed when the manager is created so the log formatters
    can be configured with it before the run starts.
    """

    def __init__(self, config: Optional[Config] = None, workflow_id: Optional[str] = None):
        self.config = config or Config.from_env()
        self.logger = get_logger("bidi_qa.workflow")
        self._current_workflow: Optional[WorkflowContext] = None
        self.workflow_id = workflow_id or self.generate_workflow_id()

    def generate_workflow_id(self) -> str:
        """
        Generate a unique workflow ID for correlating logs and run folders.

        Returns:
            Unique workflow identifier
        """
        workflow_id = uuid.uuid4().hex[:16]
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d")
        return f"{timestamp}-{workflow_id}"

    def start_workflow(
        self, metadata: Optional[Dict[str, Any]] = None
    ) -> WorkflowContext:
        """
        Start a new workflow execution.

        Args:
            metadata: Optional metadata to associate with the workflow

        Returns:
            Fresh workflow context with an empty used-record set
        """
        context = WorkflowContext(
            workflow_id=self.workflow_id,
            config=self.config,
            metadata=metadata or {},
        )
        self._current_workflow = context

        self.logger.info(
            f"Workflow started: {context.workflow_id}",
            extra={
                "metadata": {
                    "workflow_id": context.workflow_id,
                    "start_time": context.start_timestamp,
                    **context.metadata,
                }
            },
        )
        return context

    def end_workflow(
        self, success: bool = True, error: Optional[Exception] = None
    ) -> None:
        """
        End the current workflow execution.

        Args:
            success: Whether the workflow completed successfully
            error: Optional error that caused workflow failure
        """
        if not self._current_workflow:
            self.logger.warning("Attempted to end workflow but no workflow is active")
            return

        context = self._current_workflow
        duration = context.duration

        log_data = {
            "metadata": {
                "workflow_id": context.workflow_id,
                "duration": duration,
                "success": success,
                **context.metadata,
            }
        }

        if error:
            log_data["metadata"]["error"] = str(error)
            log_data["metadata"]["error_type"] = error.__class__.__name__

        if success:
            self.logger.info(
                f"Workflow completed: {context.workflow_id} ({duration:.2f}s)",
                extra=log_data,
            )
        else:
            self.logger.error(
                f"Workflow failed: {context.workflow_id} ({duration:.2f}s)",
                extra=log_data,
            )

        self._current_workflow = None

    @property
    def current_workflow(self) -> Optional[WorkflowContext]:
        """Get the current active workflow context."""
        return self._current_workflow
