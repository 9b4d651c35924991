"""Core components for the bi-directional QA runner."""

from .config import Config
from .exceptions import (
    BidiQAError,
    ValidationError,
    WizardInterruptedError,
    FileOperationError,
    AuthenticationError,
    PreflightError,
    MergeInProgressError,
    NoEligibleRecordError,
    MergePollTimeoutError,
    ApiRequestError,
)
from .logging_config import setup_logging, get_logger
from .workflow import WorkflowContext, WorkflowManager

__all__ = [
    "Config",
    "BidiQAError",
    "ValidationError",
    "WizardInterruptedError",
    "FileOperationError",
    "AuthenticationError",
    "PreflightError",
    "MergeInProgressError",
    "NoEligibleRecordError",
    "MergePollTimeoutError",
    "ApiRequestError",
    "setup_logging",
    "get_logger",
    "WorkflowContext",
    "WorkflowManager",
]
