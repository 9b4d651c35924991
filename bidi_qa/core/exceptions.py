"""
Base exception classes for the bi-directional QA runner.

Provides a hierarchy of exceptions for the error classes that can occur
between collecting a run plan and recording action outcomes.
"""

from typing import Optional, Dict, Any


class BidiQAError(Exception):
    """Base exception class for all runner errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
        }


class ValidationError(BidiQAError):
    """Raised when configuration validation fails."""

    def __init__(
        self,
        message: str,
        validation_type: Optional[str] = None,
        violations: Optional[list] = None,
    ):
        super().__init__(message, "VALIDATION_FAILED")
        self.validation_type = validation_type
        self.violations = violations or []
        self.context.update(
            {
                "validation_type": validation_type,
                "violations": violations,
            }
        )


class WizardInterruptedError(BidiQAError):
    """Raised when the wizard cannot obtain operator input."""

    def __init__(self, message: str, step: Optional[str] = None):
        super().__init__(message, "WIZARD_INTERRUPTED")
        self.step = step
        self.context.update({"step": step})


class FileOperationError(BidiQAError):
    """Raised when file system operations fail."""

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message, "FILE_OPERATION_FAILED")
        self.file_path = file_path
        self.operation = operation
        self.context.update(
            {
                "file_path": file_path,
                "operation": operation,
            }
        )


class AuthenticationError(BidiQAError):
    """Raised when an API token or a UI sign-in cannot be obtained."""

    def __init__(
        self,
        message: str,
        environment: Optional[str] = None,
        attempts: Optional[int] = None,
    ):
        super().__init__(message, "AUTHENTICATION_FAILED")
        self.environment = environment
        self.attempts = attempts
        self.context.update(
            {
                "environment": environment,
                "attempts": attempts,
            }
        )


class PreflightError(BidiQAError):
    """Raised when the school's merge settings do not allow a run."""

    def __init__(
        self,
        message: str,
        school_id: Optional[str] = None,
        check: Optional[str] = None,
    ):
        super().__init__(message, "PREFLIGHT_FAILED")
        self.school_id = school_id
        self.check = check
        self.context.update(
            {
                "school_id": school_id,
                "check": check,
            }
        )


class MergeInProgressError(BidiQAError):
    """Raised when a nightly merge is running for the school; aborts the whole run."""

    def __init__(self, message: str, action: Optional[str] = None):
        super().__init__(message, "MERGE_IN_PROGRESS")
        self.action = action
        self.context.update({"action": action})


class NoEligibleRecordError(BidiQAError):
    """Raised by a scenario when there is no record it can act on."""

    def __init__(
        self,
        message: str,
        action: Optional[str] = None,
        record_type: Optional[str] = None,
    ):
        super().__init__(message, "NO_ELIGIBLE_RECORD")
        self.action = action
        self.record_type = record_type
        self.context.update(
            {
                "action": action,
                "record_type": record_type,
            }
        )


class MergePollTimeoutError(BidiQAError):
    """Raised when a merge report does not appear within the polling window."""

    def __init__(
        self,
        message: str,
        action: Optional[str] = None,
        waited_seconds: Optional[float] = None,
    ):
        super().__init__(message, "MERGE_POLL_TIMEOUT")
        self.action = action
        self.waited_seconds = waited_seconds
        self.context.update(
            {
                "action": action,
                "waited_seconds": waited_seconds,
            }
        )


class ApiRequestError(BidiQAError):
    """Raised when a remote API request fails or returns an error status."""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status: Optional[int] = None,
    ):
        super().__init__(message, "API_REQUEST_FAILED")
        self.url = url
        self.status = status
        self.context.update(
            {
                "url": url,
                "status": status,
            }
        )
