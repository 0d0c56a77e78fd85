"""Custom exceptions for GitFlow Studio."""

from enum import Enum
from typing import Any


class ErrorSeverity(Enum):
    """Error severity levels."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for better classification."""

    GIT_OPERATION = "git_operation"
    FILE_SYSTEM = "file_system"
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    COMMAND_EXECUTION = "command_execution"
    SERVICE = "service"


# Substrings that identify a removal blocked by an OS file lock or permission
PERMISSION_ERROR_PATTERNS = (
    "Permission denied",
    "EBUSY",
    "EPERM",
    "Access is denied",
    "Device or resource busy",
    "being used by another process",
)


class GitFlowStudioError(Exception):
    """Base exception for GitFlow Studio."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.SERVICE,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        details: dict[str, Any] | None = None,
        user_message: str | None = None,
        suggested_action: str | None = None,
        error_code: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.details = details or {}
        self.user_message = user_message or message
        self.suggested_action = suggested_action
        self.error_code = error_code

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging."""
        return {
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "details": self.details,
            "user_message": self.user_message,
            "suggested_action": self.suggested_action,
            "error_code": self.error_code,
            "type": self.__class__.__name__,
        }


class GitError(GitFlowStudioError):
    """A git invocation failed, exited non-zero or timed out."""

    def __init__(
        self,
        message: str,
        args: list[str] | None = None,
        stderr: str = "",
        exit_code: int | None = None,
        **kwargs,
    ):
        super().__init__(message, category=ErrorCategory.GIT_OPERATION, **kwargs)
        # ``self.args`` belongs to BaseException, keep the argv separately
        self.git_args = list(args or [])
        self.stderr = stderr
        self.exit_code = exit_code
        self.details.update(
            {
                "command": "git " + " ".join(self.git_args),
                "exit_code": exit_code,
                "stderr": stderr,
            }
        )

    @staticmethod
    def is_permission_message(text: str) -> bool:
        """Check whether a message describes a permission or file-lock failure."""
        return any(pattern in text for pattern in PERMISSION_ERROR_PATTERNS)


class PermissionFallbackError(GitError):
    """
    A git failure caused by an OS permission or file lock.

    The gateway raises it instead of a plain GitError whenever the failure
    text matches PERMISSION_ERROR_PATTERNS, so worktree removal can fall back
    to deleting the directory itself.
    """

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault(
            "user_message",
            "The worktree could not be removed because some of its files are in "
            "use. Close any programs (editors, terminals, dev servers) that may "
            "have files open in the worktree and try again.",
        )
        kwargs.setdefault(
            "suggested_action",
            "Close programs holding files in the worktree, then retry the removal.",
        )
        super().__init__(message, **kwargs)


class ValidationError(GitFlowStudioError):
    """Exception for validation errors."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any | None = None,
        **kwargs,
    ):
        super().__init__(
            message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.WARNING,
            **kwargs,
        )
        self.field = field
        self.value = value
        if field:
            self.details.update(
                {"field": field, "value": str(value) if value is not None else None}
            )


class ConfigurationError(GitFlowStudioError):
    """Exception for configuration-related errors."""

    def __init__(self, message: str, config_file: str | None = None, **kwargs):
        super().__init__(message, category=ErrorCategory.CONFIGURATION, **kwargs)
        self.config_file = config_file
        if config_file:
            self.details.update({"config_file": config_file})


class FileSystemError(GitFlowStudioError):
    """Exception for file system-related errors."""

    def __init__(
        self,
        message: str,
        path: str | None = None,
        operation: str | None = None,
        **kwargs,
    ):
        super().__init__(message, category=ErrorCategory.FILE_SYSTEM, **kwargs)
        self.path = path
        self.operation = operation
        if path:
            self.details.update({"path": path, "operation": operation})


class CommandExecutionError(GitFlowStudioError):
    """A post-create shell command failed."""

    def __init__(
        self,
        message: str,
        command: str | None = None,
        exit_code: int | None = None,
        stdout: str | None = None,
        stderr: str | None = None,
        **kwargs,
    ):
        super().__init__(message, category=ErrorCategory.COMMAND_EXECUTION, **kwargs)
        self.command = command
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        if command:
            self.details.update(
                {
                    "command": command,
                    "exit_code": exit_code,
                    "stdout": stdout,
                    "stderr": stderr,
                }
            )


class ServiceError(GitFlowStudioError):
    """Exception for service layer errors."""

    def __init__(
        self,
        message: str,
        service: str | None = None,
        operation: str | None = None,
        **kwargs,
    ):
        super().__init__(message, category=ErrorCategory.SERVICE, **kwargs)
        self.service = service
        self.operation = operation
        if service:
            self.details.update({"service": service, "operation": operation})


def describe_removal_error(error: Exception) -> str:
    """
    Build the user-facing message for a failed worktree removal.

    Permission and lock failures get an actionable explanation; everything
    else surfaces the underlying message unmodified.
    """
    if isinstance(error, PermissionFallbackError):
        return error.user_message
    if isinstance(error, GitFlowStudioError):
        return error.message
    return str(error)
