"""Exception hierarchy for sshot.

Every error raised by the execution core derives from :class:`SshotError`
and carries an :class:`ErrorContext` describing where it happened, so the
host runner can attach it to a ``HostResult`` and the summary can report it
without string parsing.

Propagation rules:

- ``TaskExecutionError`` is retryable under the task's retry policy.
- ``DependencyNotMet``, ``NoExecutableTaskType`` and ``TaskTimeout`` end the
  task immediately.
- ``ConnectionFailed``, ``AuthenticationFailed`` and ``FactCollectionFailed``
  end the host before any task runs.
- ``GroupDependencyNotMet`` and ``GroupFailed`` end the run.
"""

from dataclasses import dataclass, field
from typing import Any


class ErrorTypes:
    """Error classification constants."""

    CONFIGURATION = "ConfigurationError"
    DEPENDENCY_NOT_MET = "DependencyNotMet"
    GROUP_FAILED = "GroupFailed"
    REMOTE_EXECUTION_FAILED = "RemoteExecutionFailed"
    TIMEOUT_EXCEEDED = "TimeoutExceeded"
    NO_EXECUTABLE_TASK_TYPE = "NoExecutableTaskType"
    CONNECTION_FAILED = "ConnectionFailed"
    AUTHENTICATION_FAILED = "AuthenticationFailed"
    FACT_COLLECTION_FAILED = "FactCollectionFailed"
    UNKNOWN = "Unknown"


@dataclass
class ErrorContext:
    """Where and why an error happened.

    Attributes:
        error_type: One of the :class:`ErrorTypes` constants
        host: Host name, if the error is tied to a host
        task: Task name, if the error is tied to a task
        details: Additional error-specific fields
    """

    error_type: str = ErrorTypes.UNKNOWN
    host: str = ""
    task: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {"error_type": self.error_type}
        if self.host:
            result["host"] = self.host
        if self.task:
            result["task"] = self.task
        result.update(self.details)
        return result


class SshotError(Exception):
    """Base class for all sshot errors."""

    error_type = ErrorTypes.UNKNOWN

    def __init__(self, message: str, host: str = "", task: str = "", **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = ErrorContext(
            error_type=self.error_type,
            host=host,
            task=task,
            details=details,
        )

    def __str__(self) -> str:
        return self.message


class ConfigurationError(SshotError):
    """Inventory or playbook is invalid."""

    error_type = ErrorTypes.CONFIGURATION


class DependencyNotMet(SshotError):
    """A task dependency has not completed on this host."""

    error_type = ErrorTypes.DEPENDENCY_NOT_MET


class GroupDependencyNotMet(DependencyNotMet):
    """A group depends on a group that has not completed."""


class GroupFailed(SshotError):
    """At least one host of a group failed."""

    error_type = ErrorTypes.GROUP_FAILED


class TaskExecutionError(SshotError):
    """A task action failed on the target.

    Attributes:
        output: Output captured before the failure
        exit_status: Process exit status, when the transport reported one
    """

    error_type = ErrorTypes.REMOTE_EXECUTION_FAILED

    def __init__(
        self,
        message: str,
        output: str = "",
        exit_status: int | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.output = output
        self.exit_status = exit_status


class TaskTimeout(SshotError):
    """The retry loop of a task exceeded its timeout.

    Attributes:
        last_error: The failure that triggered the last retry decision
    """

    error_type = ErrorTypes.TIMEOUT_EXCEEDED

    def __init__(self, message: str, last_error: BaseException | None = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.last_error = last_error


class NoExecutableTaskType(SshotError):
    """A task declares no primary action."""

    error_type = ErrorTypes.NO_EXECUTABLE_TASK_TYPE


class ConnectionFailed(SshotError):
    """The remote session could not be established."""

    error_type = ErrorTypes.CONNECTION_FAILED


class AuthenticationFailed(ConnectionFailed):
    """The remote host rejected every authentication method."""

    error_type = ErrorTypes.AUTHENTICATION_FAILED


class FactCollectionFailed(SshotError):
    """A fact collector failed or returned invalid JSON."""

    error_type = ErrorTypes.FACT_COLLECTION_FAILED
