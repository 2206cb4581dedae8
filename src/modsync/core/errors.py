"""Error kinds and the structured error used across modsync.

This module provides:
- ErrorKind: Classification of failures
- ModSyncError: Exception carrying an ErrorKind plus path/pid/config context
- OperationCancelled: Raised when a cooperative cancellation is observed
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Classification of a failure.

    Callers branch on the kind instead of on exception subclasses.
    """

    ENVIRONMENT_VALIDATION_FAILED = "environment_validation_failed"
    FILE_OPERATION_FAILED = "file_operation_failed"
    PROCESS_MONITORING_FAILED = "process_monitoring_failed"
    CONFIGURATION_INVALID = "configuration_invalid"
    UNEXPECTED = "unexpected"


class ModSyncError(Exception):
    """Failure with a kind and optional structured context.

    Attributes:
        kind: What went wrong.
        path: File path involved, if any.
        pid: Process id involved, if any.
        config_key: Configuration key involved, if any.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        path: str | None = None,
        pid: int | None = None,
        config_key: str | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.path = path
        self.pid = pid
        self.config_key = config_key

    @property
    def context(self) -> dict[str, str | int]:
        """Non-empty context fields, for logging."""
        context: dict[str, str | int] = {}
        if self.path is not None:
            context["path"] = self.path
        if self.pid is not None:
            context["pid"] = self.pid
        if self.config_key is not None:
            context["config_key"] = self.config_key
        return context

    def __str__(self) -> str:
        if not self.context:
            return f"[{self.kind.value}] {self.message}"
        details = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"[{self.kind.value}] {self.message} ({details})"


class OperationCancelled(Exception):
    """A wait or retry delay was aborted by its cancellation event."""
