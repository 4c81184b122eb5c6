"""Error types raised by the loadbench job worker.

Calibration timeouts and unreadable report lines are not errors: they degrade
to the -1 sentinel and are logged. What remains raises a LoadbenchError
subclass carrying the job or file it concerns and the low-level cause.
"""

from __future__ import annotations

from typing import Any


class LoadbenchError(Exception):
    """Base of every error a job can fail with.

    Attributes:
        message: What went wrong, without the context values
        context: Identifying values such as job_id, path, table or command
        original_error: Underlying exception (OSError, duckdb.Error, ValueError, ...)
    """

    def __init__(
        self,
        message: str,
        *args: object,
        context: dict[str, Any] | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, *args)
        self.message = message
        self.context = dict(context) if context else {}
        self.original_error = original_error

    def __str__(self) -> str:
        parts = [self.message]
        if self.context:
            parts.append("[" + ", ".join(f"{key}={value!r}" for key, value in self.context.items()) + "]")
        if self.original_error is not None:
            cause = self.original_error
            parts.append(f"(caused by: {type(cause).__name__}: {cause})")
        return " ".join(parts)

    def with_context(self, **kwargs: Any) -> "LoadbenchError":
        """Attach more identifying values (e.g. job_id once it is known); returns self."""
        self.context.update(kwargs)
        return self


class LoadbenchConfigError(LoadbenchError):
    """Raised when worker settings or a job specification are invalid.

    Common causes:
    - Settings or job file not found
    - Invalid YAML syntax
    - Missing required fields (url, connections, ...)
    - Pipeline depth given without a script name
    - Table name that is not a plain identifier
    """


class LoadbenchProcessError(LoadbenchError):
    """Raised when the load generator cannot be driven through its lifecycle.

    Common causes:
    - Executable not found or not runnable
    - Command line that cannot be split (unbalanced quotes in a header value)
    - Waiting on a job that was never started
    - Attachment script could not be installed
    """


class LoadbenchStateError(LoadbenchError):
    """Raised on an illegal job state transition (e.g. leaving a terminal state)."""


class LoadbenchStorageError(LoadbenchError):
    """Raised when the metric store rejects a table creation or a row write."""
