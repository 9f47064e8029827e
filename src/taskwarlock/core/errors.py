# src/taskwarlock/core/errors.py

"""
Error taxonomy shared by the core and the adapters.

- TaskValidationError: bad user input, rejected before the cache is touched.
- MissingOriginalError: caller broke the contract (no original record to mutate).
- MutationFailedError: the external call failed and the cache was rolled back.
- TaskwarriorError / TaskParseError: raised by the CLI adapter.
"""

from __future__ import annotations

from collections.abc import Sequence


class TaskwarlockError(Exception):
    """Base class for all errors raised by taskwarlock."""


class TaskValidationError(TaskwarlockError, ValueError):
    pass


class MissingOriginalError(TaskwarlockError, LookupError):
    pass


class MutationFailedError(TaskwarlockError, RuntimeError):
    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation


class TaskwarriorError(TaskwarlockError, RuntimeError):
    """The `task` subprocess could not be run, timed out or exited non-zero."""

    def __init__(
        self,
        message: str,
        *,
        command: Sequence[str] = (),
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr


class TaskParseError(TaskwarlockError, ValueError):
    """Data returned by `task export` does not have the expected shape."""
