"""Exceptions for the conference edit backend.

Lock outcomes such as a conflict or an expired lease are ordinary return
values (see ``confedit.locks.results``). Only infrastructure failures are raised.
"""


class ConfEditError(Exception):
    """Base exception for all confedit errors."""

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class StoreUnavailable(ConfEditError):
    """The lock store kept failing after the retry budget was spent.

    Callers must treat this as "unknown", never as granted or conflicting.
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        attempts: int | None = None,
        original_error: Exception | None = None,
    ):
        self.operation = operation
        self.attempts = attempts
        self.original_error = original_error
        details = f"{operation} failed after {attempts} attempt(s)" if operation else None
        super().__init__(message, details)
