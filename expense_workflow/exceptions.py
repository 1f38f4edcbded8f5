"""Expense workflow exceptions."""


class ExpenseWorkflowError(Exception):
    """Base exception for all expense workflow errors."""


class InvalidConfigurationError(ExpenseWorkflowError):
    """Raised when an approval flow violates its configuration invariants."""


class FlowValidationError(InvalidConfigurationError):
    """Raised when a flow document fails JSON schema validation."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        self.errors = errors or []
        super().__init__(message)


class InvalidStateError(ExpenseWorkflowError):
    """Raised when an operation does not apply to the expense's current state."""


class ConcurrentModificationError(InvalidStateError):
    """Raised when a commit loses an optimistic concurrency check."""


class NotFoundError(ExpenseWorkflowError):
    """Raised when a referenced flow, expense or approval record is missing."""


class DocumentValidationError(ExpenseWorkflowError):
    """Raised when an expense or approval document is malformed."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        self.errors = errors or []
        super().__init__(message)


class PermissionDeniedError(ExpenseWorkflowError):
    """Raised when a role is not allowed to perform an operation."""
