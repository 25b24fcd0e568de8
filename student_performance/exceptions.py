"""
Custom exceptions for the Student Performance system.

The transport layer maps each kind to its own status; none of them is
swallowed inside the core.
"""


class StudentPerformanceError(Exception):
    """Base class for every domain error raised by the core."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class NotFoundError(StudentPerformanceError):
    """Raised when a referenced entity does not exist."""

    def __init__(self, entity: str, entity_id=None, message: str = None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(message or f"{entity} with id {entity_id} not found")


class ConflictError(StudentPerformanceError):
    """Raised on uniqueness violations and dependency-blocked deletes."""

    def __init__(self, message: str, retryable: bool = False):
        self.retryable = retryable
        super().__init__(message)


class ConcurrencyConflictError(ConflictError):
    """Raised when a row changed after the caller read it. Safe to retry."""

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity} with id {entity_id} was modified concurrently, reload and try again",
            retryable=True,
        )


class InvalidArgumentError(StudentPerformanceError):
    """Raised when input validation fails."""

    def __init__(self, message: str, field: str = None):
        self.field = field
        super().__init__(message)


class ForbiddenError(StudentPerformanceError):
    """Raised when an actor attempts an action the policy denies."""

    def __init__(self, message: str, user_id: int = None, action: str = None):
        self.user_id = user_id
        self.action = action
        super().__init__(message)


class UnexpectedError(StudentPerformanceError):
    """Raised on Entity Store failures and internal inconsistencies."""
