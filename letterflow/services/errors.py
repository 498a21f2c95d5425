"""Exceptions raised by the service layer and translated to HTTP errors by the routes."""
from typing import List


class LetterflowError(Exception):
    """Base class for every error the service layer reports to its caller."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class AuthenticationFailure(LetterflowError):
    """
    Raised when a login attempt fails.

    The message is the same whether the username is unknown or the password
    is wrong.
    """

    def __init__(self):
        super().__init__("Invalid username or password")


class CapacityExceeded(LetterflowError):
    """Raised when a store write would exceed the configured capacity. Nothing was written."""

    def __init__(self, key: str, requested: int, capacity: int):
        self.key = key
        self.requested = requested
        self.capacity = capacity
        super().__init__(
            f"Storage capacity exceeded writing '{key}': "
            f"{requested} bytes requested, capacity is {capacity} bytes"
        )


class NotFound(LetterflowError):
    """Raised when a referenced letter, recipient or user does not exist."""

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class ValidationFailure(LetterflowError):
    """Raised when a request would violate a data-model invariant."""

    def __init__(self, message: str, problems: List[str] = None):
        self.problems = problems or []
        super().__init__(message)


class Conflict(LetterflowError):
    """Raised when a concurrent writer changed the data being modified."""


class PermissionDenied(LetterflowError):
    """Raised when the acting user lacks the role an operation requires."""
