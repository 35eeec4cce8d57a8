"""Exception types raised by the planning engine."""
from typing import Optional


class InvalidInput(ValueError):
    """Request rejected before any planning happens (bad date, no topics, ...)."""


class ExternalServiceError(RuntimeError):
    """The generative-text service timed out, failed or answered non-2xx."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StructuralInvariantViolation(Exception):
    """A candidate plan broke a required-field or shape invariant.

    Only raised and handled inside the plan validator.
    """
