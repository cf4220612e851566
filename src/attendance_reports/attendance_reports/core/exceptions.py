from __future__ import annotations

from typing import Optional


class DomainError(Exception):
    """Base exception for report-layer rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class RosterQualityError(DomainError):
    """An employee record is missing a hierarchy code required by a level table.

    Never fatal: the index builder counts and skips the employee.
    """

    def __init__(self, employee_id: str, missing: str):
        super().__init__(f"employee {employee_id} has no {missing} code")
        self.employee_id = employee_id
        self.missing = missing


class RebuildFailure(DomainError):
    """A full rebuild (or sync run) could not complete."""

    def __init__(self, message: str, *, level: Optional[str] = None):
        super().__init__(message)
        self.level = level


class SharedTierUnavailable(DomainError):
    """The shared cache tier cannot be reached (or its circuit is open)."""


class AggregateSubQueryFailure(DomainError):
    """One sub-query of a fan-out failed; the whole aggregate fails with it."""

    def __init__(self, name: str, cause: BaseException):
        super().__init__(f"sub-query {name!r} failed: {cause}")
        self.name = name
        self.cause = cause


class RebuildInProgress(RebuildFailure):
    """Another rebuild or sync holds the builder; this run was refused rather than queued."""
