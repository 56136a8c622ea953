"""Grading failure taxonomy.

Every ``GradingError`` is a local, recoverable condition: the caller may
re-prompt, refetch or retry. ``GradingService`` returns these as values
instead of letting them escape. ``RubricIntegrityError`` is different: it
marks a data-integrity defect and is always raised.
"""

from __future__ import annotations


class GradingError(Exception):
    code = "grading_error"
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationFailed(GradingError):
    code = "validation_failed"
    status_code = 422

    def __init__(self, errors: dict[str, str]) -> None:
        super().__init__("Grading data failed validation")
        self.errors = dict(errors)

    def to_detail(self) -> dict:
        return {**super().to_detail(), "errors": self.errors}


class StaleVersion(GradingError):
    code = "stale_version"
    status_code = 409

    def __init__(self, expected: int, actual: int | None) -> None:
        super().__init__(f"Grade was modified concurrently: expected version {expected}, found {actual}")
        self.expected = expected
        self.actual = actual

    def to_detail(self) -> dict:
        return {**super().to_detail(), "expectedVersion": self.expected, "currentVersion": self.actual}


class NotFound(GradingError):
    code = "not_found"
    status_code = 404


class Conflict(GradingError):
    code = "conflict"
    status_code = 409


class NoOpUpdate(GradingError):
    code = "no_op_update"
    status_code = 409

    def __init__(self, message: str = "Update does not change the grade") -> None:
        super().__init__(message)


class RubricIntegrityError(Exception):
    """A rubric score that references data outside the active rubric."""
