"""HTTP routers."""

from __future__ import annotations

from typing import TypeVar

from fastapi import HTTPException

from gradeledger.grading.collaborators import StaticIdentity
from gradeledger.grading.errors import GradingError

T = TypeVar("T")


def unwrap(result: T | GradingError) -> T:
    """Translate a typed grading failure into an HTTP error."""
    if isinstance(result, GradingError):
        raise HTTPException(status_code=result.status_code, detail=result.to_detail())
    return result


def for_reader(result: T, grader: StaticIdentity | None) -> T:
    """Graders see everything; anyone else gets the student view without private notes."""
    if grader is not None:
        return result
    if isinstance(result, list):
        return [item.student_view() for item in result]
    return result.student_view()
