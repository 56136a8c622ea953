"""Grader attribution from request headers."""

from __future__ import annotations

from fastapi import Depends, Header, HTTPException
from sqlmodel import Session

from gradeledger.db import get_session
from gradeledger.grading.collaborators import StaticIdentity
from gradeledger.grading.service import GradingService

ANONYMOUS_GRADER = "anonymous"


def require_grader(x_grader_id: str | None = Header(default=None, alias="X-Grader-Id")) -> StaticIdentity:
    grader_id = (x_grader_id or "").strip()
    if not grader_id:
        raise HTTPException(status_code=401, detail="X-Grader-Id header is required")
    return StaticIdentity(grader_id)


def optional_grader(x_grader_id: str | None = Header(default=None, alias="X-Grader-Id")) -> StaticIdentity | None:
    """The calling grader, or None for student-facing readers."""
    grader_id = (x_grader_id or "").strip()
    return StaticIdentity(grader_id) if grader_id else None


def grading_service(
    session: Session = Depends(get_session),
    identity: StaticIdentity = Depends(require_grader),
) -> GradingService:
    return GradingService(session, identity)


def reader_service(
    session: Session = Depends(get_session),
    identity: StaticIdentity | None = Depends(optional_grader),
) -> GradingService:
    return GradingService(session, identity or StaticIdentity(ANONYMOUS_GRADER))
