"""Interfaces the grading engine consumes from the rest of the portal."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from sqlmodel import Session

from gradeledger.models import Assessment, Submission, SubmissionStatus, as_utc
from gradeledger.schemas import SubmissionRead


class SubmissionStore(Protocol):
    def get(self, submission_id: int) -> SubmissionRead | None:
        """Return the submission with its assessment's max score, or None."""

    def mark_graded(self, submission_id: int) -> None:
        """Flag the submission as graded."""


class IdentityContext(Protocol):
    def current_grader_id(self) -> str:
        """Return the id of the grader performing the current operation."""


@dataclass(frozen=True)
class StaticIdentity:
    grader_id: str

    def current_grader_id(self) -> str:
        return self.grader_id


class SQLSubmissionStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, submission_id: int) -> SubmissionRead | None:
        submission = self.session.get(Submission, submission_id)
        if not submission:
            return None
        assessment = self.session.get(Assessment, submission.assessment_id)
        if not assessment:
            return None
        return SubmissionRead(
            id=submission.id,
            assessment_id=submission.assessment_id,
            student_name=submission.student_name,
            max_score=assessment.max_score,
            status=submission.status,
            created_at=as_utc(submission.created_at),
        )

    def mark_graded(self, submission_id: int) -> None:
        submission = self.session.get(Submission, submission_id)
        if submission and submission.status != SubmissionStatus.GRADED:
            submission.status = SubmissionStatus.GRADED
            self.session.add(submission)
