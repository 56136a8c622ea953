"""SQLModel ORM models for GradeLedger."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Return timezone-aware UTC now timestamp."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite drops tzinfo; stored timestamps are always UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SubmissionStatus(str, Enum):
    SUBMITTED = "SUBMITTED"
    GRADED = "GRADED"


class HistoryAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    REVISED = "revised"


class Assessment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    max_score: float
    created_at: datetime = Field(default_factory=utcnow)


class Criterion(SQLModel, table=True):
    """One rubric criterion of an assessment; levels are stored as JSON."""

    assessment_id: int = Field(foreign_key="assessment.id", primary_key=True)
    criterion_id: str = Field(primary_key=True)
    position: int
    name: str
    description: str = ""
    max_points: int
    levels_json: str = "[]"


class Submission(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    assessment_id: int = Field(foreign_key="assessment.id", index=True)
    student_name: str
    status: SubmissionStatus = Field(default=SubmissionStatus.SUBMITTED)
    created_at: datetime = Field(default_factory=utcnow)


class Grade(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    submission_id: int = Field(foreign_key="submission.id", index=True, unique=True)
    grader_id: str
    score: float
    max_score: float
    feedback: str
    rubric_scores_json: str = "[]"
    private_notes: Optional[str] = None
    version: int = 1
    graded_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class GradeHistoryEntry(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("grade_id", "version", name="uq_gradehistory_grade_version"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    grade_id: int = Field(foreign_key="grade.id", index=True)
    version: int
    action: HistoryAction
    grader_id: str
    score: float
    feedback: str
    rubric_scores_json: str = "[]"
    private_notes: Optional[str] = None
    changes_json: str = "[]"
    graded_at: datetime = Field(default_factory=utcnow)


class GradeDraft(SQLModel, table=True):
    submission_id: int = Field(foreign_key="submission.id", primary_key=True)
    grader_id: str
    payload_json: str
    saved_at: datetime = Field(default_factory=utcnow)
