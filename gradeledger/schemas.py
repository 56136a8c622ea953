"""Request and response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from gradeledger.models import HistoryAction, SubmissionStatus


class CamelModel(BaseModel):
    """Base model serialized with the camelCase field names of the grading API."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RubricLevel(CamelModel):
    id: str
    name: str
    description: str = ""
    points: float = Field(ge=0, allow_inf_nan=False)


class RubricCriterion(CamelModel):
    id: str
    name: str
    description: str = ""
    max_points: int = Field(gt=0)
    levels: list[RubricLevel] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_levels(self) -> "RubricCriterion":
        seen: set[str] = set()
        for level in self.levels:
            if level.points > self.max_points:
                raise ValueError(f"level '{level.id}' awards {level.points} points, above criterion max {self.max_points}")
            if level.id in seen:
                raise ValueError(f"duplicate level id '{level.id}' in criterion '{self.id}'")
            seen.add(level.id)
        return self

    def level(self, level_id: str) -> RubricLevel | None:
        return next((level for level in self.levels if level.id == level_id), None)


class RubricScore(CamelModel):
    criterion_id: str
    level_id: str
    points: float = Field(ge=0, allow_inf_nan=False)
    custom_points: float | None = Field(default=None, ge=0, allow_inf_nan=False)
    comments: str | None = None


class GradingData(CamelModel):
    """A grading payload; also the snapshot recorded for every grade version."""

    score: float = Field(allow_inf_nan=False)
    feedback: str
    rubric_scores: list[RubricScore] = Field(default_factory=list)
    private_notes: str | None = None


class ScoreChange(CamelModel):
    kind: Literal["score"] = "score"
    field: Literal["score"] = "score"
    old_value: float
    new_value: float


class FeedbackChange(CamelModel):
    kind: Literal["feedback"] = "feedback"
    field: Literal["feedback"] = "feedback"
    old_value: str
    new_value: str


class PrivateNotesChange(CamelModel):
    kind: Literal["privateNotes"] = "privateNotes"
    field: Literal["privateNotes"] = "privateNotes"
    old_value: str | None
    new_value: str | None


class RubricScoreChange(CamelModel):
    """Change to one criterion; values are effective points, None when added or removed."""

    kind: Literal["rubricScore"] = "rubricScore"
    field: str
    criterion_id: str
    old_value: float | None
    new_value: float | None
    old_level_id: str | None = None
    new_level_id: str | None = None
    old_comments: str | None = None
    new_comments: str | None = None


FieldChange = Annotated[
    Union[ScoreChange, FeedbackChange, PrivateNotesChange, RubricScoreChange],
    Field(discriminator="kind"),
]


class AssessmentCreate(CamelModel):
    title: str
    max_score: float | None = Field(default=None, gt=0)
    rubric: list[RubricCriterion] = Field(default_factory=list)


class AssessmentRead(CamelModel):
    id: int
    title: str
    max_score: float
    created_at: datetime
    rubric: list[RubricCriterion] = Field(default_factory=list)


class RubricRead(CamelModel):
    assessment_id: int
    criteria: list[RubricCriterion]
    max_total: float


class SubmissionCreate(CamelModel):
    student_name: str


class SubmissionRead(CamelModel):
    id: int
    assessment_id: int
    student_name: str
    max_score: float
    status: SubmissionStatus
    created_at: datetime | None = None


class GradeRead(CamelModel):
    id: int
    submission_id: int
    grader_id: str
    score: float
    max_score: float
    percentage: int
    letter_grade: str
    feedback: str
    rubric_scores: list[RubricScore]
    private_notes: str | None
    version: int
    graded_at: datetime
    updated_at: datetime

    def student_view(self) -> "GradeRead":
        return self.model_copy(update={"private_notes": None})


class GradeHistoryEntryRead(CamelModel):
    id: int
    grade_id: int
    version: int
    action: HistoryAction
    grader_id: str
    graded_at: datetime
    score: float
    feedback: str
    rubric_scores: list[RubricScore]
    private_notes: str | None
    changes: list[FieldChange]

    def snapshot(self) -> GradingData:
        return GradingData(
            score=self.score,
            feedback=self.feedback,
            rubric_scores=[score.model_copy() for score in self.rubric_scores],
            private_notes=self.private_notes,
        )

    def student_view(self) -> "GradeHistoryEntryRead":
        """The entry without faculty-only notes or their change records."""
        changes = [change for change in self.changes if not isinstance(change, PrivateNotesChange)]
        return self.model_copy(update={"private_notes": None, "changes": changes})


class GradeUpdateRequest(GradingData):
    expected_version: int = Field(ge=1)


class GradeRestoreRequest(CamelModel):
    version: int = Field(ge=1)
    expected_version: int = Field(ge=1)


class DraftRead(CamelModel):
    submission_id: int
    grader_id: str
    saved_at: datetime
    data: GradingData


class DraftSaveResponse(CamelModel):
    saved: bool
    warnings: dict[str, str] = Field(default_factory=dict)


class GradeHistoryResponse(CamelModel):
    history: list[GradeHistoryEntryRead]


class GradingContext(CamelModel):
    submission: SubmissionRead
    rubric: list[RubricCriterion]
    max_total: float
    grade: GradeRead | None = None
    grade_history: list[GradeHistoryEntryRead] = Field(default_factory=list)
    draft: DraftRead | None = None

    def student_view(self) -> "GradingContext":
        return self.model_copy(
            update={
                "grade": self.grade.student_view() if self.grade else None,
                "grade_history": [entry.student_view() for entry in self.grade_history],
                "draft": None,
            }
        )


class GradeBucket(CamelModel):
    range: str
    count: int


class GradeStats(CamelModel):
    total_submissions: int
    graded_submissions: int
    pending_grades: int
    average_score: float
    highest_score: float
    lowest_score: float
    grade_distribution: list[GradeBucket] = Field(default_factory=list)
