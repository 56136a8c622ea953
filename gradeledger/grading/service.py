"""Grading workflow: submit, update, draft and restore grades.

Public operations return either their result or a ``GradingError`` instance;
recoverable failures never escape as exceptions. Each operation runs in one
transaction and every check happens before the history ledger is written.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, func, select

from gradeledger.grading.calculator import derive_score, letter_grade, max_total, percentage
from gradeledger.grading.catalog import RubricCatalog, SQLRubricCatalog
from gradeledger.grading.collaborators import IdentityContext, SQLSubmissionStore, SubmissionStore
from gradeledger.grading.errors import Conflict, GradingError, NotFound, StaleVersion, ValidationFailed
from gradeledger.grading.history import GradeHistoryStore, dump_rubric_scores, load_rubric_scores
from gradeledger.grading.stats import summarize
from gradeledger.grading.validator import check_rubric_integrity, validate_grading_data
from gradeledger.models import Assessment, Grade, GradeDraft, HistoryAction, Submission, SubmissionStatus, as_utc, utcnow
from gradeledger.schemas import (
    DraftRead,
    GradeHistoryEntryRead,
    GradeRead,
    GradeStats,
    GradingContext,
    GradingData,
    RubricCriterion,
    SubmissionRead,
)
from gradeledger.settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def grade_to_read(grade: Grade) -> GradeRead:
    return GradeRead(
        id=grade.id,
        submission_id=grade.submission_id,
        grader_id=grade.grader_id,
        score=grade.score,
        max_score=grade.max_score,
        percentage=percentage(grade.score, grade.max_score),
        letter_grade=letter_grade(grade.score, grade.max_score),
        feedback=grade.feedback,
        rubric_scores=load_rubric_scores(grade.rubric_scores_json),
        private_notes=grade.private_notes,
        version=grade.version,
        graded_at=as_utc(grade.graded_at),
        updated_at=as_utc(grade.updated_at),
    )


class GradingService:
    def __init__(
        self,
        session: Session,
        identity: IdentityContext,
        catalog: RubricCatalog | None = None,
        submissions: SubmissionStore | None = None,
        *,
        require_complete_rubric: bool | None = None,
        score_step: float | None = None,
    ) -> None:
        self.session = session
        self.identity = identity
        self.catalog = catalog or SQLRubricCatalog(session)
        self.submissions = submissions or SQLSubmissionStore(session)
        self.history_store = GradeHistoryStore(session)
        self.require_complete_rubric = (
            settings.require_complete_rubric if require_complete_rubric is None else require_complete_rubric
        )
        self.score_step = settings.score_step if score_step is None else score_step

    # -- plumbing -----------------------------------------------------------

    def _run(self, operation: str, fn: Callable[..., T], *args) -> T | GradingError:
        try:
            result = fn(*args)
            self.session.commit()
            return result
        except GradingError as exc:
            self.session.rollback()
            logger.warning("%s rejected: %s", operation, exc.message, extra={"operation": operation, "code": exc.code})
            return exc
        except Exception:
            self.session.rollback()
            raise

    def _submission(self, submission_id: int) -> SubmissionRead:
        submission = self.submissions.get(submission_id)
        if submission is None:
            raise NotFound(f"Submission {submission_id} not found")
        return submission

    def _grade(self, grade_id: int) -> Grade:
        grade = self.session.get(Grade, grade_id)
        if grade is None:
            raise NotFound(f"Grade {grade_id} not found")
        return grade

    def _grade_for_submission(self, submission_id: int) -> Grade | None:
        return self.session.exec(select(Grade).where(Grade.submission_id == submission_id)).first()

    def _prepare(self, data: GradingData, max_score: float, rubric: list[RubricCriterion]) -> GradingData:
        candidate = derive_score(data, rubric)
        check_rubric_integrity(candidate, rubric)
        errors = validate_grading_data(
            candidate,
            max_score,
            rubric,
            require_complete=self.require_complete_rubric,
            score_step=self.score_step,
        )
        if errors:
            raise ValidationFailed(errors)
        return candidate

    def _discard_draft(self, submission_id: int) -> None:
        draft = self.session.get(GradeDraft, submission_id)
        if draft:
            self.session.delete(draft)

    # -- write operations ---------------------------------------------------

    def submit_grade(self, submission_id: int, data: GradingData) -> GradeRead | GradingError:
        return self._run("submit_grade", self._submit, submission_id, data)

    def _submit(self, submission_id: int, data: GradingData) -> GradeRead:
        submission = self._submission(submission_id)
        if self._grade_for_submission(submission_id) is not None:
            raise Conflict("Submission has already been graded. Use update instead.")

        rubric = self.catalog.criteria_for(submission.assessment_id)
        candidate = self._prepare(data, submission.max_score, rubric)
        grader_id = self.identity.current_grader_id()

        now = utcnow()
        grade = Grade(
            submission_id=submission_id,
            grader_id=grader_id,
            score=candidate.score,
            max_score=submission.max_score,
            feedback=candidate.feedback,
            rubric_scores_json=dump_rubric_scores(candidate.rubric_scores),
            private_notes=candidate.private_notes,
            version=1,
            graded_at=now,
            updated_at=now,
        )
        self.session.add(grade)
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise Conflict("Submission has already been graded. Use update instead.") from exc

        self.history_store.append(grade.id, candidate, HistoryAction.CREATED, grader_id)
        self.submissions.mark_graded(submission_id)
        self._discard_draft(submission_id)

        logger.info("grade created", extra={"submission_id": submission_id, "grade_id": grade.id, "grader_id": grader_id})
        return grade_to_read(grade)

    def update_grade(self, grade_id: int, data: GradingData, expected_version: int) -> GradeRead | GradingError:
        return self._run("update_grade", self._revise, grade_id, data, expected_version, HistoryAction.UPDATED)

    def restore_grade_version(self, grade_id: int, target_version: int, expected_version: int) -> GradeRead | GradingError:
        """Append a new version whose content equals ``target_version``.

        ``expected_version`` is the current version the caller last observed.
        """
        return self._run("restore_grade_version", self._restore, grade_id, target_version, expected_version)

    def _restore(self, grade_id: int, target_version: int, expected_version: int) -> GradeRead:
        target = self.history_store.entry_at(grade_id, target_version)
        return self._revise(grade_id, target.snapshot(), expected_version, HistoryAction.REVISED)

    def _revise(self, grade_id: int, data: GradingData, expected_version: int, action: HistoryAction) -> GradeRead:
        grade = self._grade(grade_id)
        if expected_version != grade.version:
            raise StaleVersion(expected=expected_version, actual=grade.version)

        submission = self._submission(grade.submission_id)
        rubric = self.catalog.criteria_for(submission.assessment_id)
        candidate = self._prepare(data, submission.max_score, rubric)
        grader_id = self.identity.current_grader_id()

        entry = self.history_store.append(grade_id, candidate, action, grader_id)
        if entry.version != expected_version + 1:
            raise StaleVersion(expected=expected_version, actual=entry.version - 1)

        result = self.session.exec(
            update(Grade)
            .where(Grade.id == grade_id, Grade.version == expected_version)
            .values(
                grader_id=grader_id,
                score=candidate.score,
                max_score=submission.max_score,
                feedback=candidate.feedback,
                rubric_scores_json=dump_rubric_scores(candidate.rubric_scores),
                private_notes=candidate.private_notes,
                version=entry.version,
                updated_at=entry.graded_at,
            )
        )
        if result.rowcount != 1:
            raise StaleVersion(expected=expected_version, actual=None)

        self.session.refresh(grade)
        self._discard_draft(grade.submission_id)

        logger.info(
            "grade %s",
            action.value,
            extra={"grade_id": grade_id, "version": entry.version, "action": action.value, "grader_id": grader_id},
        )
        return grade_to_read(grade)

    def save_draft(self, submission_id: int, data: GradingData) -> bool:
        """Store an in-progress payload. Validation is advisory; drafts are last-write-wins."""
        if self.submissions.get(submission_id) is None:
            logger.warning("draft rejected: submission not found", extra={"submission_id": submission_id})
            return False

        grader_id = self.identity.current_grader_id()
        payload = data.model_dump_json(by_alias=True)
        try:
            draft = self.session.get(GradeDraft, submission_id)
            if draft is None:
                draft = GradeDraft(submission_id=submission_id, grader_id=grader_id, payload_json=payload)
            else:
                draft.grader_id = grader_id
                draft.payload_json = payload
                draft.saved_at = utcnow()
            self.session.add(draft)
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("draft save failed", extra={"submission_id": submission_id})
            return False

        logger.info("draft saved", extra={"submission_id": submission_id})
        return True

    def draft_warnings(self, submission_id: int, data: GradingData) -> dict[str, str]:
        """Validation errors a draft would hit on submission; empty when it would pass."""
        submission = self.submissions.get(submission_id)
        if submission is None:
            return {}
        rubric = self.catalog.criteria_for(submission.assessment_id)
        return validate_grading_data(
            derive_score(data, rubric),
            submission.max_score,
            rubric,
            require_complete=self.require_complete_rubric,
            score_step=self.score_step,
        )

    # -- read operations ----------------------------------------------------

    def get_draft(self, submission_id: int) -> DraftRead | None:
        draft = self.session.get(GradeDraft, submission_id)
        if draft is None:
            return None
        return DraftRead(
            submission_id=draft.submission_id,
            grader_id=draft.grader_id,
            saved_at=as_utc(draft.saved_at),
            data=GradingData.model_validate_json(draft.payload_json),
        )

    def get_grade(self, grade_id: int) -> GradeRead | GradingError:
        return self._run("get_grade", lambda: grade_to_read(self._grade(grade_id)))

    def get_grade_for_submission(self, submission_id: int) -> GradeRead | None:
        grade = self._grade_for_submission(submission_id)
        return grade_to_read(grade) if grade else None

    def grade_history(self, grade_id: int) -> list[GradeHistoryEntryRead] | GradingError:
        def _history() -> list[GradeHistoryEntryRead]:
            self._grade(grade_id)
            return self.history_store.history(grade_id)

        return self._run("grade_history", _history)

    def history_entry(self, grade_id: int, version: int) -> GradeHistoryEntryRead | GradingError:
        return self._run("history_entry", self.history_store.entry_at, grade_id, version)

    def get_grading_context(self, submission_id: int) -> GradingContext | GradingError:
        def _context() -> GradingContext:
            submission = self._submission(submission_id)
            rubric = self.catalog.criteria_for(submission.assessment_id)
            grade = self._grade_for_submission(submission_id)
            return GradingContext(
                submission=submission,
                rubric=rubric,
                max_total=max_total(rubric),
                grade=grade_to_read(grade) if grade else None,
                grade_history=self.history_store.history(grade.id) if grade else [],
                draft=self.get_draft(submission_id),
            )

        return self._run("get_grading_context", _context)

    def list_assessment_grades(self, assessment_id: int) -> list[GradeRead] | GradingError:
        def _grades() -> list[GradeRead]:
            if self.session.get(Assessment, assessment_id) is None:
                raise NotFound(f"Assessment {assessment_id} not found")
            grades = self.session.exec(
                select(Grade)
                .join(Submission, Submission.id == Grade.submission_id)
                .where(Submission.assessment_id == assessment_id)
                .order_by(Grade.submission_id)
            ).all()
            return [grade_to_read(grade) for grade in grades]

        return self._run("list_assessment_grades", _grades)

    def assessment_grade_stats(self, assessment_id: int) -> GradeStats | GradingError:
        def _stats() -> GradeStats:
            if self.session.get(Assessment, assessment_id) is None:
                raise NotFound(f"Assessment {assessment_id} not found")
            total_submissions = self.session.exec(
                select(func.count()).select_from(Submission).where(Submission.assessment_id == assessment_id)
            ).one()
            graded_submissions = self.session.exec(
                select(func.count())
                .select_from(Submission)
                .where(Submission.assessment_id == assessment_id, Submission.status == SubmissionStatus.GRADED)
            ).one()
            rows = self.session.exec(
                select(Grade.score, Grade.max_score)
                .join(Submission, Submission.id == Grade.submission_id)
                .where(Submission.assessment_id == assessment_id)
            ).all()
            return summarize(total_submissions, graded_submissions, [(score, max_score) for score, max_score in rows])

        return self._run("assessment_grade_stats", _stats)
