"""Append-only ledger of grade versions."""

from __future__ import annotations

import json
import logging

from pydantic import TypeAdapter
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from gradeledger.grading.calculator import effective_points
from gradeledger.grading.errors import Conflict, NoOpUpdate, NotFound, StaleVersion
from gradeledger.models import GradeHistoryEntry, HistoryAction, as_utc, utcnow
from gradeledger.schemas import (
    FeedbackChange,
    FieldChange,
    GradeHistoryEntryRead,
    GradingData,
    PrivateNotesChange,
    RubricScore,
    RubricScoreChange,
    ScoreChange,
)

logger = logging.getLogger(__name__)

_changes_adapter = TypeAdapter(list[FieldChange])
_scores_adapter = TypeAdapter(list[RubricScore])


def dump_rubric_scores(scores: list[RubricScore]) -> str:
    return json.dumps([score.model_dump(mode="json", by_alias=True) for score in scores])


def load_rubric_scores(raw: str) -> list[RubricScore]:
    return _scores_adapter.validate_json(raw or "[]")


def _rubric_score_changed(old: RubricScore, new: RubricScore) -> bool:
    return (
        old.level_id != new.level_id
        or old.points != new.points
        or old.custom_points != new.custom_points
        or (old.comments or None) != (new.comments or None)
    )


def _rubric_change(criterion_id: str, old: RubricScore | None, new: RubricScore | None) -> RubricScoreChange:
    return RubricScoreChange(
        field=f"rubricScore.{criterion_id}",
        criterion_id=criterion_id,
        old_value=effective_points(old) if old else None,
        new_value=effective_points(new) if new else None,
        old_level_id=old.level_id if old else None,
        new_level_id=new.level_id if new else None,
        old_comments=old.comments if old else None,
        new_comments=new.comments if new else None,
    )


def diff_snapshots(old: GradingData, new: GradingData) -> list[FieldChange]:
    """Field-level changes from ``old`` to ``new``; rubric scores are compared per criterion."""
    changes: list[FieldChange] = []

    old_scores = {score.criterion_id: score for score in old.rubric_scores}
    new_scores = {score.criterion_id: score for score in new.rubric_scores}
    criterion_ids = list(old_scores) + [cid for cid in new_scores if cid not in old_scores]
    for criterion_id in criterion_ids:
        before = old_scores.get(criterion_id)
        after = new_scores.get(criterion_id)
        if before is None or after is None or _rubric_score_changed(before, after):
            changes.append(_rubric_change(criterion_id, before, after))

    if old.score != new.score:
        changes.append(ScoreChange(old_value=old.score, new_value=new.score))
    if old.feedback != new.feedback:
        changes.append(FeedbackChange(old_value=old.feedback, new_value=new.feedback))
    if (old.private_notes or None) != (new.private_notes or None):
        changes.append(PrivateNotesChange(old_value=old.private_notes, new_value=new.private_notes))

    return changes


def entry_to_read(row: GradeHistoryEntry) -> GradeHistoryEntryRead:
    return GradeHistoryEntryRead(
        id=row.id,
        grade_id=row.grade_id,
        version=row.version,
        action=row.action,
        grader_id=row.grader_id,
        graded_at=as_utc(row.graded_at),
        score=row.score,
        feedback=row.feedback,
        rubric_scores=load_rubric_scores(row.rubric_scores_json),
        private_notes=row.private_notes,
        changes=_changes_adapter.validate_json(row.changes_json or "[]"),
    )


class GradeHistoryStore:
    """History rows for grades, written only by ``GradingService``.

    ``append`` flushes inside the caller's transaction; the unique
    (grade_id, version) constraint makes version allocation atomic, so two
    writers can never both claim the same version.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def _latest(self, grade_id: int) -> GradeHistoryEntry | None:
        return self.session.exec(
            select(GradeHistoryEntry)
            .where(GradeHistoryEntry.grade_id == grade_id)
            .order_by(GradeHistoryEntry.version.desc())
        ).first()

    def append(self, grade_id: int, snapshot: GradingData, action: HistoryAction, grader_id: str) -> GradeHistoryEntryRead:
        latest = self._latest(grade_id)
        if latest is None:
            if action is not HistoryAction.CREATED:
                raise NotFound(f"Grade {grade_id} has no history to {action.value}")
            changes: list[FieldChange] = []
            version = 1
        else:
            if action is HistoryAction.CREATED:
                raise Conflict(f"Grade {grade_id} already has an initial version")
            changes = diff_snapshots(entry_to_read(latest).snapshot(), snapshot)
            if not changes:
                raise NoOpUpdate()
            version = latest.version + 1

        row = GradeHistoryEntry(
            grade_id=grade_id,
            version=version,
            action=action,
            grader_id=grader_id,
            score=snapshot.score,
            feedback=snapshot.feedback,
            rubric_scores_json=dump_rubric_scores(snapshot.rubric_scores),
            private_notes=snapshot.private_notes,
            changes_json=_changes_adapter.dump_json(changes, by_alias=True).decode(),
            graded_at=utcnow(),
        )
        self.session.add(row)
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise StaleVersion(expected=version - 1, actual=None) from exc

        logger.info(
            "grade history appended",
            extra={"grade_id": grade_id, "version": version, "action": action.value, "changes": len(changes)},
        )
        return entry_to_read(row)

    def history(self, grade_id: int) -> list[GradeHistoryEntryRead]:
        """All versions of a grade, oldest first. Each call re-reads the ledger."""
        rows = self.session.exec(
            select(GradeHistoryEntry).where(GradeHistoryEntry.grade_id == grade_id).order_by(GradeHistoryEntry.version)
        ).all()
        return [entry_to_read(row) for row in rows]

    def entry_at(self, grade_id: int, version: int) -> GradeHistoryEntryRead:
        row = self.session.exec(
            select(GradeHistoryEntry).where(GradeHistoryEntry.grade_id == grade_id, GradeHistoryEntry.version == version)
        ).first()
        if row is None:
            raise NotFound(f"Grade {grade_id} has no version {version}")
        return entry_to_read(row)
