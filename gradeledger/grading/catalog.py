"""Rubric catalog: read-only lookup of criteria for an assessment."""

from __future__ import annotations

import json
from typing import Protocol

from sqlmodel import Session, delete, select

from gradeledger.models import Criterion
from gradeledger.schemas import RubricCriterion, RubricLevel


class RubricCatalog(Protocol):
    """Read-only rubric lookup consumed by the grading engine."""

    def criteria_for(self, assessment_id: int) -> list[RubricCriterion]:
        """Return the ordered criteria for an assessment, empty when it has no rubric."""


class SQLRubricCatalog:
    def __init__(self, session: Session) -> None:
        self.session = session

    def criteria_for(self, assessment_id: int) -> list[RubricCriterion]:
        rows = self.session.exec(
            select(Criterion).where(Criterion.assessment_id == assessment_id).order_by(Criterion.position)
        ).all()
        return [_to_criterion(row) for row in rows]

    def publish(self, assessment_id: int, criteria: list[RubricCriterion]) -> None:
        """Replace the rubric of an assessment. The caller commits."""
        ids = [criterion.id for criterion in criteria]
        if len(ids) != len(set(ids)):
            raise ValueError("Rubric criterion ids must be unique")

        self.session.exec(delete(Criterion).where(Criterion.assessment_id == assessment_id))
        for position, criterion in enumerate(criteria):
            self.session.add(
                Criterion(
                    assessment_id=assessment_id,
                    criterion_id=criterion.id,
                    position=position,
                    name=criterion.name,
                    description=criterion.description,
                    max_points=criterion.max_points,
                    levels_json=json.dumps([level.model_dump(mode="json", by_alias=True) for level in criterion.levels]),
                )
            )


def _to_criterion(row: Criterion) -> RubricCriterion:
    return RubricCriterion(
        id=row.criterion_id,
        name=row.name,
        description=row.description,
        max_points=row.max_points,
        levels=[RubricLevel.model_validate(level) for level in json.loads(row.levels_json)],
    )
