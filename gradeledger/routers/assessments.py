"""Assessment, rubric and submission intake endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session, select

from gradeledger.auth import optional_grader, reader_service
from gradeledger.db import get_session
from gradeledger.grading.calculator import max_total
from gradeledger.grading.catalog import SQLRubricCatalog
from gradeledger.grading.collaborators import StaticIdentity
from gradeledger.grading.service import GradingService
from gradeledger.models import Assessment, Grade, Submission, as_utc
from gradeledger.routers import for_reader, unwrap
from gradeledger.schemas import (
    AssessmentCreate,
    AssessmentRead,
    GradeRead,
    GradeStats,
    RubricCriterion,
    RubricRead,
    SubmissionCreate,
    SubmissionRead,
)
from gradeledger.settings import settings

router = APIRouter(prefix="/assessments", tags=["assessments"])
logger = logging.getLogger(__name__)


def _get_assessment(assessment_id: int, session: Session) -> Assessment:
    assessment = session.get(Assessment, assessment_id)
    if not assessment:
        raise HTTPException(status_code=404, detail="Assessment not found")
    return assessment


def _assessment_read(assessment: Assessment, session: Session) -> AssessmentRead:
    return AssessmentRead(
        id=assessment.id,
        title=assessment.title,
        max_score=assessment.max_score,
        created_at=as_utc(assessment.created_at),
        rubric=SQLRubricCatalog(session).criteria_for(assessment.id),
    )


@router.post("", response_model=AssessmentRead, status_code=status.HTTP_201_CREATED)
def create_assessment(payload: AssessmentCreate, session: Session = Depends(get_session)) -> AssessmentRead:
    assessment = Assessment(title=payload.title, max_score=payload.max_score or settings.default_max_score)
    session.add(assessment)
    session.flush()
    try:
        SQLRubricCatalog(session).publish(assessment.id, payload.rubric)
    except ValueError as exc:
        session.rollback()
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    session.commit()
    session.refresh(assessment)
    logger.info("assessment created", extra={"assessment_id": assessment.id, "criteria": len(payload.rubric)})
    return _assessment_read(assessment, session)


@router.get("", response_model=list[AssessmentRead])
def list_assessments(session: Session = Depends(get_session)) -> list[AssessmentRead]:
    assessments = session.exec(select(Assessment).order_by(Assessment.id)).all()
    return [_assessment_read(assessment, session) for assessment in assessments]


@router.get("/{assessment_id}/rubric", response_model=RubricRead)
def get_rubric(assessment_id: int, session: Session = Depends(get_session)) -> RubricRead:
    _get_assessment(assessment_id, session)
    criteria = SQLRubricCatalog(session).criteria_for(assessment_id)
    return RubricRead(assessment_id=assessment_id, criteria=criteria, max_total=max_total(criteria))


@router.put("/{assessment_id}/rubric", response_model=RubricRead)
def publish_rubric(
    assessment_id: int,
    criteria: list[RubricCriterion],
    session: Session = Depends(get_session),
) -> RubricRead:
    _get_assessment(assessment_id, session)
    graded = session.exec(
        select(Grade.id).join(Submission, Submission.id == Grade.submission_id).where(Submission.assessment_id == assessment_id)
    ).first()
    if graded is not None:
        raise HTTPException(status_code=409, detail="Rubric cannot change once submissions have been graded")

    catalog = SQLRubricCatalog(session)
    try:
        catalog.publish(assessment_id, criteria)
    except ValueError as exc:
        session.rollback()
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    session.commit()
    published = catalog.criteria_for(assessment_id)
    return RubricRead(assessment_id=assessment_id, criteria=published, max_total=max_total(published))


@router.post("/{assessment_id}/submissions", response_model=SubmissionRead, status_code=status.HTTP_201_CREATED)
def create_submission(
    assessment_id: int,
    payload: SubmissionCreate,
    session: Session = Depends(get_session),
) -> SubmissionRead:
    assessment = _get_assessment(assessment_id, session)
    submission = Submission(assessment_id=assessment_id, student_name=payload.student_name)
    session.add(submission)
    session.commit()
    session.refresh(submission)
    return SubmissionRead(
        id=submission.id,
        assessment_id=assessment_id,
        student_name=submission.student_name,
        max_score=assessment.max_score,
        status=submission.status,
        created_at=as_utc(submission.created_at),
    )


@router.get("/{assessment_id}/grades", response_model=list[GradeRead])
def list_grades(
    assessment_id: int,
    service: GradingService = Depends(reader_service),
    grader: StaticIdentity | None = Depends(optional_grader),
) -> list[GradeRead]:
    return for_reader(unwrap(service.list_assessment_grades(assessment_id)), grader)


@router.get("/{assessment_id}/grades/stats", response_model=GradeStats)
def grade_stats(assessment_id: int, service: GradingService = Depends(reader_service)) -> GradeStats:
    return unwrap(service.assessment_grade_stats(assessment_id))
