"""Grading endpoints scoped to a submission."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from gradeledger.auth import grading_service, optional_grader, reader_service
from gradeledger.grading.collaborators import StaticIdentity
from gradeledger.grading.service import GradingService
from gradeledger.routers import for_reader, unwrap
from gradeledger.schemas import (
    DraftRead,
    DraftSaveResponse,
    GradeHistoryResponse,
    GradeRead,
    GradingContext,
    GradingData,
    SubmissionRead,
)

router = APIRouter(prefix="/submissions", tags=["submissions"])


@router.get("/{submission_id}", response_model=SubmissionRead)
def get_submission(submission_id: int, service: GradingService = Depends(reader_service)) -> SubmissionRead:
    submission = service.submissions.get(submission_id)
    if submission is None:
        raise HTTPException(status_code=404, detail="Submission not found")
    return submission


@router.get("/{submission_id}/grading-context", response_model=GradingContext)
def get_grading_context(
    submission_id: int,
    service: GradingService = Depends(reader_service),
    grader: StaticIdentity | None = Depends(optional_grader),
) -> GradingContext:
    return for_reader(unwrap(service.get_grading_context(submission_id)), grader)


@router.post("/{submission_id}/grade", response_model=GradeRead, status_code=status.HTTP_201_CREATED)
def submit_grade(
    submission_id: int,
    payload: GradingData,
    service: GradingService = Depends(grading_service),
) -> GradeRead:
    return unwrap(service.submit_grade(submission_id, payload))


@router.get("/{submission_id}/grade", response_model=GradeRead)
def get_grade(
    submission_id: int,
    service: GradingService = Depends(reader_service),
    grader: StaticIdentity | None = Depends(optional_grader),
) -> GradeRead:
    grade = service.get_grade_for_submission(submission_id)
    if grade is None:
        raise HTTPException(status_code=404, detail="Submission has not been graded")
    return for_reader(grade, grader)


@router.post("/{submission_id}/grade/draft", response_model=DraftSaveResponse)
def save_draft(
    submission_id: int,
    payload: GradingData,
    service: GradingService = Depends(grading_service),
) -> DraftSaveResponse:
    saved = service.save_draft(submission_id, payload)
    warnings = service.draft_warnings(submission_id, payload) if saved else {}
    return DraftSaveResponse(saved=saved, warnings=warnings)


@router.get("/{submission_id}/grade/draft", response_model=DraftRead)
def get_draft(submission_id: int, service: GradingService = Depends(grading_service)) -> DraftRead:
    draft = service.get_draft(submission_id)
    if draft is None:
        raise HTTPException(status_code=404, detail="No draft saved")
    return draft


@router.get("/{submission_id}/grade/history", response_model=GradeHistoryResponse)
def get_grade_history(
    submission_id: int,
    service: GradingService = Depends(reader_service),
    grader: StaticIdentity | None = Depends(optional_grader),
) -> GradeHistoryResponse:
    grade = service.get_grade_for_submission(submission_id)
    if grade is None:
        if service.submissions.get(submission_id) is None:
            raise HTTPException(status_code=404, detail="Submission not found")
        return GradeHistoryResponse(history=[])
    return GradeHistoryResponse(history=for_reader(unwrap(service.grade_history(grade.id)), grader))
