"""Endpoints that revise an existing grade."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from gradeledger.auth import grading_service, optional_grader, reader_service
from gradeledger.grading.collaborators import StaticIdentity
from gradeledger.grading.service import GradingService
from gradeledger.routers import for_reader, unwrap
from gradeledger.schemas import (
    GradeHistoryEntryRead,
    GradeHistoryResponse,
    GradeRead,
    GradeRestoreRequest,
    GradeUpdateRequest,
    GradingData,
)

router = APIRouter(prefix="/grades", tags=["grades"])


@router.get("/{grade_id}", response_model=GradeRead)
def get_grade(
    grade_id: int,
    service: GradingService = Depends(reader_service),
    grader: StaticIdentity | None = Depends(optional_grader),
) -> GradeRead:
    return for_reader(unwrap(service.get_grade(grade_id)), grader)


@router.patch("/{grade_id}", response_model=GradeRead)
def update_grade(
    grade_id: int,
    payload: GradeUpdateRequest,
    service: GradingService = Depends(grading_service),
) -> GradeRead:
    data = GradingData.model_validate(payload.model_dump(exclude={"expected_version"}))
    return unwrap(service.update_grade(grade_id, data, payload.expected_version))


@router.post("/{grade_id}/restore", response_model=GradeRead)
def restore_grade_version(
    grade_id: int,
    payload: GradeRestoreRequest,
    service: GradingService = Depends(grading_service),
) -> GradeRead:
    return unwrap(service.restore_grade_version(grade_id, payload.version, payload.expected_version))


@router.get("/{grade_id}/history", response_model=GradeHistoryResponse)
def get_history(
    grade_id: int,
    service: GradingService = Depends(reader_service),
    grader: StaticIdentity | None = Depends(optional_grader),
) -> GradeHistoryResponse:
    return GradeHistoryResponse(history=for_reader(unwrap(service.grade_history(grade_id)), grader))


@router.get("/{grade_id}/history/{version}", response_model=GradeHistoryEntryRead)
def get_history_entry(
    grade_id: int,
    version: int,
    service: GradingService = Depends(reader_service),
    grader: StaticIdentity | None = Depends(optional_grader),
) -> GradeHistoryEntryRead:
    return for_reader(unwrap(service.history_entry(grade_id, version)), grader)
