from __future__ import annotations

import pytest
from sqlmodel import Session, select

from gradeledger import models
from gradeledger.grading.collaborators import StaticIdentity
from gradeledger.grading.errors import Conflict, NoOpUpdate, NotFound, RubricIntegrityError, StaleVersion, ValidationFailed
from gradeledger.grading.service import GradingService
from gradeledger.models import HistoryAction, SubmissionStatus
from gradeledger.schemas import GradeRead, GradingData, RubricCriterion, RubricLevel, RubricScore
from tests.conftest import two_criterion_rubric


def _rubric_payload(b_custom: float | None = 18, **overrides) -> GradingData:
    payload = {
        "score": 0,
        "feedback": "<p>Clear design, thin docs.</p>",
        "rubric_scores": [
            RubricScore(criterion_id="A", level_id="L1", points=24),
            RubricScore(criterion_id="B", level_id="L2", points=20, custom_points=b_custom),
        ],
        "private_notes": "Discussed in office hours",
    }
    payload.update(overrides)
    return GradingData(**payload)


@pytest.fixture
def service(session) -> GradingService:
    return GradingService(session, StaticIdentity("prof-1"))


@pytest.fixture
def rubric_submission(make_submission) -> int:
    return make_submission(max_score=100, rubric=two_criterion_rubric())


def test_submit_derives_score_from_rubric(service, rubric_submission) -> None:
    grade = service.submit_grade(rubric_submission, _rubric_payload())

    assert isinstance(grade, GradeRead)
    assert grade.score == 42
    assert grade.version == 1
    assert grade.grader_id == "prof-1"
    assert grade.letter_grade == "F"


def test_update_records_rubric_and_score_changes(service, rubric_submission) -> None:
    grade = service.submit_grade(rubric_submission, _rubric_payload())

    updated = service.update_grade(grade.id, _rubric_payload(b_custom=16), expected_version=1)

    assert updated.score == 40
    assert updated.version == 2
    latest = service.grade_history(grade.id)[-1]
    assert latest.action == HistoryAction.UPDATED
    changes = {change.field: (change.old_value, change.new_value) for change in latest.changes}
    assert changes == {"rubricScore.B": (18, 16), "score": (42, 40)}


def test_submit_then_context_round_trip(service, session, rubric_submission) -> None:
    submitted = service.submit_grade(rubric_submission, _rubric_payload())

    context = service.get_grading_context(rubric_submission)

    assert context.grade == submitted
    assert context.grade.rubric_scores == _rubric_payload().rubric_scores
    assert context.grade.private_notes == "Discussed in office hours"
    assert context.max_total == 50
    assert [criterion.id for criterion in context.rubric] == ["A", "B"]
    assert len(context.grade_history) == 1
    assert context.grade_history[0].action == HistoryAction.CREATED
    assert context.grade_history[0].changes == []
    assert context.submission.status == SubmissionStatus.GRADED


def test_out_of_range_score_creates_no_grade(service, session, make_submission) -> None:
    submission_id = make_submission(max_score=100)

    result = service.submit_grade(submission_id, GradingData(score=105, feedback="Too generous"))

    assert isinstance(result, ValidationFailed)
    assert set(result.errors) == {"score"}
    assert session.exec(select(models.Grade)).all() == []
    assert session.exec(select(models.GradeHistoryEntry)).all() == []


def test_free_score_is_authoritative_without_rubric(service, make_submission) -> None:
    submission_id = make_submission(max_score=20)

    grade = service.submit_grade(submission_id, GradingData(score=17.5, feedback="Good"))

    assert grade.score == 17.5
    assert grade.percentage == 88


def test_second_submit_conflicts(service, rubric_submission) -> None:
    service.submit_grade(rubric_submission, _rubric_payload())

    result = service.submit_grade(rubric_submission, _rubric_payload(b_custom=None))

    assert isinstance(result, Conflict)


def test_submit_for_unknown_submission_is_not_found(service) -> None:
    assert isinstance(service.submit_grade(999, GradingData(score=1, feedback="x")), NotFound)


def test_stale_expected_version_is_rejected(service, rubric_submission) -> None:
    grade = service.submit_grade(rubric_submission, _rubric_payload())
    service.update_grade(grade.id, _rubric_payload(b_custom=16), expected_version=1)

    result = service.update_grade(grade.id, _rubric_payload(b_custom=12), expected_version=1)

    assert isinstance(result, StaleVersion)
    assert (result.expected, result.actual) == (1, 2)
    assert len(service.grade_history(grade.id)) == 2


def test_identical_update_is_a_no_op(service, rubric_submission) -> None:
    grade = service.submit_grade(rubric_submission, _rubric_payload())

    result = service.update_grade(grade.id, _rubric_payload(), expected_version=1)

    assert isinstance(result, NoOpUpdate)
    assert service.get_grade(grade.id).version == 1


def test_invalid_update_leaves_history_untouched(service, rubric_submission) -> None:
    grade = service.submit_grade(rubric_submission, _rubric_payload())

    result = service.update_grade(grade.id, _rubric_payload(feedback="<p> </p>"), expected_version=1)

    assert isinstance(result, ValidationFailed)
    assert result.errors == {"feedback": "Feedback is required"}
    assert len(service.grade_history(grade.id)) == 1


def test_version_increases_by_one_per_change(service, rubric_submission) -> None:
    grade = service.submit_grade(rubric_submission, _rubric_payload())

    versions = [grade.version]
    for custom in (16, 14, 12):
        grade = service.update_grade(grade.id, _rubric_payload(b_custom=custom), expected_version=grade.version)
        versions.append(grade.version)
    grade = service.restore_grade_version(grade.id, 2, expected_version=grade.version)
    versions.append(grade.version)

    assert versions == [1, 2, 3, 4, 5]
    assert [entry.version for entry in service.grade_history(grade.id)] == versions


def test_restore_appends_revised_version_matching_target(service, rubric_submission) -> None:
    grade = service.submit_grade(rubric_submission, _rubric_payload())
    service.update_grade(grade.id, _rubric_payload(b_custom=16), expected_version=1)
    service.update_grade(grade.id, _rubric_payload(b_custom=16, feedback="Revised", private_notes=None), expected_version=2)

    restored = service.restore_grade_version(grade.id, 1, expected_version=3)

    original = service.history_entry(grade.id, 1)
    assert restored.version == 4
    assert restored.score == original.score == 42
    assert restored.feedback == original.feedback
    assert restored.rubric_scores == original.rubric_scores
    assert restored.private_notes == original.private_notes
    history = service.grade_history(grade.id)
    assert [entry.action for entry in history] == [
        HistoryAction.CREATED,
        HistoryAction.UPDATED,
        HistoryAction.UPDATED,
        HistoryAction.REVISED,
    ]
    assert {change.field for change in history[-1].changes} == {"rubricScore.B", "score", "feedback", "privateNotes"}


def test_restore_unknown_version_is_not_found(service, rubric_submission) -> None:
    grade = service.submit_grade(rubric_submission, _rubric_payload())

    assert isinstance(service.restore_grade_version(grade.id, 7, expected_version=1), NotFound)


def test_restore_to_current_content_is_a_no_op(service, rubric_submission) -> None:
    grade = service.submit_grade(rubric_submission, _rubric_payload())

    assert isinstance(service.restore_grade_version(grade.id, 1, expected_version=1), NoOpUpdate)


def test_stale_restore_is_rejected(service, rubric_submission) -> None:
    grade = service.submit_grade(rubric_submission, _rubric_payload())
    service.update_grade(grade.id, _rubric_payload(b_custom=16), expected_version=1)

    result = service.restore_grade_version(grade.id, 1, expected_version=1)

    assert isinstance(result, StaleVersion)
    assert (result.expected, result.actual) == (1, 2)
    assert len(service.grade_history(grade.id)) == 2


@pytest.mark.parametrize("score", [float("nan"), float("inf")])
def test_non_finite_score_is_a_validation_error(service, session, make_submission, score: float) -> None:
    submission_id = make_submission(max_score=100)
    data = GradingData.model_construct(score=score, feedback="ok", rubric_scores=[], private_notes=None)

    result = service.submit_grade(submission_id, data)

    assert isinstance(result, ValidationFailed)
    assert set(result.errors) == {"score"}
    assert session.exec(select(models.Grade)).all() == []


def test_level_points_off_the_step_still_grade(service, make_submission) -> None:
    rubric = [
        RubricCriterion(
            id="Q",
            name="Quiz",
            max_points=5,
            levels=[RubricLevel(id="part", name="Partial", points=2.25), RubricLevel(id="full", name="Full", points=5)],
        )
    ]
    submission_id = make_submission(max_score=5, rubric=rubric)

    grade = service.submit_grade(
        submission_id,
        GradingData(score=0, feedback="Partial credit", rubric_scores=[RubricScore(criterion_id="Q", level_id="part", points=2.25)]),
    )
    override = service.update_grade(
        grade.id,
        GradingData(
            score=0,
            feedback="Partial credit",
            rubric_scores=[RubricScore(criterion_id="Q", level_id="part", points=2.25, custom_points=3.25)],
        ),
        expected_version=1,
    )

    assert grade.score == 2.25
    assert isinstance(override, ValidationFailed)
    assert override.errors == {"rubricScore.Q": "Custom points must be a multiple of 0.5"}


def test_rubric_integrity_violation_fails_loudly(service, session, rubric_submission) -> None:
    payload = _rubric_payload()
    payload.rubric_scores.append(RubricScore(criterion_id="A", level_id="L0", points=30))

    with pytest.raises(RubricIntegrityError):
        service.submit_grade(rubric_submission, payload)

    assert session.exec(select(models.Grade)).all() == []


def test_concurrent_updates_with_same_version(engine, session, rubric_submission) -> None:
    grade = GradingService(session, StaticIdentity("prof-1")).submit_grade(rubric_submission, _rubric_payload())

    with Session(engine) as first_session, Session(engine) as second_session:
        first = GradingService(first_session, StaticIdentity("prof-1"))
        second = GradingService(second_session, StaticIdentity("prof-2"))

        results = [
            first.update_grade(grade.id, _rubric_payload(b_custom=16), expected_version=1),
            second.update_grade(grade.id, _rubric_payload(b_custom=10), expected_version=1),
        ]

    assert sum(isinstance(result, GradeRead) for result in results) == 1
    assert sum(isinstance(result, StaleVersion) for result in results) == 1


def test_draft_is_overwritten_and_cleared_on_submit(service, rubric_submission) -> None:
    assert service.save_draft(rubric_submission, GradingData(score=0, feedback=""))
    assert service.save_draft(rubric_submission, _rubric_payload(b_custom=None))

    draft = service.get_draft(rubric_submission)
    assert draft.data.rubric_scores[1].custom_points is None
    assert draft.grader_id == "prof-1"
    assert service.get_grade_for_submission(rubric_submission) is None

    service.submit_grade(rubric_submission, _rubric_payload())

    assert service.get_draft(rubric_submission) is None


def test_draft_warnings_are_advisory(service, rubric_submission) -> None:
    incomplete = GradingData(score=0, feedback="")

    assert service.save_draft(rubric_submission, incomplete) is True
    assert set(service.draft_warnings(rubric_submission, incomplete)) == {"feedback", "rubric"}


def test_draft_for_unknown_submission_fails(service) -> None:
    assert service.save_draft(12345, GradingData(score=0, feedback="")) is False


def test_completeness_can_be_required(session, rubric_submission) -> None:
    strict = GradingService(session, StaticIdentity("prof-1"), require_complete_rubric=True)
    partial = _rubric_payload(rubric_scores=[RubricScore(criterion_id="A", level_id="L1", points=24)])

    result = strict.submit_grade(rubric_submission, partial)

    assert isinstance(result, ValidationFailed)
    assert set(result.errors) == {"rubric"}


def test_assessment_grades_and_stats(service, session, make_submission) -> None:
    first = make_submission(max_score=50)
    assessment_id = session.get(models.Submission, first).assessment_id
    second = models.Submission(assessment_id=assessment_id, student_name="Grace")
    third = models.Submission(assessment_id=assessment_id, student_name="Linus")
    session.add(second)
    session.add(third)
    session.commit()

    service.submit_grade(first, GradingData(score=46, feedback="Excellent"))
    service.submit_grade(second.id, GradingData(score=29, feedback="Needs work"))

    grades = service.list_assessment_grades(assessment_id)
    stats = service.assessment_grade_stats(assessment_id)

    assert [grade.score for grade in grades] == [46, 29]
    assert (stats.total_submissions, stats.graded_submissions, stats.pending_grades) == (3, 2, 1)
    assert stats.average_score == 75
    assert stats.highest_score == 92
    assert stats.lowest_score == 58
    buckets = {bucket.range: bucket.count for bucket in stats.grade_distribution}
    assert buckets == {"90-100%": 1, "80-89%": 0, "70-79%": 0, "60-69%": 0, "Below 60%": 1}


def test_stats_for_unknown_assessment_is_not_found(service) -> None:
    assert isinstance(service.assessment_grade_stats(404), NotFound)
