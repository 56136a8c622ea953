"""Assessment-level grade statistics."""

from __future__ import annotations

from collections.abc import Iterable

from gradeledger.schemas import GradeBucket, GradeStats

_BUCKETS = (
    ("90-100%", 90, None),
    ("80-89%", 80, 90),
    ("70-79%", 70, 80),
    ("60-69%", 60, 70),
    ("Below 60%", None, 60),
)


def summarize(total_submissions: int, graded_submissions: int, grades: Iterable[tuple[float, float]]) -> GradeStats:
    """Summarize ``(score, max_score)`` pairs as percentages."""
    percentages = [score / max_score * 100 for score, max_score in grades if max_score > 0]
    pending = total_submissions - graded_submissions

    if not percentages:
        return GradeStats(
            total_submissions=total_submissions,
            graded_submissions=0,
            pending_grades=pending,
            average_score=0,
            highest_score=0,
            lowest_score=0,
        )

    distribution = [
        GradeBucket(
            range=label,
            count=sum(1 for pct in percentages if (low is None or pct >= low) and (high is None or pct < high)),
        )
        for label, low, high in _BUCKETS
    ]
    return GradeStats(
        total_submissions=total_submissions,
        graded_submissions=graded_submissions,
        pending_grades=pending,
        average_score=round(sum(percentages) / len(percentages), 2),
        highest_score=round(max(percentages), 2),
        lowest_score=round(min(percentages), 2),
        grade_distribution=distribution,
    )
