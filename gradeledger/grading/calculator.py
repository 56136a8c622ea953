"""Pure score arithmetic over rubric selections."""

from __future__ import annotations

import math
from collections.abc import Iterable

from gradeledger.schemas import GradingData, RubricCriterion, RubricScore


def effective_points(score: RubricScore) -> float:
    """Manual override wins over the level's base points."""
    return score.custom_points if score.custom_points is not None else score.points


def total(scores: Iterable[RubricScore]) -> float:
    return float(sum(effective_points(score) for score in scores))


def max_total(criteria: Iterable[RubricCriterion]) -> float:
    return float(sum(criterion.max_points for criterion in criteria))


def derive_score(data: GradingData, criteria: list[RubricCriterion]) -> GradingData:
    """Return ``data`` with ``score`` recomputed from the rubric when the rubric drives it.

    With no rubric, or a rubric with no entered scores, the submitted score is
    authoritative and ``data`` is returned untouched.
    """
    if not criteria or not data.rubric_scores:
        return data
    return data.model_copy(update={"score": total(data.rubric_scores)})


def percentage(score: float, max_score: float) -> int:
    if max_score <= 0:
        return 0
    return math.floor(score / max_score * 100 + 0.5)


def letter_grade(score: float, max_score: float) -> str:
    pct = percentage(score, max_score)
    if pct >= 90:
        return "A"
    if pct >= 80:
        return "B"
    if pct >= 70:
        return "C"
    if pct >= 60:
        return "D"
    return "F"
