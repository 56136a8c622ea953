"""Grading payload validation.

``validate_grading_data`` collects recoverable, field-level problems and never
short-circuits. ``check_rubric_integrity`` guards the data-model invariants and
raises on the first defect.
"""

from __future__ import annotations

import html
import math
import re

from gradeledger.grading.errors import RubricIntegrityError
from gradeledger.schemas import GradingData, RubricCriterion

_TAG_RE = re.compile(r"<[^>]*>")


def strip_markup(text: str) -> str:
    """Return the visible text of a rich-text fragment."""
    return html.unescape(_TAG_RE.sub("", text or "")).replace("\xa0", " ").strip()


def _format_number(value: float) -> str:
    return f"{value:g}"


def _on_step(value: float, step: float | None) -> bool:
    if not step or not math.isfinite(value):
        return True
    ratio = value / step
    return math.isclose(ratio, round(ratio), abs_tol=1e-9)


def validate_grading_data(
    data: GradingData,
    max_score: float,
    rubric: list[RubricCriterion],
    *,
    require_complete: bool = False,
    score_step: float | None = None,
) -> dict[str, str]:
    errors: dict[str, str] = {}
    # Only grader-entered values follow the step; level points come from the catalog.
    score_is_derived = bool(rubric and data.rubric_scores)

    if not math.isfinite(data.score):
        errors["score"] = "Score must be a number"
    elif data.score < 0 or data.score > max_score:
        errors["score"] = f"Score must be between 0 and {_format_number(max_score)}"
    elif not score_is_derived and not _on_step(data.score, score_step):
        errors["score"] = f"Score must be a multiple of {_format_number(score_step)}"

    if not strip_markup(data.feedback):
        errors["feedback"] = "Feedback is required"

    if rubric and not data.rubric_scores:
        errors["rubric"] = "Please complete the rubric grading"
    elif rubric and require_complete and len(data.rubric_scores) < len(rubric):
        errors["rubric"] = f"All {len(rubric)} rubric criteria must be scored"

    criteria = {criterion.id: criterion for criterion in rubric}
    for rubric_score in data.rubric_scores:
        criterion = criteria.get(rubric_score.criterion_id)
        if criterion is None:
            continue
        key = f"rubricScore.{rubric_score.criterion_id}"
        entered = (
            ("Points", rubric_score.points, False),
            ("Custom points", rubric_score.custom_points, True),
        )
        for label, value, stepped in entered:
            if value is None:
                continue
            if not math.isfinite(value) or value < 0 or value > criterion.max_points:
                errors[key] = f"{label} must be between 0 and {criterion.max_points}"
                break
            if stepped and not _on_step(value, score_step):
                errors[key] = f"{label} must be a multiple of {_format_number(score_step)}"
                break

    return errors


def check_rubric_integrity(data: GradingData, rubric: list[RubricCriterion]) -> None:
    criteria = {criterion.id: criterion for criterion in rubric}
    seen: set[str] = set()
    for rubric_score in data.rubric_scores:
        criterion_id = rubric_score.criterion_id
        if criterion_id in seen:
            raise RubricIntegrityError(f"Duplicate rubric score for criterion '{criterion_id}'")
        seen.add(criterion_id)

        criterion = criteria.get(criterion_id)
        if criterion is None:
            raise RubricIntegrityError(f"Criterion '{criterion_id}' is not part of the active rubric")

        level = criterion.level(rubric_score.level_id)
        if level is None:
            raise RubricIntegrityError(f"Level '{rubric_score.level_id}' does not belong to criterion '{criterion_id}'")
        if not math.isclose(level.points, rubric_score.points):
            raise RubricIntegrityError(
                f"Level '{level.id}' of criterion '{criterion_id}' awards {level.points} points, payload captured {rubric_score.points}"
            )
