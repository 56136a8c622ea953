from __future__ import annotations

import sys
from pathlib import Path

import pytest
from sqlmodel import Session, SQLModel

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from gradeledger import db, models  # noqa: E402,F401
from gradeledger.grading.catalog import SQLRubricCatalog  # noqa: E402
from gradeledger.schemas import RubricCriterion, RubricLevel  # noqa: E402
from gradeledger.settings import settings  # noqa: E402


def two_criterion_rubric() -> list[RubricCriterion]:
    return [
        RubricCriterion(
            id="A",
            name="Implementation Quality",
            max_points=30,
            levels=[
                RubricLevel(id="L0", name="Excellent", points=30),
                RubricLevel(id="L1", name="Proficient", points=24),
                RubricLevel(id="L4", name="Developing", points=12),
            ],
        ),
        RubricCriterion(
            id="B",
            name="Documentation",
            max_points=20,
            levels=[
                RubricLevel(id="L2", name="Complete", points=20),
                RubricLevel(id="L3", name="Partial", points=10),
            ],
        ),
    ]


@pytest.fixture
def engine(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "data_dir", str(tmp_path / "data"))
    monkeypatch.setattr(settings, "sqlite_path", str(tmp_path / "test.db"))

    test_engine = db.build_engine(settings.sqlite_url)
    SQLModel.metadata.create_all(test_engine)
    monkeypatch.setattr(db, "engine", test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def make_submission(session):
    """Create an assessment (optionally with a rubric) and one submission; return the submission id."""

    def _make(max_score: float = 100, rubric: list[RubricCriterion] | None = None, student_name: str = "Ada") -> int:
        assessment = models.Assessment(title="Capstone", max_score=max_score)
        session.add(assessment)
        session.flush()
        SQLRubricCatalog(session).publish(assessment.id, rubric or [])
        submission = models.Submission(assessment_id=assessment.id, student_name=student_name)
        session.add(submission)
        session.commit()
        return submission.id

    return _make
