import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CACHE_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "100000")
os.environ.setdefault("RATE_LIMIT_PER_HOUR", "1000000")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient

from quiz_engine.database import Base, SessionLocal, engine
from quiz_engine.main import app
from quiz_engine.models import Quiz, Question
from quiz_engine.utils.rate_limiter import rate_limiter


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    rate_limiter.reset()
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_quiz(db):
    """Quiz whose questions have the given points and 1-based correct positions"""

    def _make(
        points=(1, 2, 3),
        correct=(1, 2, 3),
        time_limit_minutes=None,
        passing_score_percent=60,
        total_points=None,
        options_per_question=4,
    ):
        quiz = Quiz(
            title="Linear equations check",
            description="Chapter 4 revision",
            time_limit_minutes=time_limit_minutes,
            passing_score_percent=passing_score_percent,
            total_points=total_points,
            status="published",
        )
        for order, (question_points, correct_position) in enumerate(zip(points, correct)):
            quiz.questions.append(Question(
                text=f"Question {order + 1}",
                points=question_points,
                order=order,
                options=[
                    {"id": n, "text": f"Option {n}", "isCorrect": n == correct_position}
                    for n in range(1, options_per_question + 1)
                ],
            ))
        db.add(quiz)
        db.commit()
        db.refresh(quiz)
        return quiz

    return _make


def question_ids(quiz):
    return [str(question.id) for question in quiz.questions]


def as_user(user_id, role="student"):
    return {"X-User-Id": str(user_id), "X-User-Role": role}
