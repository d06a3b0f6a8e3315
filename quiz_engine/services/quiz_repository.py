"""
Quiz definition store

Read path used by the attempt engine, plus the authoring insert.
"""
import json
import logging
from typing import Any, List

from sqlalchemy.orm import Session, selectinload

from quiz_engine.exceptions import NotFoundError
from quiz_engine.models import Quiz, Question
from quiz_engine.schemas.quiz import (
    QuizCreateRequest,
    QuizDefinition,
    QuestionDefinition,
    OptionDefinition,
)
from quiz_engine.services.scoring_service import is_marked_correct
from quiz_engine.utils.cache import cache_service

logger = logging.getLogger(__name__)


def _load_options(question: Question) -> List[Any]:
    """Options column may hold a JSON string in older rows"""
    options = question.options
    if isinstance(options, str):
        try:
            options = json.loads(options)
        except ValueError:
            logger.error(f"Failed to parse options for question {question.id}")
            return []
    if not isinstance(options, list):
        logger.error(f"Invalid options format for question {question.id}")
        return []
    return options


def _to_definition(quiz: Quiz) -> QuizDefinition:
    questions = []
    for question in quiz.questions:
        options = [
            OptionDefinition(
                id=index + 1,
                text=str(option.get("text") or f"Option {index + 1}"),
                is_correct=is_marked_correct(option),
            )
            for index, option in enumerate(_load_options(question))
            # Malformed entries still occupy their position
            if isinstance(option, dict)
        ]
        questions.append(QuestionDefinition(
            id=question.id,
            text=question.text,
            points=question.points if question.points is not None else 1,
            options=options,
        ))

    return QuizDefinition(
        id=quiz.id,
        title=quiz.title,
        description=quiz.description,
        time_limit_minutes=quiz.time_limit_minutes,
        passing_score_percent=quiz.passing_score_percent or 0,
        total_points=quiz.total_points,
        due_date=quiz.due_date,
        status=quiz.status,
        questions=questions,
    )


class QuizRepository:
    """Quiz definitions by id, cached in Redis"""

    def get_definition(self, db: Session, quiz_id: int) -> QuizDefinition:
        """
        Load a quiz definition

        Raises:
            NotFoundError: no quiz with this id
        """
        cache_key = cache_service.quiz_definition_key(quiz_id)
        cached = cache_service.get(cache_key)
        if cached:
            return QuizDefinition.model_validate(cached)

        quiz = (
            db.query(Quiz)
            .options(selectinload(Quiz.questions))
            .filter(Quiz.id == quiz_id)
            .first()
        )
        if not quiz:
            raise NotFoundError(f"Quiz {quiz_id} not found")

        definition = _to_definition(quiz)
        cache_service.set(cache_key, definition.model_dump(mode="json"))
        return definition

    def list_quizzes(self, db: Session) -> List[Quiz]:
        """Quizzes open to students (everything except drafts), oldest first"""
        return (
            db.query(Quiz)
            .filter(Quiz.status != "draft")
            .order_by(Quiz.id)
            .all()
        )

    def create(self, db: Session, request: QuizCreateRequest) -> QuizDefinition:
        """Insert a validated quiz with its questions"""
        quiz = Quiz(
            title=request.title,
            description=request.description,
            time_limit_minutes=request.time_limit_minutes,
            passing_score_percent=request.passing_score_percent,
            total_points=request.total_points,
            due_date=request.due_date,
            status=request.status,
        )
        for order, question in enumerate(request.questions):
            quiz.questions.append(Question(
                text=question.text,
                points=question.points,
                order=order,
                options=[
                    {"id": index + 1, "text": option.text, "isCorrect": option.is_correct}
                    for index, option in enumerate(question.options)
                ],
            ))

        try:
            db.add(quiz)
            db.commit()
            db.refresh(quiz)
        except Exception:
            db.rollback()
            raise

        logger.info(f"Quiz created: {quiz.id} with {len(request.questions)} questions")
        cache_service.delete(cache_service.quiz_definition_key(quiz.id))
        return _to_definition(quiz)


# Global instance
quiz_repository = QuizRepository()
