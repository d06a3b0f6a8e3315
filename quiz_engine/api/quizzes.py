"""
Quiz definition API endpoints
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import Union
import logging

from quiz_engine.api.deps import Requester, get_requester, require_author
from quiz_engine.database import get_db
from quiz_engine.schemas.quiz import (
    PublicOption,
    PublicQuestion,
    PublicQuizResponse,
    QuizCreateRequest,
    QuizDefinition,
)
from quiz_engine.services.quiz_repository import quiz_repository


router = APIRouter(prefix="/api/quizzes", tags=["quizzes"])
logger = logging.getLogger(__name__)


def public_quiz_view(quiz: QuizDefinition) -> PublicQuizResponse:
    """Strip correct-answer markers for students"""
    return PublicQuizResponse(
        id=quiz.id,
        title=quiz.title,
        description=quiz.description,
        time_limit_minutes=quiz.time_limit_minutes,
        passing_score_percent=quiz.passing_score_percent,
        total_points=quiz.total_points or sum(q.points for q in quiz.questions),
        due_date=quiz.due_date,
        status=quiz.status,
        questions=[
            PublicQuestion(
                id=question.id,
                text=question.text,
                points=question.points,
                options=[PublicOption(id=option.id, text=option.text) for option in question.options],
            )
            for question in quiz.questions
        ],
    )


@router.post("/", response_model=QuizDefinition, status_code=201)
async def create_quiz(
    request: QuizCreateRequest,
    requester: Requester = Depends(require_author),
    db: Session = Depends(get_db),
):
    """
    Create a quiz

    - Every question needs exactly one correct option
    - Option ids are assigned from their position (1-based)
    """
    try:
        quiz = quiz_repository.create(db, request)
    except SQLAlchemyError as e:
        logger.error(f"Failed to create quiz: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to create quiz")

    logger.info(f"Quiz {quiz.id} created by {requester.role} {requester.id}")
    return quiz


@router.get("/{quiz_id}", response_model=None)
async def get_quiz(
    quiz_id: int,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
) -> Union[QuizDefinition, PublicQuizResponse]:
    """Quiz definition; students get it without correct-answer markers"""
    quiz = quiz_repository.get_definition(db, quiz_id)
    if requester.is_student:
        return public_quiz_view(quiz)
    return quiz
