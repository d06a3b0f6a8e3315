"""
Quiz attempt API endpoints: start, save progress, submit, read, status, reset
"""

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from quiz_engine.api.deps import (
    Requester,
    ensure_can_view_student,
    get_requester,
    require_admin,
    require_student,
)
from quiz_engine.api.quizzes import public_quiz_view
from quiz_engine.database import get_db
from quiz_engine.exceptions import NotFoundError
from quiz_engine.models import QuizAttempt
from quiz_engine.schemas.attempt import (
    AnswersPayload,
    AttemptDetailResponse,
    AttemptResponse,
    AttemptResult,
    AttemptStartRequest,
    AttemptStartResponse,
    IntegrityWarning,
    ProgressPayload,
    ProgressResponse,
    QuestionResult,
    QuizStatusResponse,
    ResetResponse,
    SubmitResponse,
)
from quiz_engine.schemas.quiz import QuizDefinition
from quiz_engine.services.attempt_service import SubmissionResult, attempt_service
from quiz_engine.services.quiz_repository import quiz_repository
from quiz_engine.services.scoring_service import ScoreResult
from quiz_engine.services.timeout_coordinator import deadline_for, remaining_seconds, route_progress


router = APIRouter(prefix="/api", tags=["quiz-attempts"])
logger = logging.getLogger(__name__)


def _quiz_or_none(db: Session, quiz_id: int) -> Optional[QuizDefinition]:
    try:
        return quiz_repository.get_definition(db, quiz_id)
    except NotFoundError:
        logger.warning(f"Quiz {quiz_id} referenced by an attempt no longer exists")
        return None


def _attempt_response(attempt: QuizAttempt, quiz: Optional[QuizDefinition]) -> dict:
    data = attempt.to_dict()
    if quiz is not None:
        data["deadline"] = deadline_for(attempt.started_at, quiz.time_limit_minutes)
        data["remaining_seconds"] = remaining_seconds(attempt, quiz)
    return data


def _result_fields(result: ScoreResult) -> dict:
    return {
        "score": result.score,
        "total_possible_score": result.total_possible_score,
        "percentage": result.percentage,
        "is_passing": result.is_passing,
        "breakdown": [
            QuestionResult(
                question_id=item.question_id,
                selected_option_id=item.selected_option_id,
                correct_option_id=item.correct_option_id,
                points_awarded=item.points_awarded,
                max_points=item.max_points,
                is_correct=item.is_correct,
            )
            for item in result.breakdown
        ],
        "integrity_warnings": [
            IntegrityWarning(
                question_id=warning.question_id,
                correct_option_count=warning.correct_option_count,
                message=warning.message,
            )
            for warning in result.integrity_warnings
        ],
    }


def _submit_response(submission: SubmissionResult, auto_submitted: bool = False) -> SubmitResponse:
    return SubmitResponse(
        **_result_fields(submission.result),
        attempt_id=submission.attempt.id,
        answers=submission.answers,
        completed_at=submission.attempt.completed_at,
        auto_submitted=auto_submitted,
        message="Quiz auto-submitted successfully" if auto_submitted else "Quiz submitted successfully",
    )


@router.post("/quiz-attempts", response_model=AttemptStartResponse, status_code=201)
async def start_attempt(
    request: AttemptStartRequest,
    response: Response,
    requester: Requester = Depends(require_student),
    db: Session = Depends(get_db),
):
    """
    Start a quiz attempt, or resume the one in progress

    - 201 with a fresh attempt
    - 200 with the existing in-progress attempt (answers and start time kept)
    - 409 if the student already completed this quiz
    """
    attempt, created = attempt_service.start_attempt(db, requester.id, request.quiz_id)
    quiz = _quiz_or_none(db, attempt.quiz_id)

    if not created:
        response.status_code = 200

    return AttemptStartResponse(
        **_attempt_response(attempt, quiz),
        resumed=not created,
        message="Quiz attempt started" if created else "Resuming existing quiz attempt",
    )


@router.patch("/quiz-attempts/{attempt_id}/save-progress", response_model=ProgressResponse)
async def save_progress(
    attempt_id: int,
    payload: ProgressPayload,
    requester: Requester = Depends(require_student),
    db: Session = Depends(get_db),
):
    """
    Save answers without finalizing

    Becomes a submit when autoSubmit is set or the time limit has expired.
    """
    try:
        outcome = route_progress(
            db, attempt_id, requester.id, payload.answers, auto_submit=payload.auto_submit
        )
    except SQLAlchemyError as e:
        logger.error(f"Failed to save progress for attempt {attempt_id}: {str(e)}")
        db.rollback()
        raise HTTPException(status_code=500, detail="Error saving quiz progress")

    quiz = _quiz_or_none(db, outcome.attempt.quiz_id)
    if outcome.auto_submitted:
        return ProgressResponse(
            message="Quiz auto-submitted successfully",
            attempt=AttemptResponse(**_attempt_response(outcome.attempt, quiz)),
            result=_submit_response(outcome.submission, auto_submitted=True),
        )

    return ProgressResponse(
        message="Progress saved successfully",
        attempt=AttemptResponse(**_attempt_response(outcome.attempt, quiz)),
    )


@router.post("/quiz-attempts/{attempt_id}/submit", response_model=SubmitResponse)
async def submit_attempt(
    attempt_id: int,
    payload: AnswersPayload,
    requester: Requester = Depends(require_student),
    db: Session = Depends(get_db),
):
    """
    Submit and score an attempt

    Exactly one submit per attempt succeeds; later ones get 409.
    """
    try:
        submission = attempt_service.submit_attempt(db, attempt_id, requester.id, payload.answers)
    except SQLAlchemyError as e:
        logger.error(f"Failed to submit attempt {attempt_id}: {str(e)}")
        db.rollback()
        raise HTTPException(status_code=500, detail="Error submitting quiz attempt")

    return _submit_response(submission)


@router.get("/quiz-attempts/{attempt_id}", response_model=AttemptDetailResponse)
async def get_attempt(
    attempt_id: int,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
):
    """
    Fetch an attempt with its quiz; students may only fetch their own

    Completed attempts include the scored result with the per-question
    breakdown. The quiz itself never carries correct-answer markers.
    """
    review = attempt_service.review_attempt(db, attempt_id, requester.id, requester.role)

    return AttemptDetailResponse(
        **_attempt_response(review.attempt, review.quiz),
        quiz=public_quiz_view(review.quiz) if review.quiz else None,
        result=AttemptResult(**_result_fields(review.result)) if review.result else None,
    )


@router.get("/students/{student_id}/quizzes-with-status", response_model=List[QuizStatusResponse])
async def list_quizzes_with_status(
    student_id: int,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
):
    """Every available quiz with the student's attempt status on it"""
    ensure_can_view_student(requester, student_id)

    statuses = attempt_service.list_quiz_statuses(db, student_id)
    return [
        QuizStatusResponse(
            quiz_id=item.quiz.id,
            title=item.quiz.title,
            description=item.quiz.description,
            time_limit_minutes=item.quiz.time_limit_minutes,
            due_date=item.quiz.due_date,
            attempt_status=item.status,
            attempt_id=item.attempt.id if item.attempt else None,
            score=item.attempt.score if item.attempt else None,
            percentage=item.attempt.percentage if item.attempt else None,
        )
        for item in statuses
    ]


@router.get("/students/{student_id}/quiz-attempts", response_model=List[AttemptResponse])
async def list_attempts(
    student_id: int,
    quiz_id: Optional[int] = None,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db),
):
    """Attempts of a student, latest first, optionally for one quiz"""
    ensure_can_view_student(requester, student_id)

    attempts = attempt_service.list_attempts(db, student_id, quiz_id)
    logger.info(f"Found {len(attempts)} quiz attempts for student {student_id}")

    quizzes = {}
    responses = []
    for attempt in attempts:
        if attempt.quiz_id not in quizzes:
            quizzes[attempt.quiz_id] = _quiz_or_none(db, attempt.quiz_id)
        responses.append(AttemptResponse(**_attempt_response(attempt, quizzes[attempt.quiz_id])))
    return responses


@router.delete("/students/{student_id}/quiz-attempts", response_model=ResetResponse)
async def reset_attempts(
    student_id: int,
    quiz_id: Optional[int] = None,
    requester: Requester = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Admin reset of a student's attempts (all quizzes, or one)"""
    logger.info(f"Admin {requester.id} is resetting quiz attempts for student {student_id}")

    try:
        deleted = attempt_service.reset_attempts(db, student_id, quiz_id)
    except SQLAlchemyError as e:
        logger.error(f"Failed to reset attempts for student {student_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Error resetting student quiz attempts")

    return ResetResponse(
        message=f"Successfully reset {len(deleted)} quiz attempts for student {student_id}",
        deleted_attempts=[AttemptResponse(**snapshot) for snapshot in deleted],
    )
