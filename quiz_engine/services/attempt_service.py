"""
Attempt state machine

NotStarted -> InProgress -> Completed

- start: resume the active attempt, refuse after completion, else create
- save_progress: merge answers into an active attempt
- submit: the single finalization path (explicit submit and autosubmit)
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from quiz_engine.exceptions import (
    AlreadyCompletedError,
    ConcurrentUpdateError,
    ForbiddenError,
    NotFoundError,
    QuizAttemptError,
)
from quiz_engine.models import Quiz, QuizAttempt
from quiz_engine.schemas.quiz import QuizDefinition
from quiz_engine.services.answer_normalizer import merge_answers, normalize_answers
from quiz_engine.services.attempt_repository import attempt_repository
from quiz_engine.services.quiz_repository import quiz_repository
from quiz_engine.services.scoring_service import ScoreResult, scoring_service
from quiz_engine.utils.clock import utcnow

logger = logging.getLogger(__name__)

STUDENT_ROLE = "student"
ELEVATED_ROLES = frozenset({"admin", "teacher"})
NOT_ATTEMPTED = "not_attempted"


@dataclass
class SubmissionResult:
    """Finalized attempt together with its scoring outcome"""
    attempt: QuizAttempt
    quiz: QuizDefinition
    result: ScoreResult

    @property
    def answers(self) -> Dict[str, Dict[str, str]]:
        return self.attempt.answers or {}


@dataclass
class AttemptReview:
    """Attempt with its quiz; result is only set once the attempt is completed"""
    attempt: QuizAttempt
    quiz: Optional[QuizDefinition]
    result: Optional[ScoreResult] = None


@dataclass
class QuizStatus:
    """Where one student stands on one quiz"""
    quiz: Quiz
    status: str
    attempt: Optional[QuizAttempt] = None


class AttemptService:
    """Legal transitions for quiz attempts"""

    # Insert retries when a concurrent start wins and then disappears (admin reset)
    START_RETRIES = 2

    # Read-merge-write passes before a save or submit gives up on a busy attempt
    WRITE_RETRIES = 3

    def start_attempt(
        self,
        db: Session,
        student_id: int,
        quiz_id: int
    ) -> Tuple[QuizAttempt, bool]:
        """
        Start or resume an attempt

        Returns:
            Tuple of (attempt, created)

        Raises:
            NotFoundError: quiz does not exist
            AlreadyCompletedError: student already finished this quiz
        """
        quiz_repository.get_definition(db, quiz_id)

        for _ in range(self.START_RETRIES):
            existing = self._existing_attempt(db, student_id, quiz_id)
            if existing:
                logger.info(
                    f"Resuming attempt {existing.id} for student {student_id}, quiz {quiz_id}"
                )
                return existing, False

            created = attempt_repository.insert(db, QuizAttempt(
                student_id=student_id,
                quiz_id=quiz_id,
                started_at=utcnow(),
                completed_at=None,
                answers={},
            ))
            if created:
                logger.info(
                    f"Quiz attempt created: {created.id} for student {student_id}, quiz {quiz_id}"
                )
                return created, True

        raise QuizAttemptError("Could not start the quiz attempt, please retry")

    def save_progress(
        self,
        db: Session,
        attempt_id: int,
        student_id: int,
        answers: Optional[Mapping[str, Any]]
    ) -> QuizAttempt:
        """
        Merge answers into an in-progress attempt without finalizing it

        The write only lands if nobody else wrote the attempt since it was
        read; otherwise the merge is redone on the fresh row, so a concurrent
        save never drops answers it did not mention.

        Raises:
            NotFoundError, ForbiddenError, AlreadyCompletedError,
            ConcurrentUpdateError
        """
        incoming = normalize_answers(answers)

        for _ in range(self.WRITE_RETRIES):
            attempt = self._load_active(db, attempt_id, student_id)
            merged = merge_answers(attempt.answers, incoming)

            updated = attempt_repository.update_if_active(
                db, attempt_id, attempt.version, {"answers": merged}
            )
            if updated is not None:
                logger.info(
                    f"Progress saved for attempt {attempt_id}: {len(incoming)} new, "
                    f"{len(merged)} total answers"
                )
                return updated

            logger.info(f"Attempt {attempt_id} changed during save, merging again")

        self._raise_write_conflict(db, attempt_id, student_id)

    def submit_attempt(
        self,
        db: Session,
        attempt_id: int,
        student_id: int,
        answers: Optional[Mapping[str, Any]]
    ) -> SubmissionResult:
        """
        Merge final answers, score and finalize the attempt exactly once

        The terminal write is conditional on completed_at IS NULL and on the
        version that was read, so of two racing submits only one persists a
        result; the other gets AlreadyCompletedError. A save that slipped in
        between read and write is merged and scored on the next pass.

        Raises:
            NotFoundError, ForbiddenError, AlreadyCompletedError,
            ConcurrentUpdateError
        """
        incoming = normalize_answers(answers)

        for _ in range(self.WRITE_RETRIES):
            attempt = self._load_active(db, attempt_id, student_id)
            quiz = quiz_repository.get_definition(db, attempt.quiz_id)

            merged = merge_answers(attempt.answers, incoming)
            result = scoring_service.score(quiz, merged)

            updated = attempt_repository.update_if_active(db, attempt_id, attempt.version, {
                "answers": merged,
                "completed_at": utcnow(),
                "score": result.score,
                "total_possible_score": result.total_possible_score,
                "percentage": result.percentage,
            })
            if updated is not None:
                logger.info(
                    f"Quiz attempt {attempt_id} submitted: {result.score}/{result.total_possible_score}"
                )
                return SubmissionResult(attempt=updated, quiz=quiz, result=result)

            logger.info(f"Attempt {attempt_id} changed during submit, checking again")

        self._raise_write_conflict(db, attempt_id, student_id)

    def get_attempt(
        self,
        db: Session,
        attempt_id: int,
        requester_id: int,
        requester_role: str
    ) -> QuizAttempt:
        """Students may read only their own attempts; admin/teacher any"""
        attempt = attempt_repository.get(db, attempt_id)
        if not attempt:
            raise NotFoundError("Quiz attempt not found")

        if requester_role not in ELEVATED_ROLES and attempt.student_id != requester_id:
            logger.warning(
                f"User {requester_id} ({requester_role}) tried to access attempt "
                f"{attempt_id} of student {attempt.student_id}"
            )
            raise ForbiddenError("You can only view your own quiz attempts")

        return attempt

    def review_attempt(
        self,
        db: Session,
        attempt_id: int,
        requester_id: int,
        requester_role: str
    ) -> AttemptReview:
        """
        Attempt together with its quiz, for reviewing results later

        Completed attempts are re-scored from their stored answers to give
        the per-question breakdown; in-progress ones carry no result.
        """
        attempt = self.get_attempt(db, attempt_id, requester_id, requester_role)

        try:
            quiz = quiz_repository.get_definition(db, attempt.quiz_id)
        except NotFoundError:
            logger.warning(f"Quiz {attempt.quiz_id} of attempt {attempt_id} no longer exists")
            return AttemptReview(attempt=attempt, quiz=None)

        if not attempt.is_completed:
            return AttemptReview(attempt=attempt, quiz=quiz)

        result = scoring_service.score(quiz, attempt.answers or {})
        if result.score != attempt.score:
            logger.warning(
                f"Attempt {attempt_id} stored score {attempt.score} differs from "
                f"re-scored {result.score}; quiz changed after submission"
            )
        return AttemptReview(attempt=attempt, quiz=quiz, result=result)

    def list_quiz_statuses(self, db: Session, student_id: int) -> List[QuizStatus]:
        """
        Every quiz open to students with this student's state on it

        not_attempted, in_progress or completed; a completed attempt wins
        over an in-progress one for the same quiz.
        """
        by_quiz: Dict[int, QuizAttempt] = {}
        for attempt in attempt_repository.list_for_student(db, student_id):
            current = by_quiz.get(attempt.quiz_id)
            if current is None or (attempt.is_completed and not current.is_completed):
                by_quiz[attempt.quiz_id] = attempt

        statuses = []
        for quiz in quiz_repository.list_quizzes(db):
            attempt = by_quiz.get(quiz.id)
            status = attempt.status if attempt else NOT_ATTEMPTED
            statuses.append(QuizStatus(quiz=quiz, status=status, attempt=attempt))

        logger.info(f"Quiz statuses for student {student_id}: {len(statuses)} quizzes, {len(by_quiz)} attempted")
        return statuses

    def list_attempts(
        self,
        db: Session,
        student_id: int,
        quiz_id: Optional[int] = None
    ) -> List[QuizAttempt]:
        """Attempts of a student, latest first"""
        return attempt_repository.list_for_student(db, student_id, quiz_id)

    def reset_attempts(
        self,
        db: Session,
        student_id: int,
        quiz_id: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Admin reset: delete attempts outside the state machine

        Returns snapshots of the deleted rows.
        """
        attempts = attempt_repository.list_for_student(db, student_id, quiz_id)
        snapshots = [attempt.to_dict() for attempt in attempts]
        attempt_repository.delete(db, attempts)

        scope = f"quiz {quiz_id}" if quiz_id is not None else "all quizzes"
        logger.info(f"Deleted {len(snapshots)} quiz attempts for student {student_id} ({scope})")
        return snapshots

    def _load_active(self, db: Session, attempt_id: int, student_id: int) -> QuizAttempt:
        attempt = attempt_repository.get(db, attempt_id)
        if not attempt:
            raise NotFoundError("Quiz attempt not found")
        if attempt.student_id != student_id:
            raise ForbiddenError("This quiz attempt belongs to another student")
        if attempt.is_completed:
            raise AlreadyCompletedError(attempt.id, "This quiz attempt has already been submitted")
        return attempt

    def _existing_attempt(
        self,
        db: Session,
        student_id: int,
        quiz_id: int
    ) -> Optional[QuizAttempt]:
        attempts = attempt_repository.find_by_student_and_quiz(db, student_id, quiz_id)

        completed = next((a for a in attempts if a.is_completed), None)
        if completed:
            logger.info(
                f"Student {student_id} already completed quiz {quiz_id} (attempt {completed.id})"
            )
            raise AlreadyCompletedError(completed.id)

        return next((a for a in attempts if not a.is_completed), None)

    def _raise_write_conflict(self, db: Session, attempt_id: int, student_id: int) -> None:
        """Explain why every conditional write missed, from the committed rows"""
        db.expire_all()
        attempts = attempt_repository.list_for_student(db, student_id)
        current = next((a for a in attempts if a.id == attempt_id), None)

        if current is None:
            raise NotFoundError("Quiz attempt not found")
        if current.is_completed:
            logger.info(f"Write to attempt {attempt_id} lost to an earlier finalization")
            raise AlreadyCompletedError(current.id)

        logger.warning(f"Attempt {attempt_id} kept changing, giving up after {self.WRITE_RETRIES} passes")
        raise ConcurrentUpdateError("Quiz attempt is being updated elsewhere, please retry")


# Global instance
attempt_service = AttemptService()
