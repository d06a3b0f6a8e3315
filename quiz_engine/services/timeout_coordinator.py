"""
Timeout and autosubmit coordination

There is no server-resident timer. Elapsed wall-clock time since
attempt.started_at, measured against the quiz time limit, decides when a
finalization has to be forced. Every forced finalization goes through
AttemptService.submit_attempt.

Two triggers:
- elapsed time: the session holder calls tick(); once the deadline has
  passed the buffered answers are submitted
- abandonment: navigation away or session close calls abandon(); the submit
  is best effort and its failures are only logged
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from quiz_engine.config import settings
from quiz_engine.exceptions import AlreadyCompletedError
from quiz_engine.models import QuizAttempt
from quiz_engine.schemas.quiz import QuizDefinition
from quiz_engine.services.answer_normalizer import extract_option_id, SELECTED_OPTION_KEY
from quiz_engine.services.attempt_repository import attempt_repository
from quiz_engine.services.attempt_service import SubmissionResult, attempt_service
from quiz_engine.services.quiz_repository import quiz_repository
from quiz_engine.utils.clock import utcnow

logger = logging.getLogger(__name__)

Submitter = Callable[[Dict[str, Any]], SubmissionResult]


def deadline_for(
    started_at: datetime,
    time_limit_minutes: Optional[int],
    grace_seconds: int = 0
) -> Optional[datetime]:
    """None means the quiz has no time limit"""
    if not time_limit_minutes:
        return None
    return started_at + timedelta(minutes=time_limit_minutes, seconds=grace_seconds)


def remaining_seconds(
    attempt: QuizAttempt,
    quiz: QuizDefinition,
    now: Optional[datetime] = None
) -> Optional[int]:
    """Seconds left before the deadline (never negative), None when unlimited"""
    deadline = deadline_for(attempt.started_at, quiz.time_limit_minutes)
    if deadline is None:
        return None
    if attempt.is_completed:
        return 0
    left = (deadline - (now or utcnow())).total_seconds()
    return max(int(left), 0)


def is_expired(
    attempt: QuizAttempt,
    quiz: QuizDefinition,
    now: Optional[datetime] = None,
    grace_seconds: Optional[int] = None
) -> bool:
    """Whether the attempt's time limit has elapsed"""
    if grace_seconds is None:
        grace_seconds = settings.TIME_LIMIT_GRACE_SECONDS
    deadline = deadline_for(attempt.started_at, quiz.time_limit_minutes, grace_seconds)
    if deadline is None:
        return False
    return (now or utcnow()) >= deadline


class SubmitReason(str, Enum):
    MANUAL = "manual"
    TIMEOUT = "timeout"
    NAVIGATION = "navigation"
    SESSION_CLOSE = "session_close"


class AutosubmitCoordinator:
    """
    Client-session side of the attempt: buffers answers and decides when to submit

    One instance per open quiz session. The hosting shell registers
    lifecycle_callback for navigation/close events and calls tick()
    periodically.
    """

    def __init__(
        self,
        submitter: Submitter,
        started_at: datetime,
        time_limit_minutes: Optional[int] = None,
        answers: Optional[Dict[str, Any]] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.submitter = submitter
        self.deadline = deadline_for(started_at, time_limit_minutes)
        self.clock = clock
        self._answers: Dict[str, Any] = dict(answers or {})
        self.result: Optional[SubmissionResult] = None
        self.finalized_by: Optional[SubmitReason] = None

    @property
    def answers(self) -> Dict[str, Any]:
        return dict(self._answers)

    @property
    def is_finalized(self) -> bool:
        return self.finalized_by is not None

    def record_answer(self, question_id: Any, option: Any) -> None:
        """Buffer a selection locally; it travels with the next submit"""
        if self.is_finalized:
            raise AlreadyCompletedError(None, "This quiz session has already been submitted")
        option_id = extract_option_id(option)
        if option_id is None:
            self._answers.pop(str(question_id), None)
        else:
            self._answers[str(question_id)] = {SELECTED_OPTION_KEY: option_id}

    def remaining_seconds(self, now: Optional[datetime] = None) -> Optional[int]:
        if self.deadline is None:
            return None
        left = (self.deadline - (now or self.clock())).total_seconds()
        return max(int(left), 0)

    def tick(self, now: Optional[datetime] = None) -> Optional[SubmissionResult]:
        """
        Elapsed-time trigger

        Submits the buffered answers once the deadline has passed. Returns
        the result when this call finalized the attempt, otherwise None.
        """
        if self.is_finalized or self.deadline is None:
            return None
        if (now or self.clock()) < self.deadline:
            return None

        logger.info("Time limit reached, auto-submitting buffered answers")
        return self._finalize(SubmitReason.TIMEOUT)

    def submit(self) -> SubmissionResult:
        """Explicit submission by the student"""
        return self._finalize(SubmitReason.MANUAL)

    def abandon(self, reason: SubmitReason = SubmitReason.SESSION_CLOSE) -> Optional[SubmissionResult]:
        """
        Abandonment trigger

        Best-effort submit before the session goes away. There is nobody left
        to report to, so failures are logged and not raised.
        """
        if self.is_finalized:
            return None
        try:
            return self._finalize(reason)
        except Exception as e:
            logger.warning(f"Best-effort submit on {reason.value} failed: {str(e)}")
            return None

    @property
    def lifecycle_callback(self) -> Callable[[SubmitReason], Optional[SubmissionResult]]:
        """Callable for the hosting shell's navigation/close hooks"""
        return self.abandon

    def _finalize(self, reason: SubmitReason) -> SubmissionResult:
        if self.is_finalized:
            raise AlreadyCompletedError(None, "This quiz session has already been submitted")
        try:
            self.result = self.submitter(self.answers)
        except AlreadyCompletedError:
            # Another tab or trigger won; this session is done either way
            self.finalized_by = reason
            raise
        self.finalized_by = reason
        logger.info(f"Quiz session finalized ({reason.value})")
        return self.result


def local_submitter(
    session_factory: Callable[[], Session],
    attempt_id: int,
    student_id: int
) -> Submitter:
    """Bind a coordinator to the in-process submit path"""

    def submit(answers: Dict[str, Any]) -> SubmissionResult:
        db = session_factory()
        try:
            return attempt_service.submit_attempt(db, attempt_id, student_id, answers)
        finally:
            db.close()

    return submit


def coordinator_for_attempt(
    db: Session,
    session_factory: Callable[[], Session],
    attempt: QuizAttempt,
    clock: Callable[[], datetime] = utcnow,
) -> AutosubmitCoordinator:
    """Coordinator for an attempt, pre-filled with its saved answers"""
    quiz = quiz_repository.get_definition(db, attempt.quiz_id)
    return AutosubmitCoordinator(
        submitter=local_submitter(session_factory, attempt.id, attempt.student_id),
        started_at=attempt.started_at,
        time_limit_minutes=quiz.time_limit_minutes,
        answers=attempt.answers,
        clock=clock,
    )


@dataclass
class ProgressOutcome:
    attempt: QuizAttempt
    submission: Optional[SubmissionResult] = None

    @property
    def auto_submitted(self) -> bool:
        return self.submission is not None


def route_progress(
    db: Session,
    attempt_id: int,
    student_id: int,
    answers: Optional[Dict[str, Any]],
    auto_submit: bool = False,
    now: Optional[datetime] = None
) -> ProgressOutcome:
    """
    Server side of save-progress

    A save turns into a submit when the client asks for it (autoSubmit) or
    when the attempt's time limit has already expired.
    """
    force = auto_submit
    if not force and settings.AUTOSUBMIT_EXPIRED_ON_SAVE:
        attempt = attempt_repository.get(db, attempt_id)
        if attempt is not None and not attempt.is_completed:
            quiz = quiz_repository.get_definition(db, attempt.quiz_id)
            force = is_expired(attempt, quiz, now)
            if force:
                logger.info(f"Attempt {attempt_id} is past its time limit; forcing submit on save")

    if force:
        submission = attempt_service.submit_attempt(db, attempt_id, student_id, answers)
        return ProgressOutcome(attempt=submission.attempt, submission=submission)

    attempt = attempt_service.save_progress(db, attempt_id, student_id, answers)
    return ProgressOutcome(attempt=attempt)
