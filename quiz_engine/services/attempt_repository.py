"""
Attempt persistence

All cross-session coordination happens here as conditional writes; the
engine itself holds no locks.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quiz_engine.models import QuizAttempt

logger = logging.getLogger(__name__)


class AttemptRepository:
    """Insert, lookup and update-if-active for quiz attempts"""

    def get(self, db: Session, attempt_id: int) -> Optional[QuizAttempt]:
        return db.query(QuizAttempt).filter(QuizAttempt.id == attempt_id).first()

    def find_by_student_and_quiz(
        self,
        db: Session,
        student_id: int,
        quiz_id: int
    ) -> List[QuizAttempt]:
        return (
            db.query(QuizAttempt)
            .filter(QuizAttempt.student_id == student_id, QuizAttempt.quiz_id == quiz_id)
            .all()
        )

    def list_for_student(
        self,
        db: Session,
        student_id: int,
        quiz_id: Optional[int] = None
    ) -> List[QuizAttempt]:
        query = db.query(QuizAttempt).filter(QuizAttempt.student_id == student_id)
        if quiz_id is not None:
            query = query.filter(QuizAttempt.quiz_id == quiz_id)
        return query.order_by(QuizAttempt.started_at.desc(), QuizAttempt.id.desc()).all()

    def insert(self, db: Session, attempt: QuizAttempt) -> Optional[QuizAttempt]:
        """
        Insert a new attempt

        Returns None when the active-attempt unique index rejects the row,
        i.e. a concurrent start already created one.
        """
        try:
            db.add(attempt)
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info(
                f"Duplicate active attempt for student {attempt.student_id}, "
                f"quiz {attempt.quiz_id}; insert lost the race"
            )
            return None

        db.refresh(attempt)
        return attempt

    def update_if_active(
        self,
        db: Session,
        attempt_id: int,
        expected_version: Optional[int],
        patch: Dict[str, Any]
    ) -> Optional[QuizAttempt]:
        """
        UPDATE quiz_attempts SET ..., version = version + 1
        WHERE id = :id AND completed_at IS NULL AND version = :expected_version

        Returns the updated attempt, or None when no row matched: already
        finalized, deleted, written by someone else since it was read, or
        the completed-uniqueness index fired.
        """
        values = dict(patch)
        values["version"] = QuizAttempt.version + 1
        try:
            rows = (
                db.query(QuizAttempt)
                .filter(
                    QuizAttempt.id == attempt_id,
                    QuizAttempt.completed_at.is_(None),
                    QuizAttempt.version == expected_version,
                )
                .update(values, synchronize_session=False)
            )
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning(f"Conditional update of attempt {attempt_id} violated a uniqueness constraint")
            return None

        if rows != 1:
            logger.info(
                f"Conditional update of attempt {attempt_id} (version {expected_version}) "
                f"matched no active row"
            )
            return None

        return self.get(db, attempt_id)

    def delete(self, db: Session, attempts: List[QuizAttempt]) -> None:
        """Remove attempts outright; bypasses the state machine"""
        try:
            for attempt in attempts:
                db.delete(attempt)
            db.commit()
        except Exception:
            db.rollback()
            raise


# Global instance
attempt_repository = AttemptRepository()
