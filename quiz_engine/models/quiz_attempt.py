"""
QuizAttempt model - one student's run at one quiz
"""
from sqlalchemy import Column, Integer, Float, TIMESTAMP, ForeignKey, Index, text
from quiz_engine.database import Base
from quiz_engine.models.quiz import JSONType


class QuizAttempt(Base):
    """
    Quiz attempts table

    completed_at IS NULL  -> in progress
    completed_at NOT NULL -> completed, immutable
    """
    __tablename__ = "quiz_attempts"
    __table_args__ = (
        # At most one active and at most one completed attempt per (student, quiz)
        Index(
            "uq_quiz_attempts_active",
            "student_id",
            "quiz_id",
            unique=True,
            postgresql_where=text("completed_at IS NULL"),
            sqlite_where=text("completed_at IS NULL"),
        ),
        Index(
            "uq_quiz_attempts_completed",
            "student_id",
            "quiz_id",
            unique=True,
            postgresql_where=text("completed_at IS NOT NULL"),
            sqlite_where=text("completed_at IS NOT NULL"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(Integer, nullable=False, index=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id"), nullable=False)
    started_at = Column(TIMESTAMP, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    completed_at = Column(TIMESTAMP)
    answers = Column(JSONType)  # {question_id: {"selectedOptionId": "2"}}
    score = Column(Integer)
    total_possible_score = Column(Integer)
    percentage = Column(Float)
    # Bumped on every write; guards read-merge-write of answers
    version = Column(Integer, nullable=False, default=0, server_default=text("0"))

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    @property
    def status(self) -> str:
        return "completed" if self.is_completed else "in_progress"

    def to_dict(self) -> dict:
        """Plain snapshot of the row, usable after the instance is detached"""
        data = {column.name: getattr(self, column.name) for column in self.__table__.columns}
        data["answers"] = data.get("answers") or {}
        data["status"] = self.status
        return data

    def __repr__(self):
        return f"<QuizAttempt(id={self.id}, student_id={self.student_id}, quiz_id={self.quiz_id}, score={self.score})>"
