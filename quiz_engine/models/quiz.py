"""
Quiz and Question models - the quiz definition store
"""
from sqlalchemy import Column, String, Integer, Text, TIMESTAMP, ForeignKey, JSON, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from quiz_engine.database import Base

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Quiz(Base):
    """
    Quizzes table - quiz metadata (time limit, passing score, total points)
    """
    __tablename__ = "quizzes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    time_limit_minutes = Column(Integer)  # NULL = unlimited
    passing_score_percent = Column(Integer, nullable=False, default=0)
    total_points = Column(Integer)  # explicit override of summed question points
    due_date = Column(TIMESTAMP)
    status = Column(String(20), nullable=False, default="published")
    created_at = Column(TIMESTAMP, server_default=text("CURRENT_TIMESTAMP"))

    questions = relationship(
        "Question",
        back_populates="quiz",
        order_by="[Question.order, Question.id]",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Quiz(id={self.id}, title={self.title}, status={self.status})>"


class Question(Base):
    """
    Questions table - options stored as [{id, text, isCorrect}], id = 1-based position
    """
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id"), nullable=False, index=True)
    text = Column(Text, nullable=False)
    options = Column(JSONType, nullable=False)
    points = Column(Integer, nullable=False, default=1)
    order = Column(Integer, nullable=False, default=0)

    quiz = relationship("Quiz", back_populates="questions")

    def __repr__(self):
        return f"<Question(id={self.id}, quiz_id={self.quiz_id}, points={self.points})>"
