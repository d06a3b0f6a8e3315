"""
Database models package
"""
from quiz_engine.models.quiz import Quiz, Question
from quiz_engine.models.quiz_attempt import QuizAttempt

__all__ = ["Quiz", "Question", "QuizAttempt"]
