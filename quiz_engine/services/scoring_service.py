"""
Scoring engine for multiple-choice quiz attempts

Options are keyed by their 1-based position within the question, not by
their stored id. Stored answers depend on this convention.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from quiz_engine.schemas.quiz import QuizDefinition, QuestionDefinition
from quiz_engine.services.answer_normalizer import SELECTED_OPTION_KEY

logger = logging.getLogger(__name__)

CORRECT_MARKERS = (True, 1, "true", "1")


def is_marked_correct(option: Mapping[str, Any]) -> bool:
    """Recognise the correct-option encodings found in stored quizzes"""
    for key in ("isCorrect", "is_correct"):
        value = option.get(key)
        if isinstance(value, str):
            value = value.strip().lower()
        if value is not None and value in CORRECT_MARKERS:
            return True
    return False


@dataclass
class DataIntegrityWarning:
    """A question with zero or several correct options; scored as 0"""
    question_id: str
    correct_option_count: int

    @property
    def message(self) -> str:
        return (
            f"Question {self.question_id} has {self.correct_option_count} options "
            f"marked correct; expected exactly one"
        )


@dataclass
class QuestionScore:
    question_id: str
    selected_option_id: Optional[str]
    correct_option_id: Optional[str]
    points_awarded: int
    max_points: int

    @property
    def is_correct(self) -> bool:
        return self.points_awarded > 0


@dataclass
class ScoreResult:
    score: int
    total_possible_score: int
    percentage: float
    is_passing: bool
    breakdown: List[QuestionScore] = field(default_factory=list)
    integrity_warnings: List[DataIntegrityWarning] = field(default_factory=list)


class ScoringService:
    """
    Computes score, total possible score and pass/fail for an answer set

    - Correct option = the single option flagged correct
    - Zero or several flagged options -> question unscoreable, 0 points
    - Unanswered questions score 0
    """

    def score(
        self,
        quiz: QuizDefinition,
        answers: Mapping[str, Mapping[str, str]]
    ) -> ScoreResult:
        """
        Score a normalized answer set against a quiz definition

        Args:
            quiz: Quiz definition with ordered questions and options
            answers: Normalized answers {question_id: {"selectedOptionId": str}}

        Returns:
            ScoreResult
        """
        score = 0
        summed_points = 0
        breakdown: List[QuestionScore] = []
        warnings: List[DataIntegrityWarning] = []

        for question in quiz.questions:
            question_id = str(question.id)
            summed_points += question.points

            answer = answers.get(question_id) or {}
            selected = answer.get(SELECTED_OPTION_KEY)

            correct_option_id = self._correct_option_id(question, warnings)

            awarded = 0
            if correct_option_id is not None and selected == correct_option_id:
                awarded = question.points
                score += awarded

            breakdown.append(QuestionScore(
                question_id=question_id,
                selected_option_id=selected,
                correct_option_id=correct_option_id,
                points_awarded=awarded,
                max_points=question.points,
            ))

        # Explicit quiz total wins over the summed question points
        total_possible_score = quiz.total_points or summed_points
        if quiz.total_points and quiz.total_points != summed_points:
            logger.info(
                f"Quiz {quiz.id} total_points={quiz.total_points} differs from "
                f"summed question points={summed_points}; using total_points"
            )

        raw_percentage = (score / total_possible_score * 100) if total_possible_score > 0 else 0.0
        is_passing = raw_percentage >= quiz.passing_score_percent

        logger.info(
            f"Quiz {quiz.id} scored: {score}/{total_possible_score} "
            f"({raw_percentage:.2f}%), passing={is_passing}"
        )

        return ScoreResult(
            score=score,
            total_possible_score=total_possible_score,
            percentage=round(raw_percentage, 2),
            is_passing=is_passing,
            breakdown=breakdown,
            integrity_warnings=warnings,
        )

    def _correct_option_id(
        self,
        question: QuestionDefinition,
        warnings: List[DataIntegrityWarning]
    ) -> Optional[str]:
        """Positional id of the only correct option, or None if unscoreable"""
        positions = [option.id for option in question.options if option.is_correct]

        if len(positions) != 1:
            warning = DataIntegrityWarning(
                question_id=str(question.id),
                correct_option_count=len(positions),
            )
            warnings.append(warning)
            logger.warning(f"Data integrity: {warning.message}")
            return None

        return str(positions[0])


# Global instance
scoring_service = ScoringService()
