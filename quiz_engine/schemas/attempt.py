"""
Pydantic schemas for quiz attempt requests and responses
"""
from pydantic import BaseModel, Field
from typing import List, Dict, Any, Optional
from datetime import datetime

from quiz_engine.schemas.quiz import PublicQuizResponse


class AttemptStartRequest(BaseModel):
    """Request schema for starting (or resuming) an attempt"""
    quiz_id: int = Field(..., ge=1)


class AnswersPayload(BaseModel):
    """Raw client answers, normalized server-side"""
    answers: Optional[Dict[str, Any]] = Field(default_factory=dict)


class ProgressPayload(AnswersPayload):
    """Save-progress body; autoSubmit forces finalization"""
    auto_submit: bool = Field(False, alias="autoSubmit")

    class Config:
        populate_by_name = True


class AttemptResponse(BaseModel):
    """Attempt record with time accounting"""
    id: int
    student_id: int
    quiz_id: int
    status: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    answers: Dict[str, Dict[str, str]] = {}
    score: Optional[int] = None
    total_possible_score: Optional[int] = None
    percentage: Optional[float] = None
    deadline: Optional[datetime] = None
    remaining_seconds: Optional[int] = None

    class Config:
        from_attributes = True


class AttemptStartResponse(AttemptResponse):
    resumed: bool
    message: str


class QuestionResult(BaseModel):
    """Scoring outcome for a single question"""
    question_id: str
    selected_option_id: Optional[str] = None
    correct_option_id: Optional[str] = None
    points_awarded: int
    max_points: int
    is_correct: bool


class IntegrityWarning(BaseModel):
    """Question that could not be scored because of its correct markers"""
    question_id: str
    correct_option_count: int
    message: str


class AttemptResult(BaseModel):
    """Scoring outcome of a completed attempt"""
    score: int
    total_possible_score: int
    percentage: float
    is_passing: bool
    breakdown: List[QuestionResult]
    integrity_warnings: List[IntegrityWarning] = []


class SubmitResponse(AttemptResult):
    """Response after an attempt is finalized"""
    attempt_id: int
    answers: Dict[str, Dict[str, str]]
    completed_at: datetime
    auto_submitted: bool = False
    message: str = "Quiz submitted successfully"


class AttemptDetailResponse(AttemptResponse):
    """Attempt with its quiz (no correct markers); result once completed"""
    quiz: Optional[PublicQuizResponse] = None
    result: Optional[AttemptResult] = None


class QuizStatusResponse(BaseModel):
    """One quiz with the student's progress on it"""
    quiz_id: int
    title: str
    description: Optional[str] = None
    time_limit_minutes: Optional[int] = None
    due_date: Optional[datetime] = None
    attempt_status: str  # not_attempted | in_progress | completed
    attempt_id: Optional[int] = None
    score: Optional[int] = None
    percentage: Optional[float] = None


class ProgressResponse(BaseModel):
    """Save-progress outcome; result is set when the save was turned into a submit"""
    message: str
    attempt: AttemptResponse
    result: Optional[SubmitResponse] = None


class ResetResponse(BaseModel):
    message: str
    deleted_attempts: List[AttemptResponse]
