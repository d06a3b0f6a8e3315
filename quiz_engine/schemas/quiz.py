"""
Pydantic schemas for quiz definitions and quiz authoring
"""
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime


class OptionDefinition(BaseModel):
    """Answer option; id is the 1-based position within the question"""
    id: int
    text: str = ""
    is_correct: bool = False


class QuestionDefinition(BaseModel):
    """Question as consumed by the scoring engine"""
    id: int
    text: str
    points: int = 1
    options: List[OptionDefinition] = []


class QuizDefinition(BaseModel):
    """Read-only quiz definition handed to the attempt engine"""
    id: int
    title: str
    description: Optional[str] = None
    time_limit_minutes: Optional[int] = None
    passing_score_percent: int = 0
    total_points: Optional[int] = None
    due_date: Optional[datetime] = None
    status: str = "published"
    questions: List[QuestionDefinition] = []


class OptionCreate(BaseModel):
    """Option supplied by a quiz author"""
    text: str = Field(..., min_length=1)
    is_correct: bool = False


class QuestionCreate(BaseModel):
    """Question supplied by a quiz author"""
    text: str = Field(..., min_length=1)
    points: int = Field(1, ge=1, description="Points awarded for a correct answer")
    options: List[OptionCreate] = Field(..., min_length=2)

    @field_validator("options")
    @classmethod
    def exactly_one_correct(cls, options: List[OptionCreate]) -> List[OptionCreate]:
        correct = sum(1 for option in options if option.is_correct)
        if correct != 1:
            raise ValueError(f"Exactly one option must be marked correct, got {correct}")
        return options


class QuizCreateRequest(BaseModel):
    """Request schema for quiz authoring"""
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    time_limit_minutes: Optional[int] = Field(None, ge=1, description="Minutes; omit for unlimited")
    passing_score_percent: int = Field(60, ge=0, le=100)
    total_points: Optional[int] = Field(None, ge=0)
    due_date: Optional[datetime] = None
    status: str = Field("published", pattern="^(draft|published|archived)$")
    questions: List[QuestionCreate] = Field(..., min_length=1)


class PublicOption(BaseModel):
    """Option as shown to a student taking the quiz"""
    id: int
    text: str


class PublicQuestion(BaseModel):
    id: int
    text: str
    points: int
    options: List[PublicOption]


class PublicQuizResponse(BaseModel):
    """Quiz without correct-answer markers"""
    id: int
    title: str
    description: Optional[str] = None
    time_limit_minutes: Optional[int] = None
    passing_score_percent: int
    total_points: int
    due_date: Optional[datetime] = None
    status: str
    questions: List[PublicQuestion]
