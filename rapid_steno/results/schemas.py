from datetime import datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel


class OptionReviewOut(BaseModel):
    id: int
    label: str
    is_correct: bool


class QuestionReviewOut(BaseModel):
    id: int
    text: str
    points: float
    options: list[OptionReviewOut]
    chosen_option_id: Optional[int] = None
    correct_option_id: Optional[int] = None
    status: Literal["correct", "incorrect", "unanswered"]
    score: float


class ResultOut(BaseModel):
    attempt_id: Union[int, str]
    is_demo: bool = False
    user_name: str
    test_id: int
    test_title: str
    category_name: str = ""
    started_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    time_taken_seconds: int
    time_remaining: Optional[int] = None
    score: float
    max_score: float
    correct: int
    incorrect: int
    unanswered: int
    percentage: float
    grade: str
    message: str
    questions: list[QuestionReviewOut]


class AttemptHistoryOut(BaseModel):
    attempt_id: int
    test_id: int
    test_title: str
    category_name: str
    status: str
    started_at: datetime
    submitted_at: Optional[datetime] = None
    score: float
    max_score: float
    percentage: float
    grade: str
    correct: int
    incorrect: int
    unanswered: int


class AccountStatsOut(BaseModel):
    total_tests: int
    completed_tests: int
    average_percentage: float
    best_percentage: float
    total_time_minutes: int


class MyAttemptsOut(BaseModel):
    stats: AccountStatsOut
    recent_activity: list[AttemptHistoryOut]
    attempts: list[AttemptHistoryOut]
