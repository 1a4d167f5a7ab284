from datetime import datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel, model_validator


class OptionOut(BaseModel):
    id: int
    label: str


class CurrentQuestionOut(BaseModel):
    id: int
    text: str
    points: float
    options: list[OptionOut]
    chosen_option_id: Optional[int] = None


class CachedAnswerOut(BaseModel):
    question_id: int
    chosen_option_id: Optional[int] = None


class SubmissionOut(BaseModel):
    attempt_id: Union[int, str]
    total_score: float
    max_score: float
    answered: int
    correct: int
    time_remaining: int
    submitted_at: datetime
    results_url: str
    auto_submitted: bool = False


class SessionOut(BaseModel):
    state: str
    test_id: int
    test_title: str
    attempt_id: Optional[Union[int, str]] = None
    current_index: int
    total_questions: int
    current_question: Optional[CurrentQuestionOut] = None
    remaining_seconds: int
    answered_count: int
    answers: list[CachedAnswerOut]
    result: Optional[SubmissionOut] = None
    error: Optional[str] = None


class SelectIn(BaseModel):
    option_id: int


class NavigateIn(BaseModel):
    index: Optional[int] = None
    direction: Optional[Literal["next", "previous"]] = None

    @model_validator(mode="after")
    def one_target(self):
        if (self.index is None) == (self.direction is None):
            raise ValueError("Give either an index or a direction.")
        return self
