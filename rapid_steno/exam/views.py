from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

AttemptId = Union[int, str]  # database id, or "demo-<hex>" for demo attempts


@dataclass(frozen=True)
class OptionView:
    id: int
    label: str
    is_correct: bool
    order_index: int = 0


@dataclass(frozen=True)
class QuestionView:
    id: int
    text: str
    points: float
    negative_points: float = 0
    order_index: int = 0
    options: tuple[OptionView, ...] = ()

    def option(self, option_id: int) -> Optional[OptionView]:
        for o in self.options:
            if o.id == option_id:
                return o
        return None


@dataclass(frozen=True)
class TestView:
    id: int
    title: str
    status: str
    duration_minutes: int
    shuffle_questions: bool = False
    shuffle_options: bool = False
    negative_marking: bool = False
    category_name: str = ""


@dataclass(frozen=True)
class AttemptRef:
    id: AttemptId
    started_at: datetime
    time_remaining: Optional[int] = None
    created: bool = False


@dataclass(frozen=True)
class GradedAnswer:
    question_id: int
    chosen_option_id: int
    is_correct: bool
    score: float


@dataclass(frozen=True)
class GradedSubmission:
    answers: tuple[GradedAnswer, ...] = field(default_factory=tuple)
    total_score: float = 0
    max_score: float = 0

    @property
    def answered_count(self) -> int:
        return len(self.answers)

    @property
    def correct_count(self) -> int:
        return sum(1 for a in self.answers if a.is_correct)
