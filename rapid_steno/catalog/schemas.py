from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

TestStatus = Literal["draft", "published", "coming_soon"]


# Categories and topics
class CategoryIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str = ""

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name must not be blank.")
        return v


class CategoryOut(BaseModel):
    id: int
    name: str
    description: str
    display_order: int


class TopicIn(CategoryIn):
    category_id: int


class TopicOut(BaseModel):
    id: int
    category_id: int
    name: str
    description: str
    display_order: int


# Tests, questions, options (admin view)
class OptionIn(BaseModel):
    # set when editing an existing option
    id: Optional[int] = None
    label: str = Field(min_length=1)
    is_correct: bool = False


class QuestionIn(BaseModel):
    id: Optional[int] = None
    text: str = Field(min_length=1)
    points: float = Field(default=1, ge=0)
    negative_points: float = Field(default=0, ge=0)
    options: list[OptionIn] = Field(min_length=2)


class TestIn(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = ""
    category_id: Optional[int] = None
    topic_id: Optional[int] = None
    duration_minutes: int = Field(default=60, ge=1, le=600)
    status: TestStatus = "draft"
    shuffle_questions: bool = False
    shuffle_options: bool = False
    negative_marking: bool = False
    # None keeps the existing questions on update
    questions: Optional[list[QuestionIn]] = None


class TestStatusIn(BaseModel):
    status: TestStatus


class OptionAdminOut(BaseModel):
    id: int
    label: str
    is_correct: bool
    order_index: int


class QuestionAdminOut(BaseModel):
    id: int
    text: str
    points: float
    negative_points: float
    order_index: int
    options: list[OptionAdminOut]


class TestOut(BaseModel):
    id: int
    title: str
    description: str
    category_id: Optional[int] = None
    category_name: str = ""
    topic_id: Optional[int] = None
    duration_minutes: int
    status: str
    shuffle_questions: bool
    shuffle_options: bool
    negative_marking: bool
    question_count: int = 0
    created_at: datetime


class TestDetailOut(TestOut):
    questions: list[QuestionAdminOut] = Field(default_factory=list)


class ImportResultOut(BaseModel):
    imported: int
    skipped: int
    question_count: int


# Student listing
class StudentTestOut(BaseModel):
    id: int
    title: str
    description: str
    duration_minutes: int
    status: str
    question_count: int
    accessible: bool
    upgrade_message: Optional[str] = None


class TopicListingOut(BaseModel):
    id: int
    name: str
    description: str
    tests: list[StudentTestOut]


class CategoryListingOut(BaseModel):
    id: Optional[int] = None
    name: str
    description: str = ""
    accessible: bool
    upgrade_message: Optional[str] = None
    topics: list[TopicListingOut] = Field(default_factory=list)
    tests: list[StudentTestOut] = Field(default_factory=list)
