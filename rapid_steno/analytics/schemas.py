import datetime as dt
from typing import Optional

from pydantic import BaseModel


class SeriesPointOut(BaseModel):
    attempt_id: int
    date: dt.date
    test_title: str
    percentage: float
    correct: int
    wrong: int
    question_count: int
    grade: str


class CategoryPerformanceOut(BaseModel):
    category_name: str
    total_tests: int
    average_percentage: float
    best_percentage: float
    series: list[SeriesPointOut]


class StudentAnalyticsOut(BaseModel):
    total_tests: int
    average_percentage: float
    best_percentage: float
    grade: str
    categories: list[CategoryPerformanceOut]


class LeaderboardEntryOut(BaseModel):
    rank: int
    key: str
    name: str
    best_percentage: float
    average_percentage: float
    tests_completed: int
    is_placeholder: bool


class LeaderboardOut(BaseModel):
    entries: list[LeaderboardEntryOut]
    top: list[LeaderboardEntryOut]
    current_user: Optional[LeaderboardEntryOut] = None
    real_count: int
    placeholder_count: int


class TestStatsOut(BaseModel):
    test_id: int
    test_title: str
    total_attempts: int
    average_score: float
    average_percentage: float


class SubmissionRowOut(BaseModel):
    attempt_id: int
    user_name: str
    user_email: str
    test_title: str
    submitted_at: Optional[dt.datetime] = None
    score: float
    max_score: float
    percentage: float


class AdminAnalyticsOut(BaseModel):
    total_attempts: int
    submitted_attempts: int
    active_attempts: int
    completion_rate: float
    total_students: int
    total_tests: int
    average_percentage: float
    average_completion_minutes: float
    tests: list[TestStatsOut]
    top_scores: list[SubmissionRowOut]
    recent_submissions: list[SubmissionRowOut]


class DashboardOut(BaseModel):
    users: int
    tests: int
    attempts: int
    students: int
    subscriptions: int


class DemoUserOut(BaseModel):
    id: str
    name: str
    timestamp: dt.datetime


class DemoAnalyticsOut(BaseModel):
    total: int
    last_1_day: int
    last_7_days: int
    last_30_days: int
    users: list[DemoUserOut]


class ClearedOut(BaseModel):
    cleared: int
