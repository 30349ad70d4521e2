from __future__ import annotations
from pydantic import BaseModel, Field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import List, Optional


TIME_PATTERN = r"^\d{1,2}:\d{2}$"


class TaskType(str, Enum):
    NEW = "new"
    REVIEW = "review"
    EXAM_PRACTICE = "exam_practice"
    SPEED_TRAINING = "speed_training"


class PomodoroType(str, Enum):
    THINKING = "thinking"
    MEMORIZATION = "memorization"
    PROCESSING = "processing"
    EXAM_PRACTICE = "exam_practice"


class EventType(str, Enum):
    TENNIS_MATCH = "tennis_match"
    SCHOOL_EVENT = "school_event"
    REGULAR_TEST = "regular_test"
    MOCK_EXAM = "mock_exam"
    OTHER = "other"


class DayType(str, Enum):
    WEEKDAY_CLUB = "weekday_club"
    WEEKDAY_NO_CLUB = "weekday_no_club"
    WEEKEND_HOLIDAY = "weekend_holiday"
    SUMMER_CLUB = "summer_club"
    SUMMER_NO_CLUB = "summer_no_club"
    MATCH_DAY = "match_day"
    EVENT_DAY = "event_day"


class PhaseName(str, Enum):
    FOUNDATION = "foundation"
    PRACTICE = "practice"
    FINAL = "final"


class SelectedSubject(BaseModel):
    subject_id: str
    current_score: int = Field(default=0, ge=0)
    target_score: int = Field(default=0, ge=0)
    difficulty: int = Field(default=3, ge=1, le=5)  # 5 = hardest
    textbooks: List[str] = Field(default_factory=list)

    def check_against_catalog(self) -> None:
        """
        Raise ValueError when a score exceeds the catalog max score.
        Unknown subject ids are not checked.
        """
        from subjects import get_subject

        info = get_subject(self.subject_id)
        if info is None:
            return
        for label, value in (("current", self.current_score), ("target", self.target_score)):
            if value > info.max_score:
                raise ValueError(
                    f"{info.name}: {label} score {value} exceeds max score {info.max_score}."
                )


class DailySchedule(BaseModel):
    # Absent times count as zero-length segments.
    wake_up_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    bed_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    school_start: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    school_end: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    commute_minutes_one_way: int = Field(default=0, ge=0)
    meal_and_bath_minutes: int = Field(default=0, ge=0)
    free_time_buffer_minutes: int = Field(default=0, ge=0)
    club_days: List[int] = Field(default_factory=list)  # 0=Mon ... 6=Sun
    club_start_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    club_end_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    club_weekend_start: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    club_weekend_end: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    summer_vacation_start: Optional[date] = None
    summer_vacation_end: Optional[date] = None


class StudentProfile(BaseModel):
    name: str = ""
    exam_type: str = ""
    exam_date: date
    study_start_date: Optional[date] = None
    daily_schedule: DailySchedule = Field(default_factory=DailySchedule)
    subjects: List[SelectedSubject] = Field(default_factory=list)


class EventDate(BaseModel):
    id: str
    title: str
    start: date
    type: EventType = EventType.OTHER
    duration_days: int = Field(default=1, ge=1)
    note: str = ""

    def covers(self, day: date) -> bool:
        return self.start <= day < self.start + timedelta(days=self.duration_days)


class ReviewSource(BaseModel):
    original_date: date
    review_number: int = Field(ge=1)


class StudyTask(BaseModel):
    id: str
    subject_id: str
    type: TaskType = TaskType.NEW
    content: str = ""
    pomodoro_type: PomodoroType = PomodoroType.THINKING
    pomodoro_count: int = Field(default=1, ge=0)
    estimated_minutes: int = Field(default=0, ge=0)
    review_source: Optional[ReviewSource] = None
    completed: bool = False
    actual_minutes: Optional[int] = Field(default=None, ge=0)
    completed_at: Optional[datetime] = None

    @property
    def is_review(self) -> bool:
        return self.type == TaskType.REVIEW or self.review_source is not None


class DailyPlan(BaseModel):
    day: date
    phase: PhaseName
    day_type: DayType = DayType.WEEKDAY_NO_CLUB
    is_club_day: bool = False
    is_match_day: bool = False
    is_event_day: bool = False
    available_minutes: int = Field(default=0, ge=0)
    tasks: List[StudyTask] = Field(default_factory=list)
    completion_rate: float = 0.0

    @property
    def key(self) -> str:
        return self.day.isoformat()

    @property
    def total_minutes(self) -> int:
        return sum(t.estimated_minutes for t in self.tasks)
