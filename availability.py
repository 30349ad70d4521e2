from __future__ import annotations
from datetime import date
from typing import Iterable, List, Optional
from pydantic import BaseModel
from models import DailySchedule, DayType, EventDate, EventType

MINUTES_PER_DAY = 24 * 60

MATCH_DAY_MAX_MINUTES = 60
MATCH_DAY_RATIO = 0.25
EVENT_DAY_MAX_MINUTES = 30
EVENT_DAY_RATIO = 0.15


class StudyMinutesSummary(BaseModel):
    no_club_weekday: int
    no_club_weekend: int
    with_club_weekday: int
    with_club_weekend: int
    summer_club: int
    summer_no_club: int


def parse_time_to_minutes(value: Optional[str]) -> int:
    """'HH:MM' -> minutes after midnight. Missing or malformed values count as 0."""
    if not value:
        return 0
    hours, _, minutes = value.partition(":")
    try:
        return int(hours) * 60 + int(minutes or 0)
    except ValueError:
        return 0


def span_minutes(start: Optional[str], end: Optional[str]) -> int:
    """Length of start -> end; an end before the start wraps past midnight."""
    if not start or not end:
        return 0
    s = parse_time_to_minutes(start)
    e = parse_time_to_minutes(end)
    return (MINUTES_PER_DAY if e < s else 0) + e - s


def _subtract(minutes: int, *amounts: int) -> int:
    for amount in amounts:
        minutes = max(0, minutes - amount)
    return minutes


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def is_club_day(schedule: DailySchedule, day: date) -> bool:
    return day.weekday() in schedule.club_days


def is_summer_vacation(schedule: DailySchedule, day: date) -> bool:
    start = schedule.summer_vacation_start
    end = schedule.summer_vacation_end
    if start is None or end is None:
        return False
    return start <= day <= end


def is_match_day(events: Iterable[EventDate], day: date) -> bool:
    return any(e.type == EventType.TENNIS_MATCH and e.covers(day) for e in events)


def is_event_day(events: Iterable[EventDate], day: date) -> bool:
    return any(e.type != EventType.TENNIS_MATCH and e.covers(day) for e in events)


# Tests and mock exams reduce availability but keep the ordinary day type.
EVENT_DAY_TYPES = (EventType.SCHOOL_EVENT, EventType.OTHER)


def is_event_day_type(events: Iterable[EventDate], day: date) -> bool:
    return any(e.type in EVENT_DAY_TYPES and e.covers(day) for e in events)


def study_minutes_summary(schedule: DailySchedule) -> StudyMinutesSummary:
    day_length = span_minutes(schedule.wake_up_time, schedule.bed_time)

    no_club_weekday = _subtract(
        day_length,
        schedule.commute_minutes_one_way * 2,
        span_minutes(schedule.school_start, schedule.school_end),
        schedule.meal_and_bath_minutes,
        schedule.free_time_buffer_minutes,
    )
    no_club_weekend = _subtract(
        day_length,
        schedule.meal_and_bath_minutes,
        schedule.free_time_buffer_minutes,
    )

    club_weekday = span_minutes(schedule.club_start_time, schedule.club_end_time)
    club_weekend = span_minutes(
        schedule.club_weekend_start or schedule.club_start_time,
        schedule.club_weekend_end or schedule.club_end_time,
    )

    # Summer break: no school or commute, weekend club window on club days.
    return StudyMinutesSummary(
        no_club_weekday=no_club_weekday,
        no_club_weekend=no_club_weekend,
        with_club_weekday=_subtract(no_club_weekday, club_weekday),
        with_club_weekend=_subtract(no_club_weekend, club_weekend),
        summer_club=_subtract(no_club_weekend, club_weekend),
        summer_no_club=no_club_weekend,
    )


def base_minutes_for_date(schedule: DailySchedule, day: date) -> int:
    summary = study_minutes_summary(schedule)
    club = is_club_day(schedule, day)

    if is_summer_vacation(schedule, day):
        return summary.summer_club if club else summary.summer_no_club
    if is_weekend(day):
        return summary.with_club_weekend if club else summary.no_club_weekend
    return summary.with_club_weekday if club else summary.no_club_weekday


def get_available_minutes(
    schedule: DailySchedule,
    events: List[EventDate],
    target_date: date,
    study_start_date: Optional[date] = None,
) -> int:
    if study_start_date is not None and target_date < study_start_date:
        return 0

    base = base_minutes_for_date(schedule, target_date)
    if is_match_day(events, target_date):
        return min(MATCH_DAY_MAX_MINUTES, int(base * MATCH_DAY_RATIO))
    if is_event_day(events, target_date):
        return min(EVENT_DAY_MAX_MINUTES, int(base * EVENT_DAY_RATIO))
    return base


def classify_day(schedule: DailySchedule, events: List[EventDate], day: date) -> DayType:
    if is_match_day(events, day):
        return DayType.MATCH_DAY
    if is_event_day_type(events, day):
        return DayType.EVENT_DAY

    club = is_club_day(schedule, day)
    if is_summer_vacation(schedule, day):
        return DayType.SUMMER_CLUB if club else DayType.SUMMER_NO_CLUB
    if is_weekend(day):
        return DayType.WEEKEND_HOLIDAY
    return DayType.WEEKDAY_CLUB if club else DayType.WEEKDAY_NO_CLUB
