from __future__ import annotations
from datetime import datetime, timedelta
from typing import Iterable, Optional
from zoneinfo import ZoneInfo
from icalendar import Calendar, Event as IcsEvent
from availability import parse_time_to_minutes
from models import DailyPlan, StudyTask
from rules import RuleConfig, break_minutes_for
from subjects import subject_or_default

DEFAULT_TIMEZONE = "Asia/Tokyo"


def _task_span(task: StudyTask, rules: Optional[RuleConfig]) -> tuple[int, int]:
    """(minutes including breaks between pomodoros, break after the task)."""
    pause = break_minutes_for(task.pomodoro_type, rules)
    count = max(1, task.pomodoro_count)
    return task.estimated_minutes + pause * (count - 1), pause


def plans_to_ics(
    plans: Iterable[DailyPlan],
    start_time: str = "19:00",
    timezone: str = DEFAULT_TIMEZONE,
    rules: Optional[RuleConfig] = None,
) -> bytes:
    """
    One VEVENT per task. Each day's tasks run back to back from start_time
    in plan order, with pomodoro breaks between and after them.
    """
    cal = Calendar()
    cal.add("PRODID", "-//Study Planner//Local//")
    cal.add("version", "2.0")
    cal.add("X-WR-CALNAME", "Study Plan")

    tz = ZoneInfo(timezone)
    offset = timedelta(minutes=parse_time_to_minutes(start_time))

    for plan in sorted(plans, key=lambda p: p.day):
        cursor = datetime.combine(plan.day, datetime.min.time(), tzinfo=tz) + offset
        for task in plan.tasks:
            if task.estimated_minutes <= 0:
                continue
            span, pause = _task_span(task, rules)
            end = cursor + timedelta(minutes=span)

            event = IcsEvent()
            event.add("uid", f"{task.id}@study-planner")
            event.add("summary", task.content or subject_or_default(task.subject_id).name)
            event.add("dtstart", cursor)
            event.add("dtend", end)
            event.add(
                "description",
                f"{task.type.value}, {task.pomodoro_count} x {task.pomodoro_type.value} pomodoro, "
                f"{task.estimated_minutes} minutes planned.",
            )
            cal.add_component(event)

            cursor = end + timedelta(minutes=pause)

    return cal.to_ical()
