"""
Spaced-repetition review scheduling.

Every completed first-time task starts a review series keyed by
(subject, completion date). Review N of a series falls due
``intervals[N - 1]`` days after the original completion. A series graduates
once reviews 1..graduation_count are all completed; nothing else is ever due
for it.

Only reviews due exactly on the target date are produced. A review whose due
date passed without the plan being generated is not carried forward.
"""
from __future__ import annotations
import logging
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Set, Tuple
from models import PomodoroType, ReviewSource, StudyTask, TaskType
from rules import ForgettingCurveConfig

logger = logging.getLogger(__name__)

SeriesKey = Tuple[str, date]

REVIEW_MINUTES: Dict[PomodoroType, int] = {
    PomodoroType.MEMORIZATION: 20,
    PomodoroType.PROCESSING: 25,
}
DEFAULT_REVIEW_MINUTES = 30


def review_minutes(pomodoro_type: PomodoroType) -> int:
    return REVIEW_MINUTES.get(pomodoro_type, DEFAULT_REVIEW_MINUTES)


def series_key(task: StudyTask) -> Optional[SeriesKey]:
    # Reviews point back at their original, so a whole chain shares one key.
    if task.review_source is not None:
        return task.subject_id, task.review_source.original_date
    if task.completed_at is None:
        return None
    return task.subject_id, task.completed_at.date()


def completed_review_numbers(tasks: Iterable[StudyTask]) -> Dict[SeriesKey, Set[int]]:
    numbers: Dict[SeriesKey, Set[int]] = {}
    for task in tasks:
        if not task.completed or task.review_source is None:
            continue
        numbers.setdefault(series_key(task), set()).add(task.review_source.review_number)
    return numbers


def is_graduated(numbers: Set[int], graduation_count: int) -> bool:
    return all(n in numbers for n in range(1, graduation_count + 1))


def review_task_id(subject_id: str, original_date: date, review_number: int, target_date: date) -> str:
    return f"review-{subject_id}-{original_date.isoformat()}-{review_number}-{target_date.isoformat()}"


def generate_review_tasks(
    completed_tasks: List[StudyTask],
    target_date: date,
    curve: Optional[ForgettingCurveConfig] = None,
    max_daily_review_minutes: Optional[int] = None,
) -> List[StudyTask]:
    curve = curve or ForgettingCurveConfig()
    cap = curve.max_daily_review_minutes if max_daily_review_minutes is None else max_daily_review_minutes
    intervals = [i for i in curve.intervals if i >= 1]
    graduation_count = max(2, curve.graduation_count)
    done = completed_review_numbers(completed_tasks)

    originals = [
        t for t in completed_tasks
        if t.completed and t.completed_at is not None and t.review_source is None
    ]

    tasks: List[StudyTask] = []
    seen: Set[SeriesKey] = set()
    total_minutes = 0

    for original in originals:
        key = series_key(original)
        # One review per series and number, even if several originals share a day.
        if key in seen:
            continue
        seen.add(key)

        completed_numbers = done.get(key, set())
        if is_graduated(completed_numbers, graduation_count):
            continue

        original_date = key[1]
        for i, interval in enumerate(intervals):
            review_number = i + 1
            if review_number in completed_numbers:
                continue
            if original_date + timedelta(days=interval) != target_date:
                continue

            minutes = review_minutes(original.pomodoro_type)
            if total_minutes + minutes > cap:
                # Later intervals of this series wait; other series still get a turn.
                logger.debug("Review cap %d reached for %s #%d", cap, key, review_number)
                break

            tasks.append(StudyTask(
                id=review_task_id(original.subject_id, original_date, review_number, target_date),
                subject_id=original.subject_id,
                type=TaskType.REVIEW,
                content=f"[Review #{review_number}] {original.content}",
                pomodoro_type=original.pomodoro_type,
                pomodoro_count=1,
                estimated_minutes=minutes,
                review_source=ReviewSource(original_date=original_date, review_number=review_number),
                completed=False,
            ))
            total_minutes += minutes

    return tasks
