from __future__ import annotations
import logging
from datetime import date, timedelta
from typing import Dict, List, Optional
from allocation import MIN_CONTINUITY_MINUTES, SubjectAllocation, allocate_time
from availability import classify_day, get_available_minutes, is_club_day, is_weekend
from forgetting_curve import generate_review_tasks
from models import (
    DailyPlan,
    DayType,
    EventDate,
    PhaseName,
    PomodoroType,
    StudentProfile,
    StudyTask,
    TaskType,
)
from phase import detect_phase
from rules import DEFAULT_RULE_CONFIG, RuleConfig, sanitize_rule_config, work_minutes_for
from subjects import category_for, is_continuity_critical, pomodoro_type_for_subject, subject_or_default

logger = logging.getLogger(__name__)

# Non-review tasks are laid out in this order after the reviews.
POMODORO_ORDER: List[PomodoroType] = [
    PomodoroType.THINKING,
    PomodoroType.PROCESSING,
    PomodoroType.MEMORIZATION,
    PomodoroType.EXAM_PRACTICE,
]


def _unit_minutes(task: StudyTask, rules: RuleConfig) -> int:
    if task.pomodoro_count > 0 and task.estimated_minutes > 0:
        return max(1, task.estimated_minutes // task.pomodoro_count)
    return work_minutes_for(task.pomodoro_type, rules)


def _resized(task: StudyTask, minutes: int, unit: int) -> StudyTask:
    count = max(0, minutes // unit)
    return task.model_copy(update={"pomodoro_count": count, "estimated_minutes": count * unit})


def _task_content(
    subject_id: str,
    profile: StudentProfile,
    rules: RuleConfig,
    phase: PhaseName,
    index: int,
) -> str:
    info = subject_or_default(subject_id)
    selected = next((s for s in profile.subjects if s.subject_id == subject_id), None)
    if selected is not None and selected.textbooks:
        return f"{info.name}: {selected.textbooks[0]}"
    contents = rules.phase_content(category_for(subject_id), phase)
    if contents:
        return f"{info.name}: {contents[index % len(contents)]}"
    return f"{info.name} study"


def allocation_to_tasks(
    allocations: List[SubjectAllocation],
    profile: StudentProfile,
    rules: RuleConfig,
    phase: PhaseName,
    target_date: date,
) -> List[StudyTask]:
    """One new-learning task per allocation, rounded down to whole pomodoros (at least one)."""
    tasks: List[StudyTask] = []
    for a in allocations:
        if a.minutes <= 0:
            continue
        pomodoro_type = pomodoro_type_for_subject(subject_or_default(a.subject_id))
        work = work_minutes_for(pomodoro_type, rules)
        count = max(1, a.minutes // work)
        index = len(tasks)
        tasks.append(StudyTask(
            id=f"gen-{target_date.isoformat()}-{index}",
            subject_id=a.subject_id,
            type=TaskType.NEW,
            content=_task_content(a.subject_id, profile, rules, phase, index),
            pomodoro_type=pomodoro_type,
            pomodoro_count=count,
            estimated_minutes=count * work,
        ))
    return tasks


def ensure_daily_practice(
    tasks: List[StudyTask],
    profile: StudentProfile,
    rules: RuleConfig,
    target_date: date,
) -> List[StudyTask]:
    """Add one pomodoro of daily practice for each continuity-critical subject below the floor."""
    scheduled: Dict[str, int] = {}
    for t in tasks:
        scheduled[t.subject_id] = scheduled.get(t.subject_id, 0) + t.estimated_minutes

    extra: List[StudyTask] = []
    seen = set()
    for selected in profile.subjects:
        subject_id = selected.subject_id
        if subject_id in seen or not is_continuity_critical(subject_id):
            continue
        seen.add(subject_id)
        if scheduled.get(subject_id, 0) >= MIN_CONTINUITY_MINUTES:
            continue
        info = subject_or_default(subject_id)
        pomodoro_type = pomodoro_type_for_subject(info)
        extra.append(StudyTask(
            id=f"gen-{target_date.isoformat()}-daily-{len(extra)}",
            subject_id=subject_id,
            type=TaskType.NEW,
            content=f"{info.name} daily practice",
            pomodoro_type=pomodoro_type,
            pomodoro_count=1,
            estimated_minutes=work_minutes_for(pomodoro_type, rules),
        ))
    return tasks + extra


def order_tasks(tasks: List[StudyTask]) -> List[StudyTask]:
    reviews = [t for t in tasks if t.is_review]
    others = [t for t in tasks if not t.is_review]
    others = sorted(others, key=lambda t: POMODORO_ORDER.index(t.pomodoro_type))
    return reviews + others


def cap_tasks_to_available(tasks: List[StudyTask], available_minutes: int, rules: RuleConfig) -> List[StudyTask]:
    total = sum(t.estimated_minutes for t in tasks)
    if total <= available_minutes:
        return list(tasks)

    reviews = [t for t in tasks if t.is_review]
    others = [t for t in tasks if not t.is_review]
    review_total = sum(t.estimated_minutes for t in reviews)

    if review_total >= available_minutes:
        logger.debug("Reviews (%d min) fill the day (%d min); scaling down", review_total, available_minutes)
        if review_total <= 0:
            return []
        ratio = available_minutes / review_total
        scaled = []
        for t in reviews:
            unit = _unit_minutes(t, rules)
            # Every review keeps at least one pomodoro at this stage.
            scaled.append(_resized(t, max(unit, int(t.estimated_minutes * ratio)), unit))

        # Shrink from the end, dropping reviews that no longer hold a whole pomodoro.
        overflow = sum(t.estimated_minutes for t in scaled) - available_minutes
        while overflow > 0 and scaled:
            last = scaled.pop()
            shrunk = _resized(last, max(0, last.estimated_minutes - overflow), _unit_minutes(last, rules))
            if shrunk.estimated_minutes > 0:
                scaled.append(shrunk)
            overflow = sum(t.estimated_minutes for t in scaled) - available_minutes
        return scaled

    remaining = available_minutes - review_total
    kept: List[StudyTask] = []
    for t in others:
        take = min(t.estimated_minutes, remaining)
        if take <= 0:
            continue
        trimmed = _resized(t, take, _unit_minutes(t, rules))
        if trimmed.estimated_minutes <= 0:
            continue
        remaining -= trimmed.estimated_minutes
        kept.append(trimmed)
    logger.debug("Trimmed non-review tasks from %d to %d", len(others), len(kept))
    return reviews + kept


def compute_completion_rate(plan: DailyPlan) -> float:
    if not plan.tasks:
        return 0.0
    done = sum(1 for t in plan.tasks if t.completed)
    return round(done / len(plan.tasks), 4)


def empty_plan(target_date: date) -> DailyPlan:
    return DailyPlan(
        day=target_date,
        phase=PhaseName.FINAL,
        day_type=DayType.WEEKEND_HOLIDAY if is_weekend(target_date) else DayType.WEEKDAY_NO_CLUB,
        available_minutes=0,
    )


def generate_daily_plan(
    profile: Optional[StudentProfile],
    events: List[EventDate],
    completed_tasks: List[StudyTask],
    target_date: date,
    rules: Optional[RuleConfig] = None,
) -> DailyPlan:
    if profile is None:
        return empty_plan(target_date)
    rules = sanitize_rule_config(rules or DEFAULT_RULE_CONFIG)
    events = events or []
    schedule = profile.daily_schedule

    phase = detect_phase(profile.exam_date, target_date, rules.phase_bands)
    day_type = classify_day(schedule, events, target_date)
    available = get_available_minutes(schedule, events, target_date, profile.study_start_date)

    review_cap = rules.forgetting_curve.max_daily_review_minutes
    template = rules.day_template(day_type)
    if template is not None:
        review_cap = min(review_cap, template.max_review_minutes)
    reviews = generate_review_tasks(
        completed_tasks or [],
        target_date,
        rules.forgetting_curve,
        max_daily_review_minutes=review_cap,
    )
    review_minutes = sum(t.estimated_minutes for t in reviews)

    remaining = max(0, available - review_minutes)
    new_tasks: List[StudyTask] = []
    if remaining > 0 and profile.subjects:
        allocations = allocate_time(profile.subjects, remaining, phase)
        new_tasks = allocation_to_tasks(allocations, profile, rules, phase.name, target_date)

    tasks = ensure_daily_practice(reviews + new_tasks, profile, rules, target_date)
    tasks = order_tasks(tasks)
    tasks = cap_tasks_to_available(tasks, available, rules)

    logger.debug(
        "Plan %s: %s, %s, %d days left, %d min available, %d tasks",
        target_date, day_type.value, phase.name.value, phase.days_left, available, len(tasks),
    )
    return DailyPlan(
        day=target_date,
        phase=phase.name,
        day_type=day_type,
        is_club_day=is_club_day(schedule, target_date),
        is_match_day=day_type == DayType.MATCH_DAY,
        is_event_day=day_type == DayType.EVENT_DAY,
        available_minutes=available,
        tasks=tasks,
        completion_rate=0.0,
    )


def generate_plans(
    profile: Optional[StudentProfile],
    events: List[EventDate],
    completed_tasks: List[StudyTask],
    start: date,
    days: int = 7,
    rules: Optional[RuleConfig] = None,
) -> Dict[str, DailyPlan]:
    plans: Dict[str, DailyPlan] = {}
    for i in range(days):
        d = start + timedelta(days=i)
        plans[d.isoformat()] = generate_daily_plan(profile, events, completed_tasks, d, rules)
    return plans
