from __future__ import annotations

from datetime import date, datetime

from models import (
    DailyPlan,
    DailySchedule,
    DayType,
    EventDate,
    EventType,
    PhaseName,
    PomodoroType,
    ReviewSource,
    SelectedSubject,
    StudentProfile,
    StudyTask,
    TaskType,
)
from planner import (
    cap_tasks_to_available,
    compute_completion_rate,
    ensure_daily_practice,
    generate_daily_plan,
    generate_plans,
    order_tasks,
)
from rules import default_rule_config


def _profile(subjects=None, **schedule_overrides) -> StudentProfile:
    schedule = {
        "wake_up_time": "06:30",
        "bed_time": "23:30",
        "school_start": "08:30",
        "school_end": "15:30",
        "commute_minutes_one_way": 30,
        "meal_and_bath_minutes": 90,
        "free_time_buffer_minutes": 30,
    }
    schedule.update(schedule_overrides)
    if subjects is None:
        subjects = [
            SelectedSubject(subject_id="physics", current_score=50, target_score=70),
            SelectedSubject(subject_id="chemistry", current_score=50, target_score=70),
        ]
    return StudentProfile(
        name="Aoi",
        exam_date=date(2026, 1, 17),
        daily_schedule=DailySchedule(**schedule),
        subjects=subjects,
    )


def _task(task_id: str, pomodoro_type: PomodoroType, count: int, minutes: int, review: bool = False) -> StudyTask:
    return StudyTask(
        id=task_id,
        subject_id="physics",
        type=TaskType.REVIEW if review else TaskType.NEW,
        pomodoro_type=pomodoro_type,
        pomodoro_count=count,
        estimated_minutes=minutes,
        review_source=ReviewSource(original_date=date(2025, 8, 31), review_number=1) if review else None,
    )


def _done_original(subject_id: str, done_on: date) -> StudyTask:
    return StudyTask(
        id=f"gen-{done_on.isoformat()}-0",
        subject_id=subject_id,
        content="Physics: mechanics",
        pomodoro_type=PomodoroType.THINKING,
        estimated_minutes=30,
        completed=True,
        actual_minutes=30,
        completed_at=datetime(done_on.year, done_on.month, done_on.day, 20, 0),
    )


def test_absent_profile_gives_empty_plan() -> None:
    plan = generate_daily_plan(None, [], [], date(2025, 9, 1))

    assert plan.tasks == []
    assert plan.available_minutes == 0
    assert plan.phase == PhaseName.FINAL
    assert plan.completion_rate == 0.0


def test_weekday_plan_allocates_whole_pomodoros() -> None:
    plan = generate_daily_plan(_profile(), [], [], date(2025, 9, 1))

    assert plan.phase == PhaseName.FOUNDATION
    assert plan.day_type == DayType.WEEKDAY_NO_CLUB
    assert plan.available_minutes == 420
    assert [(t.id, t.subject_id, t.estimated_minutes) for t in plan.tasks] == [
        ("gen-2025-09-01-0", "physics", 300),
        ("gen-2025-09-01-1", "chemistry", 100),
    ]
    assert plan.tasks[0].pomodoro_type == PomodoroType.THINKING
    assert plan.tasks[0].pomodoro_count == 10
    assert plan.tasks[1].pomodoro_type == PomodoroType.MEMORIZATION
    assert plan.tasks[0].content == "Physics: Basic problem practice"
    assert plan.completion_rate == 0.0


def test_textbook_names_the_task() -> None:
    subjects = [SelectedSubject(subject_id="physics", textbooks=["Essential Physics"])]

    plan = generate_daily_plan(_profile(subjects), [], [], date(2025, 9, 1))

    assert plan.tasks[0].content == "Physics: Essential Physics"


def test_reviews_come_first_and_shrink_new_learning() -> None:
    history = [_done_original("physics", date(2025, 8, 31))]

    plan = generate_daily_plan(_profile(), [], history, date(2025, 9, 1))

    assert plan.tasks[0].id == "review-physics-2025-08-31-1-2025-09-01"
    assert [(t.subject_id, t.estimated_minutes) for t in plan.tasks] == [
        ("physics", 30),
        ("physics", 270),
        ("chemistry", 80),
    ]


def test_club_day_template_caps_reviews() -> None:
    history = [_done_original("physics", date(2025, 8, 31))]

    # Monday is a club day: the weekday_club template allows 20 review minutes.
    plan = generate_daily_plan(_profile(club_days=[0]), [], history, date(2025, 9, 1))

    assert plan.day_type == DayType.WEEKDAY_CLUB
    assert plan.is_club_day
    assert not any(t.is_review for t in plan.tasks)


def test_match_day_plan() -> None:
    day = date(2025, 9, 1)
    events = [EventDate(id="m1", title="Prefectural match", start=day, type=EventType.TENNIS_MATCH)]

    plan = generate_daily_plan(_profile(), events, [], day)

    assert plan.is_match_day
    assert not plan.is_event_day
    assert plan.day_type == DayType.MATCH_DAY
    assert plan.available_minutes == 60
    assert [(t.subject_id, t.estimated_minutes) for t in plan.tasks] == [("physics", 30), ("chemistry", 20)]


def test_daily_practice_is_added_for_starved_continuity_subjects() -> None:
    profile = _profile([
        SelectedSubject(subject_id="physics"),
        SelectedSubject(subject_id="eng_r"),
        SelectedSubject(subject_id="eng_l"),
    ])
    tasks = [_task("t0", PomodoroType.THINKING, 2, 60), _task("t1", PomodoroType.PROCESSING, 1, 25)]
    tasks[1] = tasks[1].model_copy(update={"subject_id": "eng_l"})

    result = ensure_daily_practice(tasks, profile, default_rule_config(), date(2025, 9, 1))

    added = result[2:]
    assert [(t.id, t.subject_id, t.estimated_minutes) for t in added] == [
        ("gen-2025-09-01-daily-0", "eng_r", 30),
    ]
    assert added[0].content == "English Reading daily practice"


def test_order_puts_reviews_first_then_pomodoro_priority() -> None:
    tasks = [
        _task("mem", PomodoroType.MEMORIZATION, 1, 20),
        _task("exam", PomodoroType.EXAM_PRACTICE, 1, 80),
        _task("rev", PomodoroType.MEMORIZATION, 1, 20, review=True),
        _task("proc", PomodoroType.PROCESSING, 1, 25),
        _task("think", PomodoroType.THINKING, 1, 30),
    ]

    assert [t.id for t in order_tasks(tasks)] == ["rev", "think", "proc", "mem", "exam"]


def test_cap_truncates_new_tasks_to_whole_pomodoros() -> None:
    tasks = [
        _task("rev", PomodoroType.THINKING, 1, 30, review=True),
        _task("think", PomodoroType.THINKING, 3, 90),
        _task("proc", PomodoroType.PROCESSING, 2, 50),
    ]

    capped = cap_tasks_to_available(tasks, 100, default_rule_config())

    assert [(t.id, t.pomodoro_count, t.estimated_minutes) for t in capped] == [
        ("rev", 1, 30),
        ("think", 2, 60),
    ]


def test_cap_scales_reviews_when_they_fill_the_day() -> None:
    tasks = [
        _task("rev1", PomodoroType.THINKING, 2, 60, review=True),
        _task("rev2", PomodoroType.MEMORIZATION, 2, 40, review=True),
        _task("new", PomodoroType.THINKING, 1, 30),
    ]

    capped = cap_tasks_to_available(tasks, 70, default_rule_config())

    assert [(t.id, t.estimated_minutes) for t in capped] == [("rev1", 30), ("rev2", 20)]


def test_cap_drops_reviews_that_cannot_fit() -> None:
    tasks = [
        _task("rev1", PomodoroType.THINKING, 1, 30, review=True),
        _task("rev2", PomodoroType.PROCESSING, 1, 25, review=True),
    ]

    assert cap_tasks_to_available(tasks, 20, default_rule_config()) == []


def test_cap_keeps_single_pomodoro_reviews_that_fit() -> None:
    tasks = [
        _task("think", PomodoroType.THINKING, 1, 30, review=True),
        _task("memo", PomodoroType.MEMORIZATION, 1, 20, review=True),
        _task("proc", PomodoroType.PROCESSING, 1, 25, review=True),
    ]

    capped = cap_tasks_to_available(tasks, 50, default_rule_config())

    assert [(t.id, t.estimated_minutes) for t in capped] == [("think", 30), ("memo", 20)]


def test_short_match_day_keeps_a_review() -> None:
    done_on = date(2025, 8, 31)
    history = [
        _done_original(subject_id, done_on).model_copy(update={
            "id": f"gen-{done_on.isoformat()}-{i}",
            "pomodoro_type": PomodoroType.MEMORIZATION,
            "estimated_minutes": 20,
        })
        for i, subject_id in enumerate(["his_jp", "geo_ex"])
    ]
    match = EventDate(id="m", title="Match", start=date(2025, 9, 1), type=EventType.TENNIS_MATCH)

    plan = generate_daily_plan(_profile(free_time_buffer_minutes=330), [match], history, date(2025, 9, 1))

    assert plan.available_minutes == 30
    assert [(t.subject_id, t.estimated_minutes) for t in plan.tasks] == [("his_jp", 20)]
    assert plan.tasks[0].is_review


def test_cap_keeps_tasks_within_budget() -> None:
    tasks = [_task("think", PomodoroType.THINKING, 1, 30)]

    assert cap_tasks_to_available(tasks, 30, default_rule_config()) == tasks


def test_completion_rate() -> None:
    tasks = [
        _task("a", PomodoroType.THINKING, 1, 30).model_copy(update={"completed": True}),
        _task("b", PomodoroType.THINKING, 1, 30),
        _task("c", PomodoroType.THINKING, 1, 30),
    ]
    plan = DailyPlan(day=date(2025, 9, 1), phase=PhaseName.FOUNDATION, tasks=tasks)

    assert compute_completion_rate(plan) == 0.3333
    assert compute_completion_rate(plan.model_copy(update={"tasks": []})) == 0.0


def test_generate_plans_keys_by_iso_date() -> None:
    plans = generate_plans(_profile(), [], [], date(2025, 9, 1), days=3)

    assert list(plans) == ["2025-09-01", "2025-09-02", "2025-09-03"]
    assert all(plans[key].key == key for key in plans)
