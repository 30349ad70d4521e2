from __future__ import annotations

from datetime import date, datetime, timedelta

from calendar_export import plans_to_ics
from calendar_import import parse_ics_bytes
from models import DailySchedule, SelectedSubject, StudentProfile
from pdf_export import plans_to_pdf
from store import (
    AppState,
    complete_task,
    get_plan,
    load_state,
    save_rule_config,
    save_state,
    set_events,
    update_profile,
)

START = date(2025, 9, 1)

SCHOOL_ICS = b"""BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//School//Calendar//EN
BEGIN:VEVENT
UID:match-0906@club
SUMMARY:Tennis practice match
DTSTART;VALUE=DATE:20250906
DTEND;VALUE=DATE:20250907
END:VEVENT
END:VCALENDAR
"""


def _profile() -> StudentProfile:
    return StudentProfile(
        name="Aoi",
        exam_type="common test",
        exam_date=date(2026, 1, 17),
        daily_schedule=DailySchedule(
            wake_up_time="06:30",
            bed_time="23:30",
            school_start="08:30",
            school_end="15:30",
            commute_minutes_one_way=30,
            meal_and_bath_minutes=90,
            free_time_buffer_minutes=30,
            club_days=[2],
            club_start_time="16:00",
            club_end_time="18:00",
        ),
        subjects=[
            SelectedSubject(subject_id="eng_r", current_score=60, target_score=85, difficulty=2),
            SelectedSubject(subject_id="math1a", current_score=50, target_score=80, difficulty=1),
            SelectedSubject(subject_id="physics", current_score=55, target_score=75),
            SelectedSubject(subject_id="his_jp", current_score=65, target_score=85, difficulty=4),
        ],
    )


def _finish_day(state: AppState, day: date) -> None:
    plan = get_plan(state, day)
    for i, task in enumerate(plan.tasks):
        complete_task(state, task.id, task.estimated_minutes, datetime(day.year, day.month, day.day, 19, 0) + timedelta(minutes=40 * i))


def test_week_of_study_with_reviews_events_and_exports() -> None:
    state = load_state()
    update_profile(state, _profile(), START)
    set_events(state, parse_ics_bytes(SCHOOL_ICS), START)
    save_state(state)

    for offset in range(7):
        day = START + timedelta(days=offset)
        state = load_state()
        _finish_day(state, day)
        save_state(state)

    state = load_state()
    plans = [state.daily_plans[(START + timedelta(days=i)).isoformat()] for i in range(7)]

    assert all(p.completion_rate == 1.0 for p in plans if p.tasks)
    assert all(p.total_minutes <= p.available_minutes for p in plans)
    assert plans[2].is_club_day
    assert plans[5].is_match_day and plans[5].available_minutes == 60

    second_day_reviews = [t for t in plans[1].tasks if t.is_review]
    assert second_day_reviews
    assert all(t.review_source.original_date == START for t in second_day_reviews)
    assert len(state.completed_tasks) == sum(len(p.tasks) for p in plans)

    ics = plans_to_ics(plans)
    assert ics.count(b"BEGIN:VEVENT") == sum(len(p.tasks) for p in plans)
    assert plans_to_pdf(plans, state.profile).startswith(b"%PDF")


def test_rule_change_keeps_history_and_replans_future() -> None:
    state = AppState()
    update_profile(state, _profile(), START)
    _finish_day(state, START)
    for offset in range(1, 4):
        get_plan(state, START + timedelta(days=offset))

    today = START + timedelta(days=1)
    config = state.rule_config.model_copy(update={
        "forgetting_curve": state.rule_config.forgetting_curve.model_copy(update={"intervals": [2, 4, 8]}),
    })
    plan = save_rule_config(state, config, today, datetime(2025, 9, 2, 7, 0), "Slower reviews")

    assert sorted(state.daily_plans) == ["2025-09-01", "2025-09-02"]
    assert all(t.completed for t in state.daily_plans["2025-09-01"].tasks)
    # With the first review at +2 days nothing is due on 09-02 any more.
    assert not any(t.is_review for t in plan.tasks)
    assert any(t.is_review for t in get_plan(state, START + timedelta(days=2)).tasks)
