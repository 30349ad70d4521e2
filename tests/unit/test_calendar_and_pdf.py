from __future__ import annotations

from datetime import date, timedelta

from icalendar import Calendar

from calendar_export import plans_to_ics
from calendar_import import infer_event_type, parse_ics_bytes
from models import DailyPlan, EventType, PhaseName, PomodoroType, StudentProfile, StudyTask
from pdf_export import plans_to_pdf

ICS = b"""BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//School//Calendar//EN
BEGIN:VEVENT
UID:mock-1@school
SUMMARY:Mock exam (autumn)
DTSTART:20251005T090000
DTEND:20251005T170000
END:VEVENT
BEGIN:VEVENT
UID:tennis-1@club
SUMMARY:Regional tennis tournament
DTSTART;VALUE=DATE:20250920
DTEND;VALUE=DATE:20250922
DESCRIPTION:Bring rackets
END:VEVENT
BEGIN:VEVENT
SUMMARY:Dentist
DTSTART;VALUE=DATE:20250925
END:VEVENT
END:VCALENDAR
"""


def _plan() -> DailyPlan:
    return DailyPlan(
        day=date(2025, 9, 1),
        phase=PhaseName.FOUNDATION,
        available_minutes=420,
        tasks=[
            StudyTask(
                id="gen-2025-09-01-0",
                subject_id="math1a",
                content="Math I/A: Basic problem practice",
                pomodoro_type=PomodoroType.THINKING,
                pomodoro_count=2,
                estimated_minutes=60,
            ),
            StudyTask(
                id="gen-2025-09-01-1",
                subject_id="eng_l",
                content="English Listening: Listening basics",
                pomodoro_type=PomodoroType.PROCESSING,
                pomodoro_count=1,
                estimated_minutes=25,
                completed=True,
            ),
        ],
    )


def test_keywords_decide_event_type() -> None:
    assert infer_event_type("Spring tournament") == EventType.TENNIS_MATCH
    assert infer_event_type("Practice match vs. North High") == EventType.TENNIS_MATCH
    assert infer_event_type("Zenkoku mock exam") == EventType.MOCK_EXAM
    assert infer_event_type("Midterm test week") == EventType.REGULAR_TEST
    assert infer_event_type("Culture festival") == EventType.SCHOOL_EVENT
    assert infer_event_type("Dentist") == EventType.OTHER


def test_parse_ics_bytes() -> None:
    events = parse_ics_bytes(ICS)

    assert [(e.title, e.start, e.type, e.duration_days) for e in events] == [
        ("Regional tennis tournament", date(2025, 9, 20), EventType.TENNIS_MATCH, 2),
        ("Dentist", date(2025, 9, 25), EventType.OTHER, 1),
        ("Mock exam (autumn)", date(2025, 10, 5), EventType.MOCK_EXAM, 1),
    ]
    assert events[0].note == "Bring rackets"
    assert all(e.id.startswith("ics-") for e in events)


def test_parse_ics_ids_are_stable() -> None:
    assert [e.id for e in parse_ics_bytes(ICS)] == [e.id for e in parse_ics_bytes(ICS)]


def test_plans_to_ics_lays_tasks_back_to_back() -> None:
    cal = Calendar.from_ical(plans_to_ics([_plan()], start_time="19:00"))
    events = [c for c in cal.walk() if c.name == "VEVENT"]

    assert [str(e["SUMMARY"]) for e in events] == [
        "Math I/A: Basic problem practice",
        "English Listening: Listening basics",
    ]
    first_start = events[0].decoded("DTSTART")
    first_end = events[0].decoded("DTEND")
    second_start = events[1].decoded("DTSTART")
    assert (first_start.hour, first_start.minute) == (19, 0)
    # Two thinking pomodoros with one 7 minute break, then a 7 minute break.
    assert first_end - first_start == timedelta(minutes=67)
    assert second_start - first_end == timedelta(minutes=7)
    assert str(events[0]["UID"]) == "gen-2025-09-01-0@study-planner"


def test_plans_to_ics_with_no_tasks() -> None:
    empty = _plan().model_copy(update={"tasks": []})
    cal = Calendar.from_ical(plans_to_ics([empty]))

    assert [c for c in cal.walk() if c.name == "VEVENT"] == []


def test_plans_to_pdf_produces_a_document() -> None:
    profile = StudentProfile(name="Aoi", exam_date=date(2026, 1, 17))
    quiet = DailyPlan(day=date(2025, 9, 2), phase=PhaseName.FOUNDATION)

    data = plans_to_pdf([_plan(), quiet], profile)

    assert data.startswith(b"%PDF")
    assert len(data) > 1000
