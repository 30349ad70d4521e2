from __future__ import annotations
import hashlib
from datetime import datetime, date
from typing import List
from icalendar import Calendar
from models import EventDate, EventType

# Checked in order; the first keyword found in the summary decides the type.
_TYPE_KEYWORDS = [
    (EventType.TENNIS_MATCH, ("match", "tournament", "試合", "大会")),
    (EventType.MOCK_EXAM, ("mock", "模試")),
    (EventType.REGULAR_TEST, ("test", "exam", "midterm", "final", "定期", "テスト")),
    (EventType.SCHOOL_EVENT, ("festival", "trip", "sports day", "ceremony", "文化祭", "体育祭", "修学旅行")),
]


def _normalize_to_date(value) -> date | None:
    dt_value = getattr(value, "dt", value)

    if isinstance(dt_value, datetime):
        if dt_value.tzinfo:
            dt_value = dt_value.astimezone().replace(tzinfo=None)
        return dt_value.date()
    if isinstance(dt_value, date):
        return dt_value
    return None


def _all_day(value) -> bool:
    dt_value = getattr(value, "dt", value)
    return isinstance(dt_value, date) and not isinstance(dt_value, datetime)


def infer_event_type(summary: str) -> EventType:
    text = summary.lower()
    for event_type, keywords in _TYPE_KEYWORDS:
        if any(k in text for k in keywords):
            return event_type
    return EventType.OTHER


def _duration_days(dtstart, dtend) -> int:
    start = _normalize_to_date(dtstart)
    end = _normalize_to_date(dtend) if dtend is not None else None
    if start is None or end is None or end <= start:
        return 1
    days = (end - start).days
    # DTEND of an all-day event is exclusive; a timed event touches its end day.
    return max(1, days if _all_day(dtstart) else days + 1)


def _event_id(uid: str | None, summary: str, start: date) -> str:
    source = uid or f"{summary}|{start.isoformat()}"
    return "ics-" + hashlib.sha1(source.encode("utf-8")).hexdigest()[:12]


def parse_ics_bytes(data: bytes) -> List[EventDate]:
    cal = Calendar.from_ical(data)
    out: List[EventDate] = []

    for component in cal.walk():
        if component.name != "VEVENT":
            continue

        summary = str(component.get("SUMMARY", "Untitled"))
        dtstart = component.get("DTSTART")
        if not dtstart:
            continue

        start = _normalize_to_date(dtstart)
        if start is None:
            continue

        uid = component.get("UID")
        description = component.get("DESCRIPTION")
        out.append(EventDate(
            id=_event_id(str(uid) if uid else None, summary, start),
            title=summary,
            start=start,
            type=infer_event_type(summary),
            duration_days=_duration_days(dtstart, component.get("DTEND")),
            note=str(description) if description else "",
        ))

    return sorted(out, key=lambda x: (x.start, x.id))
