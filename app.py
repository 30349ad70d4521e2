from __future__ import annotations
import logging
import streamlit as st
import pandas as pd
from datetime import date, datetime, time, timedelta
from uuid import uuid4
from pydantic import ValidationError

from availability import parse_time_to_minutes, study_minutes_summary
from calendar_export import plans_to_ics
from calendar_import import parse_ics_bytes
from models import DailySchedule, EventDate, EventType, SelectedSubject, StudentProfile
from pdf_export import plans_to_pdf
from phase import detect_phase
from rules import RuleConfigError, export_rule_config, import_rule_config
from store import (
    AppState,
    complete_task,
    get_plan,
    load_state,
    regenerate_plan,
    reset_state,
    save_rule_config,
    save_state,
    set_events,
    skip_task,
    update_profile,
)
from subjects import SUBJECTS, subject_or_default


DAY_LABELS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
SUBJECT_LABELS = {s.id: s.name for s in SUBJECTS}

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
st.set_page_config(page_title="Study Planner", page_icon="📚", layout="wide")


def _ensure_session_state() -> AppState:
    if "state" not in st.session_state:
        st.session_state.state = load_state()
    return st.session_state.state


def _persist(state: AppState) -> None:
    save_state(state)


def _queue_toast(message: str) -> None:
    st.session_state.toast_message = message


def _flush_toast() -> None:
    message = st.session_state.pop("toast_message", None)
    if message:
        st.toast(message)


def _to_time(value: str | None, fallback: str) -> time:
    minutes = parse_time_to_minutes(value or fallback)
    return time(hour=(minutes // 60) % 24, minute=minutes % 60)


def _cell_int(value, default: int) -> int:
    # New data_editor rows hold NaN until filled in.
    if value is None or pd.isna(value):
        return default
    return int(value)


def _cell_list(value) -> list[str]:
    if not isinstance(value, str):
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def _fmt_time(value: time) -> str:
    return value.strftime("%H:%M")


def render_setup(state: AppState, today: date) -> None:
    st.header("Setup")
    profile = state.profile
    schedule = profile.daily_schedule if profile else DailySchedule()

    with st.form("profile_form"):
        st.subheader("Profile")
        col1, col2, col3 = st.columns(3)
        with col1:
            name = st.text_input("Name", value=profile.name if profile else "")
            exam_type = st.text_input("Exam", value=profile.exam_type if profile else "")
        with col2:
            exam_date = st.date_input(
                "Exam date", value=profile.exam_date if profile else today + timedelta(days=180)
            )
        with col3:
            use_start = st.checkbox("Set study start date", value=bool(profile and profile.study_start_date))
            study_start = st.date_input(
                "Study start date",
                value=(profile.study_start_date if profile and profile.study_start_date else today),
            )

        st.subheader("Daily schedule")
        a, b, c, d = st.columns(4)
        wake = a.time_input("Wake up", _to_time(schedule.wake_up_time, "06:30"))
        bed = b.time_input("Bed time", _to_time(schedule.bed_time, "23:30"))
        school_start = c.time_input("School start", _to_time(schedule.school_start, "08:30"))
        school_end = d.time_input("School end", _to_time(schedule.school_end, "15:30"))

        a, b, c = st.columns(3)
        commute = a.number_input("Commute (one way, min)", 0, 240, schedule.commute_minutes_one_way, 5)
        meals = b.number_input("Meals and bath (min)", 0, 480, schedule.meal_and_bath_minutes, 5)
        buffer = c.number_input("Free-time buffer (min)", 0, 480, schedule.free_time_buffer_minutes, 5)

        club_days = st.multiselect(
            "Club practice days",
            options=list(range(7)),
            format_func=lambda x: DAY_LABELS[x],
            default=schedule.club_days,
        )
        a, b, c, d = st.columns(4)
        club_start = a.time_input("Club start (weekday)", _to_time(schedule.club_start_time, "16:00"))
        club_end = b.time_input("Club end (weekday)", _to_time(schedule.club_end_time, "18:30"))
        club_w_start = c.time_input("Club start (weekend)", _to_time(schedule.club_weekend_start, "09:00"))
        club_w_end = d.time_input("Club end (weekend)", _to_time(schedule.club_weekend_end, "12:00"))

        use_summer = st.checkbox("Summer vacation", value=schedule.summer_vacation_start is not None)
        a, b = st.columns(2)
        summer_start = a.date_input("Summer start", value=schedule.summer_vacation_start or date(today.year, 7, 20))
        summer_end = b.date_input("Summer end", value=schedule.summer_vacation_end or date(today.year, 8, 31))

        st.subheader("Subjects")
        rows = [
            {
                "subject_id": s.subject_id,
                "current_score": s.current_score,
                "target_score": s.target_score,
                "difficulty": s.difficulty,
                "textbooks": ", ".join(s.textbooks),
            }
            for s in (profile.subjects if profile else [])
        ]
        edited = st.data_editor(
            pd.DataFrame(rows, columns=["subject_id", "current_score", "target_score", "difficulty", "textbooks"]),
            num_rows="dynamic",
            use_container_width=True,
            column_config={
                "subject_id": st.column_config.SelectboxColumn(
                    "Subject", options=list(SUBJECT_LABELS), required=True
                ),
                "current_score": st.column_config.NumberColumn("Current", min_value=0, step=1),
                "target_score": st.column_config.NumberColumn("Target", min_value=0, step=1),
                "difficulty": st.column_config.NumberColumn("Difficulty (5 = hardest)", min_value=1, max_value=5),
                "textbooks": st.column_config.TextColumn("Textbooks (comma separated)"),
            },
            key="subjects_editor",
        )
        submitted = st.form_submit_button("Save profile", type="primary")

    if submitted:
        try:
            subjects = [
                SelectedSubject(
                    subject_id=str(row["subject_id"]),
                    current_score=_cell_int(row["current_score"], 0),
                    target_score=_cell_int(row["target_score"], 0),
                    difficulty=_cell_int(row["difficulty"], 3),
                    textbooks=_cell_list(row.get("textbooks")),
                )
                for row in edited.to_dict("records")
                if isinstance(row.get("subject_id"), str) and row["subject_id"]
            ]
            new_profile = StudentProfile(
                name=name.strip(),
                exam_type=exam_type.strip(),
                exam_date=exam_date,
                study_start_date=study_start if use_start else None,
                daily_schedule=DailySchedule(
                    wake_up_time=_fmt_time(wake),
                    bed_time=_fmt_time(bed),
                    school_start=_fmt_time(school_start),
                    school_end=_fmt_time(school_end),
                    commute_minutes_one_way=int(commute),
                    meal_and_bath_minutes=int(meals),
                    free_time_buffer_minutes=int(buffer),
                    club_days=sorted(club_days),
                    club_start_time=_fmt_time(club_start),
                    club_end_time=_fmt_time(club_end),
                    club_weekend_start=_fmt_time(club_w_start),
                    club_weekend_end=_fmt_time(club_w_end),
                    summer_vacation_start=summer_start if use_summer else None,
                    summer_vacation_end=summer_end if use_summer else None,
                ),
                subjects=subjects,
            )
            update_profile(state, new_profile, today)
        except (ValidationError, ValueError) as e:
            st.error(str(e))
        else:
            _persist(state)
            _queue_toast("Profile saved.")
            st.rerun()

    if profile:
        st.divider()
        st.subheader("Study minutes by day type")
        summary = study_minutes_summary(profile.daily_schedule)
        st.dataframe(
            pd.DataFrame([summary.model_dump()]).rename(columns=lambda c: c.replace("_", " ")),
            use_container_width=True,
            hide_index=True,
        )


def render_calendar(state: AppState, today: date) -> None:
    st.header("Calendar")

    with st.form("add_event_form", clear_on_submit=True):
        col1, col2, col3, col4 = st.columns([2, 1, 1, 1])
        title = col1.text_input("Title", placeholder="Regional tournament")
        start = col2.date_input("Start", value=today)
        event_type = col3.selectbox("Type", [t.value for t in EventType])
        duration = col4.number_input("Days", 1, 30, 1)
        note = st.text_input("Note (optional)")
        if st.form_submit_button("Add event", type="primary"):
            if not title.strip():
                st.warning("Title is required.")
            else:
                event = EventDate(
                    id=str(uuid4()),
                    title=title.strip(),
                    start=start,
                    type=EventType(event_type),
                    duration_days=int(duration),
                    note=note.strip(),
                )
                set_events(state, state.events + [event], today)
                _persist(state)
                _queue_toast("Event added.")
                st.rerun()

    st.subheader("Import calendar (.ics)")
    uploaded = st.file_uploader("Upload .ics file", type=["ics"], key="ics_upload")
    if uploaded is not None:
        try:
            imported = parse_ics_bytes(uploaded.getvalue())
        except ValueError as e:
            st.error(f"Could not read calendar: {e}")
            imported = []
        if imported:
            st.dataframe(
                pd.DataFrame([e.model_dump(mode="json") for e in imported]),
                use_container_width=True,
                height=220,
            )
            if st.button("Import events", type="primary"):
                known = {e.id for e in state.events}
                fresh = [e for e in imported if e.id not in known]
                set_events(state, state.events + fresh, today)
                _persist(state)
                _queue_toast(f"Imported {len(fresh)} events.")
                st.rerun()

    st.divider()
    st.subheader("Events")
    if not state.events:
        st.info("No events yet.")
        return

    rows = [
        {
            "Select": False,
            "id": e.id,
            "Title": e.title,
            "Start": e.start.isoformat(),
            "Type": e.type.value,
            "Days": e.duration_days,
            "Note": e.note,
        }
        for e in state.events
    ]
    edited = st.data_editor(
        pd.DataFrame(rows).set_index("id"),
        hide_index=True,
        use_container_width=True,
        disabled=["Title", "Start", "Type", "Days", "Note"],
        key="events_editor",
    )
    if st.button("Delete selected"):
        selected = {row["id"] for row in edited.reset_index().to_dict("records") if row.get("Select")}
        if not selected:
            st.warning("Select at least one event.")
        else:
            set_events(state, [e for e in state.events if e.id not in selected], today)
            _persist(state)
            _queue_toast("Events deleted.")
            st.rerun()


def render_today(state: AppState, today: date) -> None:
    st.header("Today")
    if state.profile is None:
        st.info("Fill in your profile in Setup first.")
        return

    plan = get_plan(state, today)
    phase = detect_phase(state.profile.exam_date, today, state.rule_config.phase_bands)

    a, b, c, d = st.columns(4)
    a.metric("Phase", plan.phase.value, f"{phase.days_left} days left", delta_color="off")
    b.metric("Available", f"{plan.available_minutes} min")
    c.metric("Planned", f"{plan.total_minutes} min")
    d.metric("Completion", f"{round(plan.completion_rate * 100)}%")
    st.caption(f"Day type: {plan.day_type.value.replace('_', ' ')}")

    if st.button("Regenerate today's plan"):
        regenerate_plan(state, today)
        _persist(state)
        st.rerun()

    if not plan.tasks:
        st.info("Nothing scheduled today.")
        return

    for task in plan.tasks:
        with st.container(border=True):
            left, mid, right = st.columns([4, 2, 2])
            left.markdown(
                f"**{subject_or_default(task.subject_id).name}** · {task.content}  \n"
                f"{task.type.value} · {task.pomodoro_count} × {task.pomodoro_type.value} · "
                f"{task.estimated_minutes} min"
            )
            if task.completed:
                mid.success(f"Done ({task.actual_minutes or 0} min)")
                continue
            actual = mid.number_input(
                "Actual minutes", 0, 600, task.estimated_minutes, 5, key=f"actual_{task.id}"
            )
            if right.button("Done", key=f"done_{task.id}", type="primary"):
                complete_task(state, task.id, int(actual), datetime.now())
                _persist(state)
                _queue_toast("Task completed.")
                st.rerun()
            if right.button("Skip", key=f"skip_{task.id}"):
                skip_task(state, task.id)
                _persist(state)
                st.rerun()


def render_week(state: AppState, today: date) -> None:
    st.header("Week")
    if state.profile is None:
        st.info("Fill in your profile in Setup first.")
        return

    week_start = st.date_input("Week start", value=today - timedelta(days=today.weekday()))
    plans = [get_plan(state, week_start + timedelta(days=i)) for i in range(7)]
    _persist(state)

    rows = [
        {
            "Date": p.day.strftime("%a %Y-%m-%d"),
            "Day type": p.day_type.value,
            "Phase": p.phase.value,
            "Available (m)": p.available_minutes,
            "Planned (m)": p.total_minutes,
            "Tasks": len(p.tasks),
            "Completion %": round(p.completion_rate * 100, 1),
        }
        for p in plans
    ]
    st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)

    with st.expander("Tasks by day", expanded=False):
        for p in plans:
            st.markdown(f"**{p.day.strftime('%A %Y-%m-%d')}**")
            if not p.tasks:
                st.caption("No tasks.")
                continue
            st.dataframe(
                pd.DataFrame([
                    {
                        "Subject": subject_or_default(t.subject_id).name,
                        "Type": t.type.value,
                        "Content": t.content,
                        "Minutes": t.estimated_minutes,
                        "Done": t.completed,
                    }
                    for t in p.tasks
                ]),
                use_container_width=True,
                hide_index=True,
            )

    st.subheader("Export")
    start_time = st.time_input("Study start time", time(19, 0))
    st.download_button(
        "Download ICS",
        data=plans_to_ics(plans, start_time=_fmt_time(start_time), rules=state.rule_config),
        file_name=f"study_plan_{week_start.isoformat()}.ics",
        mime="text/calendar",
    )
    st.download_button(
        "Download PDF",
        data=plans_to_pdf(plans, state.profile),
        file_name=f"study_plan_{week_start.isoformat()}.pdf",
        mime="application/pdf",
    )


def render_rules(state: AppState, today: date) -> None:
    st.header("Rules")
    config = state.rule_config

    with st.form("rules_form"):
        st.subheader("Forgetting curve")
        curve = config.forgetting_curve
        intervals_text = st.text_input(
            "Review intervals (days, comma separated)", ", ".join(str(i) for i in curve.intervals)
        )
        a, b = st.columns(2)
        max_review = a.number_input("Max review minutes per day", 0, 240, curve.max_daily_review_minutes, 5)
        graduation = b.number_input("Graduate after reviews", 2, 10, curve.graduation_count, 1)

        st.subheader("General")
        general = config.general_rules
        a, b, c = st.columns(3)
        buffer_ratio = a.slider("Buffer ratio", 0.0, 0.5, float(general.buffer_ratio), 0.05)
        pomo_work = b.number_input("Default pomodoro work", 10, 120, general.default_pomodoro_work, 5)
        pomo_break = c.number_input("Default pomodoro break", 0, 30, general.default_pomodoro_break, 1)

        st.subheader("Review cap by day type")
        template_caps = {}
        cols = st.columns(len(config.day_templates) or 1)
        for col, template in zip(cols, config.day_templates):
            template_caps[template.day_type] = col.number_input(
                template.display_name or template.day_type.value, 0, 240, template.max_review_minutes, 5,
                key=f"cap_{template.day_type.value}",
            )
        description = st.text_input("Change note", "Rules updated")
        submitted = st.form_submit_button("Save rules", type="primary")

    if submitted:
        try:
            intervals = [int(x) for x in intervals_text.replace(" ", "").split(",") if x]
        except ValueError:
            st.error("Intervals must be whole numbers.")
        else:
            updated = config.model_copy(update={
                "forgetting_curve": curve.model_copy(update={
                    "intervals": intervals,
                    "max_daily_review_minutes": int(max_review),
                    "graduation_count": int(graduation),
                }),
                "general_rules": general.model_copy(update={
                    "buffer_ratio": float(buffer_ratio),
                    "default_pomodoro_work": int(pomo_work),
                    "default_pomodoro_break": int(pomo_break),
                }),
                "day_templates": [
                    t.model_copy(update={"max_review_minutes": int(template_caps.get(t.day_type, t.max_review_minutes))})
                    for t in config.day_templates
                ],
            })
            save_rule_config(state, updated, today, datetime.now(), description.strip() or "Rules updated")
            _persist(state)
            _queue_toast("Rules saved. Future plans were regenerated.")
            st.rerun()

    st.divider()
    st.subheader("Day templates")
    st.dataframe(
        pd.DataFrame([
            {
                "Day type": t.display_name or t.day_type.value,
                "Blocks": ", ".join(b.label for b in t.blocks if b.enabled) or "-",
                "Block minutes": t.total_block_minutes,
                "Review cap": t.max_review_minutes,
            }
            for t in config.day_templates
        ]),
        use_container_width=True,
        hide_index=True,
    )

    st.subheader("Import / export")
    st.download_button(
        "Export rules (JSON)",
        data=export_rule_config(config),
        file_name="rule_config.json",
        mime="application/json",
    )
    uploaded = st.file_uploader("Import rules (JSON)", type=["json"], key="rules_upload")
    if uploaded is not None and st.button("Apply imported rules"):
        try:
            imported = import_rule_config(uploaded.getvalue())
        except RuleConfigError as e:
            st.error(str(e))
        else:
            save_rule_config(state, imported, today, datetime.now(), "Imported rules")
            _persist(state)
            _queue_toast("Rules imported.")
            st.rerun()

    if config.change_log:
        with st.expander("Change log", expanded=False):
            for entry in config.change_log:
                st.write(f"{entry.day.isoformat()}: {entry.description}")

    if st.button("Reset all data"):

        @st.dialog("Reset everything?")
        def _confirm_reset() -> None:
            st.write("This removes the profile, events, history and plans.")
            if st.button("Reset", type="primary"):
                st.session_state.state = reset_state()
                _persist(st.session_state.state)
                _queue_toast("All data reset.")
                st.rerun()

        _confirm_reset()


state = _ensure_session_state()
today = date.today()

st.title("Study Planner")
st.caption("Daily study plans from your exam date, schedule, events and review history.")
_flush_toast()

if "nav_page" not in st.session_state:
    st.session_state.nav_page = "Today"
if state.profile is None:
    st.session_state.nav_page = "Setup"

with st.sidebar:
    st.header("Navigate")
    pages = ["Setup", "Calendar", "Today", "Week", "Rules"]
    page = st.radio("Page", pages, key="nav_page")
    st.caption("Workflow: Setup -> Calendar -> Today")

if page == "Setup":
    render_setup(state, today)
elif page == "Calendar":
    render_calendar(state, today)
elif page == "Today":
    render_today(state, today)
elif page == "Week":
    render_week(state, today)
elif page == "Rules":
    render_rules(state, today)
