from __future__ import annotations
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, ValidationError
from models import DailyPlan, EventDate, StudentProfile, StudyTask
from planner import compute_completion_rate, generate_daily_plan
from rules import RuleConfig, default_rule_config, record_change, sanitize_rule_config, sync_templates_with_subjects
from storage import data_path, load_json, save_json

logger = logging.getLogger(__name__)

STATE_FILE = "state.json"


class AppState(BaseModel):
    profile: Optional[StudentProfile] = None
    events: List[EventDate] = Field(default_factory=list)
    rule_config: RuleConfig = Field(default_factory=default_rule_config)
    completed_tasks: List[StudyTask] = Field(default_factory=list)
    daily_plans: Dict[str, DailyPlan] = Field(default_factory=dict)


def _state_path(path: Path | str | None) -> Path:
    return Path(path) if path is not None else data_path(STATE_FILE)


def load_state(path: Path | str | None = None) -> AppState:
    raw = load_json(_state_path(path), {})
    try:
        return AppState.model_validate(raw)
    except ValidationError:
        logger.warning("Stored state failed validation, starting fresh", exc_info=True)
        return AppState()


def save_state(state: AppState, path: Path | str | None = None) -> None:
    save_json(_state_path(path), state.model_dump(mode="json"))


def reset_state() -> AppState:
    return AppState()


def regenerate_plan(state: AppState, day: date) -> DailyPlan:
    """Recompute the plan for day and replace the cached entry."""
    plan = generate_daily_plan(
        state.profile,
        state.events,
        state.completed_tasks,
        day,
        state.rule_config,
    )
    state.daily_plans[plan.key] = plan
    return plan


def get_plan(state: AppState, day: date) -> DailyPlan:
    plan = state.daily_plans.get(day.isoformat())
    if plan is None:
        plan = regenerate_plan(state, day)
    return plan


def invalidate_future_plans(state: AppState, today: date) -> List[str]:
    """Drop cached plans dated after today. Today and past plans stay as history."""
    cutoff = today.isoformat()
    dropped = sorted(key for key in state.daily_plans if key > cutoff)
    for key in dropped:
        del state.daily_plans[key]
    return dropped


def _find_task(state: AppState, task_id: str) -> tuple[str, int]:
    for key, plan in state.daily_plans.items():
        for index, task in enumerate(plan.tasks):
            if task.id == task_id:
                return key, index
    raise KeyError(task_id)


def complete_task(state: AppState, task_id: str, actual_minutes: int, completed_at: datetime) -> StudyTask:
    """Mark a planned task done and add it to the completed history."""
    key, index = _find_task(state, task_id)
    plan = state.daily_plans[key]
    task = plan.tasks[index]
    if task.completed:
        return task

    done = task.model_copy(update={
        "completed": True,
        "actual_minutes": max(0, actual_minutes),
        "completed_at": completed_at,
    })
    tasks = list(plan.tasks)
    tasks[index] = done
    updated = plan.model_copy(update={"tasks": tasks})
    state.daily_plans[key] = updated.model_copy(update={"completion_rate": compute_completion_rate(updated)})
    # A regenerated plan reuses task ids; history keeps one entry per id.
    if not any(t.id == task_id and t.completed for t in state.completed_tasks):
        state.completed_tasks.append(done)
    return done


def skip_task(state: AppState, task_id: str) -> None:
    key, index = _find_task(state, task_id)
    plan = state.daily_plans[key]
    if plan.tasks[index].completed:
        raise ValueError(f"Task {task_id} is already completed.")
    tasks = [t for i, t in enumerate(plan.tasks) if i != index]
    updated = plan.model_copy(update={"tasks": tasks})
    state.daily_plans[key] = updated.model_copy(update={"completion_rate": compute_completion_rate(updated)})


def save_rule_config(
    state: AppState,
    config: RuleConfig,
    today: date,
    now: datetime,
    description: str = "Rules updated",
) -> DailyPlan:
    """Store a new rule snapshot, drop future plans and rebuild today's."""
    state.rule_config = record_change(sanitize_rule_config(config), description, now)
    dropped = invalidate_future_plans(state, today)
    logger.info("Rule config saved (%s); %d future plans discarded", description, len(dropped))
    return regenerate_plan(state, today)


def update_profile(state: AppState, profile: StudentProfile, today: date) -> DailyPlan:
    for selected in profile.subjects:
        selected.check_against_catalog()
    state.profile = profile
    state.rule_config = sync_templates_with_subjects(
        state.rule_config, [s.subject_id for s in profile.subjects]
    )
    invalidate_future_plans(state, today)
    return regenerate_plan(state, today)


def set_events(state: AppState, events: List[EventDate], today: date) -> DailyPlan:
    state.events = sorted(events, key=lambda e: (e.start, e.id))
    invalidate_future_plans(state, today)
    return regenerate_plan(state, today)
