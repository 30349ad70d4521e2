from __future__ import annotations
import logging
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional
from pydantic import BaseModel, Field, ValidationError
from models import DayType, PhaseName, PomodoroType
from subjects import SubjectCategory, category_for

logger = logging.getLogger(__name__)

CHANGE_LOG_LIMIT = 10


class RuleConfigError(ValueError):
    """Raised when an imported rule configuration fails the structural check."""

    def __init__(self, message: str, errors: Optional[List[dict]] = None):
        super().__init__(message)
        self.errors = errors or []


class PomodoroConfig(BaseModel):
    work_minutes: int
    break_minutes: int
    long_break_after: int
    long_break_minutes: int
    max_daily_sets: Optional[int] = None


# exam_practice runs for the exam length; 80 is the default display value.
POMODORO_CONFIGS: Dict[PomodoroType, PomodoroConfig] = {
    PomodoroType.THINKING: PomodoroConfig(
        work_minutes=30, break_minutes=7, long_break_after=3, long_break_minutes=20, max_daily_sets=4
    ),
    PomodoroType.MEMORIZATION: PomodoroConfig(
        work_minutes=20, break_minutes=5, long_break_after=4, long_break_minutes=15, max_daily_sets=6
    ),
    PomodoroType.PROCESSING: PomodoroConfig(
        work_minutes=25, break_minutes=5, long_break_after=4, long_break_minutes=15, max_daily_sets=4
    ),
    PomodoroType.EXAM_PRACTICE: PomodoroConfig(
        work_minutes=80, break_minutes=10, long_break_after=1, long_break_minutes=10, max_daily_sets=1
    ),
}


class BlockConfig(BaseModel):
    id: str
    subject_category: SubjectCategory
    duration_minutes: int = 90
    pomodoro_work_minutes: int = 30
    pomodoro_break_minutes: int = 7
    order: int = 0
    label: str = ""
    enabled: bool = True


class DayTemplateConfig(BaseModel):
    day_type: DayType
    display_name: str = ""
    description: str = ""
    blocks: List[BlockConfig] = Field(default_factory=list)
    max_review_minutes: int = 30

    @property
    def total_block_minutes(self) -> int:
        return sum(b.duration_minutes for b in self.blocks if b.enabled)


class PhaseContentConfig(BaseModel):
    subject_category: SubjectCategory
    phase: PhaseName
    contents: List[str] = Field(default_factory=list)


class ForgettingCurveConfig(BaseModel):
    intervals: List[int] = Field(default_factory=lambda: [1, 3, 7, 14, 30])
    max_daily_review_minutes: int = 45
    graduation_count: int = 3


class GeneralRules(BaseModel):
    min_block_minutes: int = 30
    max_block_minutes: int = 120
    default_pomodoro_work: int = 30
    default_pomodoro_break: int = 7
    science_rotation: bool = True
    social_rotation: bool = True
    math_alternate: bool = True
    buffer_ratio: float = 0.15


class PhaseBand(BaseModel):
    name: PhaseName
    min_days_left: int
    max_days_left: Optional[int] = None  # None = unbounded
    description: str = ""
    time_allocation: Dict[str, float] = Field(default_factory=dict)

    def contains(self, days_left: int) -> bool:
        if days_left < self.min_days_left:
            return False
        return self.max_days_left is None or days_left < self.max_days_left


class ChangeLogEntry(BaseModel):
    day: date
    description: str


class RuleConfig(BaseModel):
    version: int = 4
    day_templates: List[DayTemplateConfig] = Field(default_factory=list)
    phase_contents: List[PhaseContentConfig] = Field(default_factory=list)
    forgetting_curve: ForgettingCurveConfig = Field(default_factory=ForgettingCurveConfig)
    general_rules: GeneralRules = Field(default_factory=GeneralRules)
    phase_bands: List[PhaseBand] = Field(default_factory=list)
    updated_at: Optional[datetime] = None
    change_log: List[ChangeLogEntry] = Field(default_factory=list)

    def day_template(self, day_type: DayType) -> Optional[DayTemplateConfig]:
        for template in self.day_templates:
            if template.day_type == day_type:
                return template
        return None

    def phase_content(self, category: SubjectCategory, phase: PhaseName) -> List[str]:
        for entry in self.phase_contents:
            if entry.subject_category == category and entry.phase == phase:
                return entry.contents
        return []


DEFAULT_PHASE_BANDS: List[PhaseBand] = [
    PhaseBand(
        name=PhaseName.FOUNDATION,
        min_days_left=120,
        description="Full understanding of textbook material and core knowledge",
        time_allocation={"foundation": 0.6, "practice": 0.25, "review": 0.15},
    ),
    PhaseBand(
        name=PhaseName.PRACTICE,
        min_days_left=60,
        max_days_left=120,
        description="Build speed and accuracy on exam-format problems",
        time_allocation={
            "foundation": 0.2,
            "exam_format_practice": 0.5,
            "review": 0.2,
            "weak_points": 0.1,
        },
    ),
    PhaseBand(
        name=PhaseName.FINAL,
        min_days_left=0,
        max_days_left=30,
        description="Maximise score with full mock exams",
        time_allocation={
            "mock_exam_practice": 0.5,
            "final_weak_points": 0.25,
            "memorization_final_check": 0.25,
        },
    ),
]


def _block(category: SubjectCategory, minutes: int, order: int, label: str) -> BlockConfig:
    return BlockConfig(
        id=f"{category.value}-{order}",
        subject_category=category,
        duration_minutes=minutes,
        order=order,
        label=label,
    )


def _template(day_type: DayType, name: str, description: str, blocks: List[BlockConfig],
              max_review_minutes: int = 30) -> DayTemplateConfig:
    return DayTemplateConfig(
        day_type=day_type,
        display_name=name,
        description=description,
        blocks=blocks,
        max_review_minutes=max_review_minutes,
    )


def _all_subject_blocks(long_science: bool = False) -> List[BlockConfig]:
    blocks = [
        _block(SubjectCategory.ENGLISH, 90, 1, "English 1.5h"),
        _block(SubjectCategory.MATH, 90, 2, "Math 1.5h"),
        _block(SubjectCategory.JAPANESE, 90, 3, "Japanese 1.5h"),
        _block(SubjectCategory.SCIENCE, 90 if long_science else 60, 4, "Science"),
        _block(SubjectCategory.SOCIAL, 90 if long_science else 60, 5, "Social studies"),
    ]
    if long_science:
        blocks.append(_block(SubjectCategory.INFO, 30, 6, "Informatics 0.5h"))
    return blocks


def _default_phase_contents() -> List[PhaseContentConfig]:
    table = {
        SubjectCategory.ENGLISH: (
            ["Vocabulary drill", "Grammar and close reading", "Listening basics"],
            ["Exam-format vocabulary", "Exam-format long reading", "Exam-format listening"],
            ["Past paper (reading)", "Speed reading and pacing", "Past paper (listening)"],
        ),
        SubjectCategory.MATH: (
            ["Basic problem practice"],
            ["Timed exam-format practice"],
            ["Past paper practice"],
        ),
        SubjectCategory.JAPANESE: (
            ["Modern prose reading basics", "Classical vocabulary and grammar", "Kanbun syntax drill"],
            ["Exam-format modern prose", "Exam-format classical", "Exam-format kanbun"],
            ["Past paper modern prose", "Past paper classical", "Past paper kanbun"],
        ),
        SubjectCategory.SCIENCE: (
            ["Basic problem practice"],
            ["Exam-format practice"],
            ["Past paper practice"],
        ),
        SubjectCategory.SOCIAL: (
            ["Textbook review and flash questions"],
            ["Exam-format practice"],
            ["Past paper and final memorization check"],
        ),
        SubjectCategory.INFO: (
            ["Fundamentals (binary, logic circuits)"],
            ["Programming problem practice"],
            ["Predicted-question practice"],
        ),
    }
    phases = (PhaseName.FOUNDATION, PhaseName.PRACTICE, PhaseName.FINAL)
    return [
        PhaseContentConfig(subject_category=category, phase=phase, contents=list(contents))
        for category, per_phase in table.items()
        for phase, contents in zip(phases, per_phase)
    ]


def default_rule_config() -> RuleConfig:
    english_math = [
        _block(SubjectCategory.ENGLISH, 90, 1, "English 1.5h"),
        _block(SubjectCategory.MATH, 90, 2, "Math 1.5h"),
    ]
    return RuleConfig(
        day_templates=[
            _template(DayType.WEEKDAY_CLUB, "Weekday with club", "Club day: English and math only",
                      english_math, max_review_minutes=20),
            _template(DayType.WEEKDAY_NO_CLUB, "Weekday without club", "English and math focus",
                      [b.model_copy() for b in english_math]),
            _template(DayType.WEEKEND_HOLIDAY, "Weekend / holiday", "Balanced study across subjects",
                      _all_subject_blocks()),
            _template(DayType.SUMMER_CLUB, "Summer break with club", "All subjects around club practice",
                      _all_subject_blocks()),
            _template(DayType.SUMMER_NO_CLUB, "Summer break without club", "All subjects, long blocks",
                      _all_subject_blocks(long_science=True)),
            _template(DayType.MATCH_DAY, "Match day", "Light memorization check only", [],
                      max_review_minutes=60),
            _template(DayType.EVENT_DAY, "Event day", "Minimal review only", []),
        ],
        phase_contents=_default_phase_contents(),
        phase_bands=[band.model_copy(deep=True) for band in DEFAULT_PHASE_BANDS],
    )


DEFAULT_RULE_CONFIG = default_rule_config()


def work_minutes_for(pomodoro_type: PomodoroType, rules: Optional[RuleConfig] = None) -> int:
    config = POMODORO_CONFIGS.get(pomodoro_type)
    if config is not None:
        return config.work_minutes
    return (rules or DEFAULT_RULE_CONFIG).general_rules.default_pomodoro_work


def break_minutes_for(pomodoro_type: PomodoroType, rules: Optional[RuleConfig] = None) -> int:
    config = POMODORO_CONFIGS.get(pomodoro_type)
    if config is not None:
        return config.break_minutes
    return (rules or DEFAULT_RULE_CONFIG).general_rules.default_pomodoro_break


def sanitize_rule_config(config: RuleConfig) -> RuleConfig:
    """
    Return a copy of config clamped to the nearest valid values.

    - intervals below one day are dropped (an empty list schedules no reviews)
    - graduation count is at least 2
    - review caps are never negative
    - buffer ratio stays within [0, 0.5]
    - empty phase bands are dropped; no bands at all restores the defaults
    """
    curve = config.forgetting_curve
    intervals = [i for i in curve.intervals if i >= 1]
    sanitized_curve = curve.model_copy(update={
        "intervals": intervals,
        "graduation_count": max(2, curve.graduation_count),
        "max_daily_review_minutes": max(0, curve.max_daily_review_minutes),
    })
    if sanitized_curve != curve:
        logger.warning("Forgetting-curve settings clamped: %s -> %s", curve, sanitized_curve)

    rules = config.general_rules
    sanitized_rules = rules.model_copy(update={
        "buffer_ratio": min(0.5, max(0.0, rules.buffer_ratio)),
    })

    bands = [
        band for band in config.phase_bands
        if band.max_days_left is None or band.min_days_left < band.max_days_left
    ]
    if not bands:
        bands = [band.model_copy(deep=True) for band in DEFAULT_PHASE_BANDS]

    templates = [
        t.model_copy(update={"max_review_minutes": max(0, t.max_review_minutes)})
        for t in config.day_templates
    ]

    return config.model_copy(update={
        "forgetting_curve": sanitized_curve,
        "general_rules": sanitized_rules,
        "phase_bands": bands,
        "day_templates": templates,
    })


def import_rule_config(text: str | bytes) -> RuleConfig:
    try:
        config = RuleConfig.model_validate_json(text)
    except ValidationError as e:
        raise RuleConfigError("Rule configuration is malformed.", e.errors()) from e

    problems = []
    curve = config.forgetting_curve
    if not curve.intervals:
        problems.append("forgetting_curve.intervals must not be empty")
    if any(i < 1 for i in curve.intervals):
        problems.append("forgetting_curve.intervals must all be >= 1 day")
    if curve.graduation_count < 2:
        problems.append("forgetting_curve.graduation_count must be >= 2")
    if curve.max_daily_review_minutes < 0:
        problems.append("forgetting_curve.max_daily_review_minutes must be >= 0")
    if problems:
        raise RuleConfigError("; ".join(problems), [{"msg": p} for p in problems])
    return config


def export_rule_config(config: RuleConfig) -> str:
    return config.model_dump_json(indent=2)


def record_change(config: RuleConfig, description: str, when: datetime) -> RuleConfig:
    """Stamp updated_at and prepend a change-log entry, keeping the most recent ones."""
    entry = ChangeLogEntry(day=when.date(), description=description)
    log = [entry] + list(config.change_log)
    return config.model_copy(update={
        "updated_at": when,
        "change_log": log[:CHANGE_LOG_LIMIT],
    })


def sync_templates_with_subjects(config: RuleConfig, subject_ids: Iterable[str]) -> RuleConfig:
    """Disable template blocks whose subject category has no selected subject."""
    selected = {category_for(sid) for sid in subject_ids}
    templates = []
    for template in config.day_templates:
        blocks = [
            b if b.subject_category in selected else b.model_copy(update={"enabled": False})
            for b in template.blocks
        ]
        templates.append(template.model_copy(update={"blocks": blocks}))
    return config.model_copy(update={"day_templates": templates})
