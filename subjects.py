from __future__ import annotations
import logging
from enum import Enum
from typing import Dict, List, Optional, Tuple
from pydantic import BaseModel, Field
from models import PomodoroType

logger = logging.getLogger(__name__)


class SubjectCategory(str, Enum):
    ENGLISH = "english"
    MATH = "math"
    JAPANESE = "japanese"
    SCIENCE = "science"
    SOCIAL = "social"
    INFO = "info"
    UNKNOWN = "unknown"


class StudyType(str, Enum):
    THINKING = "thinking"
    MEMORIZATION = "memorization"
    PROCESSING = "processing"
    MIXED = "mixed"


class SubjectInfo(BaseModel):
    id: str
    name: str
    max_score: int = Field(default=100, gt=0)
    exam_minutes: int = 60
    exam_day: int = 1
    study_type: StudyType = StudyType.THINKING
    memorization_ratio: float = Field(default=0.5, ge=0, le=1)
    processing_speed_critical: bool = False
    cramming_effective: bool = False
    recommended_daily_min: int = 20

    @property
    def category(self) -> SubjectCategory:
        return category_for(self.id)


def _subject(id: str, name: str, study_type: StudyType, memorization_ratio: float, **kwargs) -> SubjectInfo:
    return SubjectInfo(
        id=id,
        name=name,
        study_type=study_type,
        memorization_ratio=memorization_ratio,
        **kwargs,
    )


SUBJECTS: List[SubjectInfo] = [
    # Day 1: geography, history, civics
    _subject("geo_ex", "Geography", StudyType.MIXED, 0.5, cramming_effective=True),
    _subject("his_jp", "Japanese History", StudyType.MIXED, 0.6, cramming_effective=True),
    _subject("his_wd", "World History", StudyType.MIXED, 0.6, cramming_effective=True),
    _subject("civ_eth", "Public Affairs & Ethics", StudyType.MIXED, 0.5, cramming_effective=True),
    _subject("civ_pol", "Public Affairs & Politics/Economics", StudyType.MIXED, 0.5, cramming_effective=True),
    _subject("geo_his_civ", "Geography/History/Public Affairs (basic)", StudyType.MIXED, 0.6, cramming_effective=True),
    # Day 1: Japanese, English
    _subject("japanese", "Japanese", StudyType.MIXED, 0.3, max_score=200, exam_minutes=90,
             processing_speed_critical=True),
    _subject("eng_r", "English Reading", StudyType.MIXED, 0.4, exam_minutes=80,
             processing_speed_critical=True, recommended_daily_min=30),
    _subject("eng_l", "English Listening", StudyType.PROCESSING, 0.3,
             processing_speed_critical=True, recommended_daily_min=15),
    # Day 2: science
    _subject("sci_base", "Basic Sciences", StudyType.MIXED, 0.4, exam_day=2, recommended_daily_min=25),
    _subject("physics", "Physics", StudyType.THINKING, 0.2, exam_day=2, recommended_daily_min=25),
    _subject("chemistry", "Chemistry", StudyType.MIXED, 0.5, exam_day=2, recommended_daily_min=25),
    _subject("biology", "Biology", StudyType.MIXED, 0.5, exam_day=2, recommended_daily_min=25),
    _subject("earth_sci", "Earth Science", StudyType.MIXED, 0.4, exam_day=2, recommended_daily_min=25),
    # Day 2: math, informatics
    _subject("math1a", "Math I/A", StudyType.THINKING, 0.2, exam_minutes=70, exam_day=2,
             processing_speed_critical=True, recommended_daily_min=30),
    _subject("math2bc", "Math II/B/C", StudyType.THINKING, 0.2, exam_minutes=70, exam_day=2,
             processing_speed_critical=True, recommended_daily_min=30),
    _subject("info1", "Informatics I", StudyType.MIXED, 0.4, exam_day=2,
             cramming_effective=True, recommended_daily_min=15),
]

SUBJECT_CATEGORIES: Dict[str, SubjectCategory] = {
    "geo_ex": SubjectCategory.SOCIAL,
    "his_jp": SubjectCategory.SOCIAL,
    "his_wd": SubjectCategory.SOCIAL,
    "civ_eth": SubjectCategory.SOCIAL,
    "civ_pol": SubjectCategory.SOCIAL,
    "geo_his_civ": SubjectCategory.SOCIAL,
    "japanese": SubjectCategory.JAPANESE,
    "eng_r": SubjectCategory.ENGLISH,
    "eng_l": SubjectCategory.ENGLISH,
    "sci_base": SubjectCategory.SCIENCE,
    "physics": SubjectCategory.SCIENCE,
    "chemistry": SubjectCategory.SCIENCE,
    "biology": SubjectCategory.SCIENCE,
    "earth_sci": SubjectCategory.SCIENCE,
    "math1a": SubjectCategory.MATH,
    "math2bc": SubjectCategory.MATH,
    "info1": SubjectCategory.INFO,
}

# Foreign language and math get a guaranteed daily minimum, in this order.
CONTINUITY_CRITICAL_IDS: Tuple[str, ...] = ("eng_r", "eng_l", "math1a", "math2bc")


def _validate_catalog() -> Dict[str, SubjectInfo]:
    by_id: Dict[str, SubjectInfo] = {}
    for info in SUBJECTS:
        if info.id in by_id:
            raise ValueError(f"Duplicate subject id in catalog: {info.id}")
        if SUBJECT_CATEGORIES.get(info.id, SubjectCategory.UNKNOWN) == SubjectCategory.UNKNOWN:
            raise ValueError(f"Subject {info.id} has no category mapping")
        by_id[info.id] = info
    missing = set(CONTINUITY_CRITICAL_IDS) - set(by_id)
    if missing:
        raise ValueError(f"Continuity-critical ids missing from catalog: {sorted(missing)}")
    return by_id


_CATALOG = _validate_catalog()


def get_subject(subject_id: str) -> Optional[SubjectInfo]:
    return _CATALOG.get(subject_id)


def subject_or_default(subject_id: str) -> SubjectInfo:
    """
    Catalog entry for subject_id; ids missing from the catalog get a
    thinking-type entry with memorization ratio 0.5 and max score 100.
    """
    info = _CATALOG.get(subject_id)
    if info is not None:
        return info
    logger.warning("Unknown subject id %r, using catalog defaults", subject_id)
    return SubjectInfo(id=subject_id, name=subject_id)


def category_for(subject_id: str) -> SubjectCategory:
    return SUBJECT_CATEGORIES.get(subject_id, SubjectCategory.UNKNOWN)


def is_continuity_critical(subject_id: str) -> bool:
    return subject_id in CONTINUITY_CRITICAL_IDS


def pomodoro_type_for_subject(info: SubjectInfo) -> PomodoroType:
    if info.study_type == StudyType.MEMORIZATION:
        return PomodoroType.MEMORIZATION
    if info.study_type == StudyType.PROCESSING:
        return PomodoroType.PROCESSING
    if info.study_type == StudyType.MIXED:
        return PomodoroType.MEMORIZATION if info.memorization_ratio >= 0.5 else PomodoroType.THINKING
    return PomodoroType.THINKING
