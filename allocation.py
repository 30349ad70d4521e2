from __future__ import annotations
import math
from typing import List, Sequence, Tuple
from pydantic import BaseModel
from models import PhaseName, SelectedSubject
from phase import Phase
from subjects import StudyType, is_continuity_critical, subject_or_default

WEIGHT_DIFFICULTY = 0.30
WEIGHT_SCORE = 0.20
WEIGHT_GROWTH = 0.25
WEIGHT_EFFICIENCY = 0.15
WEIGHT_CONTINUITY = 0.10

MAX_SHARE_PER_SUBJECT = 0.25
MIN_CONTINUITY_MINUTES = 15


class SubjectAllocation(BaseModel):
    subject_id: str
    minutes: int


def raw_score(subject: SelectedSubject, total_max_score: int, phase_name: PhaseName) -> float:
    info = subject_or_default(subject.subject_id)

    difficulty = (6 - subject.difficulty) / 5
    score_weight = info.max_score / max(total_max_score, 1)
    growth = max(0, subject.target_score - subject.current_score) / 100
    if phase_name == PhaseName.FINAL and info.cramming_effective:
        efficiency = 1.2
    elif info.study_type == StudyType.THINKING:
        efficiency = 1.0
    else:
        efficiency = 0.9
    continuity = 1.0 if is_continuity_critical(subject.subject_id) else 0.3

    return (
        WEIGHT_DIFFICULTY * difficulty
        + WEIGHT_SCORE * score_weight
        + WEIGHT_GROWTH * growth
        + WEIGHT_EFFICIENCY * efficiency
        + WEIGHT_CONTINUITY * continuity
    )


def _proportional(scores: Sequence[Tuple[str, float]], available_minutes: int) -> List[int]:
    total = sum(score for _, score in scores)
    # Halves round up.
    return [math.floor(score / total * available_minutes + 0.5) for _, score in scores]


def _capped(minutes: List[int], cap: int) -> List[int]:
    return [min(m, cap) for m in minutes]


def _reconciled(ids: List[str], minutes: List[int], available_minutes: int) -> List[int]:
    diff = available_minutes - sum(minutes)
    if diff == 0:
        return list(minutes)
    target = next((i for i, sid in enumerate(ids) if is_continuity_critical(sid)), 0)
    return [m + diff if i == target else m for i, m in enumerate(minutes)]


def _with_floor(ids: List[str], minutes: List[int]) -> List[int]:
    return [
        max(m, MIN_CONTINUITY_MINUTES) if is_continuity_critical(sid) else m
        for sid, m in zip(ids, minutes)
    ]


def _trimmed(ids: List[str], minutes: List[int], available_minutes: int) -> List[int]:
    """Take the excess back one minute at a time, round-robin over non-critical subjects."""
    result = list(minutes)
    excess = sum(result) - available_minutes
    candidates = [i for i, sid in enumerate(ids) if not is_continuity_critical(sid)]
    cursor = 0
    while excess > 0 and any(result[i] > 0 for i in candidates):
        i = candidates[cursor % len(candidates)]
        cursor += 1
        if result[i] > 0:
            result[i] -= 1
            excess -= 1
    return result


def allocate_from_scores(scores: Sequence[Tuple[str, float]], available_minutes: int) -> List[SubjectAllocation]:
    """
    Turn (subject_id, raw score) pairs into minutes. The order of operations
    is fixed: proportional split, per-subject cap, drift reconciliation onto
    the first continuity-critical subject (or the first subject), continuity
    floor, excess trim, then zero-minute subjects are dropped.
    """
    if not scores or available_minutes <= 0:
        return []

    ids = [sid for sid, _ in scores]
    if sum(score for _, score in scores) <= 0:
        share = available_minutes // len(ids)
        return [SubjectAllocation(subject_id=sid, minutes=share) for sid in ids if share > 0]

    minutes = _proportional(scores, available_minutes)
    minutes = _capped(minutes, int(available_minutes * MAX_SHARE_PER_SUBJECT))
    minutes = _reconciled(ids, minutes, available_minutes)
    minutes = _with_floor(ids, minutes)
    if sum(minutes) > available_minutes:
        minutes = _trimmed(ids, minutes, available_minutes)

    return [
        SubjectAllocation(subject_id=sid, minutes=m)
        for sid, m in zip(ids, minutes)
        if m > 0
    ]


def allocate_time(subjects: List[SelectedSubject], available_minutes: int, phase: Phase) -> List[SubjectAllocation]:
    if not subjects or available_minutes <= 0:
        return []
    total_max_score = sum(subject_or_default(s.subject_id).max_score for s in subjects)
    scores = [(s.subject_id, raw_score(s, total_max_score, phase.name)) for s in subjects]
    return allocate_from_scores(scores, available_minutes)
