from __future__ import annotations
from datetime import date
from typing import Dict, List, Optional
from pydantic import BaseModel, Field
from models import PhaseName
from rules import DEFAULT_PHASE_BANDS, PhaseBand


class Phase(BaseModel):
    name: PhaseName
    days_left: int
    time_allocation: Dict[str, float] = Field(default_factory=dict)


def days_until(exam_date: date, target_date: date) -> int:
    return max(0, (exam_date - target_date).days)


def band_for_days_left(days_left: int, bands: Optional[List[PhaseBand]] = None) -> PhaseBand:
    """
    First band with min <= days_left < max wins. Day counts no band covers
    fall through to the last configured band.
    """
    bands = bands or DEFAULT_PHASE_BANDS
    for band in bands:
        if band.contains(days_left):
            return band
    return bands[-1]


def detect_phase(exam_date: date, target_date: date, bands: Optional[List[PhaseBand]] = None) -> Phase:
    days_left = days_until(exam_date, target_date)
    band = band_for_days_left(days_left, bands)
    return Phase(
        name=band.name,
        days_left=days_left,
        time_allocation=dict(band.time_allocation),
    )
