from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterable, Optional, Sequence

from daycare.classifier import BPCategory, classify_bp, classify_temperature, is_fever
from daycare.schemas import HealthRecord

TREND_SAMPLE = 3
TREND_DELTA = 5


class Trend(str, Enum):
    RISING = "rising"
    FALLING = "falling"
    STABLE = "stable"
    INSUFFICIENT_DATA = "insufficient-data"


@dataclass(frozen=True)
class AggregateStats:
    record_count: int
    bp_count: int
    temperature_count: int
    average_systolic: int
    average_diastolic: int
    average_temperature: float
    max_bp_record: Optional[HealthRecord]
    min_bp_record: Optional[HealthRecord]
    high_bp_count: int
    low_bp_count: int
    fever_count: int
    normal_count: int
    trend: Trend
    first_date: Optional[date]
    last_date: Optional[date]
    latest: Optional[HealthRecord]


def sort_records(records: Iterable[HealthRecord]) -> list[HealthRecord]:
    """Oldest first; records sharing a date keep their input order."""
    return sorted(records, key=lambda r: r.date)


def chart_window(records: Iterable[HealthRecord], size: int = 14) -> list[HealthRecord]:
    ordered = sort_records(records)
    return ordered[-size:] if size > 0 else []


def recent_since(records: Iterable[HealthRecord], today: date, days: int = 14) -> list[HealthRecord]:
    cutoff = today - timedelta(days=days)
    return [r for r in records if cutoff <= r.date <= today]


def _round_half_up(value: float, places: int) -> Decimal:
    exp = Decimal(1).scaleb(-places)
    return Decimal(str(value)).quantize(exp, rounding=ROUND_HALF_UP)


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _trend(bp_records: Sequence[HealthRecord]) -> Trend:
    if len(bp_records) < TREND_SAMPLE:
        return Trend.INSUFFICIENT_DATA
    older = _mean([r.systolic for r in bp_records[:TREND_SAMPLE]])
    recent = _mean([r.systolic for r in bp_records[-TREND_SAMPLE:]])
    delta = recent - older
    if delta > TREND_DELTA:
        return Trend.RISING
    if delta < -TREND_DELTA:
        return Trend.FALLING
    return Trend.STABLE


def aggregate(records: Iterable[HealthRecord]) -> AggregateStats:
    ordered = sort_records(records)
    bp = [r for r in ordered if r.has_bp]
    temps = [r for r in ordered if r.has_temperature]

    max_bp = min_bp = None
    for r in bp:
        if max_bp is None or r.systolic > max_bp.systolic:
            max_bp = r
        if min_bp is None or r.systolic < min_bp.systolic:
            min_bp = r

    bp_categories = [classify_bp(r.systolic, r.diastolic) for r in bp]
    high = bp_categories.count(BPCategory.HIGH)
    low = bp_categories.count(BPCategory.LOW)
    fever = sum(1 for r in temps if is_fever(classify_temperature(r.temperature)))

    return AggregateStats(
        record_count=len(ordered),
        bp_count=len(bp),
        temperature_count=len(temps),
        average_systolic=int(_round_half_up(_mean([r.systolic for r in bp]), 0)),
        average_diastolic=int(_round_half_up(_mean([r.diastolic for r in bp]), 0)),
        average_temperature=float(_round_half_up(_mean([r.temperature for r in temps]), 1)),
        max_bp_record=max_bp,
        min_bp_record=min_bp,
        high_bp_count=high,
        low_bp_count=low,
        fever_count=fever,
        normal_count=len(bp) - high - low,
        trend=_trend(bp),
        first_date=ordered[0].date if ordered else None,
        last_date=ordered[-1].date if ordered else None,
        latest=ordered[-1] if ordered else None,
    )
