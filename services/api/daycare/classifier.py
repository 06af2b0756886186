"""Blood-pressure and body-temperature status classification.

One threshold table is used everywhere a reading is judged: the anomaly
counts, the colors on the Flex card and the icons on a single-record
notice. Blood pressure follows the three-tier table (low / normal / high);
the 120/80 "elevated" tier shown on the entry form is not used for reports.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any


class BPCategory(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    UNKNOWN = "unknown"


class TempCategory(str, Enum):
    LOW = "low"
    SLIGHTLY_LOW = "slightly-low"
    NORMAL = "normal"
    MILD_FEVER = "mild-fever"
    FEVER = "fever"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Status:
    category: str
    label: str
    color: str
    icon: str


BP_LOW_SYSTOLIC = 90
BP_LOW_DIASTOLIC = 60
BP_HIGH_SYSTOLIC = 140
BP_HIGH_DIASTOLIC = 90

TEMP_LOW = 35.0
TEMP_NORMAL_FROM = 36.0
TEMP_FEVER_FROM = 37.5
TEMP_HIGH_FEVER_ABOVE = 38.0

BP_STATUS = {
    BPCategory.LOW: Status(BPCategory.LOW.value, "偏低", "#3498DB", "🔵"),
    BPCategory.NORMAL: Status(BPCategory.NORMAL.value, "正常", "#27AE60", "🟢"),
    BPCategory.HIGH: Status(BPCategory.HIGH.value, "偏高", "#E74C3C", "🔴"),
    BPCategory.UNKNOWN: Status(BPCategory.UNKNOWN.value, "-", "#666666", ""),
}

TEMP_STATUS = {
    TempCategory.LOW: Status(TempCategory.LOW.value, "偏低", "#3498DB", "🔵"),
    TempCategory.SLIGHTLY_LOW: Status(TempCategory.SLIGHTLY_LOW.value, "稍低", "#5DADE2", "🔵"),
    TempCategory.NORMAL: Status(TempCategory.NORMAL.value, "正常", "#27AE60", "🟢"),
    TempCategory.MILD_FEVER: Status(TempCategory.MILD_FEVER.value, "微燒", "#F39C12", "🟡"),
    TempCategory.FEVER: Status(TempCategory.FEVER.value, "發燒", "#E74C3C", "🔴"),
    TempCategory.UNKNOWN: Status(TempCategory.UNKNOWN.value, "-", "#666666", ""),
}


def _number(v: Any) -> float | None:
    if v is None or isinstance(v, bool):
        return None
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def classify_bp(systolic: Any, diastolic: Any) -> BPCategory:
    s, d = _number(systolic), _number(diastolic)
    if s is None or d is None:
        return BPCategory.UNKNOWN
    if s < BP_LOW_SYSTOLIC or d < BP_LOW_DIASTOLIC:
        return BPCategory.LOW
    if s >= BP_HIGH_SYSTOLIC or d >= BP_HIGH_DIASTOLIC:
        return BPCategory.HIGH
    return BPCategory.NORMAL


def classify_temperature(temperature: Any) -> TempCategory:
    t = _number(temperature)
    if t is None:
        return TempCategory.UNKNOWN
    if t < TEMP_LOW:
        return TempCategory.LOW
    if t < TEMP_NORMAL_FROM:
        return TempCategory.SLIGHTLY_LOW
    if t < TEMP_FEVER_FROM:
        return TempCategory.NORMAL
    if t <= TEMP_HIGH_FEVER_ABOVE:
        return TempCategory.MILD_FEVER
    return TempCategory.FEVER


def bp_status(systolic: Any, diastolic: Any) -> Status:
    return BP_STATUS[classify_bp(systolic, diastolic)]


def temperature_status(temperature: Any) -> Status:
    return TEMP_STATUS[classify_temperature(temperature)]


def is_fever(category: TempCategory) -> bool:
    return category in (TempCategory.MILD_FEVER, TempCategory.FEVER)
