from __future__ import annotations
import datetime as dt
import math
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

class Problem(BaseModel):
    type: str = "about:blank"
    title: str
    status: int
    detail: str | None = None
    code: str = "unknown_error"
    instance: str | None = None

def _positive_int(v: Any) -> int | None:
    # Spreadsheet cells arrive as "", "120", 120.0 or junk; anything that is
    # not a positive number counts as absent.
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, str):
        v = v.strip()
        if not v:
            return None
    try:
        n = int(float(v))
    except (TypeError, ValueError, OverflowError):
        return None
    return n if n > 0 else None

def _positive_float(v: Any) -> float | None:
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, str):
        v = v.strip()
        if not v:
            return None
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) and f > 0 else None

def parse_record_date(v: Any) -> Any:
    if isinstance(v, dt.datetime):
        return v.date()
    if not isinstance(v, str):
        return v
    v = v.strip()
    if not v:
        return None
    if "/" in v:
        y, m, d = (int(p) for p in v.split("/")[:3])
        return dt.date(y, m, d)
    if len(v) > 10 and v[10] in "T ":
        return v[:10]
    return v

class HealthRecord(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    date: dt.date
    time: Optional[str] = None
    systolic: Optional[int] = None
    diastolic: Optional[int] = None
    temperature: Optional[float] = None

    @field_validator("date", mode="before")
    @classmethod
    def _coerce_date(cls, v):
        return parse_record_date(v)

    @field_validator("time", mode="before")
    @classmethod
    def _coerce_time(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("systolic", "diastolic", mode="before")
    @classmethod
    def _coerce_pressure(cls, v):
        return _positive_int(v)

    @field_validator("temperature", mode="before")
    @classmethod
    def _coerce_temperature(cls, v):
        return _positive_float(v)

    @property
    def has_bp(self) -> bool:
        return self.systolic is not None and self.diastolic is not None

    @property
    def has_temperature(self) -> bool:
        return self.temperature is not None

class HealthNotice(HealthRecord):
    """A single freshly entered record, sent to the family right away."""
    date: Optional[dt.date] = None
    elder_name: str = Field(..., alias="elderName", min_length=1)
    notes: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

class Elder(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, str_strip_whitespace=True)

    name: str
    family_contact_id: Optional[str] = Field(None, alias="familyLineId")

    @field_validator("family_contact_id", mode="before")
    @classmethod
    def _blank_contact(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None

class LineRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, str_strip_whitespace=True)

    action: Optional[str] = None
    user_id: Optional[str] = Field(None, alias="userId")
    elder_name: Optional[str] = Field(None, alias="elderName")
    records: Optional[list[HealthRecord]] = None
    health_data: Optional[HealthNotice] = Field(None, alias="healthData")
    events: Optional[list[dict[str, Any]]] = None
    force_send: bool = Field(False, alias="forceSend")
    secret: Optional[str] = None
