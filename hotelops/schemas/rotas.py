import datetime as dt
from typing import Any, Literal, Optional

from pydantic import Field, field_validator

from .common import CamelModel


ShiftType = Literal["morning", "afternoon", "night", "custom"]

_TIME_FMT = "%H:%M"


def to_day(v: Any) -> Any:
    # Rota entries are per day; drop any time-of-day a client sends
    if isinstance(v, dt.datetime):
        return v.date()
    if isinstance(v, str) and len(v) > 10 and v[4:5] == "-":
        return v[:10]
    return v


def check_time(v: Optional[str]) -> Optional[str]:
    if v is None or v == "":
        return None
    try:
        dt.datetime.strptime(v, _TIME_FMT)
    except ValueError:
        raise ValueError("Time must be HH:MM")
    return v


class RotaCreate(CamelModel):
    employee: Any
    company: Any = None
    date: dt.date
    shift_type: ShiftType
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("date", mode="before")
    @classmethod
    def day_only(cls, v):
        return to_day(v)

    @field_validator("start_time", "end_time")
    @classmethod
    def valid_times(cls, v):
        return check_time(v)


class RotaUpdate(CamelModel):
    employee: Any = None
    date: Optional[dt.date] = None
    shift_type: Optional[ShiftType] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("date", mode="before")
    @classmethod
    def day_only(cls, v):
        return to_day(v)

    @field_validator("start_time", "end_time")
    @classmethod
    def valid_times(cls, v):
        return check_time(v)
