"""Workload domain schemas"""

import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
BLOCK_SOURCES = ["manual", "google", "microsoft"]


class ScheduleDay(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6)  # 0 = Monday
    is_working_day: bool = True
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    available_hours: float = Field(8, ge=0, le=24)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v):
        if v is not None and not TIME_PATTERN.match(v):
            raise ValueError("Times must be HH:MM")
        return v


class ScheduleUpdate(BaseModel):
    days: list[ScheduleDay] = Field(..., min_length=1, max_length=7)

    @field_validator("days")
    @classmethod
    def unique_days(cls, v):
        if len({d.day_of_week for d in v}) != len(v):
            raise ValueError("Each weekday may appear only once")
        return v


class ScheduleDayResponse(BaseModel):
    day_of_week: int
    is_working_day: bool
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    available_hours: float

    class Config:
        from_attributes = True


class CalendarBlockCreate(BaseModel):
    staff_id: Optional[int] = None
    title: Optional[str] = Field(None, max_length=255)
    start_time: datetime
    end_time: datetime
    is_all_day: bool = False

    @model_validator(mode="after")
    def check_range(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class CalendarBlockUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=255)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    is_all_day: Optional[bool] = None


class CalendarBlockResponse(BaseModel):
    id: int
    staff_id: int
    title: Optional[str] = None
    start_time: datetime
    end_time: datetime
    is_all_day: bool
    source: str
    external_id: Optional[str] = None

    class Config:
        from_attributes = True
