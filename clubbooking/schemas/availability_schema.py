"""Schedule, slot and availability data models."""

import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from clubbooking.timeutils import (
    MINUTES_PER_DAY,
    day_of_week,
    minutes_to_time,
    time_to_minutes,
)

DAYS_PER_WEEK = 7


class TimeSlot(BaseModel):
    """Half-open interval ``[start, end)`` in minutes since midnight."""

    model_config = ConfigDict(frozen=True)

    start: int = Field(ge=0, lt=MINUTES_PER_DAY)
    end: int = Field(gt=0, le=MINUTES_PER_DAY)

    @model_validator(mode="after")
    def _end_after_start(self) -> "TimeSlot":
        if self.end <= self.start:
            raise ValueError(f"Slot end ({self.end}) must be after start ({self.start})")
        return self

    @classmethod
    def from_times(cls, start: str, end: str) -> "TimeSlot":
        """Build a slot from two ``HH:MM`` strings."""
        return cls(start=time_to_minutes(start), end=time_to_minutes(end))

    @property
    def duration(self) -> int:
        return self.end - self.start

    def label(self) -> str:
        return f"{minutes_to_time(self.start)}-{minutes_to_time(self.end)}"


class WorkingHours(BaseModel):
    """Opening hours for one day of the week (0 = Sunday)."""

    model_config = ConfigDict(frozen=True)

    day_of_week: int = Field(ge=0, le=6)
    is_open: bool = True
    open_time: str = "08:00"
    close_time: str = "20:00"

    @model_validator(mode="after")
    def _check_times(self) -> "WorkingHours":
        open_minutes = time_to_minutes(self.open_time)
        close_minutes = time_to_minutes(self.close_time)
        if self.is_open and close_minutes <= open_minutes:
            raise ValueError(
                f"close_time {self.close_time} must be after open_time {self.open_time}"
            )
        return self

    def as_slot(self) -> Optional[TimeSlot]:
        """The open interval, or None on a closed day."""
        if not self.is_open:
            return None
        return TimeSlot.from_times(self.open_time, self.close_time)


class WeeklySchedule(BaseModel):
    """Exactly seven WorkingHours, ordered Sunday..Saturday."""

    model_config = ConfigDict(frozen=True)

    days: list[WorkingHours]

    @model_validator(mode="after")
    def _one_entry_per_day(self) -> "WeeklySchedule":
        if len(self.days) != DAYS_PER_WEEK:
            raise ValueError(f"A weekly schedule needs 7 days, got {len(self.days)}")
        order = [d.day_of_week for d in self.days]
        if order != list(range(DAYS_PER_WEEK)):
            raise ValueError(f"Schedule days must be ordered 0..6, got {order}")
        return self

    @classmethod
    def uniform(
        cls, open_time: str, close_time: str, closed_days: tuple[int, ...] = ()
    ) -> "WeeklySchedule":
        """Same hours every day, except the listed closed days."""
        return cls(
            days=[
                WorkingHours(
                    day_of_week=day,
                    is_open=day not in closed_days,
                    open_time=open_time,
                    close_time=close_time,
                )
                for day in range(DAYS_PER_WEEK)
            ]
        )

    def for_day(self, day: int) -> WorkingHours:
        return self.days[day]

    def for_date(self, value: dt.date) -> WorkingHours:
        return self.days[day_of_week(value)]


class AvailabilityQuery(BaseModel):
    """Can ``subject_id`` be booked for ``requested_slot`` on ``date``?"""

    subject_id: str
    date: dt.date
    schedule: WeeklySchedule
    requested_slot: Optional[TimeSlot] = None
    existing_bookings: list[TimeSlot] = Field(default_factory=list)
    buffer_minutes: int = Field(default=0, ge=0)


class DayAvailability(BaseModel):
    """Open interval of a day and the free sub-intervals left in it."""

    is_open: bool
    open_slot: Optional[TimeSlot] = None
    free_slots: list[TimeSlot] = Field(default_factory=list)


class SlotCheck(BaseModel):
    """Availability verdict for a single requested slot."""

    available: bool
    reason: Optional[str] = None


class SlotOption(BaseModel):
    """One candidate start time in a day's booking grid."""

    time: str
    slot: TimeSlot
    available: bool
