"""
Availability checks for staff members and facility resources.

A subject is free for a slot when the slot fits inside the day's
operating hours and does not touch any existing booking widened by the
buffer. All inputs are snapshots supplied by the caller; nothing here
reads or writes storage.
"""

from datetime import date, datetime, time, timedelta
from typing import Callable, Optional

from clubbooking.config import BookingConfig, settings
from clubbooking.logging_context import get_request_logger
from clubbooking.schemas.availability_schema import (
    AvailabilityQuery,
    DayAvailability,
    SlotCheck,
    SlotOption,
    TimeSlot,
    WeeklySchedule,
)
from clubbooking.timeutils import (
    minutes_to_time,
    ranges_overlap,
    slot_contains,
)

logger = get_request_logger(__name__)

REASON_CLOSED = "Closed on this day"
REASON_OUTSIDE_HOURS = "Outside operating hours"
REASON_CONFLICT = "Conflicts with an existing booking"


def _starts_at(day: date, slot: TimeSlot) -> datetime:
    hours, minutes = divmod(slot.start, 60)
    return datetime.combine(day, time(hours, minutes))


def _subtract(free: list[TimeSlot], start: int, end: int) -> list[TimeSlot]:
    """Remove ``[start, end)`` from every interval in ``free``."""
    block = TimeSlot(start=start, end=end)
    remaining: list[TimeSlot] = []
    for slot in free:
        if not ranges_overlap(slot, block):
            remaining.append(slot)
            continue
        if slot.start < start:
            remaining.append(TimeSlot(start=slot.start, end=start))
        if end < slot.end:
            remaining.append(TimeSlot(start=end, end=slot.end))
    return remaining


class AvailabilityService:
    """Answers whether a subject is free, and which parts of a day are free."""

    def __init__(self, config: Optional[BookingConfig] = None) -> None:
        self._config = config or settings.booking

    def default_schedule(self) -> WeeklySchedule:
        """Every day open for the configured default hours."""
        return WeeklySchedule.uniform(
            self._config.default_open_time, self._config.default_close_time
        )

    def check_availability(self, query: AvailabilityQuery) -> DayAvailability:
        """Free sub-intervals of the subject's open hours on ``query.date``."""
        open_slot = query.schedule.for_date(query.date).as_slot()
        if open_slot is None:
            logger.debug("%s closed on %s", query.subject_id, query.date)
            return DayAvailability(is_open=False)

        free = [open_slot]
        for booking in sorted(query.existing_bookings, key=lambda b: b.start):
            # Buffer pads the booking only; the open boundary stays put.
            start = max(booking.start - query.buffer_minutes, open_slot.start)
            end = min(booking.end + query.buffer_minutes, open_slot.end)
            if start >= end:
                continue
            free = _subtract(free, start, end)

        free.sort(key=lambda s: s.start)
        logger.debug(
            "%s on %s: open %s, free %s",
            query.subject_id, query.date, open_slot.label(), [s.label() for s in free],
        )
        return DayAvailability(is_open=True, open_slot=open_slot, free_slots=free)

    def check_slot(self, query: AvailabilityQuery) -> SlotCheck:
        """Availability of ``query.requested_slot`` with the reason when refused."""
        requested = query.requested_slot
        if requested is None:
            raise ValueError("AvailabilityQuery.requested_slot is required for a slot check")

        day = self.check_availability(query)
        if not day.is_open:
            return SlotCheck(available=False, reason=REASON_CLOSED)
        if not slot_contains(day.open_slot, requested):
            return SlotCheck(available=False, reason=REASON_OUTSIDE_HOURS)
        if not any(slot_contains(free, requested) for free in day.free_slots):
            return SlotCheck(available=False, reason=REASON_CONFLICT)
        return SlotCheck(available=True)

    def is_slot_available(self, query: AvailabilityQuery) -> bool:
        return self.check_slot(query).available

    def get_slot_options(
        self,
        query: AvailabilityQuery,
        duration_minutes: int,
        interval_minutes: Optional[int] = None,
    ) -> list[SlotOption]:
        """Candidate start times across the open hours, each flagged free or taken."""
        if duration_minutes <= 0:
            raise ValueError(f"duration_minutes must be > 0, got {duration_minutes}")
        interval = interval_minutes or self._config.slot_interval_minutes

        day = self.check_availability(query)
        if not day.is_open:
            return []

        options = []
        last_start = day.open_slot.end - duration_minutes
        for start in range(day.open_slot.start, last_start + 1, interval):
            slot = TimeSlot(start=start, end=start + duration_minutes)
            options.append(SlotOption(
                time=minutes_to_time(start),
                slot=slot,
                available=any(slot_contains(free, slot) for free in day.free_slots),
            ))
        return options

    def find_next_available(
        self,
        query: AvailabilityQuery,
        duration_minutes: int,
        bookings_for: Optional[Callable[[date], list[TimeSlot]]] = None,
        max_days: Optional[int] = None,
        not_before: Optional[datetime] = None,
    ) -> Optional[tuple[date, TimeSlot]]:
        """
        Earliest free slot of ``duration_minutes`` from ``query.date`` onward.

        ``bookings_for`` supplies the existing bookings of later days. Without
        it, ``query.existing_bookings`` apply to the first day only. Candidates
        starting at or before ``not_before`` (a naive wall time, usually now)
        are skipped.
        """
        days = max_days or self._config.max_days_to_check
        for offset in range(days):
            day = query.date + timedelta(days=offset)
            if bookings_for is not None:
                bookings = bookings_for(day)
            else:
                bookings = query.existing_bookings if offset == 0 else []

            day_query = query.model_copy(update={"date": day, "existing_bookings": bookings})
            for option in self.get_slot_options(day_query, duration_minutes):
                if not option.available:
                    continue
                if not_before is not None and _starts_at(day, option.slot) <= not_before:
                    continue
                return day, option.slot

        logger.info(
            "No %d-minute slot for %s within %d day(s) of %s",
            duration_minutes, query.subject_id, days, query.date,
        )
        return None


# Module-level instance
availability_service = AvailabilityService()
