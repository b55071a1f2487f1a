"""
Finite state machine for booking status transitions.

A booking request moves REQUESTED -> VALIDATED -> PRICED and ends up
CONFIRMED or REJECTED. Confirmed bookings can be modified, cancelled,
checked in or marked as no-shows. CANCELLED, COMPLETED and NO_SHOW are
terminal. The persistence layer owns the authoritative record; this
machine only decides whether a transition is allowed.

Usage:
    sm = BookingStateMachine()
    sm.transition(BookingEvent.VALIDATION_PASSED)
    assert sm.current_state == BookingStatus.VALIDATED
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from clubbooking.schemas.booking_schema import BookingStatus

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset(
    {BookingStatus.CANCELLED, BookingStatus.COMPLETED, BookingStatus.NO_SHOW}
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BookingEvent(str, Enum):
    """Events that cause status transitions."""
    VALIDATION_PASSED = "validation_passed"
    VALIDATION_FAILED = "validation_failed"
    PRICE_CALCULATED = "price_calculated"
    SLOT_UNAVAILABLE = "slot_unavailable"
    CONFIRM = "confirm"
    REJECT = "reject"
    MODIFY = "modify"
    CANCEL = "cancel"
    CHECK_IN = "check_in"
    MARK_NO_SHOW = "mark_no_show"
    COMPLETE = "complete"


@dataclass(frozen=True)
class Transition:
    """A single valid status transition."""
    from_state: BookingStatus
    to_state: BookingStatus
    event: BookingEvent


@dataclass
class StatusEntry:
    """Recorded history entry for a status visit."""
    state: BookingStatus
    entered_at: datetime
    event: Optional[BookingEvent] = None


class InvalidTransitionError(Exception):
    """Raised when an event is not valid from the current status."""

    def __init__(self, state: BookingStatus, event: BookingEvent, valid: list[str]) -> None:
        self.state = state
        self.event = event
        if state in TERMINAL_STATUSES:
            message = f"Booking is {state.value.lower()} and cannot change further."
        else:
            message = (
                f"No valid transition from '{state.value}' with event '{event.value}'. "
                f"Valid events: {valid}"
            )
        super().__init__(message)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATUSES


class BookingStateMachine:
    """
    Deterministic state machine for a single booking.

    Every transition must be explicitly listed. Anything else, including
    any event on a terminal status, raises InvalidTransitionError.
    """

    TRANSITIONS: list[Transition] = [
        # --- Request evaluation ---
        Transition(BookingStatus.REQUESTED, BookingStatus.VALIDATED,
                   BookingEvent.VALIDATION_PASSED),
        Transition(BookingStatus.REQUESTED, BookingStatus.REJECTED,
                   BookingEvent.VALIDATION_FAILED),
        Transition(BookingStatus.VALIDATED, BookingStatus.PRICED,
                   BookingEvent.PRICE_CALCULATED),
        Transition(BookingStatus.VALIDATED, BookingStatus.REJECTED,
                   BookingEvent.SLOT_UNAVAILABLE),

        # --- Decision ---
        Transition(BookingStatus.PRICED, BookingStatus.CONFIRMED,
                   BookingEvent.CONFIRM),
        Transition(BookingStatus.PRICED, BookingStatus.REJECTED,
                   BookingEvent.REJECT),

        # --- Confirmed booking ---
        Transition(BookingStatus.CONFIRMED, BookingStatus.CONFIRMED,
                   BookingEvent.MODIFY),
        Transition(BookingStatus.CONFIRMED, BookingStatus.CANCELLED,
                   BookingEvent.CANCEL),
        Transition(BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN,
                   BookingEvent.CHECK_IN),
        Transition(BookingStatus.CONFIRMED, BookingStatus.NO_SHOW,
                   BookingEvent.MARK_NO_SHOW),

        # --- Visit ---
        Transition(BookingStatus.CHECKED_IN, BookingStatus.COMPLETED,
                   BookingEvent.COMPLETE),
    ]

    def __init__(
        self,
        initial: BookingStatus = BookingStatus.REQUESTED,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._clock = clock or _utc_now
        self._current_state = initial
        self._history: list[StatusEntry] = [
            StatusEntry(state=initial, entered_at=self._clock())
        ]

    @property
    def current_state(self) -> BookingStatus:
        return self._current_state

    @classmethod
    def can_transition(cls, state: BookingStatus, event: BookingEvent) -> bool:
        """Check whether ``event`` is allowed from ``state`` without moving."""
        return any(t.from_state == state and t.event == event for t in cls.TRANSITIONS)

    def transition(self, event: BookingEvent) -> BookingStatus:
        """
        Execute a status transition.

        Args:
            event: The event triggering the transition.

        Returns:
            The new booking status.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_state == self._current_state and t.event == event:
                old_state = self._current_state
                self._current_state = t.to_state
                self._history.append(StatusEntry(
                    state=self._current_state,
                    entered_at=self._clock(),
                    event=event,
                ))
                logger.debug(
                    "Booking transition: %s -> %s (event: %s)",
                    old_state.value, self._current_state.value, event.value,
                )
                return self._current_state

        valid = [e.value for e in self.get_valid_events()]
        raise InvalidTransitionError(self._current_state, event, valid)

    def get_valid_events(self) -> list[BookingEvent]:
        """Return all events valid from the current status."""
        return [t.event for t in self.TRANSITIONS if t.from_state == self._current_state]

    def get_history(self) -> list[StatusEntry]:
        """Return the full transition history."""
        return list(self._history)

    def get_status_trace(self) -> list[BookingStatus]:
        """Return the ordered list of statuses visited."""
        return [entry.state for entry in self._history]

    def is_terminal(self) -> bool:
        return self._current_state in TERMINAL_STATUSES
