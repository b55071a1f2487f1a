"""Tests for the booking status state machine."""

from datetime import datetime, timezone

import pytest

from clubbooking.lifecycle.state_machine import (
    TERMINAL_STATUSES,
    BookingEvent,
    BookingStateMachine,
    InvalidTransitionError,
)
from clubbooking.schemas.booking_schema import BookingStatus


@pytest.fixture
def state_machine():
    return BookingStateMachine()


def confirmed() -> BookingStateMachine:
    return BookingStateMachine(BookingStatus.CONFIRMED)


class TestInitialState:
    def test_starts_requested(self, state_machine):
        assert state_machine.current_state == BookingStatus.REQUESTED

    def test_initial_history_has_one_entry(self, state_machine):
        assert len(state_machine.get_history()) == 1

    def test_not_terminal_at_start(self, state_machine):
        assert not state_machine.is_terminal()

    def test_can_start_from_stored_status(self):
        assert confirmed().current_state == BookingStatus.CONFIRMED


class TestRequestEvaluation:
    def test_happy_path_trace(self, state_machine):
        state_machine.transition(BookingEvent.VALIDATION_PASSED)
        state_machine.transition(BookingEvent.PRICE_CALCULATED)
        state_machine.transition(BookingEvent.CONFIRM)
        assert state_machine.get_status_trace() == [
            BookingStatus.REQUESTED,
            BookingStatus.VALIDATED,
            BookingStatus.PRICED,
            BookingStatus.CONFIRMED,
        ]

    def test_validation_failure_rejects(self, state_machine):
        assert state_machine.transition(BookingEvent.VALIDATION_FAILED) == BookingStatus.REJECTED

    def test_slot_unavailable_rejects(self, state_machine):
        state_machine.transition(BookingEvent.VALIDATION_PASSED)
        assert state_machine.transition(BookingEvent.SLOT_UNAVAILABLE) == BookingStatus.REJECTED

    def test_priced_can_be_rejected(self, state_machine):
        state_machine.transition(BookingEvent.VALIDATION_PASSED)
        state_machine.transition(BookingEvent.PRICE_CALCULATED)
        assert state_machine.transition(BookingEvent.REJECT) == BookingStatus.REJECTED

    def test_cannot_confirm_before_pricing(self, state_machine):
        state_machine.transition(BookingEvent.VALIDATION_PASSED)
        with pytest.raises(InvalidTransitionError):
            state_machine.transition(BookingEvent.CONFIRM)

    def test_history_records_event(self, state_machine):
        state_machine.transition(BookingEvent.VALIDATION_PASSED)
        entry = state_machine.get_history()[-1]
        assert entry.event == BookingEvent.VALIDATION_PASSED
        assert entry.state == BookingStatus.VALIDATED

    def test_history_uses_injected_clock(self):
        moments = iter([datetime(2026, 3, 1, 8, 0), datetime(2026, 3, 1, 8, 5)])
        sm = BookingStateMachine(clock=lambda: next(moments))
        sm.transition(BookingEvent.VALIDATION_PASSED)
        assert [e.entered_at for e in sm.get_history()] == [
            datetime(2026, 3, 1, 8, 0), datetime(2026, 3, 1, 8, 5),
        ]

    def test_default_clock_is_utc(self, state_machine):
        assert state_machine.get_history()[0].entered_at.tzinfo == timezone.utc


class TestConfirmedBooking:
    def test_modify_keeps_confirmed(self):
        assert confirmed().transition(BookingEvent.MODIFY) == BookingStatus.CONFIRMED

    def test_cancel(self):
        assert confirmed().transition(BookingEvent.CANCEL) == BookingStatus.CANCELLED

    def test_no_show(self):
        assert confirmed().transition(BookingEvent.MARK_NO_SHOW) == BookingStatus.NO_SHOW

    def test_check_in_then_complete(self):
        sm = confirmed()
        sm.transition(BookingEvent.CHECK_IN)
        assert sm.transition(BookingEvent.COMPLETE) == BookingStatus.COMPLETED
        assert sm.is_terminal()

    def test_cannot_complete_without_check_in(self):
        with pytest.raises(InvalidTransitionError):
            confirmed().transition(BookingEvent.COMPLETE)

    def test_checked_in_cannot_be_modified(self):
        sm = BookingStateMachine(BookingStatus.CHECKED_IN)
        with pytest.raises(InvalidTransitionError) as exc_info:
            sm.transition(BookingEvent.MODIFY)
        assert not exc_info.value.is_terminal

    def test_valid_events(self):
        assert set(confirmed().get_valid_events()) == {
            BookingEvent.MODIFY,
            BookingEvent.CANCEL,
            BookingEvent.CHECK_IN,
            BookingEvent.MARK_NO_SHOW,
        }


class TestTerminalStates:
    @pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    def test_no_event_leaves_terminal_state(self, status):
        for event in BookingEvent:
            assert not BookingStateMachine.can_transition(status, event)

    def test_cancelled_error_message(self):
        sm = BookingStateMachine(BookingStatus.CANCELLED)
        with pytest.raises(InvalidTransitionError, match="cancelled and cannot change further"):
            sm.transition(BookingEvent.MODIFY)

    def test_terminal_error_flag(self):
        sm = BookingStateMachine(BookingStatus.NO_SHOW)
        with pytest.raises(InvalidTransitionError) as exc_info:
            sm.transition(BookingEvent.CANCEL)
        assert exc_info.value.is_terminal
        assert exc_info.value.state == BookingStatus.NO_SHOW

    def test_rejected_has_no_way_out(self):
        sm = BookingStateMachine(BookingStatus.REJECTED)
        assert sm.get_valid_events() == []
        assert not sm.is_terminal()

    def test_failed_transition_leaves_state_unchanged(self):
        sm = BookingStateMachine(BookingStatus.CANCELLED)
        with pytest.raises(InvalidTransitionError):
            sm.transition(BookingEvent.CHECK_IN)
        assert sm.current_state == BookingStatus.CANCELLED
        assert len(sm.get_history()) == 1
