from clubbooking.lifecycle.policies import PolicyResult, can_cancel_booking, can_modify_booking
from clubbooking.lifecycle.state_machine import (
    TERMINAL_STATUSES,
    BookingEvent,
    BookingStateMachine,
    InvalidTransitionError,
)

__all__ = [
    "BookingStateMachine",
    "BookingEvent",
    "InvalidTransitionError",
    "TERMINAL_STATUSES",
    "PolicyResult",
    "can_modify_booking",
    "can_cancel_booking",
]
