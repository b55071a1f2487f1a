"""
Club booking policies layered on top of the status machine.

Each check answers one question about a member or an existing booking:
1. Modification: status and lead time before the start
2. Cancellation: status only; refunds are priced separately
3. Payment: credits balance and on-account credit limit
4. Prepayment: suspended members and repeated no-shows
"""

import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional

from clubbooking.config import settings
from clubbooking.lifecycle.state_machine import (
    TERMINAL_STATUSES,
    BookingEvent,
    BookingStateMachine,
)
from clubbooking.schemas.booking_schema import (
    BookingStatus,
    MemberContext,
    MemberStatus,
    PaymentMethod,
)


@dataclass(frozen=True)
class PolicyResult:
    """Outcome of a single policy check."""
    allowed: bool
    reason: Optional[str] = None
    terminal: bool = False


_STATUS_REASONS = {
    BookingStatus.COMPLETED: "Completed bookings cannot be modified",
    BookingStatus.CANCELLED: "Cancelled bookings cannot be modified",
    BookingStatus.NO_SHOW: "No-show bookings cannot be modified",
    BookingStatus.CHECKED_IN: "Cannot modify booking after check-in",
    BookingStatus.REJECTED: "Rejected bookings cannot be modified",
}


def can_modify_booking(
    status: BookingStatus,
    starts_at: datetime,
    now: datetime,
    lead_hours: Optional[float] = None,
) -> PolicyResult:
    """A confirmed booking may change until ``lead_hours`` before it starts."""
    if not BookingStateMachine.can_transition(status, BookingEvent.MODIFY):
        return PolicyResult(
            allowed=False,
            reason=_STATUS_REASONS.get(
                status, f"Bookings in status {status.value} cannot be modified"
            ),
            terminal=status in TERMINAL_STATUSES,
        )

    if lead_hours is None:
        lead_hours = settings.booking.modification_lead_hours
    if starts_at - now < timedelta(hours=lead_hours):
        return PolicyResult(
            allowed=False,
            reason=f"Cannot modify within {lead_hours:g} hour(s) of start time",
        )
    return PolicyResult(allowed=True)


def can_cancel_booking(status: BookingStatus) -> PolicyResult:
    if BookingStateMachine.can_transition(status, BookingEvent.CANCEL):
        return PolicyResult(allowed=True)
    if status in TERMINAL_STATUSES:
        reason = f"{status.value.replace('_', '-').capitalize()} bookings cannot be cancelled"
    else:
        reason = f"Bookings in status {status.value} cannot be cancelled"
    return PolicyResult(allowed=False, reason=reason, terminal=status in TERMINAL_STATUSES)


def can_pay_with_credits(member: MemberContext, amount: Decimal) -> bool:
    return member.credits >= amount


def can_pay_on_account(
    member: MemberContext, amount: Decimal, credit_limit: Optional[Decimal] = None
) -> PolicyResult:
    """Charging to the member account must stay within the credit limit."""
    if member.status == MemberStatus.SUSPENDED:
        return PolicyResult(allowed=False, reason="Account suspended")

    if credit_limit is None:
        credit_limit = Decimal(str(settings.pricing.credit_limit))
    if member.balance + amount > credit_limit:
        return PolicyResult(
            allowed=False, reason=f"Would exceed credit limit of {credit_limit}"
        )
    return PolicyResult(allowed=True)


def check_payment(
    method: PaymentMethod, member: MemberContext, amount: Decimal
) -> PolicyResult:
    """Apply the payment rule matching ``method``. Other methods always pass."""
    if method == PaymentMethod.ON_ACCOUNT:
        return can_pay_on_account(member, amount)
    if method == PaymentMethod.CREDITS and not can_pay_with_credits(member, amount):
        return PolicyResult(
            allowed=False,
            reason=f"Insufficient credits: {member.credits} available, {amount} required",
        )
    return PolicyResult(allowed=True)


def requires_prepayment(member: MemberContext, threshold: Optional[int] = None) -> bool:
    if threshold is None:
        threshold = settings.booking.no_show_prepayment_threshold
    return member.status == MemberStatus.SUSPENDED or member.no_show_count >= threshold


def generate_booking_number(prefix: Optional[str] = None, today: Optional[date] = None) -> str:
    """Unique booking number such as ``BK-2026-4F9A1C``."""
    prefix = prefix or settings.booking.booking_number_prefix
    year = (today or date.today()).year
    return f"{prefix}-{year}-{uuid.uuid4().hex[:6].upper()}"
