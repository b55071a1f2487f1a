"""Booking requests, context records and booking decision results."""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from clubbooking.schemas.availability_schema import TimeSlot, WeeklySchedule
from clubbooking.schemas.pricing_schema import (
    PriceBreakdown,
    Promotion,
    RefundQuote,
    ServiceVariation,
    TierDiscount,
)


class BookingType(str, Enum):
    FACILITY = "FACILITY"
    SERVICE = "SERVICE"
    STAFF = "STAFF"


class BookingStatus(str, Enum):
    """Every status a booking can hold, from request to terminal outcome."""

    REQUESTED = "REQUESTED"
    VALIDATED = "VALIDATED"
    PRICED = "PRICED"
    CONFIRMED = "CONFIRMED"
    REJECTED = "REJECTED"
    CHECKED_IN = "CHECKED_IN"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class MemberStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    LAPSED = "LAPSED"


class PaymentMethod(str, Enum):
    ON_ACCOUNT = "ON_ACCOUNT"
    CREDITS = "CREDITS"
    PREPAID = "PREPAID"
    PAY_AT_SERVICE = "PAY_AT_SERVICE"


class ErrorKind(str, Enum):
    """Machine-readable category of a booking problem."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    SLOT_UNAVAILABLE = "SLOT_UNAVAILABLE"
    PROMOTION_INVALID = "PROMOTION_INVALID"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    ACCOUNT_NOTICE = "ACCOUNT_NOTICE"


class ErrorCode(str, Enum):
    """Subtype of an ErrorKind, naming the failing rule."""

    MISSING_FIELD = "MISSING_FIELD"
    MALFORMED_SLOT = "MALFORMED_SLOT"
    GUEST_COUNT = "GUEST_COUNT"
    MEMBER_INELIGIBLE = "MEMBER_INELIGIBLE"
    STAFF_UNQUALIFIED = "STAFF_UNQUALIFIED"
    START_IN_PAST = "START_IN_PAST"
    PAYMENT_NOT_ALLOWED = "PAYMENT_NOT_ALLOWED"
    NOT_MODIFIABLE = "NOT_MODIFIABLE"
    STAFF_UNAVAILABLE = "STAFF_UNAVAILABLE"
    FACILITY_UNAVAILABLE = "FACILITY_UNAVAILABLE"
    TERMINAL_STATE = "TERMINAL_STATE"
    PROMOTION_REJECTED = "PROMOTION_REJECTED"
    MEMBER_LAPSED = "MEMBER_LAPSED"
    NO_SHOW_HISTORY = "NO_SHOW_HISTORY"


class ValidationError(BaseModel):
    """One problem found while validating a booking request."""

    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    code: ErrorCode
    message: str
    field: Optional[str] = None


# --------------------------------------------------------------------------- #
# Context records supplied by the persistence layer
# --------------------------------------------------------------------------- #


class MemberContext(BaseModel):
    id: str
    name: str = ""
    status: MemberStatus = MemberStatus.ACTIVE
    tier_id: Optional[str] = None
    balance: Decimal = Decimal("0")
    credits: Decimal = Decimal("0")
    no_show_count: int = Field(default=0, ge=0)


class StaffContext(BaseModel):
    id: str
    first_name: str
    last_name: str
    capabilities: list[str] = Field(default_factory=list)
    schedule: Optional[WeeklySchedule] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class FacilityContext(BaseModel):
    id: str
    name: str
    operating_hours: Optional[WeeklySchedule] = None
    capacity: Optional[int] = Field(default=None, ge=1)
    base_price: Optional[Decimal] = Field(default=None, ge=0)


class ServiceContext(BaseModel):
    id: str
    name: str
    base_price: Decimal = Field(ge=0)
    duration_minutes: int = Field(gt=0)
    buffer_minutes: Optional[int] = Field(default=None, ge=0)
    required_capabilities: list[str] = Field(default_factory=list)
    variations: list[ServiceVariation] = Field(default_factory=list)
    max_guests: Optional[int] = Field(default=None, ge=0)


class BookingContext(BaseModel):
    """Records referenced by a booking request, fetched by the caller."""

    member: Optional[MemberContext] = None
    staff: Optional[StaffContext] = None
    facility: Optional[FacilityContext] = None
    service: Optional[ServiceContext] = None
    tier_discounts: list[TierDiscount] = Field(default_factory=list)
    promotion: Optional[Promotion] = None
    staff_bookings: list[TimeSlot] = Field(default_factory=list)
    facility_bookings: list[TimeSlot] = Field(default_factory=list)


# --------------------------------------------------------------------------- #
# Requests
# --------------------------------------------------------------------------- #


class SlotRequest(BaseModel):
    """Requested interval as sent by the caller; checked by the booking service."""

    start: int
    end: int


class CreateBookingInput(BaseModel):
    club_id: str = ""
    member_id: str = ""
    booking_type: BookingType
    staff_id: Optional[str] = None
    facility_id: Optional[str] = None
    service_id: Optional[str] = None
    date: dt.date
    slot: SlotRequest
    guest_count: int = 0
    notes: Optional[str] = None
    selected_variation_ids: list[str] = Field(default_factory=list)
    promotion_code: Optional[str] = None
    payment_method: PaymentMethod = PaymentMethod.PAY_AT_SERVICE


class UpdateBookingInput(BaseModel):
    date: Optional[dt.date] = None
    slot: Optional[SlotRequest] = None
    staff_id: Optional[str] = None
    facility_id: Optional[str] = None
    notes: Optional[str] = None

    def changes_time_or_resource(self) -> bool:
        return any(
            value is not None
            for value in (self.date, self.slot, self.staff_id, self.facility_id)
        )


class CancelBookingInput(BaseModel):
    reason: Optional[str] = None
    cancelled_by: Optional[str] = None
    waive_fee: bool = False


# --------------------------------------------------------------------------- #
# Results
# --------------------------------------------------------------------------- #


class BookingRecord(BaseModel):
    """A booking as decided by the engine. Persisting it is the caller's job."""

    model_config = ConfigDict(frozen=True)

    booking_number: str
    club_id: str
    member_id: str
    booking_type: BookingType
    staff_id: Optional[str] = None
    facility_id: Optional[str] = None
    service_id: Optional[str] = None
    date: dt.date
    slot: TimeSlot
    guest_count: int = 0
    notes: Optional[str] = None
    selected_variation_ids: list[str] = Field(default_factory=list)
    promotion_code: Optional[str] = None
    payment_method: PaymentMethod = PaymentMethod.PAY_AT_SERVICE
    status: BookingStatus
    status_history: list[BookingStatus] = Field(default_factory=list)
    total: Decimal = Decimal("0")
    requires_prepayment: bool = False
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[str] = None

    @property
    def starts_at(self) -> dt.datetime:
        hours, minutes = divmod(self.slot.start, 60)
        return dt.datetime.combine(self.date, dt.time(hours, minutes))


class BookingValidationResult(BaseModel):
    """Structured rejection listing every problem found."""

    valid: bool
    status: BookingStatus = BookingStatus.REJECTED
    errors: list[ValidationError] = Field(default_factory=list)
    warnings: list[ValidationError] = Field(default_factory=list)


class BookingResult(BaseModel):
    booking: BookingRecord
    price: PriceBreakdown
    warnings: list[ValidationError] = Field(default_factory=list)


class BookingUpdateResult(BaseModel):
    """Updated record. ``price`` is set only when a facility move re-priced it."""

    booking: BookingRecord
    availability_rechecked: bool = False
    price: Optional[PriceBreakdown] = None
    warnings: list[ValidationError] = Field(default_factory=list)


class CancellationResult(BaseModel):
    booking: BookingRecord
    refund: RefundQuote


class BookingSummary(BaseModel):
    """Display-ready description of a booking."""

    booking_number: str
    title: str
    staff_name: Optional[str] = None
    facility_name: Optional[str] = None
    date: str
    time: str
    duration: str
    total: str
