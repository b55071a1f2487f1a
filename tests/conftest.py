"""Shared test fixtures and helpers."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import pytest

from clubbooking.schemas.availability_schema import AvailabilityQuery, TimeSlot, WeeklySchedule
from clubbooking.schemas.booking_schema import (
    BookingContext,
    BookingType,
    CreateBookingInput,
    FacilityContext,
    MemberContext,
    ServiceContext,
    SlotRequest,
    StaffContext,
)
from clubbooking.schemas.pricing_schema import PriceType, ServiceVariation, TierDiscount
from clubbooking.services.availability import AvailabilityService
from clubbooking.services.booking import BookingService
from clubbooking.services.pricing import PricingService

# Sunday 1 March 2026, 08:00. Bookings below fall on Monday 2 March.
NOW = datetime(2026, 3, 1, 8, 0)
MONDAY = date(2026, 3, 2)
SUNDAY = date(2026, 3, 1)


def fixed_clock() -> datetime:
    return NOW


@pytest.fixture
def schedule():
    """09:00-17:00 Monday to Saturday, closed Sunday."""
    return WeeklySchedule.uniform("09:00", "17:00", closed_days=(0,))


@pytest.fixture
def availability():
    return AvailabilityService()


@pytest.fixture
def pricing():
    return PricingService()


@pytest.fixture
def booking_service(availability, pricing):
    return BookingService(availability=availability, pricing=pricing, clock=fixed_clock)


@pytest.fixture
def member():
    return MemberContext(id="M-1", name="Alex Morgan", tier_id="gold", credits=Decimal("50"))


@pytest.fixture
def staff(schedule):
    return StaffContext(
        id="S-1",
        first_name="Jamie",
        last_name="Lee",
        capabilities=["tennis_coach"],
        schedule=schedule,
    )


@pytest.fixture
def facility(schedule):
    return FacilityContext(
        id="F-1",
        name="Tennis Court 1",
        operating_hours=schedule,
        capacity=4,
        base_price=Decimal("40"),
    )


@pytest.fixture
def service():
    return ServiceContext(
        id="SV-1",
        name="Private Lesson",
        base_price=Decimal("80"),
        duration_minutes=60,
        buffer_minutes=15,
        required_capabilities=["tennis_coach"],
        variations=[
            ServiceVariation(
                id="ball-machine", name="Ball machine",
                price_type=PriceType.FIXED, value=Decimal("10"),
            ),
            ServiceVariation(
                id="peak", name="Peak hours",
                price_type=PriceType.PERCENTAGE_ADJUSTMENT, value=Decimal("25"),
            ),
        ],
        max_guests=2,
    )


@pytest.fixture
def context(member, staff, facility, service):
    return BookingContext(
        member=member,
        staff=staff,
        facility=facility,
        service=service,
        tier_discounts=[TierDiscount(tier_id="gold", discount_percent=Decimal("10"))],
    )


def make_slot(start: str, end: str) -> TimeSlot:
    """Helper to create a TimeSlot from HH:MM strings."""
    return TimeSlot.from_times(start, end)


def make_query(
    schedule: WeeklySchedule,
    day: date = MONDAY,
    requested: Optional[TimeSlot] = None,
    bookings: Optional[list[TimeSlot]] = None,
    buffer_minutes: int = 0,
    subject_id: str = "F-1",
) -> AvailabilityQuery:
    """Helper to create an AvailabilityQuery with sensible defaults."""
    return AvailabilityQuery(
        subject_id=subject_id,
        date=day,
        schedule=schedule,
        requested_slot=requested,
        existing_bookings=bookings or [],
        buffer_minutes=buffer_minutes,
    )


def make_request(
    booking_type: BookingType = BookingType.FACILITY,
    start: int = 14 * 60,
    end: int = 15 * 60,
    day: date = MONDAY,
    **kwargs,
) -> CreateBookingInput:
    """Create a booking request; facility bookings reference F-1 by default."""
    defaults = {"club_id": "club-1", "member_id": "M-1"}
    if booking_type == BookingType.FACILITY:
        defaults["facility_id"] = "F-1"
    elif booking_type == BookingType.STAFF:
        defaults["staff_id"] = "S-1"
    else:
        defaults.update(service_id="SV-1", staff_id="S-1")
    defaults.update(kwargs)
    return CreateBookingInput(
        booking_type=booking_type,
        date=day,
        slot=SlotRequest(start=start, end=end),
        **defaults,
    )
