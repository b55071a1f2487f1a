"""
Offline console demo: walks through the booking engine's core scenarios.

Uses the real availability, pricing and booking services with in-memory
sample data. No database, no network calls.

Usage:
    python console_demo.py
    python console_demo.py --scenario pricing
    python console_demo.py --scenario terminal
"""

import argparse
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from clubbooking.config import settings
from clubbooking.schemas.availability_schema import AvailabilityQuery, TimeSlot, WeeklySchedule
from clubbooking.schemas.booking_schema import (
    BookingContext,
    BookingResult,
    BookingType,
    CancelBookingInput,
    CreateBookingInput,
    FacilityContext,
    MemberContext,
    SlotRequest,
    UpdateBookingInput,
)
from clubbooking.schemas.pricing_schema import (
    PriceType,
    PricingInput,
    ServiceVariation,
    TierDiscount,
)
from clubbooking.services.availability import AvailabilityService
from clubbooking.services.booking import BookingService
from clubbooking.services.pricing import PricingService

GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

DEMO_NOW = datetime(2026, 3, 2, 8, 0)
DEMO_DAY = date(2026, 3, 4)


class ConsoleSession:
    """Runs scripted scenarios against the booking services."""

    def __init__(self) -> None:
        self.availability = AvailabilityService()
        self.pricing = PricingService()
        self.bookings = BookingService(
            availability=self.availability,
            pricing=self.pricing,
            clock=lambda: DEMO_NOW,
        )
        self.schedule = WeeklySchedule.uniform("09:00", "17:00", closed_days=(0,))

    def say(self, text: str) -> None:
        print(f"{GREEN}{text}{RESET}")

    def warn(self, text: str) -> None:
        print(f"{YELLOW}{text}{RESET}")

    def fail(self, text: str) -> None:
        print(f"{RED}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    # ------------------------------------------------------------------ #
    # Scenarios
    # ------------------------------------------------------------------ #

    def scenario_availability(self) -> None:
        existing = [TimeSlot.from_times("10:00", "11:00")]
        for start, end in [("11:00", "11:30"), ("11:30", "12:00")]:
            query = AvailabilityQuery(
                subject_id="court-1",
                date=DEMO_DAY,
                schedule=self.schedule,
                requested_slot=TimeSlot.from_times(start, end),
                existing_bookings=existing,
                buffer_minutes=15,
            )
            check = self.availability.check_slot(query)
            line = f"{start}-{end}: " + ("available" if check.available else check.reason)
            (self.say if check.available else self.fail)(line)
        day = self.availability.check_availability(query)
        self.system_log(f"Free: {[s.label() for s in day.free_slots]}")
        asked_at = datetime.combine(DEMO_DAY, time(9, 45))
        found = self.availability.find_next_available(query, 60, not_before=asked_at)
        if found is not None:
            self.say(f"Next 60 min slot after {asked_at:%H:%M}: {found[1].label()}")

    def scenario_pricing(self) -> None:
        breakdown = self.pricing.calculate_price(PricingInput(
            base_price=Decimal("1000"),
            tier_discount=TierDiscount(tier_id="gold", discount_percent=Decimal("10")),
            variations=[ServiceVariation(
                id="peak", price_type=PriceType.PERCENTAGE_ADJUSTMENT, value=Decimal("20"),
            )],
        ))
        for name, value in breakdown.model_dump().items():
            self.say(f"{name:>26}: {self.pricing.format_currency(value)}")

    def scenario_capacity(self) -> None:
        context = self._facility_context(capacity=4)
        result = self.bookings.create_booking(
            self._facility_request(guest_count=8), context
        )
        for error in getattr(result, "errors", []):
            self.fail(f"{error.kind.value}/{error.code.value}: {error.message}")

    def scenario_terminal(self) -> None:
        context = self._facility_context(capacity=6)
        result = self.bookings.create_booking(self._facility_request(guest_count=2), context)
        if not isinstance(result, BookingResult):
            self.fail("Unexpected rejection")
            return
        self.say(f"Created {result.booking.booking_number} ({result.booking.status.value})")
        summary = self.bookings.summarize(result, context)
        self.system_log(f"{summary.title}, {summary.date} {summary.time}, {summary.total}")

        cancelled = self.bookings.cancel_booking(
            result.booking, CancelBookingInput(reason="Weather")
        )
        self.warn(
            f"Cancelled, refund {self.pricing.format_currency(cancelled.refund.refund_amount)}"
            f" ({cancelled.refund.policy_applied})"
        )
        update = self.bookings.update_booking(
            cancelled.booking,
            UpdateBookingInput(date=DEMO_DAY + timedelta(days=1)),
            context,
        )
        for error in getattr(update, "errors", []):
            self.fail(f"{error.kind.value}/{error.code.value}: {error.message}")
        self.system_log(
            "Status trace: "
            + " -> ".join(s.value for s in cancelled.booking.status_history)
        )

    SCENARIOS = {
        "availability": scenario_availability,
        "pricing": scenario_pricing,
        "capacity": scenario_capacity,
        "terminal": scenario_terminal,
    }

    def run_scenario(self, scenario: str) -> None:
        handler = self.SCENARIOS.get(scenario)
        if handler is None:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  CLUB BOOKING ENGINE - Scenario: {scenario}{RESET}")
        print(f"{BOLD}  App: {settings.app_name}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        handler(self)
        print(f"{BOLD}{'=' * 60}{RESET}")

    def run(self) -> None:
        for scenario in self.SCENARIOS:
            self.run_scenario(scenario)

    # ------------------------------------------------------------------ #
    # Sample data
    # ------------------------------------------------------------------ #

    def _facility_context(self, capacity: int) -> BookingContext:
        return BookingContext(
            member=MemberContext(id="M-1001", name="Alex Morgan", tier_id="gold"),
            facility=FacilityContext(
                id="court-1",
                name="Tennis Court 1",
                operating_hours=self.schedule,
                capacity=capacity,
                base_price=Decimal("40"),
            ),
            tier_discounts=[TierDiscount(tier_id="gold", discount_percent=Decimal("10"))],
            facility_bookings=[TimeSlot.from_times("10:00", "11:00")],
        )

    def _facility_request(self, guest_count: int) -> CreateBookingInput:
        return CreateBookingInput(
            club_id="club-1",
            member_id="M-1001",
            booking_type=BookingType.FACILITY,
            facility_id="court-1",
            date=DEMO_DAY,
            slot=SlotRequest(start=14 * 60, end=15 * 60),
            guest_count=guest_count,
        )


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default=None,
        help="Run a single scenario instead of all of them",
    )
    args = parser.parse_args()

    session = ConsoleSession()
    if args.scenario:
        session.run_scenario(args.scenario)
    else:
        session.run()


if __name__ == "__main__":
    main()
