"""
Booking decisions: create, update, cancel and visit-status changes.

Validate -> check availability -> price -> confirm. Every user-correctable
problem is collected into a BookingValidationResult instead of being raised,
so a caller can show all of them at once. Only references to records the
caller failed to supply raise IntegrationError.

Nothing here persists. The returned BookingRecord is what the caller should
store, ideally under a constraint that rejects a concurrent conflicting write.
"""

from datetime import date, datetime, time
from typing import Callable, Optional, Union

from clubbooking.config import BookingConfig, settings
from clubbooking.lifecycle.policies import (
    can_cancel_booking,
    can_modify_booking,
    check_payment,
    generate_booking_number,
    requires_prepayment,
)
from clubbooking.lifecycle.state_machine import (
    BookingEvent,
    BookingStateMachine,
    InvalidTransitionError,
)
from clubbooking.logging_context import get_request_logger
from clubbooking.schemas.availability_schema import AvailabilityQuery, TimeSlot
from clubbooking.schemas.booking_schema import (
    BookingContext,
    BookingRecord,
    BookingResult,
    BookingStatus,
    BookingSummary,
    BookingType,
    BookingUpdateResult,
    BookingValidationResult,
    CancelBookingInput,
    CancellationResult,
    CreateBookingInput,
    ErrorCode,
    ErrorKind,
    FacilityContext,
    MemberContext,
    MemberStatus,
    ServiceContext,
    SlotRequest,
    StaffContext,
    UpdateBookingInput,
    ValidationError,
)
from clubbooking.schemas.pricing_schema import (
    PriceBreakdown,
    PricingInput,
    PromotionContext,
    ServiceVariation,
)
from clubbooking.services.availability import AvailabilityService
from clubbooking.services.pricing import PricingService, resolve_tier_discount
from clubbooking.timeutils import (
    MINUTES_PER_DAY,
    as_wall_time,
    format_time_12h,
    minutes_to_time,
)

logger = get_request_logger(__name__)

_REQUIRED_REFERENCE = {
    BookingType.FACILITY: "facility_id",
    BookingType.STAFF: "staff_id",
    BookingType.SERVICE: "service_id",
}


class IntegrationError(Exception):
    """A referenced member, staff, facility, service or variation was not supplied.

    This signals a bug in the calling layer, not a user input problem.
    """


def _error(
    kind: ErrorKind, code: ErrorCode, message: str, field: Optional[str] = None
) -> ValidationError:
    return ValidationError(kind=kind, code=code, message=message, field=field)


def _invalid(code: ErrorCode, message: str, field: Optional[str] = None) -> ValidationError:
    return _error(ErrorKind.VALIDATION_ERROR, code, message, field)


def _transition_error(exc: InvalidTransitionError) -> ValidationError:
    if exc.is_terminal:
        return _error(ErrorKind.INVALID_TRANSITION, ErrorCode.TERMINAL_STATE, str(exc))
    return _invalid(ErrorCode.NOT_MODIFIABLE, str(exc))


def _require(label: str, ref_id: Optional[str], record) -> None:
    if ref_id and (record is None or record.id != ref_id):
        logger.warning("Missing %s record for id %s", label, ref_id)
        raise IntegrationError(f"No {label} record supplied for id '{ref_id}'")


def _slot_is_well_formed(slot: SlotRequest) -> bool:
    return 0 <= slot.start < slot.end <= MINUTES_PER_DAY


def _malformed_slot(slot: SlotRequest) -> ValidationError:
    return _invalid(
        ErrorCode.MALFORMED_SLOT,
        f"Requested slot {slot.start}-{slot.end} must end after it starts "
        f"and stay within one day",
        "slot",
    )


def _starts_at(day: date, start: int) -> datetime:
    hours, minutes = divmod(start, 60)
    return datetime.combine(day, time(hours, minutes))


def _guest_count_error(
    guest_count: int,
    facility: Optional[FacilityContext],
    service: Optional[ServiceContext],
) -> Optional[ValidationError]:
    """At most one guest-count error for the facility and service involved."""
    if guest_count < 0:
        return _invalid(ErrorCode.GUEST_COUNT, "Guest count cannot be negative", "guest_count")

    limits = []
    # The member takes one place of the facility's capacity.
    if facility is not None and facility.capacity is not None:
        limits.append(facility.capacity - 1)
    if service is not None and service.max_guests is not None:
        limits.append(service.max_guests)
    if limits and guest_count > min(limits):
        return _invalid(
            ErrorCode.GUEST_COUNT,
            f"Guest count exceeds capacity (max: {min(limits)})",
            "guest_count",
        )
    return None


def _qualification_error(
    service: Optional[ServiceContext], staff: Optional[StaffContext]
) -> Optional[ValidationError]:
    if service is None or staff is None or not service.required_capabilities:
        return None
    lacking = [c for c in service.required_capabilities if c not in staff.capabilities]
    if not lacking:
        return None
    return _invalid(
        ErrorCode.STAFF_UNQUALIFIED,
        f"Staff is not qualified for this service. Missing: {', '.join(lacking)}",
        "staff_id",
    )


Decision = Union[BookingResult, BookingValidationResult]


class BookingService:
    """Orchestrates validation, availability and pricing for booking decisions."""

    def __init__(
        self,
        availability: Optional[AvailabilityService] = None,
        pricing: Optional[PricingService] = None,
        config: Optional[BookingConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._config = config or settings.booking
        self._availability = availability or AvailabilityService(self._config)
        self._pricing = pricing or PricingService()
        self._clock = clock or datetime.now

    def _now(self) -> datetime:
        """Current wall time, comparable with naive booking start times."""
        return as_wall_time(self._clock())

    def _state_machine(
        self, initial: BookingStatus = BookingStatus.REQUESTED
    ) -> BookingStateMachine:
        return BookingStateMachine(initial, clock=self._clock)

    # ------------------------------------------------------------------ #
    # Create
    # ------------------------------------------------------------------ #

    def create_booking(self, request: CreateBookingInput, context: BookingContext) -> Decision:
        """
        Decide whether ``request`` can be booked and at what price.

        Returns:
            BookingResult with a CONFIRMED record, or a BookingValidationResult
            listing every problem found at the first failing stage.

        Raises:
            IntegrationError: If a referenced record is missing from ``context``.
        """
        sm = self._state_machine()
        member = self._check_references(request, context)
        variations = self._resolve_variations(
            request.selected_variation_ids, request.service_id, context.service
        )
        warnings = self._account_notices(member)

        errors = self._validate_request(request, context, member)
        if errors:
            sm.transition(BookingEvent.VALIDATION_FAILED)
            logger.info(
                "Booking request for member %s rejected with %d validation error(s)",
                request.member_id, len(errors),
            )
            return BookingValidationResult(
                valid=False, status=sm.current_state, errors=errors, warnings=warnings
            )
        sm.transition(BookingEvent.VALIDATION_PASSED)

        slot = TimeSlot(start=request.slot.start, end=request.slot.end)
        errors = self._check_availability(
            request.date, slot, request.staff_id, request.facility_id, context
        )
        if errors:
            sm.transition(BookingEvent.SLOT_UNAVAILABLE)
            logger.info("Slot %s on %s unavailable", slot.label(), request.date)
            return BookingValidationResult(
                valid=False, status=sm.current_state, errors=errors, warnings=warnings
            )

        price, promotion_warnings = self._price(
            request.service_id, request.facility_id, request.promotion_code,
            context, member, variations,
        )
        warnings.extend(promotion_warnings)
        sm.transition(BookingEvent.PRICE_CALCULATED)

        payment_error = self._payment_error(request.payment_method, member, price)
        if payment_error is not None:
            sm.transition(BookingEvent.REJECT)
            return BookingValidationResult(
                valid=False, status=sm.current_state, errors=[payment_error], warnings=warnings
            )
        sm.transition(BookingEvent.CONFIRM)

        booking = BookingRecord(
            booking_number=generate_booking_number(
                self._config.booking_number_prefix, request.date
            ),
            club_id=request.club_id,
            member_id=request.member_id,
            booking_type=request.booking_type,
            staff_id=request.staff_id,
            facility_id=request.facility_id,
            service_id=request.service_id,
            date=request.date,
            slot=slot,
            guest_count=request.guest_count,
            notes=request.notes,
            selected_variation_ids=request.selected_variation_ids,
            promotion_code=request.promotion_code,
            payment_method=request.payment_method,
            status=sm.current_state,
            status_history=sm.get_status_trace(),
            total=price.final_price,
            requires_prepayment=requires_prepayment(
                member, self._config.no_show_prepayment_threshold
            ),
        )
        logger.info(
            "Booking %s confirmed for member %s on %s %s, total %s",
            booking.booking_number, member.id, booking.date, slot.label(), price.final_price,
        )
        return BookingResult(booking=booking, price=price, warnings=warnings)

    def _check_references(
        self, request: CreateBookingInput, context: BookingContext
    ) -> MemberContext:
        member = context.member
        if member is None:
            raise IntegrationError("Booking context has no member record")
        if request.member_id and member.id != request.member_id:
            raise IntegrationError(
                f"Member record '{member.id}' does not match request member '{request.member_id}'"
            )
        _require("staff", request.staff_id, context.staff)
        _require("facility", request.facility_id, context.facility)
        _require("service", request.service_id, context.service)
        return member

    def _resolve_variations(
        self,
        variation_ids: list[str],
        service_id: Optional[str],
        service: Optional[ServiceContext],
    ) -> list[ServiceVariation]:
        """Selected variations in the order the caller listed them."""
        if not variation_ids:
            return []
        if service is None or not service_id:
            raise IntegrationError("Service variations selected without a service")

        catalog = {v.id: v for v in service.variations}
        unknown = [vid for vid in variation_ids if vid not in catalog]
        if unknown:
            raise IntegrationError(
                f"Unknown variation(s) for service '{service.id}': {', '.join(unknown)}"
            )
        return [catalog[vid] for vid in variation_ids]

    def _validate_request(
        self, request: CreateBookingInput, context: BookingContext, member: MemberContext
    ) -> list[ValidationError]:
        """Every structural problem with the request, not just the first."""
        errors: list[ValidationError] = []

        missing = [
            field_name
            for field_name, value in [
                ("club_id", request.club_id),
                ("member_id", request.member_id),
                (
                    _REQUIRED_REFERENCE[request.booking_type],
                    getattr(request, _REQUIRED_REFERENCE[request.booking_type]),
                ),
            ]
            if not value or not value.strip()
        ]
        for field_name in missing:
            errors.append(_invalid(
                ErrorCode.MISSING_FIELD, f"Missing required field: {field_name}", field_name
            ))

        slot_ok = _slot_is_well_formed(request.slot)
        if not slot_ok:
            errors.append(_malformed_slot(request.slot))

        guest_error = _guest_count_error(
            request.guest_count,
            context.facility if request.facility_id else None,
            context.service if request.service_id else None,
        )
        if guest_error is not None:
            errors.append(guest_error)

        if member.status == MemberStatus.SUSPENDED:
            errors.append(_invalid(
                ErrorCode.MEMBER_INELIGIBLE,
                "Member account is suspended. Manager override required.",
                "member_id",
            ))

        if request.service_id and request.staff_id:
            qualification_error = _qualification_error(context.service, context.staff)
            if qualification_error is not None:
                errors.append(qualification_error)

        if slot_ok and _starts_at(request.date, request.slot.start) <= self._now():
            errors.append(_invalid(
                ErrorCode.START_IN_PAST, "Booking time must be in the future", "slot"
            ))

        return errors

    def _account_notices(self, member: MemberContext) -> list[ValidationError]:
        notices = []
        if member.status == MemberStatus.LAPSED:
            notices.append(_error(
                ErrorKind.ACCOUNT_NOTICE,
                ErrorCode.MEMBER_LAPSED,
                "Member account is lapsed. Payment may be required.",
            ))
        if member.no_show_count >= self._config.no_show_prepayment_threshold:
            notices.append(_error(
                ErrorKind.ACCOUNT_NOTICE,
                ErrorCode.NO_SHOW_HISTORY,
                f"Member has {member.no_show_count} no-shows. Consider requiring prepayment.",
            ))
        return notices

    # ------------------------------------------------------------------ #
    # Availability, pricing and payment
    # ------------------------------------------------------------------ #

    def _check_availability(
        self,
        day: date,
        slot: TimeSlot,
        staff_id: Optional[str],
        facility_id: Optional[str],
        context: BookingContext,
    ) -> list[ValidationError]:
        """One SLOT_UNAVAILABLE error per busy subject (staff and/or facility)."""
        service = context.service
        buffer = self._config.default_buffer_minutes
        if service is not None and service.buffer_minutes is not None:
            buffer = service.buffer_minutes

        subjects = []
        if staff_id:
            staff = context.staff
            subjects.append((
                staff.id, staff.full_name, staff.schedule,
                context.staff_bookings, ErrorCode.STAFF_UNAVAILABLE, "staff_id",
            ))
        if facility_id:
            facility = context.facility
            subjects.append((
                facility.id, facility.name, facility.operating_hours,
                context.facility_bookings, ErrorCode.FACILITY_UNAVAILABLE, "facility_id",
            ))

        errors = []
        for subject_id, name, schedule, bookings, code, field_name in subjects:
            query = AvailabilityQuery(
                subject_id=subject_id,
                date=day,
                schedule=schedule or self._availability.default_schedule(),
                requested_slot=slot,
                existing_bookings=bookings,
                buffer_minutes=buffer,
            )
            check = self._availability.check_slot(query)
            if not check.available:
                errors.append(_error(
                    ErrorKind.SLOT_UNAVAILABLE, code, f"{name}: {check.reason}", field_name
                ))
        return errors

    def _price(
        self,
        service_id: Optional[str],
        facility_id: Optional[str],
        promotion_code: Optional[str],
        context: BookingContext,
        member: MemberContext,
        variations: list[ServiceVariation],
    ) -> tuple[PriceBreakdown, list[ValidationError]]:
        if service_id:
            base_price = context.service.base_price
        elif facility_id and context.facility.base_price is not None:
            base_price = context.facility.base_price
        else:
            base_price = 0

        pricing_input = PricingInput(
            base_price=base_price,
            tier_discount=resolve_tier_discount(member.tier_id, context.tier_discounts),
            variations=variations,
        )
        if not promotion_code:
            return self._pricing.calculate_price(pricing_input), []

        undiscounted = self._pricing.calculate_price(pricing_input)
        validation = self._pricing.validate_promotion(
            promotion_code,
            PromotionContext(
                promotion=context.promotion,
                member_tier_id=member.tier_id,
                service_id=service_id,
                amount=undiscounted.final_price,
                now=self._clock(),
            ),
        )
        if not validation.valid:
            warning = _error(
                ErrorKind.PROMOTION_INVALID,
                ErrorCode.PROMOTION_REJECTED,
                f"Promotion {validation.code} not applied: {validation.reason}",
                "promotion_code",
            )
            return undiscounted, [warning]

        discounted = pricing_input.model_copy(update={"promotion": validation})
        return self._pricing.calculate_price(discounted), []

    def _payment_error(
        self, method, member: MemberContext, price: PriceBreakdown
    ) -> Optional[ValidationError]:
        payment = check_payment(method, member, price.final_price)
        if payment.allowed:
            return None
        logger.info("Payment by %s refused: %s", method.value, payment.reason)
        return _invalid(ErrorCode.PAYMENT_NOT_ALLOWED, payment.reason, "payment_method")

    # ------------------------------------------------------------------ #
    # Update / cancel / visit status
    # ------------------------------------------------------------------ #

    def update_booking(
        self,
        booking: BookingRecord,
        changes: UpdateBookingInput,
        context: Optional[BookingContext] = None,
    ) -> Union[BookingUpdateResult, BookingValidationResult]:
        """
        Apply ``changes`` to a confirmed booking.

        A change of date, time, staff or facility is validated against the
        moved resources and re-checks availability. Moving to another facility
        also re-prices the booking; other changes keep the confirmed total.
        ``context`` bookings must not include ``booking`` itself.
        """
        context = context or BookingContext()
        sm = self._state_machine(booking.status)
        try:
            sm.transition(BookingEvent.MODIFY)
        except InvalidTransitionError as exc:
            logger.info("Update of %s refused: %s", booking.booking_number, exc)
            return BookingValidationResult(
                valid=False, status=booking.status, errors=[_transition_error(exc)]
            )

        reschedule = changes.changes_time_or_resource()
        updates: dict = {
            "status": sm.current_state,
            "status_history": [*booking.status_history, sm.current_state],
        }
        if changes.notes is not None:
            updates["notes"] = changes.notes

        price = None
        warnings: list[ValidationError] = []
        if reschedule:
            errors = self._validate_reschedule(booking, changes, context)
            if errors:
                return BookingValidationResult(
                    valid=False, status=booking.status, errors=errors
                )
            day = changes.date or booking.date
            raw = changes.slot or SlotRequest(start=booking.slot.start, end=booking.slot.end)
            slot = TimeSlot(start=raw.start, end=raw.end)
            staff_id = changes.staff_id or booking.staff_id
            facility_id = changes.facility_id or booking.facility_id
            errors = self._check_availability(day, slot, staff_id, facility_id, context)
            if errors:
                return BookingValidationResult(
                    valid=False, status=booking.status, errors=errors
                )
            updates.update(date=day, slot=slot, staff_id=staff_id, facility_id=facility_id)

            if facility_id != booking.facility_id:
                price, warnings = self._reprice(booking, facility_id, context)
                payment_error = self._payment_error(booking.payment_method, context.member, price)
                if payment_error is not None:
                    return BookingValidationResult(
                        valid=False, status=booking.status,
                        errors=[payment_error], warnings=warnings,
                    )
                updates["total"] = price.final_price

        updated = booking.model_copy(update=updates)
        logger.info(
            "Booking %s updated%s", booking.booking_number,
            " and rescheduled" if reschedule else "",
        )
        return BookingUpdateResult(
            booking=updated, availability_rechecked=reschedule, price=price, warnings=warnings
        )

    def _validate_reschedule(
        self, booking: BookingRecord, changes: UpdateBookingInput, context: BookingContext
    ) -> list[ValidationError]:
        """Create-time checks that depend on the moved date, time or resources."""
        staff_id = changes.staff_id or booking.staff_id
        facility_id = changes.facility_id or booking.facility_id
        _require("staff", staff_id, context.staff)
        _require("facility", facility_id, context.facility)
        if booking.service_id:
            _require("service", booking.service_id, context.service)

        now = self._now()
        policy = can_modify_booking(
            booking.status, booking.starts_at, now, self._config.modification_lead_hours
        )
        if not policy.allowed:
            return [_invalid(ErrorCode.NOT_MODIFIABLE, policy.reason)]

        errors = []
        raw = changes.slot or SlotRequest(start=booking.slot.start, end=booking.slot.end)
        if not _slot_is_well_formed(raw):
            errors.append(_malformed_slot(raw))
        elif _starts_at(changes.date or booking.date, raw.start) <= now:
            errors.append(_invalid(
                ErrorCode.START_IN_PAST, "Booking time must be in the future", "slot"
            ))

        guest_error = _guest_count_error(
            booking.guest_count,
            context.facility if facility_id else None,
            context.service if booking.service_id else None,
        )
        if guest_error is not None:
            errors.append(guest_error)

        if booking.service_id and changes.staff_id and changes.staff_id != booking.staff_id:
            qualification_error = _qualification_error(context.service, context.staff)
            if qualification_error is not None:
                errors.append(qualification_error)
        return errors

    def _reprice(
        self, booking: BookingRecord, facility_id: Optional[str], context: BookingContext
    ) -> tuple[PriceBreakdown, list[ValidationError]]:
        """Price at the new facility with the booking's own variations and promotion."""
        _require("member", booking.member_id, context.member)
        variations = self._resolve_variations(
            booking.selected_variation_ids, booking.service_id, context.service
        )
        price, warnings = self._price(
            booking.service_id, facility_id, booking.promotion_code,
            context, context.member, variations,
        )
        logger.info(
            "Booking %s re-priced at %s: %s -> %s",
            booking.booking_number, facility_id, booking.total, price.final_price,
        )
        return price, warnings

    def cancel_booking(
        self, booking: BookingRecord, request: Optional[CancelBookingInput] = None
    ) -> Union[CancellationResult, BookingValidationResult]:
        request = request or CancelBookingInput()
        policy = can_cancel_booking(booking.status)
        if not policy.allowed:
            logger.info("Cancellation of %s refused: %s", booking.booking_number, policy.reason)
            if policy.terminal:
                error = _error(
                    ErrorKind.INVALID_TRANSITION, ErrorCode.TERMINAL_STATE, policy.reason
                )
            else:
                error = _invalid(ErrorCode.NOT_MODIFIABLE, policy.reason)
            return BookingValidationResult(
                valid=False, status=booking.status, errors=[error]
            )

        sm = self._state_machine(booking.status)
        sm.transition(BookingEvent.CANCEL)
        refund = self._pricing.calculate_refund(
            booking.total, booking.starts_at, self._now(), waive_fee=request.waive_fee
        )
        cancelled = booking.model_copy(update={
            "status": sm.current_state,
            "status_history": [*booking.status_history, sm.current_state],
            "cancellation_reason": request.reason,
            "cancelled_by": request.cancelled_by,
        })
        logger.info(
            "Booking %s cancelled, refund %s (%d%%)",
            booking.booking_number, refund.refund_amount, refund.refund_percent,
        )
        return CancellationResult(booking=cancelled, refund=refund)

    def check_in(self, booking: BookingRecord) -> Union[BookingRecord, BookingValidationResult]:
        return self._apply(booking, BookingEvent.CHECK_IN)

    def complete(self, booking: BookingRecord) -> Union[BookingRecord, BookingValidationResult]:
        return self._apply(booking, BookingEvent.COMPLETE)

    def mark_no_show(self, booking: BookingRecord) -> Union[BookingRecord, BookingValidationResult]:
        return self._apply(booking, BookingEvent.MARK_NO_SHOW)

    def _apply(
        self, booking: BookingRecord, event: BookingEvent
    ) -> Union[BookingRecord, BookingValidationResult]:
        sm = self._state_machine(booking.status)
        try:
            sm.transition(event)
        except InvalidTransitionError as exc:
            return BookingValidationResult(
                valid=False, status=booking.status, errors=[_transition_error(exc)]
            )
        logger.info("Booking %s -> %s", booking.booking_number, sm.current_state.value)
        return booking.model_copy(update={
            "status": sm.current_state,
            "status_history": [*booking.status_history, sm.current_state],
        })

    # ------------------------------------------------------------------ #
    # Display
    # ------------------------------------------------------------------ #

    def summarize(self, result: BookingResult, context: BookingContext) -> BookingSummary:
        booking = result.booking
        if booking.service_id and context.service is not None:
            title = context.service.name
        elif booking.facility_id and context.facility is not None:
            title = context.facility.name
        else:
            title = f"{booking.booking_type.value.title()} booking"

        day = booking.date
        start = format_time_12h(minutes_to_time(booking.slot.start))
        end = format_time_12h(minutes_to_time(booking.slot.end))
        return BookingSummary(
            booking_number=booking.booking_number,
            title=title,
            staff_name=context.staff.full_name if booking.staff_id and context.staff else None,
            facility_name=(
                context.facility.name if booking.facility_id and context.facility else None
            ),
            date=f"{day:%A}, {day:%B} {day.day}, {day.year}",
            time=f"{start} - {end}",
            duration=f"{booking.slot.duration} min",
            total=self._pricing.format_currency(result.price.final_price),
        )


# Module-level instance
booking_service = BookingService()
