"""
Command line entry point for evaluating booking requests stored as JSON.

Usage:
    python main.py availability query.json [--duration 60]
    python main.py price pricing.json
    python main.py book booking.json [--verbose]

``book`` files hold ``{"request": {...}, "context": {...}}``. Results are
printed as JSON. The exit status is 1 when a booking or slot is refused.
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ValidationError

from clubbooking.logging_context import get_request_logger, request_context
from clubbooking.schemas.availability_schema import AvailabilityQuery
from clubbooking.schemas.booking_schema import BookingContext, BookingResult, CreateBookingInput
from clubbooking.schemas.pricing_schema import PricingInput
from clubbooking.services.availability import AvailabilityService
from clubbooking.services.booking import BookingService, IntegrationError
from clubbooking.services.pricing import PricingService

logger = get_request_logger(__name__)


class AvailabilityReport(BaseModel):
    """Day availability plus the requested slot verdict and slot grid."""

    day: dict
    slot: Optional[dict] = None
    options: list[dict] = []
    next_available: Optional[dict] = None


def run_availability(payload: dict, duration: Optional[int] = None) -> tuple[BaseModel, int]:
    service = AvailabilityService()
    query = AvailabilityQuery.model_validate(payload)
    report = AvailabilityReport(day=service.check_availability(query).model_dump(mode="json"))
    status = 0
    if query.requested_slot is not None:
        check = service.check_slot(query)
        report.slot = check.model_dump(mode="json")
        status = 0 if check.available else 1
    if duration:
        report.options = [
            option.model_dump(mode="json")
            for option in service.get_slot_options(query, duration)
        ]
        found = service.find_next_available(query, duration, not_before=datetime.now())
        if found is not None:
            day, slot = found
            report.next_available = {"date": day.isoformat(), "slot": slot.model_dump()}
    return report, status


def run_price(payload: dict) -> tuple[BaseModel, int]:
    return PricingService().calculate_price(PricingInput.model_validate(payload)), 0


def run_book(payload: dict) -> tuple[BaseModel, int]:
    request = CreateBookingInput.model_validate(payload.get("request", {}))
    context = BookingContext.model_validate(payload.get("context", {}))
    result = BookingService().create_booking(request, context)
    return result, 0 if isinstance(result, BookingResult) else 1


COMMANDS = {
    "availability": run_availability,
    "price": run_price,
    "book": run_book,
}


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Evaluate club booking requests from JSON files."
    )
    parser.add_argument("command", choices=sorted(COMMANDS), help="What to evaluate.")
    parser.add_argument("path", type=str, help="Path to the JSON request file.")
    parser.add_argument(
        "--duration",
        type=int,
        default=None,
        help=(
            "For 'availability': also list candidate slots of this many minutes "
            "and the next one that has not started yet."
        ),
    )
    parser.add_argument(
        "--request-id",
        type=str,
        default=None,
        help="Correlation ID for log records (default: a new REQ-XXXXXXXX).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging output.",
    )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    with request_context(args.request_id) as request_id:
        logger.debug("Evaluating %s request %s", args.command, request_id)
        return _run(args)


def _run(args: argparse.Namespace) -> int:
    path = Path(args.path)
    if not path.exists():
        logger.error("Request file not found: %s", path)
        return 2

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
        if args.command == "availability":
            result, status = run_availability(payload, args.duration)
        else:
            result, status = COMMANDS[args.command](payload)
    except (json.JSONDecodeError, ValidationError) as exc:
        logger.error("Invalid request in %s: %s", path, exc)
        return 2
    except IntegrationError as exc:
        logger.error("Request references missing records: %s", exc)
        return 2

    sys.stdout.write(result.model_dump_json(indent=2) + "\n")
    return status


if __name__ == "__main__":
    sys.exit(main())
