from __future__ import annotations

import logging
import re
from datetime import date
from typing import List, Optional, Sequence, Tuple

from config import EARLIEST_SUPPORTED_DATE, LATEST_SUPPORTED_DATE
from models import (
    AnnotatedTrip,
    IncompletedTrips,
    IncorrectInput,
    IneligibilityReason,
    PreEntryPeriod,
    TripRecord,
)
from rules import ILR_TRACKS, MAX_ALLOWABLE_PRE_ENTRY_DAYS

logger = logging.getLogger(__name__)

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a YYYY-MM-DD calendar day. Returns None for blanks and for
    anything that is not a real date (month 13, Feb 30, ...).
    """
    if not value or not isinstance(value, str):
        return None
    value = value.strip()
    if not _ISO_DATE.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def annotate_trips(trips: Sequence[TripRecord]) -> List[AnnotatedTrip]:
    """
    Add day counts to every trip, same length and order as the input.
    Broken trips are flagged with is_incomplete, never raised.
    """
    annotated: List[AnnotatedTrip] = []
    for trip in trips:
        out_day = parse_iso_date(trip.out_date)
        in_day = parse_iso_date(trip.in_date)
        is_incomplete = out_day is None or in_day is None

        calendar_days: Optional[int] = None
        full_days: Optional[int] = None
        if not is_incomplete:
            calendar_days = (in_day - out_day).days
            # Departure and return days are spent (partly) in the UK.
            full_days = max(0, calendar_days - 1)

        annotated.append(
            AnnotatedTrip(
                id=trip.id,
                out_date=trip.out_date,
                in_date=trip.in_date,
                out_route=trip.out_route,
                in_route=trip.in_route,
                calendar_days=calendar_days,
                full_days=full_days,
                is_incomplete=is_incomplete,
            )
        )
    return annotated


def trip_dates(trip: AnnotatedTrip) -> Tuple[date, date]:
    """(left, returned) for a complete trip."""
    out_day = parse_iso_date(trip.out_date)
    in_day = parse_iso_date(trip.in_date)
    if out_day is None or in_day is None:
        raise ValueError(f"Trip {trip.id!r} is incomplete.")
    return out_day, in_day


def find_overlapping_trips(
    trips: Sequence[AnnotatedTrip],
) -> Optional[Tuple[AnnotatedTrip, AnnotatedTrip]]:
    """
    Return the first pair of trips whose date ranges overlap, else None.
    Touching ranges (one returns the day the other leaves) count as overlap.
    """
    ranged = sorted(
        (trip_dates(t) + (t,) for t in trips if not t.is_incomplete),
        key=lambda r: (r[0], r[1]),
    )
    for previous, current in zip(ranged, ranged[1:]):
        if current[0] <= previous[1]:
            return previous[2], current[2]
    return None


def compute_pre_entry_period(visa_start_date: str, vignette_entry_date: str) -> PreEntryPeriod:
    visa_start = parse_iso_date(visa_start_date)
    entry = parse_iso_date(vignette_entry_date)

    if visa_start and entry:
        delay_days = (entry - visa_start).days
        if delay_days < 0:
            return PreEntryPeriod(False, 0, False, None)
        can_count = delay_days <= MAX_ALLOWABLE_PRE_ENTRY_DAYS
        return PreEntryPeriod(
            has_gap=delay_days > 0,
            delay_days=delay_days,
            can_count_toward_period=can_count,
            qualifying_start_date=visa_start if can_count else entry,
        )

    only = entry or visa_start
    return PreEntryPeriod(False, 0, only is not None, only)


def _supported(day: date) -> bool:
    return EARLIEST_SUPPORTED_DATE <= day <= LATEST_SUPPORTED_DATE


def check_input(
    trips: Sequence[AnnotatedTrip],
    visa_start_date: str,
    vignette_entry_date: str,
    ilr_track: Optional[int],
    application_date_override: Optional[str],
) -> Optional[IneligibilityReason]:
    """
    Reject input the engine cannot assess. Returns None when everything
    is usable, otherwise the first problem found.
    """
    visa_start = parse_iso_date(visa_start_date)
    entry = parse_iso_date(vignette_entry_date)

    if visa_start and entry and visa_start > entry:
        return IncorrectInput("Visa start date cannot be after the date you entered the UK.")

    if visa_start_date and not visa_start:
        return IncorrectInput(f"Visa start date {visa_start_date!r} is not a valid YYYY-MM-DD date.")
    if vignette_entry_date and not entry:
        return IncorrectInput(f"UK entry date {vignette_entry_date!r} is not a valid YYYY-MM-DD date.")
    if application_date_override and not parse_iso_date(application_date_override):
        return IncorrectInput(
            f"Application date {application_date_override!r} is not a valid YYYY-MM-DD date."
        )

    if not visa_start and not entry:
        return IncorrectInput("Enter your visa start date or the date you entered the UK.")

    override = parse_iso_date(application_date_override or "")
    checked = (("Visa start date", visa_start), ("UK entry date", entry), ("Application date", override))
    for label, value in checked:
        if value and not _supported(value):
            return IncorrectInput(f"{label} {value.isoformat()} is outside the supported range.")

    if ilr_track not in ILR_TRACKS:
        tracks = ", ".join(str(t) for t in ILR_TRACKS)
        return IncorrectInput(f"Choose an ILR track ({tracks} years).")

    incomplete = [t for t in trips if t.is_incomplete]
    if incomplete:
        return IncompletedTrips(
            f"{len(incomplete)} trip(s) are missing a valid departure or return date."
        )

    for trip in trips:
        out_day, in_day = trip_dates(trip)
        if not (_supported(out_day) and _supported(in_day)):
            return IncorrectInput(f"Trip {trip.id!r} has a date outside the supported range.")
        if in_day < out_day:
            return IncorrectInput(
                f"Trip {trip.id!r} returns ({trip.in_date}) before it departs ({trip.out_date})."
            )
        if entry and out_day < entry:
            return IncorrectInput(
                f"Trip {trip.id!r} departs ({trip.out_date}) before you first entered the UK ({entry})."
            )

    clash = find_overlapping_trips(trips)
    if clash:
        first, second = clash
        logger.debug("Overlapping trips %s and %s", first.id, second.id)
        return IncorrectInput(
            f"Trips {first.id!r} and {second.id!r} overlap. "
            "A new trip must start after the previous one has ended."
        )

    return None
