"""
Single entry point of the ILR residence calculator.

calculate_travel_data() takes the raw input and returns every derived
value a caller needs: annotated trips, the verdict, summary counters and
the chart series. It never raises for bad input; problems come back as
an INELIGIBLE verdict with empty chart series.
"""
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import List, Optional, Sequence

from dateutil.relativedelta import relativedelta

from calculator import (
    AbsenceLedger,
    Resolution,
    build_absence_intervals,
    check_candidate_date,
    clip_intervals,
    max_rolling_absence,
    qualifying_period,
    resolve_application_date,
)
from config import (
    MAX_ROLLING_SERIES_DAYS,
    MAX_TIMELINE_DAYS,
    ROLLING_SERIES_POINTS,
    SUMMARY_SAMPLE_STRIDE_DAYS,
)
from models import (
    AbsenceInterval,
    AnnotatedTrip,
    Eligible,
    ILRCalculationInput,
    Ineligible,
    RiskLevel,
    RollingDataPoint,
    Summary,
    TimelinePoint,
    TooEarly,
    TravelCalculationResult,
    TripBar,
)
from rules import CAUTION_ABSENCE_DAYS, MAX_ABSENCE_IN_12_MONTHS
from trips import annotate_trips, check_input, compute_pre_entry_period, parse_iso_date, trip_dates

logger = logging.getLogger(__name__)


def calculate_travel_data(
    data: ILRCalculationInput,
    today: Optional[date] = None,
) -> TravelCalculationResult:
    today = today or date.today()

    annotated = annotate_trips(data.trips)
    pre_entry = compute_pre_entry_period(data.visa_start_date, data.vignette_entry_date)

    problem = check_input(
        annotated,
        data.visa_start_date,
        data.vignette_entry_date,
        data.ilr_track,
        data.application_date_override,
    )
    if problem:
        logger.debug("Input rejected: %s", problem.type)
        return TravelCalculationResult(
            annotated_trips=annotated,
            pre_entry_period=pre_entry,
            validation=Ineligible(problem),
            summary=_trip_counts(annotated, auto_date_used=not data.application_date_override),
            rolling_absence_series=[],
            timeline_points=[],
            trip_bars=[],
        )

    start = pre_entry.qualifying_start_date
    intervals = build_absence_intervals(annotated, pre_entry)
    resolution = resolve_application_date(
        intervals,
        start,
        data.ilr_track,
        override=parse_iso_date(data.application_date_override),
    )

    return TravelCalculationResult(
        annotated_trips=annotated,
        pre_entry_period=pre_entry,
        validation=resolution.validation,
        summary=build_summary(annotated, intervals, resolution, data.ilr_track, today),
        rolling_absence_series=build_rolling_absence_series(intervals, start, today),
        timeline_points=build_timeline_points(annotated, intervals, start, today),
        trip_bars=build_trip_bars(annotated, start),
    )


# -----------------------------
# Summary
# -----------------------------

def _trip_counts(trips: Sequence[AnnotatedTrip], auto_date_used: bool) -> Summary:
    complete = [t for t in trips if not t.is_incomplete]
    return Summary(
        total_trips=len(trips),
        complete_trips=len(complete),
        incomplete_trips=len(trips) - len(complete),
        total_full_days=sum(t.full_days or 0 for t in complete),
        auto_date_used=auto_date_used,
    )


def build_summary(
    trips: Sequence[AnnotatedTrip],
    intervals: Sequence[AbsenceInterval],
    resolution: Resolution,
    track: int,
    today: date,
) -> Summary:
    counts = _trip_counts(trips, resolution.auto_date_used)

    assessed = resolution.assessed_date
    check = resolution.check or check_candidate_date(intervals, assessed, track)
    period_start, period_end = qualifying_period(assessed, track)
    absent_in_period = sum(iv.days for iv in clip_intervals(intervals, period_start, period_end))

    eligibility_date: Optional[date] = None
    if isinstance(resolution.validation, Eligible):
        eligibility_date = resolution.validation.application_date
        target = eligibility_date
    elif isinstance(resolution.validation.reason, TooEarly):
        target = resolution.validation.reason.earliest_allowed_date
    else:
        target = None

    rolling_today = AbsenceLedger(intervals).count(today - relativedelta(years=1), today)

    return Summary(
        total_trips=counts.total_trips,
        complete_trips=counts.complete_trips,
        incomplete_trips=counts.incomplete_trips,
        total_full_days=counts.total_full_days,
        continuous_leave_days=(period_end - period_start).days - absent_in_period,
        max_absence_in_any_12_months=max_rolling_absence(
            intervals, period_start, period_end, SUMMARY_SAMPLE_STRIDE_DAYS
        ),
        has_exceeded_allowed_absense=not check.passed,
        ilr_eligibility_date=eligibility_date,
        days_until_eligible=(target - today).days if target else None,
        auto_date_used=resolution.auto_date_used,
        current_rolling_absence_today=rolling_today,
        remaining_180_limit_today=max(0, MAX_ABSENCE_IN_12_MONTHS - rolling_today),
    )


# -----------------------------
# Chart series
# -----------------------------

def risk_level(days: int) -> RiskLevel:
    if days >= MAX_ABSENCE_IN_12_MONTHS:
        return "critical"
    if days >= CAUTION_ABSENCE_DAYS:
        return "caution"
    return "low"


def _rolling_point(ledger: AbsenceLedger, intervals: Sequence[AbsenceInterval], day: date) -> RollingDataPoint:
    window_start = day - relativedelta(years=1)
    rolling_days = ledger.count(window_start, day)

    # Oldest absence still inside the window
    in_window = clip_intervals(intervals, window_start, day)
    oldest = in_window[0] if in_window else None

    return RollingDataPoint(
        date=day,
        rolling_days=rolling_days,
        risk_level=risk_level(rolling_days),
        next_expiration_date=oldest.start + relativedelta(years=1) if oldest else None,
        days_to_expire=oldest.days if oldest else None,
    )


def build_rolling_absence_series(
    intervals: Sequence[AbsenceInterval],
    start: date,
    end: date,
) -> List[RollingDataPoint]:
    """About ROLLING_SERIES_POINTS samples of the 12-month absence total, start..end."""
    total_days = (end - start).days
    if total_days < 0 or total_days > MAX_ROLLING_SERIES_DAYS:
        return []

    ledger = AbsenceLedger(intervals)
    step = max(1, total_days // ROLLING_SERIES_POINTS)
    points = [
        _rolling_point(ledger, intervals, start + timedelta(days=offset))
        for offset in range(0, total_days + 1, step)
    ]
    if total_days % step:
        points.append(_rolling_point(ledger, intervals, end))
    return points


def build_timeline_points(
    trips: Sequence[AnnotatedTrip],
    intervals: Sequence[AbsenceInterval],
    start: date,
    end: date,
) -> List[TimelinePoint]:
    """One point per day from start to end: trips in progress and whether it is a full absence day."""
    total_days = (end - start).days
    if total_days < 0 or total_days > MAX_TIMELINE_DAYS:
        return []

    ranges = [trip_dates(t) for t in trips if not t.is_incomplete]
    ledger = AbsenceLedger(intervals)

    points: List[TimelinePoint] = []
    for offset in range(total_days + 1):
        day = start + timedelta(days=offset)
        points.append(
            TimelinePoint(
                date=day,
                days_since_start=offset,
                trip_count=sum(1 for out_day, in_day in ranges if out_day <= day <= in_day),
                is_absent=ledger.count(day, day) > 0,
            )
        )
    return points


def build_trip_bars(trips: Sequence[AnnotatedTrip], start: date) -> List[TripBar]:
    bars: List[TripBar] = []
    for trip in trips:
        if trip.is_incomplete:
            continue
        out_day, in_day = trip_dates(trip)
        bars.append(
            TripBar(
                id=trip.id,
                date=trip.out_date,
                trip_start=(out_day - start).days,
                trip_end=(in_day - start).days,
                trip_duration=trip.full_days or 0,
                trip_label=f"{trip.out_route or 'Unknown'} -> {trip.in_route or 'Unknown'}",
                out_date=trip.out_date,
                in_date=trip.in_date,
            )
        )
    return bars
