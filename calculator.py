from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from itertools import accumulate
from typing import List, Optional, Sequence, Tuple

from dateutil.relativedelta import relativedelta

from models import (
    AbsenceInterval,
    AnnotatedTrip,
    Eligible,
    ExcessiveAbsence,
    Ineligible,
    OffendingWindow,
    PreEntryPeriod,
    TooEarly,
    ValidationResult,
)
from rules import (
    APPLICATION_LEAD_DAYS,
    ILR_TRACKS,
    MAX_ABSENCE_IN_12_MONTHS,
    MAX_ILR_DATE_SEARCH_DAYS,
    MAX_SINGLE_ABSENCE_BEFORE_CUTOVER,
    MAX_TOTAL_ABSENCE_BEFORE_CUTOVER,
    TRANSITIONAL_CUTOVER_DATE,
    TRANSITIONAL_TRACK,
)
from trips import trip_dates

logger = logging.getLogger(__name__)

RULE_ROLLING = "ROLLING_12_MONTHS"
RULE_SINGLE_ABSENCE = "SINGLE_ABSENCE"
RULE_AGGREGATE = "AGGREGATE_ABSENCE"


# -----------------------------
# Absence intervals
# -----------------------------

def _overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> Optional[Tuple[date, date]]:
    """Return overlapping date range [start, end] inclusive, else None."""
    start = max(a_start, b_start)
    end = min(a_end, b_end)
    if start > end:
        return None
    return start, end


def make_interval(start: date, end: date) -> Optional[AbsenceInterval]:
    if start > end:
        return None
    return AbsenceInterval(start=start, end=end, days=(end - start).days + 1)


def build_absence_intervals(
    trips: Sequence[AnnotatedTrip],
    pre_entry: Optional[PreEntryPeriod] = None,
) -> List[AbsenceInterval]:
    """
    Turn complete trips (and a countable pre-entry gap) into sorted
    absence intervals.

    Trip:      (out + 1) ... (in - 1)
    Pre-entry: visa start ... (entry - 1); the entry day is a UK day.
    """
    intervals: List[AbsenceInterval] = []

    if pre_entry and pre_entry.has_gap and pre_entry.can_count_toward_period:
        gap_start = pre_entry.qualifying_start_date
        entry = gap_start + timedelta(days=pre_entry.delay_days)
        interval = make_interval(gap_start, entry - timedelta(days=1))
        if interval:
            intervals.append(interval)

    for trip in trips:
        if trip.is_incomplete:
            continue
        out_day, in_day = trip_dates(trip)
        interval = make_interval(out_day + timedelta(days=1), in_day - timedelta(days=1))
        if interval:
            intervals.append(interval)

    intervals.sort(key=lambda iv: (iv.start, iv.end))
    return intervals


def clip_intervals(intervals: Sequence[AbsenceInterval], start: date, end: date) -> List[AbsenceInterval]:
    """Keep only the part of each interval inside [start, end]."""
    clipped: List[AbsenceInterval] = []
    for iv in intervals:
        hit = _overlap(iv.start, iv.end, start, end)
        if hit:
            clipped.append(make_interval(*hit))
    return clipped


class AbsenceLedger:
    """
    Running total of absence days, so the absence inside any date range
    is a subtraction instead of a scan over every interval.
    """

    def __init__(self, intervals: Sequence[AbsenceInterval]):
        self._first: Optional[int] = None
        self._running: List[int] = []
        if not intervals:
            return

        first = min(iv.start for iv in intervals).toordinal()
        last = max(iv.end for iv in intervals).toordinal()
        marks = [0] * (last - first + 2)
        for iv in intervals:
            marks[iv.start.toordinal() - first] += 1
            marks[iv.end.toordinal() - first + 1] -= 1

        per_day = accumulate(marks[:-1])
        self._first = first
        self._running = list(accumulate(per_day))

    def _through(self, ordinal: int) -> int:
        """Absence days on or before the given day ordinal."""
        if self._first is None or ordinal < self._first:
            return 0
        offset = ordinal - self._first
        if offset >= len(self._running):
            return self._running[-1]
        return self._running[offset]

    def count(self, start: date, end: date) -> int:
        """Absence days within [start, end] inclusive."""
        if end < start:
            return 0
        return self._through(end.toordinal()) - self._through(start.toordinal() - 1)


def count_absent_days(intervals: Sequence[AbsenceInterval], window_start: date, window_end: date) -> int:
    """Absence days within [window_start, window_end] inclusive."""
    return AbsenceLedger(intervals).count(window_start, window_end)


# -----------------------------
# Qualifying-window evaluation
# -----------------------------

@dataclass(frozen=True)
class CandidateCheckResult:
    candidate_date: date
    period_start: date
    period_end: date
    days_in_period: int
    passed: bool
    rule: Optional[str] = None
    offending_windows: List[OffendingWindow] = field(default_factory=list)


def qualifying_period(assessment_date: date, track: int) -> Tuple[date, date]:
    """[assessment - track years, assessment], calendar years not 365-day blocks."""
    return assessment_date - relativedelta(years=track), assessment_date


def _rolling_offence(
    intervals: Sequence[AbsenceInterval],
    first_window_start: date,
    period_end: date,
) -> Optional[OffendingWindow]:
    """
    First 12-month window starting on/after first_window_start (and ending
    by period_end) with more than 180 absence days, else None.
    """
    total = sum(iv.days for iv in intervals)
    if total <= MAX_ABSENCE_IN_12_MONTHS:
        return None

    last_window_start = period_end - relativedelta(years=1)
    if last_window_start < first_window_start:
        # Less than a full year to look at: only a single absence can break the limit.
        for iv in intervals:
            if iv.days > MAX_ABSENCE_IN_12_MONTHS:
                return OffendingWindow(iv.start, iv.end, iv.days)
        return None

    ledger = AbsenceLedger(intervals)
    window_start = first_window_start
    while window_start <= last_window_start:
        window_end = window_start + relativedelta(years=1)
        days = ledger.count(window_start, window_end)
        if days > MAX_ABSENCE_IN_12_MONTHS:
            return OffendingWindow(window_start, window_end, days)
        window_start += timedelta(days=1)
    return None


def _transitional_offence(
    intervals: Sequence[AbsenceInterval],
    period_start: date,
    period_end: date,
) -> Tuple[Optional[str], List[OffendingWindow]]:
    """
    Long residence rules. Absences starting before the cutover are judged
    by the old single (184) and total (548) caps; the rest by the rolling
    180-day rule, with windows starting on/after the cutover.
    """
    cutover = TRANSITIONAL_CUTOVER_DATE
    legacy = [iv for iv in intervals if iv.start < cutover]
    modern = [iv for iv in intervals if iv.start >= cutover]

    for iv in legacy:
        if iv.days > MAX_SINGLE_ABSENCE_BEFORE_CUTOVER:
            return RULE_SINGLE_ABSENCE, [OffendingWindow(iv.start, iv.end, iv.days)]

    legacy_end = cutover - timedelta(days=1)
    legacy_total = 0
    for iv in legacy:
        hit = _overlap(iv.start, iv.end, period_start, legacy_end)
        if hit:
            legacy_total += (hit[1] - hit[0]).days + 1
    if legacy_total > MAX_TOTAL_ABSENCE_BEFORE_CUTOVER:
        return RULE_AGGREGATE, [OffendingWindow(period_start, legacy_end, legacy_total)]

    window = _rolling_offence(modern, max(cutover, period_start), period_end)
    if window:
        return RULE_ROLLING, [window]
    return None, []


def check_candidate_date(
    intervals: Sequence[AbsenceInterval],
    candidate_date: date,
    track: int,
) -> CandidateCheckResult:
    """
    Check the absence rules for one application date.

    Only the part of each absence inside the qualifying period counts.
    Values equal to a cap pass; only strictly greater values fail.
    """
    if track not in ILR_TRACKS:
        raise ValueError(f"Unknown ILR track: {track!r}")

    period_start, period_end = qualifying_period(candidate_date, track)
    relevant = clip_intervals(intervals, period_start, period_end)
    days_in_period = sum(iv.days for iv in relevant)

    if track == TRANSITIONAL_TRACK:
        rule, windows = _transitional_offence(relevant, period_start, period_end)
    else:
        window = _rolling_offence(relevant, period_start, period_end)
        rule, windows = (RULE_ROLLING, [window]) if window else (None, [])

    return CandidateCheckResult(
        candidate_date=candidate_date,
        period_start=period_start,
        period_end=period_end,
        days_in_period=days_in_period,
        passed=not windows,
        rule=rule,
        offending_windows=windows,
    )


def max_rolling_absence(
    intervals: Sequence[AbsenceInterval],
    period_start: date,
    period_end: date,
    stride_days: int = 7,
) -> int:
    """
    Largest 12-month absence total inside the period, sampled every
    stride_days plus at each absence start (where peaks begin).
    """
    relevant = clip_intervals(intervals, period_start, period_end)
    if not relevant:
        return 0

    last_window_start = period_end - relativedelta(years=1)
    if last_window_start < period_start:
        return sum(iv.days for iv in relevant)

    ledger = AbsenceLedger(relevant)
    starts = {iv.start for iv in relevant if iv.start <= last_window_start}
    cursor = period_start
    while cursor <= last_window_start:
        starts.add(cursor)
        cursor += timedelta(days=max(1, stride_days))

    return max(ledger.count(s, s + relativedelta(years=1)) for s in starts)


# -----------------------------
# Eligibility resolution
# -----------------------------

@dataclass(frozen=True)
class Resolution:
    validation: ValidationResult
    assessed_date: date
    auto_date_used: bool
    check: Optional[CandidateCheckResult] = None


def legal_earliest_date(qualifying_start: date, track: int) -> date:
    """Period completion minus the 28-day early-application allowance."""
    return qualifying_start + relativedelta(years=track) - timedelta(days=APPLICATION_LEAD_DAYS)


def _absence_message(check: CandidateCheckResult) -> str:
    window = check.offending_windows[0]
    if check.rule == RULE_SINGLE_ABSENCE:
        return (
            f"A single absence of {window.days} days ({window.start} to {window.end}) "
            f"exceeds the {MAX_SINGLE_ABSENCE_BEFORE_CUTOVER}-day limit for absences "
            f"before {TRANSITIONAL_CUTOVER_DATE}."
        )
    if check.rule == RULE_AGGREGATE:
        return (
            f"Total absence of {window.days} days before {TRANSITIONAL_CUTOVER_DATE} "
            f"exceeds the {MAX_TOTAL_ABSENCE_BEFORE_CUTOVER}-day limit."
        )
    return (
        f"{window.days} days outside the UK between {window.start} and {window.end} "
        f"exceeds the {MAX_ABSENCE_IN_12_MONTHS}-day limit in a 12-month period."
    )


def find_earliest_application_date(
    intervals: Sequence[AbsenceInterval],
    earliest: date,
    track: int,
    search_days: int = MAX_ILR_DATE_SEARCH_DAYS,
) -> CandidateCheckResult:
    """
    Scan forward day-by-day over `search_days` dates, starting at `earliest`
    (so the last one probed is `earliest + search_days - 1`), and return the
    first date that meets the absence rules.

    If none does, the check of the last probed date is returned (with
    passed=False); it is not an eligibility date.
    """
    current = earliest
    max_date = earliest + timedelta(days=max(search_days, 1) - 1)

    while True:
        result = check_candidate_date(intervals, current, track)
        if result.passed or current >= max_date:
            return result
        current += timedelta(days=1)


def resolve_application_date(
    intervals: Sequence[AbsenceInterval],
    qualifying_start: date,
    track: int,
    override: Optional[date] = None,
) -> Resolution:
    earliest = legal_earliest_date(qualifying_start, track)

    if override is not None:
        if override < earliest:
            reason = TooEarly(
                earliest_allowed_date=earliest,
                message=(
                    f"You can apply at the earliest on {earliest}, "
                    f"{APPLICATION_LEAD_DAYS} days before your {track}-year period completes."
                ),
            )
            return Resolution(Ineligible(reason), override, auto_date_used=False)

        check = check_candidate_date(intervals, override, track)
        logger.debug("Override %s passed=%s rule=%s", override, check.passed, check.rule)
        if check.passed:
            return Resolution(Eligible(override), override, False, check)
        reason = ExcessiveAbsence(check.offending_windows, _absence_message(check), check.rule)
        return Resolution(Ineligible(reason), override, False, check)

    check = find_earliest_application_date(intervals, earliest, track)
    logger.debug(
        "Search from %s stopped at %s passed=%s", earliest, check.candidate_date, check.passed
    )
    if check.passed:
        return Resolution(Eligible(check.candidate_date), check.candidate_date, True, check)

    message = (
        f"No application date within {MAX_ILR_DATE_SEARCH_DAYS} days of {earliest} "
        f"meets the absence rules. {_absence_message(check)}"
    )
    reason = ExcessiveAbsence(check.offending_windows, message, check.rule)
    return Resolution(Ineligible(reason), check.candidate_date, True, check)
