from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import date
from typing import Any, Dict, List, Literal, Optional, Union


@dataclass(frozen=True)
class TripRecord:
    """
    One trip outside the UK, exactly as the caller entered it.

    out_date: date you LEFT the UK (YYYY-MM-DD, may be blank)
    in_date:  date you RETURNED to the UK (YYYY-MM-DD, may be blank)
    """
    id: str
    out_date: str
    in_date: str
    out_route: str = ""
    in_route: str = ""


@dataclass(frozen=True)
class AnnotatedTrip:
    """
    A TripRecord plus its day counts.

    calendar_days = in_date - out_date
    full_days     = max(0, calendar_days - 1)

    Departure and arrival days are never counted as absence.
    Both counts are None when the trip is incomplete.
    """
    id: str
    out_date: str
    in_date: str
    out_route: str
    in_route: str
    calendar_days: Optional[int]
    full_days: Optional[int]
    is_incomplete: bool


@dataclass(frozen=True)
class AbsenceInterval:
    """Closed range [start, end] of days spent outside the UK."""
    start: date
    end: date
    days: int


@dataclass(frozen=True)
class OffendingWindow:
    start: date
    end: date
    days: int


@dataclass(frozen=True)
class PreEntryPeriod:
    """
    Gap between visa issue and physical entry.

    If the delay is short enough the qualifying period starts on the
    visa start date, otherwise on the entry date.
    """
    has_gap: bool
    delay_days: int
    can_count_toward_period: bool
    qualifying_start_date: Optional[date]


# -----------------------------
# Verdicts
# -----------------------------

@dataclass(frozen=True)
class TooEarly:
    earliest_allowed_date: date
    message: str
    type: Literal["TOO_EARLY"] = field(default="TOO_EARLY", init=False)


@dataclass(frozen=True)
class ExcessiveAbsence:
    offending_windows: List[OffendingWindow]
    message: str
    rule: str
    type: Literal["EXCESSIVE_ABSENCE"] = field(default="EXCESSIVE_ABSENCE", init=False)


@dataclass(frozen=True)
class IncorrectInput:
    message: str
    type: Literal["INCORRECT_INPUT"] = field(default="INCORRECT_INPUT", init=False)


@dataclass(frozen=True)
class IncompletedTrips:
    message: str
    type: Literal["INCOMPLETED_TRIPS"] = field(default="INCOMPLETED_TRIPS", init=False)


IneligibilityReason = Union[TooEarly, ExcessiveAbsence, IncorrectInput, IncompletedTrips]


@dataclass(frozen=True)
class Eligible:
    application_date: date
    status: Literal["ELIGIBLE"] = field(default="ELIGIBLE", init=False)


@dataclass(frozen=True)
class Ineligible:
    reason: IneligibilityReason
    status: Literal["INELIGIBLE"] = field(default="INELIGIBLE", init=False)


ValidationResult = Union[Eligible, Ineligible]


# -----------------------------
# Summary & chart records
# -----------------------------

@dataclass(frozen=True)
class Summary:
    total_trips: int
    complete_trips: int
    incomplete_trips: int
    total_full_days: int
    continuous_leave_days: Optional[int] = None
    max_absence_in_any_12_months: Optional[int] = None
    has_exceeded_allowed_absense: bool = False
    ilr_eligibility_date: Optional[date] = None
    days_until_eligible: Optional[int] = None
    auto_date_used: bool = False
    current_rolling_absence_today: Optional[int] = None
    remaining_180_limit_today: Optional[int] = None


RiskLevel = Literal["low", "caution", "critical"]


@dataclass(frozen=True)
class RollingDataPoint:
    date: date
    rolling_days: int
    risk_level: RiskLevel
    # When the oldest absence in the window stops counting, and how many days it frees.
    next_expiration_date: Optional[date] = None
    days_to_expire: Optional[int] = None


@dataclass(frozen=True)
class TimelinePoint:
    date: date
    days_since_start: int
    trip_count: int
    is_absent: bool


@dataclass(frozen=True)
class TripBar:
    id: str
    date: str
    trip_start: int
    trip_end: int
    trip_duration: int
    trip_label: str
    out_date: str
    in_date: str


# -----------------------------
# Engine input / output
# -----------------------------

def _pick(row: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in row and row[key] is not None:
            return row[key]
    return default


def _text(row: Dict[str, Any], *keys: str) -> str:
    value = _pick(row, *keys)
    return "" if value is None else str(value).strip()


def row_to_trip(row: Dict[str, Any]) -> TripRecord:
    """Build a TripRecord from an API/export row (camelCase or snake_case keys)."""
    return TripRecord(
        id=str(_pick(row, "id", default="")),
        out_date=_text(row, "outDate", "out_date"),
        in_date=_text(row, "inDate", "in_date"),
        out_route=_text(row, "outRoute", "out_route"),
        in_route=_text(row, "inRoute", "in_route"),
    )


@dataclass(frozen=True)
class ILRCalculationInput:
    trips: List[TripRecord] = field(default_factory=list)
    vignette_entry_date: str = ""
    visa_start_date: str = ""
    ilr_track: Optional[int] = None
    application_date_override: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ILRCalculationInput":
        track = _pick(payload, "ilrTrack", "ilr_track")
        return cls(
            trips=[row_to_trip(r) for r in payload.get("trips") or []],
            vignette_entry_date=_text(payload, "vignetteEntryDate", "vignette_entry_date"),
            visa_start_date=_text(payload, "visaStartDate", "visa_start_date"),
            ilr_track=int(track) if isinstance(track, (int, str)) and str(track).isdigit() else None,
            application_date_override=_text(
                payload, "applicationDateOverride", "application_date_override"
            ) or None,
        )


@dataclass(frozen=True)
class TravelCalculationResult:
    annotated_trips: List[AnnotatedTrip]
    pre_entry_period: PreEntryPeriod
    validation: ValidationResult
    summary: Summary
    rolling_absence_series: List[RollingDataPoint]
    timeline_points: List[TimelinePoint]
    trip_bars: List[TripBar]

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(self)


def to_jsonable(value: Any) -> Any:
    """Convert engine records to plain JSON types (dates become ISO strings)."""
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, date):
        return value.isoformat()
    return value
