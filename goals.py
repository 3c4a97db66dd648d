"""
Goal-tracking view of the ILR calculator.

Wraps calculate_travel_data() and reshapes the result into a status,
a progress figure, metrics, warnings and a requirements checklist.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Literal, Optional, Sequence, Union

from composer import calculate_travel_data
from models import (
    Eligible,
    ExcessiveAbsence,
    ILRCalculationInput,
    Ineligible,
    Summary,
    TravelCalculationResult,
    TripRecord,
    ValidationResult,
)
from rules import (
    CAUTION_ABSENCE_DAYS,
    ILR_TRACKS,
    MAX_ABSENCE_IN_12_MONTHS,
    MAX_SINGLE_ABSENCE_BEFORE_CUTOVER,
    TRANSITIONAL_TRACK,
)
from trips import parse_iso_date

GoalStatus = Literal[
    "not_started",
    "in_progress",
    "on_track",
    "at_risk",
    "limit_exceeded",
    "eligible",
]
MetricStatus = Literal["ok", "warning", "exceeded"]

LOW_ALLOWANCE_DAYS = 30


@dataclass(frozen=True)
class IlrGoalConfig:
    track_years: int
    visa_start_date: str
    vignette_entry_date: str = ""
    visa_type: str = ""
    type: str = "uk_ilr"


@dataclass(frozen=True)
class GoalMetric:
    key: str
    label: str
    value: Union[int, str]
    unit: str
    status: MetricStatus
    limit: Optional[int] = None
    tooltip: str = ""


@dataclass(frozen=True)
class GoalWarning:
    severity: Literal["info", "warning", "error"]
    title: str
    message: str
    action: str = ""
    offending_windows: List[Any] = field(default_factory=list)


@dataclass(frozen=True)
class GoalRequirement:
    key: str
    label: str
    status: Literal["met", "pending", "not_met"]
    detail: str = ""


@dataclass(frozen=True)
class GoalCalculation:
    goal_type: str
    status: GoalStatus
    progress_percent: int
    eligibility_date: Optional[date]
    days_until_eligible: Optional[int]
    metrics: List[GoalMetric]
    warnings: List[GoalWarning]
    requirements: List[GoalRequirement]
    result: TravelCalculationResult


def _metric_status(value: int, limit: int) -> MetricStatus:
    if value > limit:
        return "exceeded"
    if value >= CAUTION_ABSENCE_DAYS:
        return "warning"
    return "ok"


class IlrGoalEngine:
    goal_type = "uk_ilr"
    jurisdiction = "uk"

    def validate_config(self, config: Any) -> bool:
        if isinstance(config, IlrGoalConfig):
            config = config.__dict__
        if not isinstance(config, dict):
            return False
        return (
            config.get("type") == "uk_ilr"
            and isinstance(config.get("visa_start_date"), str)
            and config.get("track_years") in ILR_TRACKS
        )

    def display_info(self) -> Dict[str, str]:
        return {
            "name": "UK Indefinite Leave to Remain",
            "icon": "home",
            "description": "Track continuous residence for ILR eligibility",
            "category": "immigration",
        }

    def calculate(
        self,
        trips: Sequence[TripRecord],
        config: IlrGoalConfig,
        as_of: Optional[date] = None,
    ) -> GoalCalculation:
        as_of = as_of or date.today()
        result = calculate_travel_data(
            ILRCalculationInput(
                trips=list(trips),
                visa_start_date=config.visa_start_date,
                vignette_entry_date=config.vignette_entry_date or config.visa_start_date,
                ilr_track=config.track_years,
                application_date_override=None,
            ),
            today=as_of,
        )
        summary = result.summary

        return GoalCalculation(
            goal_type=self.goal_type,
            status=self._status(result.validation, summary, as_of),
            progress_percent=self._progress(config, as_of),
            eligibility_date=summary.ilr_eligibility_date,
            days_until_eligible=summary.days_until_eligible,
            metrics=self._metrics(summary, config),
            warnings=self._warnings(summary, result.validation),
            requirements=self._requirements(summary),
            result=result,
        )

    def _status(self, validation: ValidationResult, summary: Summary, as_of: date) -> GoalStatus:
        if isinstance(validation, Eligible):
            return "eligible" if validation.application_date <= as_of else "on_track"
        if summary.has_exceeded_allowed_absense:
            return "limit_exceeded"
        if (summary.max_absence_in_any_12_months or 0) >= CAUTION_ABSENCE_DAYS:
            return "at_risk"
        return "in_progress"

    def _progress(self, config: IlrGoalConfig, as_of: date) -> int:
        start = parse_iso_date(config.visa_start_date)
        if start is None:
            return 0
        total_days = config.track_years * 365
        elapsed = (as_of - start).days
        return max(0, min(100, round(elapsed / total_days * 100)))

    def _metrics(self, summary: Summary, config: IlrGoalConfig) -> List[GoalMetric]:
        metrics = [
            GoalMetric(
                key="total_days_outside",
                label="Total Days Outside UK",
                value=summary.total_full_days,
                unit="days",
                status="ok",
                tooltip="Total full days spent outside the UK since visa start",
            )
        ]

        if summary.continuous_leave_days is not None:
            metrics.append(
                GoalMetric(
                    key="continuous_leave",
                    label="Days in UK",
                    value=summary.continuous_leave_days,
                    unit="days",
                    status="ok",
                    tooltip="Days physically present in the UK during the qualifying period",
                )
            )

        if summary.max_absence_in_any_12_months is not None:
            limit = (
                MAX_SINGLE_ABSENCE_BEFORE_CUTOVER
                if config.track_years == TRANSITIONAL_TRACK
                else MAX_ABSENCE_IN_12_MONTHS
            )
            metrics.append(
                GoalMetric(
                    key="max_rolling_absence",
                    label="Max 12-Month Absence",
                    value=summary.max_absence_in_any_12_months,
                    limit=limit,
                    unit="days",
                    status=_metric_status(summary.max_absence_in_any_12_months, limit),
                    tooltip=f"Maximum absence in any rolling 12-month period (limit: {limit} days)",
                )
            )

        if summary.current_rolling_absence_today is not None:
            metrics.append(
                GoalMetric(
                    key="current_rolling",
                    label="Current 12-Month Total",
                    value=summary.current_rolling_absence_today,
                    limit=MAX_ABSENCE_IN_12_MONTHS,
                    unit="days",
                    status=_metric_status(summary.current_rolling_absence_today, MAX_ABSENCE_IN_12_MONTHS),
                    tooltip="Absence days in the 12-month period ending today",
                )
            )

        if summary.remaining_180_limit_today is not None:
            metrics.append(
                GoalMetric(
                    key="remaining_allowance",
                    label="Days Available",
                    value=summary.remaining_180_limit_today,
                    unit="days",
                    status="warning" if summary.remaining_180_limit_today < LOW_ALLOWANCE_DAYS else "ok",
                    tooltip="Days you can still spend outside the UK in the current 12-month window",
                )
            )

        return metrics

    def _warnings(self, summary: Summary, validation: ValidationResult) -> List[GoalWarning]:
        warnings: List[GoalWarning] = []

        if summary.has_exceeded_allowed_absense:
            windows = []
            if isinstance(validation, Ineligible) and isinstance(validation.reason, ExcessiveAbsence):
                windows = list(validation.reason.offending_windows)
            warnings.append(
                GoalWarning(
                    severity="error",
                    title="Absence Limit Exceeded",
                    message="You have exceeded the maximum allowed absence.",
                    action="Review your travel history and eligibility date",
                    offending_windows=windows,
                )
            )
        elif (
            summary.remaining_180_limit_today is not None
            and summary.remaining_180_limit_today < LOW_ALLOWANCE_DAYS
        ):
            warnings.append(
                GoalWarning(
                    severity="warning",
                    title="Low Remaining Allowance",
                    message=(
                        f"You only have {summary.remaining_180_limit_today} days left "
                        "in your current 12-month window."
                    ),
                    action="Plan any upcoming travel carefully",
                )
            )

        if isinstance(validation, Ineligible):
            warnings.append(
                GoalWarning(severity="info", title="Not Yet Eligible", message=validation.reason.message)
            )

        return warnings

    def _requirements(self, summary: Summary) -> List[GoalRequirement]:
        eligible_on = summary.ilr_eligibility_date
        return [
            GoalRequirement(
                key="qualifying_period",
                label="Complete qualifying period",
                status="met" if eligible_on else "pending",
                detail=f"Eligible from {eligible_on.isoformat()}" if eligible_on else "In progress",
            ),
            GoalRequirement(
                key="absence_limit",
                label="Stay within absence limits",
                status="not_met" if summary.has_exceeded_allowed_absense else "met",
                detail="Exceeded absence limit" if summary.has_exceeded_allowed_absense else "Within limits",
            ),
        ]
