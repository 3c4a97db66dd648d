import json
from datetime import date

import pytest

from composer import calculate_travel_data, risk_level
from models import Eligible, ILRCalculationInput, Ineligible, TripRecord

TODAY = date(2026, 1, 1)


def calc(trips=(), visa="2023-01-01", entry="2023-01-01", track=3, override=None, today=TODAY):
    records = [
        t if isinstance(t, TripRecord) else TripRecord(f"t{i}", t[0], t[1])
        for i, t in enumerate(trips)
    ]
    return calculate_travel_data(
        ILRCalculationInput(
            trips=records,
            visa_start_date=visa,
            vignette_entry_date=entry,
            ilr_track=track,
            application_date_override=override,
        ),
        today=today,
    )


def reason_type(result):
    assert isinstance(result.validation, Ineligible)
    return result.validation.reason.type


def test_no_trips_five_year_track():
    result = calc(visa="2023-01-01", entry="", track=5)
    assert result.validation == Eligible(date(2027, 12, 4))
    assert result.summary.auto_date_used is True
    assert result.summary.ilr_eligibility_date == date(2027, 12, 4)
    assert result.summary.days_until_eligible == (date(2027, 12, 4) - TODAY).days
    assert result.summary.has_exceeded_allowed_absense is False


def test_long_trip_delays_application_date():
    result = calc([("2023-02-01", "2023-08-29")], track=3)
    assert result.annotated_trips[0].full_days == 208
    assert result.validation == Eligible(date(2026, 3, 2))
    assert result.summary.has_exceeded_allowed_absense is False
    assert result.summary.max_absence_in_any_12_months == 180


def test_exactly_180_days_passes():
    result = calc([("2023-03-01", "2023-08-29")], track=3, override="2026-01-01")
    assert result.summary.total_full_days == 180
    assert result.summary.has_exceeded_allowed_absense is False
    assert result.validation == Eligible(date(2026, 1, 1))
    assert result.summary.auto_date_used is False


def test_181_days_fails_with_offending_window():
    result = calc([("2023-03-01", "2023-08-30")], track=3, override="2026-01-01")
    assert result.summary.has_exceeded_allowed_absense is True
    assert reason_type(result) == "EXCESSIVE_ABSENCE"
    [window] = result.validation.reason.offending_windows
    assert window.days == 181
    assert result.summary.ilr_eligibility_date is None


def test_several_trips_in_one_year_exceed_limit():
    trips = [
        ("2023-02-01", "2023-04-01"),
        ("2023-06-01", "2023-08-01"),
        ("2023-10-01", "2023-12-05"),
    ]
    result = calc(trips, track=5, override="2028-01-01")
    assert result.summary.total_full_days == 182
    assert result.summary.has_exceeded_allowed_absense is True
    assert result.summary.max_absence_in_any_12_months == 182


def test_override_too_early():
    result = calc(track=5, override="2026-01-01")
    assert reason_type(result) == "TOO_EARLY"
    assert result.validation.reason.earliest_allowed_date == date(2027, 12, 4)
    assert result.summary.days_until_eligible == (date(2027, 12, 4) - TODAY).days


def test_transitional_track_single_absence():
    trips = [("2020-01-01", "2020-07-05")]  # 185 full days
    result = calc(trips, visa="2015-01-01", entry="2015-01-01", track=10, override="2025-06-01")
    assert result.annotated_trips[0].full_days == 185
    assert reason_type(result) == "EXCESSIVE_ABSENCE"
    assert result.validation.reason.rule == "SINGLE_ABSENCE"


def test_visa_after_entry_short_circuits():
    result = calc([("2023-03-01", "2023-03-10")], visa="2023-06-01", entry="2023-01-01")
    assert reason_type(result) == "INCORRECT_INPUT"
    assert result.rolling_absence_series == []
    assert result.timeline_points == []
    assert result.trip_bars == []
    assert result.summary.total_trips == 1
    assert result.summary.total_full_days == 8
    assert result.summary.max_absence_in_any_12_months is None


def test_overlapping_trips_rejected():
    result = calc([("2023-03-01", "2023-06-01"), ("2023-04-01", "2023-07-01")], track=5)
    assert reason_type(result) == "INCORRECT_INPUT"


def test_incomplete_trips_still_annotated():
    result = calc([("2023-03-01", ""), ("2023-05-01", "2023-05-04")])
    assert reason_type(result) == "INCOMPLETED_TRIPS"
    assert [t.is_incomplete for t in result.annotated_trips] == [True, False]
    assert result.summary.incomplete_trips == 1
    assert result.summary.complete_trips == 1
    assert result.trip_bars == []


@pytest.mark.parametrize("kwargs", [
    {"track": None},
    {"track": 4},
    {"visa": "", "entry": ""},
    {"override": "2026-02-30"},
])
def test_unusable_settings(kwargs):
    assert reason_type(calc(**kwargs)) == "INCORRECT_INPUT"


def test_pre_entry_gap_reported_and_counted():
    result = calc(visa="2023-01-01", entry="2023-05-31", track=5)
    period = result.pre_entry_period
    assert (period.delay_days, period.can_count_toward_period) == (150, True)
    assert period.qualifying_start_date == date(2023, 1, 1)
    assert result.validation == Eligible(date(2027, 12, 4))
    assert result.summary.max_absence_in_any_12_months == 150


def test_trip_inside_pre_entry_gap_is_rejected_not_double_counted():
    result = calc(
        [("2023-02-01", "2023-05-01")], visa="2023-01-01", entry="2023-05-31", track=5, override="2028-01-01"
    )
    assert reason_type(result) == "INCORRECT_INPUT"
    assert result.rolling_absence_series == []


def test_same_input_same_output():
    trips = [("2023-03-01", "2023-03-20"), ("2024-07-01", "2024-08-15")]
    first = calc(trips, track=3).to_dict()
    second = calc(trips, track=3).to_dict()
    assert first == second
    assert json.dumps(first) == json.dumps(second)


def test_result_is_json_serializable():
    result = calc([("2023-03-01", "2023-08-30")], track=3, override="2026-01-01").to_dict()
    text = json.dumps(result)
    assert '"status": "INELIGIBLE"' in text
    assert result["validation"]["reason"]["type"] == "EXCESSIVE_ABSENCE"
    assert result["validation"]["reason"]["offending_windows"][0]["start"] == "2023-01-01"
    assert result["pre_entry_period"]["qualifying_start_date"] == "2023-01-01"


# -----------------------------
# Chart series
# -----------------------------

def test_timeline_marks_full_absence_days():
    result = calc([("2023-03-01", "2023-03-05")], today=date(2024, 1, 1))
    points = {p.date: p for p in result.timeline_points}
    assert len(result.timeline_points) == 366
    assert points[date(2023, 3, 1)].trip_count == 1
    assert points[date(2023, 3, 1)].is_absent is False
    assert points[date(2023, 3, 2)].is_absent is True
    assert points[date(2023, 3, 5)].is_absent is False
    assert points[date(2023, 3, 6)].trip_count == 0


def test_rolling_series_spans_start_to_today():
    result = calc([("2023-03-01", "2023-03-05")], today=date(2024, 1, 1))
    series = result.rolling_absence_series
    assert series[0].date == date(2023, 1, 1)
    assert series[-1].date == date(2024, 1, 1)
    assert 100 <= len(series) <= 130

    last = series[-1]
    assert last.rolling_days == 3
    assert last.risk_level == "low"
    assert last.next_expiration_date == date(2024, 3, 2)
    assert last.days_to_expire == 3


def test_series_empty_when_today_before_start():
    result = calc(visa="2030-01-01", entry="2030-01-01", today=date(2026, 1, 1))
    assert result.rolling_absence_series == []
    assert result.timeline_points == []


def test_current_rolling_absence_today():
    result = calc([("2023-03-01", "2023-03-05")], today=date(2024, 1, 1))
    assert result.summary.current_rolling_absence_today == 3
    assert result.summary.remaining_180_limit_today == 177


def test_trip_bars():
    trips = [
        TripRecord("a", "2023-03-01", "2023-03-05", "LHR - JFK", "JFK - LHR"),
        TripRecord("b", "2023-06-01", "2023-06-02"),
    ]
    result = calc(trips)
    bar_a, bar_b = result.trip_bars
    assert bar_a.trip_label == "LHR - JFK -> JFK - LHR"
    assert (bar_a.trip_start, bar_a.trip_end, bar_a.trip_duration) == (59, 63, 3)
    assert bar_b.trip_label == "Unknown -> Unknown"
    assert bar_b.trip_duration == 0


@pytest.mark.parametrize("days,level", [(0, "low"), (149, "low"), (150, "caution"), (180, "critical")])
def test_risk_level(days, level):
    assert risk_level(days) == level
