import dataclasses
from datetime import date

from models import ExportFilters


def test_valid_record_has_no_problems(hz100):
    assert hz100.validate() == []


def test_missing_aircraft_type(hz100):
    assert dataclasses.replace(hz100, aircraft_type="").validate() == ["missing aircraft type"]


def test_times_need_a_colon(hz100):
    problems = dataclasses.replace(hz100, std="0600", sta="0815").validate()

    assert problems == ["invalid STD '0600', expected HH:MM", "invalid STA '0815', expected HH:MM"]


def test_invalid_utc_offset(hz100):
    problems = dataclasses.replace(hz100, arrival_utc_offset="0700").validate()

    assert problems == ["invalid arrival UTC offset '0700'"]


def test_block_minutes_across_midnight(hz100):
    overnight = dataclasses.replace(hz100, std="23:30", sta="01:15", arrival_day_offset=1)

    assert overnight.block_minutes == 105


def test_block_minutes_across_time_zones(hz100):
    leg = dataclasses.replace(hz100, departure_station="SGN", arrival_station="DEL",
                              std="10:00", sta="13:00",
                              departure_utc_offset="+0700", arrival_utc_offset="+0530")

    assert leg.block_minutes == 270


def test_empty_filters_match_everything(hz100):
    assert ExportFilters().matches(hz100)


def test_date_filters_select_overlapping_periods(hz100):
    assert ExportFilters(date_from=date(2025, 10, 31)).matches(hz100)
    assert not ExportFilters(date_from=date(2025, 11, 1)).matches(hz100)
    assert not ExportFilters(date_to=date(2025, 3, 14)).matches(hz100)
    assert ExportFilters(date_from=date(2026, 1, 1)).matches(dataclasses.replace(hz100, effective_to=None))


def test_flight_number_range_ignores_airline_and_suffix(hz100):
    suffixed = dataclasses.replace(hz100, flight_number="HZ100A")

    assert ExportFilters(flight_number_from=100, flight_number_to=100).matches(suffixed)
    assert not ExportFilters(flight_number_from=101).matches(suffixed)
