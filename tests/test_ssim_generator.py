import dataclasses
from datetime import date

import pytest

from ssim_generator import SsimGenerationError, generate_ssim
from ssim_parser import parse_ssim


def test_file_structure(hz100, season):
    export = generate_ssim(season, [hz100], creation_date=date(2025, 3, 1))
    lines = export.content.split("\n")

    assert export.record_count == 1
    assert len(lines) == 4
    assert all(len(line) == 200 for line in lines)
    assert [line[0] for line in lines] == ["1", "2", "3", "5"]
    assert [line[194:200] for line in lines] == ["000001", "000002", "000003", "000004"]
    assert lines[4 - 1][187:193] == "000003"


def test_flight_leg_columns(hz100, season):
    line = generate_ssim(season, [hz100]).content.split("\n")[2]

    assert line[2:5] == "HZ "
    assert line[5:9] == " 100"
    assert line[9:11] == "01"
    assert line[11:13] == "01"
    assert line[14:21] == "15MAR25"
    assert line[21:28] == "31OCT25"
    assert line[28:35] == "1234567"
    assert line[36:39] == "SGN"
    assert line[39:43] == "0600"
    assert line[54:57] == "HAN"
    assert line[57:61] == "0815"
    assert line[72:75] == "320"
    assert line[193] == "0"


def test_open_end_and_overnight(hz100, season):
    record = dataclasses.replace(hz100, effective_to=None, std="23:30", sta="01:15",
                                 arrival_day_offset=1, days_of_operation={2, 4})
    line = generate_ssim(season, [record]).content.split("\n")[2]

    assert line[21:28] == "00XXX00"
    assert line[28:35] == " 2 4   "
    assert line[193] == "1"


def test_itinerary_variation_counts_per_flight_number(hz100, season):
    back = dataclasses.replace(hz100, departure_station="HAN", arrival_station="SGN")
    other = dataclasses.replace(hz100, flight_number="HZ200")
    lines = generate_ssim(season, [hz100, back, other]).content.split("\n")

    assert [line[9:11] for line in lines[2:5]] == ["01", "02", "01"]


def test_round_trip(hz100, season):
    records = [
        hz100,
        dataclasses.replace(hz100, flight_number="HZ101A", days_of_operation={1, 3, 5},
                            std="23:30", sta="01:15", arrival_day_offset=1,
                            configuration="C12Y174", effective_to=None),
        dataclasses.replace(hz100, flight_number="HZ7", aircraft_type="321",
                            service_type="C", arrival_day_offset=-1),
    ]

    result = parse_ssim(generate_ssim(season, records).content)

    assert result.errors == []
    assert result.records == records


def test_aircraft_filter_applies_before_numbering(hz100, season):
    other = dataclasses.replace(hz100, flight_number="HZ200", aircraft_type="321")
    export = generate_ssim(season, [other, hz100], aircraft_type="320")
    lines = export.content.split("\n")

    assert export.record_count == 1
    assert len(lines) == 4
    assert lines[2][5:9] == " 100"
    assert lines[2][194:200] == "000003"


def test_season_period_derived_from_records(hz100, season):
    later = dataclasses.replace(hz100, flight_number="HZ200", effective_from=date(2025, 4, 1),
                                effective_to=date(2025, 10, 25))
    carrier = generate_ssim(season, [hz100, later]).content.split("\n")[1]

    assert carrier[14:21] == "15MAR25"
    assert carrier[21:28] == "31OCT25"
    assert carrier[10:13] == "S25"


def test_invalid_record_raises(hz100, season):
    bad = dataclasses.replace(hz100, effective_to=date(2025, 3, 1))

    with pytest.raises(SsimGenerationError):
        generate_ssim(season, [bad])


def test_unrepresentable_aircraft_type_raises(hz100, season):
    with pytest.raises(SsimGenerationError):
        generate_ssim(season, [dataclasses.replace(hz100, aircraft_type="ZZZZ")])
    with pytest.raises(SsimGenerationError):
        generate_ssim(season, [dataclasses.replace(hz100, aircraft_type="A3200")])


def test_unrepresentable_flight_number_raises(hz100, season):
    with pytest.raises(SsimGenerationError):
        generate_ssim(season, [dataclasses.replace(hz100, flight_number="HZ12345")])


def test_icao_aircraft_type_is_written_as_ssim_code(hz100, season):
    export = generate_ssim(season, [dataclasses.replace(hz100, aircraft_type="A320")])

    line = export.content.split("\n")[2]
    assert line[72:75] == "320"
    assert parse_ssim(export.content).records[0].aircraft_type == "320"
    assert parse_ssim(export.content, icao_aircraft=True).records[0].aircraft_type == "A320"


def test_aircraft_filter_accepts_icao_codes(hz100, season):
    records = [hz100, dataclasses.replace(hz100, flight_number="HZ200", aircraft_type="321")]

    export = generate_ssim(season, records, aircraft_type="A320")

    assert export.record_count == 1


def test_utc_offsets_are_written(hz100, season):
    record = dataclasses.replace(hz100, departure_utc_offset="+0700", arrival_utc_offset="-0330")

    export = generate_ssim(season, [record])

    line = export.content.split("\n")[2]
    assert line[47:52] == "+0700"
    assert line[65:70] == "-0330"
    assert parse_ssim(export.content).records == [record]
