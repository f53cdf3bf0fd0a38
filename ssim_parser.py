"""
SSIM Chapter 7 parser.

Decodes a bulk schedule file into ScheduleRecords. Malformed lines are
reported as ParseErrors and skipped; they never abort the file.
"""
import logging
from datetime import date
from typing import Dict, List, Optional, Tuple

import pandas as pd

from config import config
from models import ParseError, ScheduleRecord, SsimCarrier, SsimParseResult, SsimTrailer
from ssim_format import (CARRIER, FILLER, FLIGHT_LEG, HEADER, MIN_FLIGHT_LINE_LENGTH,
                         SEGMENT, TRAILER, slice_line)
from utility import (from_ssim_aircraft_type, is_valid_utc_offset, minutes_of_day,
                     parse_date_variation, parse_days, parse_ssim_date, season_reference_year,
                     to_colon_time)

logger = logging.getLogger(__name__)


def _parse_optional_date(raw: str, reference_year: int, label: str,
                         problems: List[str]) -> Optional[date]:
    text = raw.strip()
    if not text or text == config.SSIM_OPEN_END_DATE:
        return None
    try:
        return parse_ssim_date(text, reference_year)
    except ValueError:
        problems.append(f"invalid {label} '{text}'")
        return None


def _parse_serial(raw: str) -> int:
    text = raw.strip()
    return int(text) if text.isdigit() else 0


def _parse_carrier(line: str, reference_year: Optional[int]) -> Tuple[SsimCarrier, List[str]]:
    fields = slice_line(CARRIER, line)
    season_code = fields['season'].strip()
    year = reference_year or season_reference_year(season_code) or config.get_reference_year()
    problems: List[str] = []
    carrier = SsimCarrier(
        airline_code=fields['airline'].strip(),
        season_code=season_code,
        time_mode=fields['time_mode'].strip() or config.SSIM_TIME_MODE,
        season_start=_parse_optional_date(fields['period_from'], year, 'season start', problems),
        season_end=_parse_optional_date(fields['period_to'], year, 'season end', problems),
        creation_date=_parse_optional_date(fields['creation_date'], year, 'creation date', problems),
        airline_name=fields['title'].strip(),
    )
    if not carrier.airline_code:
        problems.append("missing airline designator")
    return carrier, problems


def _parse_trailer(line: str) -> SsimTrailer:
    fields = slice_line(TRAILER, line)
    return SsimTrailer(
        airline_code=fields['airline'].strip(),
        last_flight_serial=_parse_serial(fields['serial_check']),
        record_serial=_parse_serial(fields['serial']),
    )


def _parse_time(raw: str, label: str, problems: List[str]) -> Optional[str]:
    text = raw.strip()
    if len(text) != 4 or not text.isdigit():
        problems.append(f"invalid {label} '{text}'")
        return None
    try:
        return to_colon_time(text)
    except ValueError:
        problems.append(f"invalid {label} '{text}'")
        return None


def _parse_station(raw: str, label: str, problems: List[str]) -> str:
    text = raw.strip()
    if len(text) != 3 or not text.isalpha():
        problems.append(f"invalid {label} station '{text}'")
    return text


def _parse_utc_offset(raw: str, label: str, problems: List[str]) -> str:
    text = raw.strip()
    if text and not is_valid_utc_offset(text):
        problems.append(f"invalid {label} UTC offset '{text}'")
    return text


def _parse_flight_leg(line: str, reference_year: int,
                      icao_aircraft: bool = False) -> Tuple[Optional[ScheduleRecord], List[str]]:
    """Decode one type 3 line. Returns (record, []) or (None, problems)."""
    if len(line) < MIN_FLIGHT_LINE_LENGTH:
        return None, [f"Type 3 record too short ({len(line)} chars, need at least {MIN_FLIGHT_LINE_LENGTH})"]

    fields = slice_line(FLIGHT_LEG, line)
    problems: List[str] = []

    airline = fields['airline'].strip()
    number = fields['flight_number'].strip()
    suffix = fields['suffix'].strip()
    if not airline or not number.isdigit():
        problems.append(f"invalid flight number '{airline}{number}'")
        flight_number = ''
    else:
        flight_number = f"{airline}{int(number)}{suffix}"

    service_type = fields['service_type'].strip() or config.DEFAULT_SERVICE_TYPE
    if not service_type.isalpha():
        problems.append(f"invalid service type '{service_type}'")

    effective_from = None
    period_from = fields['period_from'].strip()
    try:
        effective_from = parse_ssim_date(period_from, reference_year)
    except ValueError:
        problems.append(f"invalid period start '{period_from}'")
    effective_to = _parse_optional_date(fields['period_to'], reference_year, 'period end', problems)
    if effective_from and effective_to and effective_from > effective_to:
        problems.append("period start is after period end")

    days = frozenset()
    try:
        days = parse_days(fields['days'])
    except ValueError as e:
        problems.append(str(e))

    departure_station = _parse_station(fields['dep_station'], 'departure', problems)
    arrival_station = _parse_station(fields['arr_station'], 'arrival', problems)
    departure_utc_offset = _parse_utc_offset(fields['dep_utc_offset'], 'departure', problems)
    arrival_utc_offset = _parse_utc_offset(fields['arr_utc_offset'], 'arrival', problems)
    std = _parse_time(fields['std'], 'STD', problems)
    sta = _parse_time(fields['sta'], 'STA', problems)

    aircraft_type = fields['aircraft_type'].strip()
    if not aircraft_type:
        problems.append("missing aircraft type")
    elif icao_aircraft:
        aircraft_type = from_ssim_aircraft_type(aircraft_type)

    arrival_day_offset = 0
    variation = fields['arr_date_variation'].strip()
    if variation:
        try:
            arrival_day_offset = parse_date_variation(variation)
        except ValueError as e:
            problems.append(str(e))
    elif std and sta and minutes_of_day(sta) < minutes_of_day(std):
        arrival_day_offset = 1

    if problems:
        return None, problems

    return ScheduleRecord(
        flight_number=flight_number,
        departure_station=departure_station,
        arrival_station=arrival_station,
        std=std,
        sta=sta,
        days_of_operation=days,
        aircraft_type=aircraft_type,
        service_type=service_type,
        effective_from=effective_from,
        effective_to=effective_to,
        arrival_day_offset=arrival_day_offset,
        configuration=fields['configuration'].strip(),
        departure_utc_offset=departure_utc_offset,
        arrival_utc_offset=arrival_utc_offset,
    ), []


def _cabin_seats(records: List[ScheduleRecord]) -> Dict[str, int]:
    totals: Dict[str, int] = {}
    for record in records:
        for cabin, seats in record.seat_configuration.items():
            totals[cabin] = totals.get(cabin, 0) + seats
    return dict(sorted(totals.items()))


def compute_stats(records: List[ScheduleRecord]) -> dict:
    """Summary figures shown alongside an import or export preview."""
    if not records:
        return {'total_records': 0}
    df = pd.DataFrame([{
        'flight_number': r.flight_number,
        'route': f"{r.departure_station}-{r.arrival_station}",
        'aircraft_type': r.aircraft_type,
        'service_type': r.service_type,
        'effective_from': r.effective_from,
        'effective_to': r.effective_to,
        'seats': r.total_seats,
        'block_minutes': r.block_minutes,
    } for r in records])
    stations = set(r.departure_station for r in records) | set(r.arrival_station for r in records)
    ends = df['effective_to'].dropna()
    return {
        'total_records': len(df),
        'unique_flight_numbers': int(df['flight_number'].nunique()),
        'unique_routes': int(df['route'].nunique()),
        'aircraft_type_counts': {k: int(v) for k, v in df['aircraft_type'].value_counts().items()},
        'service_type_counts': {k: int(v) for k, v in df['service_type'].value_counts().items()},
        'stations': sorted(stations),
        'date_range': (min(df['effective_from']), max(ends) if len(ends) else None),
        'total_capacity': int(df['seats'].sum()),
        'cabin_seats': _cabin_seats(records),
        'total_block_minutes': int(df['block_minutes'].sum()),
        'average_block_minutes': round(float(df['block_minutes'].mean()), 1),
    }


def parse_ssim(content: str, reference_year: Optional[int] = None,
               icao_aircraft: Optional[bool] = None) -> SsimParseResult:
    """
    Parse an SSIM Chapter 7 file.

    Args:
        content: Raw file text.
        reference_year: Year used to expand two-digit dates. Defaults to the
            year in the carrier record's season code, then to the configured year.
        icao_aircraft: Map SSIM aircraft codes to ICAO designators ('320' becomes
            'A320'). Defaults to the SSIM_ICAO_AIRCRAFT setting.

    Returns:
        SsimParseResult with the valid records and one ParseError per bad line.
    """
    result = SsimParseResult()
    if content is None or not content.strip():
        result.errors.append(ParseError(line=0, message="Empty SSIM content"))
        return result

    lines = content.splitlines()
    result.total_lines = len(lines)
    year = reference_year
    last_serial = 0
    if icao_aircraft is None:
        icao_aircraft = config.use_icao_aircraft_types()

    for line_number, line in enumerate(lines, 1):
        if not line.strip():
            continue
        record_type = line[0]

        if record_type == FILLER:
            continue
        if record_type == TRAILER:
            trailer = _parse_trailer(line)
            result.trailer = trailer
            if trailer.last_flight_serial and last_serial and trailer.last_flight_serial != last_serial:
                result.errors.append(ParseError(
                    line=line_number,
                    message=f"Trailer serial check {trailer.last_flight_serial} "
                            f"does not match last record serial {last_serial}",
                    raw_text=line,
                ))
            continue

        if record_type == HEADER or record_type == SEGMENT:
            pass
        elif record_type == CARRIER:
            carrier, problems = _parse_carrier(line, reference_year)
            result.carrier = carrier
            if year is None:
                year = season_reference_year(carrier.season_code)
            if problems:
                result.errors.append(ParseError(line_number, '; '.join(problems), line))
        elif record_type == FLIGHT_LEG:
            record, problems = _parse_flight_leg(line, year or config.get_reference_year(), icao_aircraft)
            if record is not None:
                result.records.append(record)
            else:
                result.errors.append(ParseError(line_number, '; '.join(problems), line))
        else:
            result.errors.append(ParseError(line_number, f"Unknown record type '{record_type}'", line))
            continue

        serial = _parse_serial(line[194:200]) if len(line) >= 200 else 0
        if serial:
            last_serial = serial

    result.stats = compute_stats(result.records)
    logger.info(f"Parsed SSIM: {len(result.records)} flight records, "
                f"{len(result.errors)} errors, {result.total_lines} lines")
    return result
