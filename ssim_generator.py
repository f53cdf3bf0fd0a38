"""
SSIM Chapter 7 generator.

Writes 200-column lines using the same layout table the parser reads.
"""
import logging
from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional

from config import config
from models import ScheduleRecord, SeasonInfo, SsimExport
from ssim_format import CARRIER, FLIGHT_LEG, HEADER, TRAILER, build_line
from utility import (aircraft_types_match, format_date_variation, format_days, format_ssim_date,
                     split_flight_number, to_hhmm, to_ssim_aircraft_type)

logger = logging.getLogger(__name__)


class SsimGenerationError(Exception):
    """Raised when a record cannot be written as an SSIM line."""
    pass


def _flight_leg_values(record: ScheduleRecord, itinerary_variation: int, serial: int) -> Dict[str, str]:
    airline, number, suffix = split_flight_number(record.flight_number)
    std = to_hhmm(record.std)
    sta = to_hhmm(record.sta)
    return {
        'suffix': suffix,
        'airline': airline,
        'flight_number': str(number),
        'itinerary_variation': str(itinerary_variation),
        'leg_sequence': '1',
        'service_type': record.service_type or config.DEFAULT_SERVICE_TYPE,
        'period_from': format_ssim_date(record.effective_from),
        'period_to': (format_ssim_date(record.effective_to) if record.effective_to
                      else config.SSIM_OPEN_END_DATE),
        'days': format_days(record.days_of_operation),
        'dep_station': record.departure_station,
        'dep_utc_offset': record.departure_utc_offset,
        'std': std,
        'std_passenger': std,
        'arr_station': record.arrival_station,
        'arr_utc_offset': record.arrival_utc_offset,
        'sta': sta,
        'sta_passenger': sta,
        'aircraft_type': to_ssim_aircraft_type(record.aircraft_type),
        'configuration': record.configuration,
        'dep_date_variation': '0',
        'arr_date_variation': format_date_variation(record.arrival_day_offset),
        'serial': str(serial),
    }


def _season_period(season: SeasonInfo, records: List[ScheduleRecord]):
    start = season.season_start
    end = season.season_end
    if start is None and records:
        start = min(r.effective_from for r in records)
    if end is None and records:
        ends = [r.effective_to for r in records if r.effective_to]
        end = max(ends) if ends else None
    return start, end


def generate_ssim(season: SeasonInfo, records: Iterable[ScheduleRecord],
                  aircraft_type: Optional[str] = None,
                  creation_date: Optional[date] = None) -> SsimExport:
    """
    Generate a complete SSIM Chapter 7 file.

    Args:
        season: Carrier and season metadata for the carrier record.
        records: Flight legs, written in the given order.
        aircraft_type: When set, only legs flown by this type are written. ICAO and
            IATA codes of the same type match ('A320' selects '320').
        creation_date: Date stamped on the carrier record (defaults to today).

    Returns:
        SsimExport with the file content and the number of flight legs written.
    """
    selected = [r for r in records
                if aircraft_type is None or aircraft_types_match(r.aircraft_type, aircraft_type)]
    season_start, season_end = _season_period(season, selected)

    lines = [build_line(HEADER, {'title': config.SSIM_TITLE, 'serial': '1'})]
    try:
        lines.append(build_line(CARRIER, {
            'time_mode': config.SSIM_TIME_MODE,
            'airline': season.carrier_code,
            'season': season.season_code,
            'period_from': format_ssim_date(season_start) if season_start else '',
            'period_to': format_ssim_date(season_end) if season_end else '',
            'creation_date': format_ssim_date(creation_date or date.today()),
            'title': season.airline_name,
            'serial': '2',
        }))
    except ValueError as e:
        raise SsimGenerationError(f"Invalid season metadata: {e}") from e

    serial = 2
    variations: Dict[str, int] = defaultdict(int)
    for record in selected:
        problems = record.validate()
        if problems:
            raise SsimGenerationError(f"{record.flight_number}: {'; '.join(problems)}")
        serial += 1
        variations[record.flight_number] += 1
        try:
            lines.append(build_line(
                FLIGHT_LEG, _flight_leg_values(record, variations[record.flight_number], serial)))
        except ValueError as e:
            raise SsimGenerationError(f"{record.flight_number}: {e}") from e

    lines.append(build_line(TRAILER, {
        'airline': season.carrier_code,
        'serial_check': str(serial),
        'end_code': 'E',
        'serial': str(serial + 1),
    }))

    logger.info(f"Generated SSIM for {season.carrier_code} {season.season_code}: "
                f"{len(selected)} flight records")
    return SsimExport(content='\n'.join(lines), record_count=len(selected))
