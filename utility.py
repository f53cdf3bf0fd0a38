#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Conversions between SSIM/ASM wire values and schedule record values.

Dates on the wire are DDMMMYY, times are HHMM, days of operation are a
7-character string where position N holds digit N when the flight operates.
"""
import re
from datetime import date
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

MONTHS = ['JAN', 'FEB', 'MAR', 'APR', 'MAY', 'JUN',
          'JUL', 'AUG', 'SEP', 'OCT', 'NOV', 'DEC']

FLIGHT_NUMBER_RE = re.compile(r'^([A-Z0-9]{2}[A-Z]?)\s*(\d{1,4})([A-Z]?)$')
HHMM_RE = re.compile(r'^(\d{2}):?(\d{2})$')
SEASON_RE = re.compile(r'^[SW](\d{2})$')
NON_OPERATING = (' ', '-')


def expand_year(yy: int, reference_year: int) -> int:
    """Pick the four-digit year ending in yy that lies closest to reference_year."""
    candidate = (reference_year // 100) * 100 + yy
    if candidate - reference_year > 50:
        candidate -= 100
    elif reference_year - candidate > 50:
        candidate += 100
    return candidate


def parse_ssim_date(value: str, reference_year: int) -> date:
    """Parse DDMMMYY, e.g. 15MAR25. Raises ValueError when malformed."""
    text = (value or '').strip().upper()
    if len(text) != 7:
        raise ValueError(f"invalid date '{value}'")
    day_part, month_part, year_part = text[0:2], text[2:5], text[5:7]
    if month_part not in MONTHS or not day_part.isdigit() or not year_part.isdigit():
        raise ValueError(f"invalid date '{value}'")
    year = expand_year(int(year_part), reference_year)
    try:
        return date(year, MONTHS.index(month_part) + 1, int(day_part))
    except ValueError as e:
        raise ValueError(f"invalid date '{value}'") from e


def format_ssim_date(value: date) -> str:
    return f"{value.day:02d}{MONTHS[value.month - 1]}{value.year % 100:02d}"


def season_reference_year(season_code: Optional[str]) -> Optional[int]:
    """S25 / W25 -> 2025."""
    match = SEASON_RE.match((season_code or '').strip().upper())
    if not match:
        return None
    return 2000 + int(match.group(1))


def parse_days(value: str) -> FrozenSet[int]:
    """
    Parse a 7-character days-of-operation string ("1234567", "1 3 5  ", "1-3-5--").
    Raises ValueError on a misplaced digit, unknown character or empty set.
    """
    if value is None or len(value) != 7:
        raise ValueError(f"days of operation must be 7 characters, got '{value}'")
    days = set()
    for position, char in enumerate(value, 1):
        if char in NON_OPERATING:
            continue
        if char != str(position):
            raise ValueError(f"invalid days of operation '{value}'")
        days.add(position)
    if not days:
        raise ValueError("no operating days specified")
    return frozenset(days)


def format_days(days: Iterable[int], blank: str = ' ') -> str:
    day_set = set(days)
    return ''.join(str(i) if i in day_set else blank for i in range(1, 8))


def condense_days(days: Iterable[int]) -> str:
    """{1, 3, 5} -> '135' (storage form)."""
    return ''.join(str(d) for d in sorted(set(days)))


def expand_condensed_days(value: str) -> FrozenSet[int]:
    return frozenset(int(c) for c in (value or '') if c.isdigit() and 1 <= int(c) <= 7)


def is_valid_time(value: str) -> bool:
    match = HHMM_RE.match(value or '')
    if not match:
        return False
    return int(match.group(1)) < 24 and int(match.group(2)) < 60


def to_hhmm(value: str) -> str:
    """'06:30' or '0630' -> '0630'."""
    if not is_valid_time(value):
        raise ValueError(f"invalid time '{value}'")
    return value.replace(':', '')


def to_colon_time(value: str) -> str:
    """'0630' or '06:30' -> '06:30'."""
    hhmm = to_hhmm(value)
    return f"{hhmm[:2]}:{hhmm[2:]}"


def split_flight_number(flight_number: str) -> Tuple[str, int, str]:
    """'HZ100' -> ('HZ', 100, ''). Raises ValueError when malformed."""
    match = FLIGHT_NUMBER_RE.match((flight_number or '').strip().upper())
    if not match:
        raise ValueError(f"invalid flight number '{flight_number}'")
    return match.group(1), int(match.group(2)), match.group(3)


def normalize_flight_number(flight_number: str) -> str:
    """'HZ0100' -> 'HZ100'."""
    airline, number, suffix = split_flight_number(flight_number)
    return f"{airline}{number}{suffix}"


def parse_date_variation(char: str) -> int:
    """SSIM date variation: '0'-'9', 'A' means the previous day."""
    if char == 'A':
        return -1
    if char.isdigit():
        return int(char)
    raise ValueError(f"invalid date variation '{char}'")


def format_date_variation(offset: int) -> str:
    if offset == -1:
        return 'A'
    if 0 <= offset <= 9:
        return str(offset)
    raise ValueError(f"arrival day offset {offset} out of range")


def minutes_of_day(value: str) -> int:
    hhmm = to_hhmm(value)
    return int(hhmm[:2]) * 60 + int(hhmm[2:])


# SSIM carries the 3-character IATA subtype; stores may hold the ICAO designator
IATA_TO_ICAO_AIRCRAFT = {
    '319': 'A319', '320': 'A320', '321': 'A321', '32Q': 'A21N', '32N': 'A20N',
    '32A': 'A320', '32B': 'A321', '330': 'A333', '332': 'A332', '333': 'A333',
    '338': 'A338', '339': 'A339', '340': 'A343', '350': 'A359', '359': 'A359',
    '380': 'A388', '737': 'B737', '738': 'B738', '739': 'B739', '73H': 'B738',
    '73J': 'B739', '744': 'B744', '747': 'B744', '767': 'B763', '772': 'B772',
    '773': 'B773', '77W': 'B77W', '77L': 'B77L', '787': 'B788', '788': 'B788',
    '789': 'B789', '78J': 'B789', 'E90': 'E190', 'E95': 'E195', 'CR9': 'CRJ9',
    'AT7': 'AT76', 'DH4': 'DH8D',
}

# Preferred IATA code per ICAO designator; maps back through IATA_TO_ICAO_AIRCRAFT
ICAO_TO_IATA_AIRCRAFT = {
    'A319': '319', 'A320': '320', 'A321': '321', 'A21N': '32Q', 'A20N': '32N',
    'A332': '332', 'A333': '330', 'A338': '338', 'A339': '339', 'A343': '340',
    'A359': '359', 'A388': '380', 'B737': '737', 'B738': '738', 'B739': '739',
    'B744': '744', 'B763': '767', 'B772': '772', 'B773': '773', 'B77W': '77W',
    'B77L': '77L', 'B788': '788', 'B789': '789', 'E190': 'E90', 'E195': 'E95',
    'CRJ9': 'CR9', 'AT76': 'AT7', 'DH8D': 'DH4',
}

SEAT_CONFIG_RE = re.compile(r'([A-Z])(\d{1,3})')
UTC_OFFSET_RE = re.compile(r'^([+-])(\d{2})(\d{2})$')


def to_ssim_aircraft_type(code: str) -> str:
    """'A320' -> '320'; 3-character codes pass through. Raises ValueError for unknown ICAO codes."""
    text = (code or '').strip().upper()
    if len(text) == 3:
        return text
    if text in ICAO_TO_IATA_AIRCRAFT:
        return ICAO_TO_IATA_AIRCRAFT[text]
    raise ValueError(f"aircraft type '{code}' has no SSIM code")


def from_ssim_aircraft_type(code: str) -> str:
    """'320' -> 'A320'; codes without a known ICAO designator pass through."""
    return IATA_TO_ICAO_AIRCRAFT.get(code, code)


def aircraft_types_match(first: str, second: str) -> bool:
    """True when both codes name the same SSIM aircraft type ('A320' and '320')."""
    if first == second:
        return True
    try:
        return to_ssim_aircraft_type(first) == to_ssim_aircraft_type(second)
    except ValueError:
        return False


def parse_seat_configuration(value: str) -> Dict[str, int]:
    """'C12Y174' -> {'C': 12, 'Y': 174}."""
    return {cabin: int(seats) for cabin, seats in SEAT_CONFIG_RE.findall((value or '').upper())}


def is_valid_utc_offset(value: str) -> bool:
    match = UTC_OFFSET_RE.match(value or '')
    return bool(match) and int(match.group(2)) <= 14 and int(match.group(3)) < 60


def utc_offset_minutes(value: str) -> int:
    """'+0700' -> 420, '-0330' -> -210, '' -> 0."""
    match = UTC_OFFSET_RE.match(value or '')
    if not match:
        return 0
    minutes = int(match.group(2)) * 60 + int(match.group(3))
    return -minutes if match.group(1) == '-' else minutes
