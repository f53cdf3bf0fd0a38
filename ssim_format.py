"""
Column layout of the SSIM Chapter 7 records this application reads and writes.

The parser slices lines and the generator builds lines from the same table,
so a value written by one is read back unchanged by the other.
All column positions are 0-indexed.
"""
from dataclasses import dataclass
from typing import Dict, List

from config import config

HEADER = '1'
CARRIER = '2'
FLIGHT_LEG = '3'
SEGMENT = '4'
TRAILER = '5'
FILLER = '0'

# Shortest type 3 line that still carries the aircraft type
MIN_FLIGHT_LINE_LENGTH = 75


@dataclass(frozen=True)
class SsimField:
    name: str
    start: int
    width: int
    right_justify: bool = False
    fill: str = ' '

    @property
    def end(self) -> int:
        return self.start + self.width


RECORD_LAYOUTS: Dict[str, List[SsimField]] = {
    HEADER: [
        SsimField('record_type', 0, 1),
        SsimField('title', 1, 34),
        SsimField('serial', 194, 6, right_justify=True, fill='0'),
    ],
    CARRIER: [
        SsimField('record_type', 0, 1),
        SsimField('time_mode', 1, 1),
        SsimField('airline', 2, 3),
        SsimField('season', 10, 3),
        SsimField('period_from', 14, 7),
        SsimField('period_to', 21, 7),
        SsimField('creation_date', 28, 7),
        SsimField('title', 36, 35),
        SsimField('serial', 194, 6, right_justify=True, fill='0'),
    ],
    FLIGHT_LEG: [
        SsimField('record_type', 0, 1),
        SsimField('suffix', 1, 1),
        SsimField('airline', 2, 3),
        SsimField('flight_number', 5, 4, right_justify=True),
        SsimField('itinerary_variation', 9, 2, right_justify=True, fill='0'),
        SsimField('leg_sequence', 11, 2, right_justify=True, fill='0'),
        SsimField('service_type', 13, 1),
        SsimField('period_from', 14, 7),
        SsimField('period_to', 21, 7),
        SsimField('days', 28, 7),
        SsimField('dep_station', 36, 3),
        SsimField('std', 39, 4),
        SsimField('std_passenger', 43, 4),
        SsimField('dep_utc_offset', 47, 5),
        SsimField('arr_station', 54, 3),
        SsimField('sta', 57, 4),
        SsimField('sta_passenger', 61, 4),
        SsimField('arr_utc_offset', 65, 5),
        SsimField('aircraft_type', 72, 3),
        SsimField('configuration', 172, 20),
        SsimField('dep_date_variation', 192, 1),
        SsimField('arr_date_variation', 193, 1),
        SsimField('serial', 194, 6, right_justify=True, fill='0'),
    ],
    TRAILER: [
        SsimField('record_type', 0, 1),
        SsimField('airline', 2, 3),
        SsimField('serial_check', 187, 6, right_justify=True, fill='0'),
        SsimField('end_code', 193, 1),
        SsimField('serial', 194, 6, right_justify=True, fill='0'),
    ],
}


def build_line(record_type: str, values: Dict[str, str]) -> str:
    """Place values into a blank fixed-width line. Raises ValueError when a value does not fit."""
    chars = [' '] * config.SSIM_LINE_WIDTH
    for layout in RECORD_LAYOUTS[record_type]:
        value = record_type if layout.name == 'record_type' else str(values.get(layout.name, '') or '')
        if len(value) > layout.width:
            raise ValueError(f"{layout.name} '{value}' does not fit in {layout.width} columns")
        if layout.right_justify:
            value = value.rjust(layout.width, layout.fill) if value else ' ' * layout.width
        else:
            value = value.ljust(layout.width)
        chars[layout.start:layout.end] = value
    return ''.join(chars)


def slice_line(record_type: str, line: str) -> Dict[str, str]:
    """Raw (unstripped) field values of a line."""
    padded = line.ljust(config.SSIM_LINE_WIDTH)
    return {layout.name: padded[layout.start:layout.end] for layout in RECORD_LAYOUTS[record_type]}
