"""
Grammar of the ASM/SSM text messages, shared by the parser and the generator.

    ASM                  message type
    TIM                  action code
    HZ100/15MAR25        flight and date (date optional for SSM)
    - 0600               old value of the next field in the action's order
    + 0630               new value of that field

A change line may name its field explicitly ("+ STA 0830") when it is not
the next one in the action's order.
"""
import re
from typing import Callable, Dict, Tuple

from config import config
from models import ActionCode
from utility import FLIGHT_NUMBER_RE, is_valid_time, parse_days, parse_ssim_date

MESSAGE_TYPES = ('ASM', 'SSM')

FLIGHT_LINE_RE = re.compile(
    r'^(?P<airline>[A-Z0-9]{2}[A-Z]?)\s*(?P<number>\d{1,4})(?P<suffix>[A-Z]?)'
    r'(?:\s*/\s*(?P<date>\w+))?$'
)
CHANGE_LINE_RE = re.compile(r'^(?P<sign>[+-])\s*(?:(?P<tag>[A-Z]{3})\s+)?(?P<value>\S+)$')

SCHEDULE_FIELDS = (
    'departure_station', 'arrival_station', 'std', 'sta', 'days_of_operation',
    'aircraft_type', 'service_type', 'effective_from', 'effective_to',
)

# Positional field order of the change lines, per action code
FIELD_ORDER: Dict[ActionCode, Tuple[str, ...]] = {
    ActionCode.NEW: SCHEDULE_FIELDS,
    ActionCode.RPL: SCHEDULE_FIELDS,
    ActionCode.TIM: ('std', 'sta'),
    ActionCode.EQT: ('aircraft_type',),
    ActionCode.CON: ('configuration',),
    ActionCode.FLT: ('flight_number',),
    ActionCode.SKD: ('days_of_operation', 'effective_from', 'effective_to',
                     'service_type', 'arrival_day_offset'),
    ActionCode.CNL: (),
    ActionCode.RIN: (),
}

FIELD_TAGS: Dict[str, str] = {
    'departure_station': 'DEP',
    'arrival_station': 'ARR',
    'std': 'STD',
    'sta': 'STA',
    'days_of_operation': 'DOW',
    'aircraft_type': 'EQT',
    'service_type': 'SVC',
    'effective_from': 'EFF',
    'effective_to': 'DIS',
    'configuration': 'CFG',
    'flight_number': 'FLT',
    'arrival_day_offset': 'ADO',
}
TAG_FIELDS: Dict[str, str] = {tag: name for name, tag in FIELD_TAGS.items()}

# Actions that act on one dated instance and cannot be resolved without a date
DATED_ACTIONS = frozenset({ActionCode.CNL, ActionCode.RIN})

# Actions that a dated ASM applies to that day's operation only
INSTANCE_ACTIONS = frozenset({ActionCode.TIM, ActionCode.CON})

# Fields a NEW message must carry
NEW_REQUIRED_FIELDS = ('departure_station', 'arrival_station', 'std', 'sta', 'aircraft_type')

STATION_RE = re.compile(r'^[A-Z]{3}$')
AIRCRAFT_RE = re.compile(r'^[A-Z0-9]{3,4}$')
SERVICE_TYPE_RE = re.compile(r'^[A-Z]$')
CONFIGURATION_RE = re.compile(r'^(?:[A-Z]\d{1,3})+$')
DAY_OFFSET_RE = re.compile(r'^(?:-1|[0-9])$')


def _is_time(value: str) -> bool:
    return len(value) == 4 and value.isdigit() and is_valid_time(value)


def _is_date(value: str) -> bool:
    try:
        parse_ssim_date(value, config.get_reference_year())
        return True
    except ValueError:
        return False


def _is_days(value: str) -> bool:
    try:
        parse_days(value)
        return ' ' not in value
    except ValueError:
        return False


VALIDATORS: Dict[str, Callable[[str], bool]] = {
    'departure_station': lambda v: bool(STATION_RE.match(v)),
    'arrival_station': lambda v: bool(STATION_RE.match(v)),
    'std': _is_time,
    'sta': _is_time,
    'days_of_operation': _is_days,
    'aircraft_type': lambda v: bool(AIRCRAFT_RE.match(v)),
    'service_type': lambda v: bool(SERVICE_TYPE_RE.match(v)),
    'effective_from': _is_date,
    'effective_to': lambda v: v == config.SSIM_OPEN_END_DATE or _is_date(v),
    'configuration': lambda v: bool(CONFIGURATION_RE.match(v)),
    'flight_number': lambda v: bool(FLIGHT_NUMBER_RE.match(v)) and ' ' not in v,
    'arrival_day_offset': lambda v: bool(DAY_OFFSET_RE.match(v)),
}


def is_valid_value(field_name: str, value: str) -> bool:
    validator = VALIDATORS.get(field_name)
    return bool(value) and validator is not None and validator(value)
