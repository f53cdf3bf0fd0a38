"""
Data models and type definitions for schedule message interchange.
"""
from dataclasses import dataclass, field, fields
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

import pandas as pd

from utility import (aircraft_types_match, condense_days, expand_condensed_days, is_valid_time,
                     is_valid_utc_offset, minutes_of_day, parse_seat_configuration,
                     split_flight_number, utc_offset_minutes)


class RecordStatus(str, Enum):
    """Reconciliation outcome for one incoming record or message."""
    NEW = "New"
    UPDATED = "Updated"
    UNCHANGED = "Unchanged"
    ERROR = "Error"


class ActionCode(str, Enum):
    NEW = "NEW"   # new flight
    TIM = "TIM"   # time change
    CNL = "CNL"   # cancellation
    EQT = "EQT"   # equipment change
    CON = "CON"   # configuration change
    RIN = "RIN"   # reinstatement
    RPL = "RPL"   # replace
    FLT = "FLT"   # flight number change
    SKD = "SKD"   # schedule attribute change


class MessageStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    APPLIED = "applied"
    REJECTED = "rejected"
    DISCARDED = "discarded"


TERMINAL_STATUSES = frozenset({
    MessageStatus.SENT, MessageStatus.APPLIED,
    MessageStatus.REJECTED, MessageStatus.DISCARDED,
})


def _to_date(value: Any) -> Optional[date]:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    return pd.Timestamp(value).date()


def _to_text(value: Any) -> Optional[str]:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    return str(value)


@dataclass
class ScheduleRecord:
    """One scheduled flight leg, as imported or as currently stored."""
    flight_number: str
    departure_station: str
    arrival_station: str
    std: str                          # HH:MM local
    sta: str                          # HH:MM local
    days_of_operation: FrozenSet[int]
    aircraft_type: str
    effective_from: date
    effective_to: Optional[date] = None
    service_type: str = "J"
    arrival_day_offset: int = 0
    configuration: str = ""
    departure_utc_offset: str = ""    # +HHMM, blank when unknown
    arrival_utc_offset: str = ""
    id: Optional[int] = field(default=None, compare=False)

    def __post_init__(self):
        self.days_of_operation = frozenset(self.days_of_operation)

    @property
    def identity(self) -> Tuple[str, str, str, date]:
        return (self.flight_number, self.departure_station,
                self.arrival_station, self.effective_from)

    def validate(self) -> List[str]:
        """Return the invariant violations of this record (empty when valid)."""
        problems = []
        if not self.flight_number:
            problems.append("missing flight number")
        for label, station in (("departure", self.departure_station),
                               ("arrival", self.arrival_station)):
            if not station or len(station) != 3 or not station.isalpha():
                problems.append(f"invalid {label} station '{station}'")
        for label, value in (("STD", self.std), ("STA", self.sta)):
            if not value or len(value) != 5 or value[2] != ':' or not is_valid_time(value):
                problems.append(f"invalid {label} '{value}', expected HH:MM")
        if not self.aircraft_type:
            problems.append("missing aircraft type")
        for label, offset in (("departure", self.departure_utc_offset),
                              ("arrival", self.arrival_utc_offset)):
            if offset and not is_valid_utc_offset(offset):
                problems.append(f"invalid {label} UTC offset '{offset}'")
        if not self.days_of_operation:
            problems.append("no operating days specified")
        elif not self.days_of_operation <= set(range(1, 8)):
            problems.append("days of operation must be within 1-7")
        if self.effective_to is not None and self.effective_from > self.effective_to:
            problems.append("effective from is after effective to")
        return problems

    @property
    def seat_configuration(self) -> Dict[str, int]:
        """Seats per cabin, e.g. {'C': 12, 'Y': 174}."""
        return parse_seat_configuration(self.configuration)

    @property
    def total_seats(self) -> int:
        return sum(self.seat_configuration.values())

    @property
    def block_minutes(self) -> int:
        """Gate-to-gate minutes, corrected for the UTC offsets when they are known."""
        departure = minutes_of_day(self.std) - utc_offset_minutes(self.departure_utc_offset)
        arrival = (minutes_of_day(self.sta) - utc_offset_minutes(self.arrival_utc_offset)
                   + 1440 * self.arrival_day_offset)
        block = arrival - departure
        return block + 1440 if block <= 0 else block

    def operates_on(self, flight_date: date) -> bool:
        if flight_date < self.effective_from:
            return False
        if self.effective_to is not None and flight_date > self.effective_to:
            return False
        return flight_date.isoweekday() in self.days_of_operation

    def diff(self, other: 'ScheduleRecord') -> List[str]:
        """Names of the comparable fields whose values differ from other."""
        return [f.name for f in fields(self)
                if f.compare and getattr(self, f.name) != getattr(other, f.name)]

    def to_row(self) -> Dict[str, Any]:
        """Column values for the schedule store."""
        return {
            'flight_number': self.flight_number,
            'dep_station': self.departure_station,
            'arr_station': self.arrival_station,
            'std': self.std,
            'sta': self.sta,
            'days_of_operation': condense_days(self.days_of_operation),
            'aircraft_type': self.aircraft_type,
            'service_type': self.service_type,
            'configuration': self.configuration,
            'effective_from': self.effective_from,
            'effective_to': self.effective_to,
            'arrival_day_offset': self.arrival_day_offset,
            'dep_utc_offset': self.departure_utc_offset,
            'arr_utc_offset': self.arrival_utc_offset,
        }

    @classmethod
    def from_dataframe_row(cls, row: Dict[str, Any]) -> 'ScheduleRecord':
        """Create a ScheduleRecord from a pandas DataFrame row."""
        return cls(
            id=int(row['id']) if row.get('id') is not None else None,
            flight_number=row.get('flight_number', ''),
            departure_station=row.get('dep_station', ''),
            arrival_station=row.get('arr_station', ''),
            std=row.get('std', ''),
            sta=row.get('sta', ''),
            days_of_operation=expand_condensed_days(row.get('days_of_operation', '')),
            aircraft_type=_to_text(row.get('aircraft_type')) or '',
            service_type=_to_text(row.get('service_type')) or 'J',
            configuration=_to_text(row.get('configuration')) or '',
            effective_from=_to_date(row.get('effective_from')),
            effective_to=_to_date(row.get('effective_to')),
            arrival_day_offset=int(row.get('arrival_day_offset') or 0),
            departure_utc_offset=_to_text(row.get('dep_utc_offset')) or '',
            arrival_utc_offset=_to_text(row.get('arr_utc_offset')) or '',
        )


@dataclass
class ParseError:
    """A malformed line, collected instead of raised."""
    line: int
    message: str
    raw_text: str = ""


@dataclass
class SsimCarrier:
    """Type 2 carrier record."""
    airline_code: str
    season_code: str = ""
    time_mode: str = "L"
    season_start: Optional[date] = None
    season_end: Optional[date] = None
    creation_date: Optional[date] = None
    airline_name: str = ""


@dataclass
class SsimTrailer:
    """Type 5 trailer record."""
    airline_code: str
    last_flight_serial: int = 0
    record_serial: int = 0


@dataclass
class SsimParseResult:
    records: List[ScheduleRecord] = field(default_factory=list)
    errors: List[ParseError] = field(default_factory=list)
    carrier: Optional[SsimCarrier] = None
    trailer: Optional[SsimTrailer] = None
    total_lines: int = 0
    stats: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SeasonInfo:
    """Carrier and season metadata written to the SSIM carrier record."""
    carrier_code: str
    season_code: str
    airline_name: str = ""
    season_start: Optional[date] = None
    season_end: Optional[date] = None


@dataclass
class SsimExport:
    content: str
    record_count: int


@dataclass
class ExportFilters:
    """Selection of stored legs for an SSIM export. Empty criteria select everything."""
    aircraft_types: List[str] = field(default_factory=list)
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    service_types: List[str] = field(default_factory=list)
    flight_number_from: Optional[int] = None
    flight_number_to: Optional[int] = None
    departure_stations: List[str] = field(default_factory=list)
    arrival_stations: List[str] = field(default_factory=list)

    def matches(self, record: ScheduleRecord) -> bool:
        # Periods overlapping [date_from, date_to] are selected
        if self.date_from and record.effective_to and record.effective_to < self.date_from:
            return False
        if self.date_to and record.effective_from > self.date_to:
            return False
        if self.aircraft_types and not any(aircraft_types_match(record.aircraft_type, wanted)
                                           for wanted in self.aircraft_types):
            return False
        if self.service_types and record.service_type not in self.service_types:
            return False
        if self.departure_stations and record.departure_station not in self.departure_stations:
            return False
        if self.arrival_stations and record.arrival_station not in self.arrival_stations:
            return False
        if self.flight_number_from is not None or self.flight_number_to is not None:
            number = split_flight_number(record.flight_number)[1]
            if self.flight_number_from is not None and number < self.flight_number_from:
                return False
            if self.flight_number_to is not None and number > self.flight_number_to:
                return False
        return True


@dataclass
class ExportPreview:
    """Statistics and the first lines of an export, computed without writing a file."""
    stats: Dict[str, Any] = field(default_factory=dict)
    sample_lines: List[str] = field(default_factory=list)


@dataclass
class FieldChange:
    """One entry of a change-set. from_value is None when the prior value is unknown."""
    to_value: str
    from_value: Optional[str] = None

    def to_dict(self) -> Dict[str, str]:
        result = {'to': self.to_value}
        if self.from_value is not None:
            result['from'] = self.from_value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FieldChange':
        return cls(to_value=data['to'], from_value=data.get('from'))


ChangeSet = Dict[str, FieldChange]


def changes_to_dict(changes: ChangeSet) -> Dict[str, Dict[str, str]]:
    return {name: change.to_dict() for name, change in changes.items()}


def changes_from_dict(data: Optional[Dict[str, Any]]) -> ChangeSet:
    return {name: FieldChange.from_dict(value) for name, value in (data or {}).items()}


@dataclass
class ParsedMessage:
    """A decoded ASM/SSM message."""
    message_type: str = "ASM"
    action_code: Optional[ActionCode] = None
    airline: str = ""
    flight_number: str = ""
    flight_date: Optional[date] = None
    changes: ChangeSet = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    raw_message: str = ""


@dataclass
class MessageLogEntry:
    """Audit record of one inbound or outbound message."""
    message_type: str
    action_code: Optional[str]
    direction: str
    status: str
    flight_number: Optional[str] = None
    flight_date: Optional[date] = None
    summary: Optional[str] = None
    raw_message: Optional[str] = None
    changes: Dict[str, Any] = field(default_factory=dict)
    reject_reason: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_dataframe_row(cls, row: Dict[str, Any], changes: Dict[str, Any]) -> 'MessageLogEntry':
        """Create a MessageLogEntry from a pandas DataFrame row."""
        created_at = row.get('created_at')
        return cls(
            id=row.get('id'),
            message_type=row.get('message_type'),
            action_code=_to_text(row.get('action_code')),
            direction=row.get('direction'),
            status=row.get('status'),
            flight_number=_to_text(row.get('flight_number')),
            flight_date=_to_date(row.get('flight_date')),
            summary=_to_text(row.get('summary')),
            raw_message=_to_text(row.get('raw_message')),
            changes=changes,
            reject_reason=_to_text(row.get('reject_reason')),
            created_at=None if created_at is None or pd.isna(created_at)
            else pd.Timestamp(created_at).to_pydatetime(),
        )


@dataclass
class ReconciledRecord:
    """One classified row of a reconciled SSIM batch."""
    status: RecordStatus
    record: Optional[ScheduleRecord] = None
    existing: Optional[ScheduleRecord] = None
    changed_fields: List[str] = field(default_factory=list)
    line: Optional[int] = None
    message: Optional[str] = None


@dataclass
class ReconciledBatch:
    """Classified records computed once for preview and passed unchanged to apply."""
    items: List[ReconciledRecord] = field(default_factory=list)

    def _with_status(self, status: RecordStatus) -> List[ReconciledRecord]:
        return [item for item in self.items if item.status == status]

    @property
    def new(self) -> List[ReconciledRecord]:
        return self._with_status(RecordStatus.NEW)

    @property
    def updated(self) -> List[ReconciledRecord]:
        return self._with_status(RecordStatus.UPDATED)

    @property
    def unchanged(self) -> List[ReconciledRecord]:
        return self._with_status(RecordStatus.UNCHANGED)

    @property
    def errors(self) -> List[ReconciledRecord]:
        return self._with_status(RecordStatus.ERROR)

    def counts(self) -> Dict[str, int]:
        return {status.value: len(self._with_status(status)) for status in RecordStatus}


@dataclass
class MessageReconciliation:
    """Classification of one ASM/SSM message against the schedule."""
    status: RecordStatus
    target: Optional[ScheduleRecord] = None
    instance_date: Optional[date] = None    # set when only that day's operation changes
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


@dataclass
class ImportSummary:
    """Result of applying a reconciled SSIM batch."""
    new_count: int = 0
    updated_count: int = 0
    unchanged_count: int = 0
    error_count: int = 0
    errors: List[str] = field(default_factory=list)


@dataclass
class ApplyOutcome:
    """Result of applying one ASM/SSM message."""
    success: bool
    applied_fields: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def warning(self) -> Optional[str]:
        return '; '.join(self.warnings) if self.warnings else None
