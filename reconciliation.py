"""
Classification of incoming SSIM records and ASM/SSM messages against the
current schedule. Nothing here writes to the store.
"""
import dataclasses
import logging
from typing import Any, Dict, Iterable, Optional

from asm_format import DATED_ACTIONS, FIELD_ORDER, INSTANCE_ACTIONS, NEW_REQUIRED_FIELDS
from config import config
from models import (ActionCode, ChangeSet, MessageReconciliation, ParsedMessage,
                    ReconciledBatch, ReconciledRecord, RecordStatus, ScheduleRecord,
                    SsimParseResult)
from schema import INSTANCE_FIELDS
from utility import (aircraft_types_match, minutes_of_day, normalize_flight_number, parse_days,
                     parse_ssim_date, to_colon_time)

logger = logging.getLogger(__name__)


def to_record_value(field_name: str, wire_value: str) -> Any:
    """Convert a change-set wire value to the ScheduleRecord representation."""
    if field_name in ('std', 'sta'):
        return to_colon_time(wire_value)
    if field_name == 'days_of_operation':
        return parse_days(wire_value)
    if field_name in ('effective_from', 'effective_to'):
        if wire_value == config.SSIM_OPEN_END_DATE:
            return None
        return parse_ssim_date(wire_value, config.get_reference_year())
    if field_name == 'arrival_day_offset':
        return int(wire_value)
    if field_name == 'flight_number':
        return normalize_flight_number(wire_value)
    return wire_value


def is_instance_change(message: ParsedMessage) -> bool:
    """A dated ASM time or configuration change affects only that day's operation."""
    return (message.message_type == 'ASM' and message.flight_date is not None
            and message.action_code in INSTANCE_ACTIONS)


def message_field_updates(changes: ChangeSet) -> Dict[str, Any]:
    """Target values of a change-set, keyed by ScheduleRecord field."""
    return {name: to_record_value(name, change.to_value) for name, change in changes.items()}


def record_from_new_message(message: ParsedMessage) -> ScheduleRecord:
    """Build the leg a NEW message describes. Raises ValueError when incomplete."""
    updates = message_field_updates(message.changes)
    missing = [name for name in NEW_REQUIRED_FIELDS if name not in updates]
    if missing:
        raise ValueError(f"NEW message is missing {', '.join(missing)}")

    effective_from = updates.get('effective_from') or message.flight_date
    if effective_from is None:
        raise ValueError("NEW message needs a flight date or an effective-from date")
    if 'effective_to' in updates:
        effective_to = updates['effective_to']
    elif 'effective_from' in updates:
        effective_to = None
    else:
        effective_to = message.flight_date

    days = updates.get('days_of_operation')
    if not days:
        days = ({effective_from.isoweekday()} if effective_to == effective_from
                else set(range(1, 8)))
    std, sta = updates['std'], updates['sta']
    arrival_day_offset = updates.get(
        'arrival_day_offset', 1 if minutes_of_day(sta) < minutes_of_day(std) else 0)

    record = ScheduleRecord(
        flight_number=message.flight_number,
        departure_station=updates['departure_station'],
        arrival_station=updates['arrival_station'],
        std=std,
        sta=sta,
        days_of_operation=days,
        aircraft_type=updates['aircraft_type'],
        service_type=updates.get('service_type', config.DEFAULT_SERVICE_TYPE),
        effective_from=effective_from,
        effective_to=effective_to,
        arrival_day_offset=arrival_day_offset,
        configuration=updates.get('configuration', ''),
    )
    problems = record.validate()
    if problems:
        raise ValueError('; '.join(problems))
    return record


def reconcile_ssim(parse_result: SsimParseResult, repository,
                   known_aircraft_types: Optional[Iterable[str]] = None) -> ReconciledBatch:
    """
    Classify parsed SSIM records as New, Updated, Unchanged or Error.

    Parse errors become Error rows. A record whose identity already appeared
    earlier in the same file, or whose aircraft type is not in
    known_aircraft_types (when given), is also an Error.
    """
    known_types = set(known_aircraft_types) if known_aircraft_types is not None else None
    existing_index = {record.identity: record for record in repository.get_all()}
    batch = ReconciledBatch()
    seen = set()

    for record in parse_result.records:
        if record.identity in seen:
            batch.items.append(ReconciledRecord(
                status=RecordStatus.ERROR, record=record,
                message=f"{record.flight_number}: duplicate identity in file"))
            continue
        seen.add(record.identity)

        if known_types is not None and not any(
                aircraft_types_match(record.aircraft_type, known) for known in known_types):
            batch.items.append(ReconciledRecord(
                status=RecordStatus.ERROR, record=record,
                message=f"{record.flight_number}: unknown aircraft type {record.aircraft_type}"))
            continue

        existing = existing_index.get(record.identity)
        if existing is None:
            batch.items.append(ReconciledRecord(status=RecordStatus.NEW, record=record))
            continue

        changed = record.diff(existing)
        batch.items.append(ReconciledRecord(
            status=RecordStatus.UPDATED if changed else RecordStatus.UNCHANGED,
            record=record, existing=existing, changed_fields=changed))

    for error in parse_result.errors:
        batch.items.append(ReconciledRecord(
            status=RecordStatus.ERROR, line=error.line, message=error.message))

    logger.info(f"Reconciled SSIM batch: {batch.counts()}")
    return batch


def _error(message: str) -> MessageReconciliation:
    return MessageReconciliation(status=RecordStatus.ERROR, error=message)


def _from_value_warnings(message: ParsedMessage, target: ScheduleRecord):
    warnings = []
    for name, change in message.changes.items():
        if change.from_value is None:
            continue
        current = getattr(target, name)
        try:
            stated = to_record_value(name, change.from_value)
        except ValueError:
            warnings.append(f"{name}: previous value '{change.from_value}' could not be read")
            continue
        if name == 'aircraft_type' and aircraft_types_match(stated, current):
            continue
        if stated != current:
            warnings.append(f"{name}: message states previous value {change.from_value} "
                            f"but the schedule has {current}")
    return warnings


def _resolve_target(message: ParsedMessage, repository):
    """Return (target, error)."""
    flight_number = message.flight_number
    if message.flight_date is None:
        candidates = repository.find_by_flight_number(flight_number)
        if not candidates:
            return None, f"flight {flight_number} not found"
    else:
        candidates = repository.find_by_flight_and_date(flight_number, message.flight_date)
        if not candidates:
            if repository.find_by_flight_number(flight_number):
                return None, f"flight {flight_number} does not operate on {message.flight_date}"
            return None, f"flight {flight_number} not found"
    if len(candidates) > 1:
        return None, f"ambiguous match: {len(candidates)} legs of {flight_number} match"
    return candidates[0], None


def reconcile_message(message: ParsedMessage, repository) -> MessageReconciliation:
    """Resolve the flight an ASM/SSM message applies to and classify the change."""
    if message.errors:
        return _error(f"message has parse errors: {'; '.join(message.errors)}")
    action = message.action_code
    if action is None:
        return _error("missing action code")

    if action == ActionCode.NEW:
        try:
            record = record_from_new_message(message)
        except ValueError as e:
            return _error(str(e))
        if repository.find_by_identity(*record.identity):
            return _error(f"flight {record.flight_number} {record.departure_station}-"
                          f"{record.arrival_station} from {record.effective_from} already exists")
        return MessageReconciliation(status=RecordStatus.NEW)

    if action in DATED_ACTIONS and message.flight_date is None:
        return _error(f"{action.value} requires a flight date")
    if FIELD_ORDER[action] and not message.changes:
        return _error(f"{action.value} message carries no changes")

    target, error = _resolve_target(message, repository)
    if error:
        return _error(error)

    if action == ActionCode.CNL:
        cancelled = repository.is_instance_cancelled(target.id, message.flight_date)
        status = RecordStatus.UNCHANGED if cancelled else RecordStatus.UPDATED
        return MessageReconciliation(status=status, target=target)
    if action == ActionCode.RIN:
        cancelled = repository.is_instance_cancelled(target.id, message.flight_date)
        status = RecordStatus.UPDATED if cancelled else RecordStatus.UNCHANGED
        return MessageReconciliation(status=status, target=target)

    updates = message_field_updates(message.changes)
    instance_date = None
    current = target
    if is_instance_change(message):
        outside = sorted(set(updates) - set(INSTANCE_FIELDS))
        if outside:
            return _error(f"{action.value} for {message.flight_date} cannot change {', '.join(outside)}")
        instance_date = message.flight_date
        current = repository.instance_view(target, instance_date)

    problems = dataclasses.replace(current, **updates).validate()
    if problems:
        return _error(f"change would leave {target.flight_number} invalid: {'; '.join(problems)}")

    differing = [name for name, value in updates.items() if getattr(current, name) != value]
    return MessageReconciliation(
        status=RecordStatus.UPDATED if differing else RecordStatus.UNCHANGED,
        target=target,
        instance_date=instance_date,
        warnings=_from_value_warnings(message, current),
    )
