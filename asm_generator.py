"""
ASM/SSM message generator, the inverse of asm_parser.parse_message.
"""
import logging
from datetime import date
from typing import List, Optional, Union

from asm_format import FIELD_ORDER, FIELD_TAGS, MESSAGE_TYPES, is_valid_value
from models import ActionCode, ChangeSet, FieldChange
from utility import format_ssim_date, normalize_flight_number

logger = logging.getLogger(__name__)


class MessageGenerationError(Exception):
    """Raised when a message cannot be rendered from the given intent."""
    pass


def _change_lines(field_name: str, from_value: Optional[str], to_value: str, tagged: bool) -> List[str]:
    prefix = f"{FIELD_TAGS[field_name]} " if tagged else ""
    lines = []
    if from_value is not None:
        lines.append(f"- {prefix}{from_value}")
    lines.append(f"+ {prefix}{to_value}")
    return lines


def _normalize_value(value: Optional[str]) -> Optional[str]:
    return value.strip().upper() if value is not None else None


def _validate_changes(changes: ChangeSet) -> ChangeSet:
    """Uppercase both sides of every change and check them; returns the normalised change-set."""
    normalized: ChangeSet = {}
    for name, change in changes.items():
        if name not in FIELD_TAGS:
            raise MessageGenerationError(f"Unknown change field '{name}'")
        to_value = _normalize_value(change.to_value)
        from_value = _normalize_value(change.from_value)
        if not is_valid_value(name, to_value):
            raise MessageGenerationError(f"Invalid {name} value '{change.to_value}'")
        if from_value is not None and (not from_value or any(c.isspace() for c in from_value)):
            raise MessageGenerationError(f"Invalid previous {name} value '{change.from_value}'")
        normalized[name] = FieldChange(to_value=to_value, from_value=from_value)
    return normalized


def generate_message(action_code: Union[ActionCode, str], airline: str, flight_number: str,
                     flight_date: Optional[date], changes: ChangeSet,
                     message_type: str = "ASM") -> str:
    """
    Render an ASM/SSM message.

    Fields are written positionally while the change-set follows the action's
    field order; anything after a gap, or outside that order, is written with
    its field tag.
    """
    try:
        action = ActionCode(action_code)
    except ValueError as e:
        raise MessageGenerationError(f"Unknown action code '{action_code}'") from e
    if message_type not in MESSAGE_TYPES:
        raise MessageGenerationError(f"Unknown message type '{message_type}'")
    if flight_date is None and message_type == 'ASM':
        raise MessageGenerationError("ASM requires a flight date")

    designator = (flight_number or '').strip().upper()
    airline = (airline or '').strip().upper()
    if airline and not designator.startswith(airline):
        designator = f"{airline}{designator}"
    try:
        designator = normalize_flight_number(designator)
    except ValueError as e:
        raise MessageGenerationError(str(e)) from e

    changes = _validate_changes(changes)

    flight_line = designator if flight_date is None else f"{designator}/{format_ssim_date(flight_date)}"
    lines = [message_type, action.value, flight_line]

    order = FIELD_ORDER[action]
    positional = True
    for name in order:
        if name not in changes:
            positional = False
            continue
        change = changes[name]
        lines.extend(_change_lines(name, change.from_value, change.to_value, tagged=not positional))
    for name in sorted(set(changes) - set(order)):
        change = changes[name]
        lines.extend(_change_lines(name, change.from_value, change.to_value, tagged=True))

    logger.debug(f"Generated {message_type} {action.value} for {flight_line}")
    return '\n'.join(lines)
