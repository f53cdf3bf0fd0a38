"""
ASM/SSM message parser.

Lines that cannot be decoded are reported in ParsedMessage.errors and the
remaining lines are still parsed.
"""
import logging
from typing import List, NamedTuple, Optional

from asm_format import (CHANGE_LINE_RE, FIELD_ORDER, FLIGHT_LINE_RE, MESSAGE_TYPES,
                        TAG_FIELDS, is_valid_value)
from config import config
from models import ActionCode, FieldChange, ParsedMessage
from utility import parse_ssim_date

logger = logging.getLogger(__name__)


class _PendingFrom(NamedTuple):
    field: str
    value: str
    line: int
    positional: bool


def _parse_flight_line(line: str, message: ParsedMessage) -> None:
    match = FLIGHT_LINE_RE.match(line.upper())
    if not match:
        message.errors.append(f"Line 3: could not parse flight number/date '{line}'")
        return
    message.airline = match.group('airline')
    message.flight_number = f"{match.group('airline')}{int(match.group('number'))}{match.group('suffix')}"
    raw_date = match.group('date')
    if raw_date:
        try:
            message.flight_date = parse_ssim_date(raw_date, config.get_reference_year())
        except ValueError:
            message.errors.append(f"Line 3: invalid flight date '{raw_date}'")
    elif message.message_type == 'ASM':
        message.errors.append("Line 3: ASM requires a flight date")


def _parse_change_lines(lines: List[str], first_line: int, message: ParsedMessage) -> None:
    order = FIELD_ORDER.get(message.action_code, ())
    position = 0
    pending: Optional[_PendingFrom] = None

    def drop_pending():
        nonlocal position, pending
        message.errors.append(
            f"Line {pending.line}: no '+' value follows '- {pending.value}' for {pending.field}")
        if pending.positional:
            position += 1
        pending = None

    for line_number, line in enumerate(lines, first_line):
        match = CHANGE_LINE_RE.match(line.upper())
        if not match:
            message.errors.append(f"Line {line_number}: unrecognised change line '{line}'")
            continue
        sign, tag, value = match.group('sign'), match.group('tag'), match.group('value')

        tagged_field = None
        if tag:
            tagged_field = TAG_FIELDS.get(tag)
            if tagged_field is None:
                message.errors.append(f"Line {line_number}: unknown field tag '{tag}'")
                continue

        from_value = None
        if sign == '+' and pending is not None and tagged_field in (None, pending.field):
            field_name, from_value, positional = pending.field, pending.value, pending.positional
            pending = None
        else:
            if pending is not None:
                drop_pending()
            if tagged_field:
                field_name, positional = tagged_field, False
            elif position < len(order):
                field_name, positional = order[position], True
            else:
                action = message.action_code.value if message.action_code else 'this message'
                message.errors.append(
                    f"Line {line_number}: no further change field expected for {action}")
                continue

        if sign == '-':
            pending = _PendingFrom(field_name, value, line_number, positional)
            continue

        if positional:
            position += 1
        if not is_valid_value(field_name, value):
            message.errors.append(f"Line {line_number}: invalid {field_name} value '{value}'")
            continue
        if field_name in message.changes:
            message.errors.append(f"Line {line_number}: {field_name} changed more than once")
            continue
        message.changes[field_name] = FieldChange(to_value=value, from_value=from_value)

    if pending is not None:
        drop_pending()


def parse_message(raw: str) -> ParsedMessage:
    """
    Parse an ASM/SSM message.

    Args:
        raw: Message text, one element per line.

    Returns:
        ParsedMessage; problems are listed in its errors.
    """
    message = ParsedMessage(raw_message=raw or '')
    lines = [line.strip() for line in (raw or '').strip().splitlines() if line.strip()]
    if not lines:
        message.errors.append("Empty message")
        return message

    message_type = lines[0].upper()
    if message_type in MESSAGE_TYPES:
        message.message_type = message_type
    else:
        message.errors.append(f"Line 1: unknown message type '{lines[0]}'")

    if len(lines) < 2:
        message.errors.append("Line 2: missing action code")
        return message
    try:
        message.action_code = ActionCode(lines[1].upper())
    except ValueError:
        message.errors.append(f"Line 2: unknown action code '{lines[1]}'")

    if len(lines) < 3:
        message.errors.append("Line 3: missing flight number/date")
        return message
    _parse_flight_line(lines[2], message)
    _parse_change_lines(lines[3:], 4, message)

    logger.debug(f"Parsed {message.message_type} {message.action_code} {message.flight_number} "
                 f"with {len(message.changes)} changes and {len(message.errors)} errors")
    return message
