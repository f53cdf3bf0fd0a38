#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Schedule messaging command-line application.
Imports and exports SSIM files and handles ASM/SSM messages.
"""
import argparse
import logging
import sys
from datetime import date
from typing import List, NoReturn, Optional

from asm_generator import MessageGenerationError
from config import config
from database import DatabaseError
from logging_config import setup_logging
from message_log import message_log
from models import ExportFilters, FieldChange, SeasonInfo
from schedule_processor import ScheduleProcessorError, schedule_processor
from ssim_generator import SsimGenerationError
from utility import parse_ssim_date


logger = logging.getLogger(__name__)


def parse_date_argument(value: str) -> date:
    """Accept either 2025-03-15 or 15MAR25."""
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return parse_ssim_date(value.upper(), config.get_reference_year())
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid date '{value}'") from e


def parse_change_argument(value: str):
    """FIELD=TO or FIELD=FROM:TO, using message wire values."""
    name, sep, values = value.partition('=')
    if not sep or not name or not values:
        raise argparse.ArgumentTypeError(f"invalid change '{value}', expected FIELD=[FROM:]TO")
    from_value, sep, to_value = values.partition(':')
    if not sep:
        from_value, to_value = None, values
    return name.strip(), FieldChange(to_value=to_value.strip().upper(),
                                     from_value=from_value.strip().upper() if from_value else None)


def read_text(path: str) -> str:
    with open(path, encoding='utf-8') as handle:
        return handle.read()


def cmd_import_ssim(args) -> int:
    known_types = set(args.aircraft_types.split(',')) if args.aircraft_types else None
    summary = schedule_processor.import_ssim(read_text(args.file), known_aircraft_types=known_types,
                                             reference_year=args.reference_year,
                                             icao_aircraft=args.icao_aircraft or None)
    print(f"New: {summary.new_count}  Updated: {summary.updated_count}  "
          f"Unchanged: {summary.unchanged_count}  Errors: {summary.error_count}")
    for error in summary.errors:
        print(f"  {error}")
    return 0


def export_filters_from_args(args) -> Optional[ExportFilters]:
    filters = ExportFilters(
        aircraft_types=[args.aircraft_type.upper()] if args.aircraft_type else [],
        date_from=args.date_from,
        date_to=args.date_to,
        service_types=[s.upper() for s in args.service_type or []],
        flight_number_from=args.flight_from,
        flight_number_to=args.flight_to,
        departure_stations=[s.upper() for s in args.dep or []],
        arrival_stations=[s.upper() for s in args.arr or []],
    )
    return None if filters == ExportFilters() else filters


def cmd_export_ssim(args) -> int:
    season = SeasonInfo(carrier_code=args.carrier.upper(), season_code=args.season.upper(),
                        airline_name=args.airline_name or '')
    filters = export_filters_from_args(args)
    if args.preview:
        preview = schedule_processor.export_preview(season, filters=filters)
        for key, value in preview.stats.items():
            print(f"{key}: {value}")
        for line in preview.sample_lines:
            print(line.rstrip())
        return 0
    export = schedule_processor.export_ssim(season, filters=filters)
    if args.output:
        with open(args.output, 'w', encoding='utf-8') as handle:
            handle.write(export.content)
            handle.write('\n')
        print(f"Wrote {export.record_count} records to {args.output}")
    else:
        print(export.content)
    return 0


def cmd_receive(args) -> int:
    entry, message, reconciliation = schedule_processor.receive_message(read_text(args.file))
    print(f"Logged {entry.id} ({entry.status}): {entry.summary}")
    print(f"Reconciliation: {reconciliation.status.value}")
    if reconciliation.error:
        print(f"  Error: {reconciliation.error}")
    for warning in reconciliation.warnings:
        print(f"  Warning: {warning}")
    for error in message.errors:
        print(f"  Parse error: {error}")
    return 0


def cmd_apply(args) -> int:
    outcome = schedule_processor.apply_logged_message(args.id)
    if outcome.warning:
        print(f"Warning: {outcome.warning}")
    if not outcome.success:
        print(f"Not applied: {outcome.error}")
        return 1
    print(f"Applied: {', '.join(sorted(outcome.applied_fields)) or 'no changes needed'}")
    return 0


def cmd_reject(args) -> int:
    if schedule_processor.reject_logged_message(args.id, args.reason):
        print(f"Rejected {args.id}")
        return 0
    print(f"Message {args.id} is not pending")
    return 1


def cmd_send(args) -> int:
    changes = dict(args.change or [])
    entry = schedule_processor.send_message(args.action.upper(), args.airline.upper(), args.flight,
                                            args.date, changes, message_type=args.type)
    print(entry.raw_message)
    print(f"Logged {entry.id} ({entry.status})")
    return 0


def cmd_log(args) -> int:
    entries = message_log.query(direction=args.direction, action_code=args.action,
                                flight_number=args.flight, limit=args.limit)
    for entry in entries:
        created = entry.created_at.strftime('%Y-%m-%d %H:%M:%S') if entry.created_at else ''
        line = f"{created}  {entry.id}  {entry.direction:<8} {entry.status:<9} {entry.summary or ''}"
        if entry.reject_reason:
            line = f"{line}  [{entry.reject_reason}]"
        print(line)
    if not entries:
        print("No messages found")
    return 0


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Airline schedule interchange: SSIM files and ASM/SSM messages")
    subparsers = parser.add_subparsers(dest='command', required=True)

    p = subparsers.add_parser('import-ssim', help="Import an SSIM file into the schedule")
    p.add_argument('file')
    p.add_argument('--aircraft-types', help="Comma-separated list of known aircraft types")
    p.add_argument('--reference-year', type=int, help="Year used to expand two-digit dates")
    p.add_argument('--icao-aircraft', action='store_true',
                   help="Store ICAO aircraft designators (A320) instead of SSIM codes (320)")
    p.set_defaults(handler=cmd_import_ssim)

    p = subparsers.add_parser('export-ssim', help="Export the schedule as an SSIM file")
    p.add_argument('--carrier', required=True)
    p.add_argument('--season', required=True, help="Season code, e.g. S25")
    p.add_argument('--airline-name')
    p.add_argument('--aircraft-type', help="Only export legs flown by this aircraft type")
    p.add_argument('--date-from', type=parse_date_argument, help="Only legs operating on or after this date")
    p.add_argument('--date-to', type=parse_date_argument, help="Only legs operating on or before this date")
    p.add_argument('--service-type', action='append', help="Only legs with this service type (repeatable)")
    p.add_argument('--flight-from', type=int, help="Lowest flight number to export")
    p.add_argument('--flight-to', type=int, help="Highest flight number to export")
    p.add_argument('--dep', action='append', help="Only legs departing this station (repeatable)")
    p.add_argument('--arr', action='append', help="Only legs arriving at this station (repeatable)")
    p.add_argument('--preview', action='store_true', help="Print statistics and sample lines only")
    p.add_argument('--output', help="Output file (default: stdout)")
    p.set_defaults(handler=cmd_export_ssim)

    p = subparsers.add_parser('receive', help="Log an inbound ASM/SSM message as pending")
    p.add_argument('file')
    p.set_defaults(handler=cmd_receive)

    p = subparsers.add_parser('apply', help="Apply a pending inbound message")
    p.add_argument('id')
    p.set_defaults(handler=cmd_apply)

    p = subparsers.add_parser('reject', help="Reject a pending inbound message")
    p.add_argument('id')
    p.add_argument('reason')
    p.set_defaults(handler=cmd_reject)

    p = subparsers.add_parser('send', help="Generate and log an outbound message")
    p.add_argument('--action', required=True)
    p.add_argument('--airline', required=True)
    p.add_argument('--flight', required=True)
    p.add_argument('--date', type=parse_date_argument)
    p.add_argument('--type', default='ASM', choices=('ASM', 'SSM'))
    p.add_argument('--change', action='append', type=parse_change_argument,
                   metavar='FIELD=[FROM:]TO')
    p.set_defaults(handler=cmd_send)

    p = subparsers.add_parser('log', help="List logged messages, newest first")
    p.add_argument('--direction', choices=('inbound', 'outbound'))
    p.add_argument('--action')
    p.add_argument('--flight')
    p.add_argument('--limit', type=int)
    p.set_defaults(handler=cmd_log)

    return parser


def run(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    return args.handler(args)


def main() -> NoReturn:
    """
    Main entry point for the schedule messaging application.
    """
    setup_logging(log_level=config.get_log_level(), log_file=config.get_log_file())

    try:
        sys.exit(run())

    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
        sys.exit(130)
    except DatabaseError as e:
        logger.error(f"Database error: {e}")
        sys.exit(1)
    except (ScheduleProcessorError, SsimGenerationError, MessageGenerationError) as e:
        logger.error(f"Schedule processing error: {e}")
        sys.exit(1)
    except OSError as e:
        logger.error(f"File error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
