"""
Apply engine and end-to-end workflows for SSIM files and ASM/SSM messages.
"""
import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from asm_generator import generate_message
from asm_parser import parse_message
from database import DatabaseError, ScheduleRepository, schedule_repo
from message_log import MessageLog, message_log
from models import (ActionCode, ApplyOutcome, ChangeSet, ExportFilters, ExportPreview,
                    ImportSummary, MessageLogEntry, MessageReconciliation, MessageStatus,
                    ParsedMessage, ReconciledBatch, RecordStatus, ScheduleRecord, SeasonInfo,
                    SsimExport, changes_to_dict)
from reconciliation import (message_field_updates, reconcile_message, reconcile_ssim,
                            record_from_new_message)
from ssim_generator import generate_ssim
from ssim_parser import compute_stats, parse_ssim

logger = logging.getLogger(__name__)


class ScheduleProcessorError(Exception):
    """Custom exception for schedule processing workflows."""
    pass


def summarize_message(message: ParsedMessage) -> str:
    """One-line description of a message for the log."""
    parts = [message.action_code.value if message.action_code else '???',
             message.flight_number or '?']
    if message.flight_date:
        parts.append(message.flight_date.isoformat())
    text = ' '.join(parts)
    if message.changes:
        described = []
        for name, change in message.changes.items():
            if change.from_value is None:
                described.append(f"{name} {change.to_value}")
            else:
                described.append(f"{name} {change.from_value}->{change.to_value}")
        text = f"{text}: {', '.join(described)}"
    return text


class ScheduleProcessor:
    """Applies reconciled SSIM batches and ASM/SSM messages to the schedule store."""

    @staticmethod
    def apply_batch(batch: ReconciledBatch,
                    repository: Optional[ScheduleRepository] = None) -> ImportSummary:
        """
        Persist a reconciled batch. Store failures count against the item
        that caused them; the rest of the batch is still applied.
        """
        repository = repository or schedule_repo
        summary = ImportSummary()
        total = len(batch.items)

        for index, item in enumerate(batch.items, 1):
            if item.status == RecordStatus.ERROR:
                summary.error_count += 1
                prefix = f"Line {item.line}" if item.line is not None else "Record"
                summary.errors.append(f"{prefix}: {item.message}")
                continue
            if item.status == RecordStatus.UNCHANGED:
                summary.unchanged_count += 1
                continue

            record = item.record
            try:
                if item.status == RecordStatus.NEW:
                    repository.insert(record)
                    summary.new_count += 1
                else:
                    fields = {name: getattr(record, name) for name in item.changed_fields}
                    repository.update(item.existing.id, fields)
                    summary.updated_count += 1
            except DatabaseError as e:
                summary.error_count += 1
                summary.errors.append(f"{record.flight_number} {record.departure_station}-"
                                      f"{record.arrival_station}: {e}")
                logger.error(f"Failed to apply {record.flight_number}: {e}")

            if index % 100 == 0:
                logger.info(f"Progress: {index}/{total} records applied")

        logger.info(f"Import complete: new={summary.new_count} updated={summary.updated_count} "
                    f"unchanged={summary.unchanged_count} errors={summary.error_count}")
        return summary

    @staticmethod
    def apply_message(message: ParsedMessage, reconciliation: MessageReconciliation,
                      repository: Optional[ScheduleRepository] = None) -> ApplyOutcome:
        """Carry out one reconciled message. Nothing is written when it cannot apply."""
        repository = repository or schedule_repo
        if reconciliation.status == RecordStatus.ERROR:
            return ApplyOutcome(success=False, warnings=list(reconciliation.warnings),
                                error=reconciliation.error or "message cannot be applied")

        action = message.action_code
        warnings = list(reconciliation.warnings)
        target = reconciliation.target
        applied: Dict[str, Any] = {}
        try:
            if action == ActionCode.NEW:
                record = record_from_new_message(message)
                applied = {'id': repository.insert(record)}
                applied.update(message_field_updates(message.changes))
            elif action == ActionCode.CNL:
                if repository.cancel_instance(target.id, message.flight_date):
                    applied = {'cancelled': message.flight_date}
                else:
                    warnings.append(f"{message.flight_number} on {message.flight_date} was already cancelled")
            elif action == ActionCode.RIN:
                if repository.reinstate_instance(target.id, message.flight_date):
                    applied = {'reinstated': message.flight_date}
                else:
                    warnings.append(f"{message.flight_number} on {message.flight_date} was not cancelled")
            elif reconciliation.instance_date is not None:
                current = repository.instance_view(target, reconciliation.instance_date)
                updates = message_field_updates(message.changes)
                applied = {name: value for name, value in updates.items()
                           if getattr(current, name) != value}
                repository.set_instance_overrides(target.id, reconciliation.instance_date, applied)
            else:
                updates = message_field_updates(message.changes)
                applied = {name: value for name, value in updates.items()
                           if getattr(target, name) != value}
                repository.update(target.id, applied)
        except DatabaseError as e:
            logger.error(f"Failed to apply {action.value} {message.flight_number}: {e}")
            return ApplyOutcome(success=False, warnings=warnings, error=f"store rejected the change: {e}")
        except ValueError as e:
            return ApplyOutcome(success=False, warnings=warnings, error=str(e))

        for warning in warnings:
            logger.warning(f"{action.value} {message.flight_number}: {warning}")
        logger.info(f"Applied {action.value} {message.flight_number}: {sorted(applied)}")
        return ApplyOutcome(success=True, applied_fields=applied, warnings=warnings)

    @staticmethod
    def preview_ssim(content: str, repository: Optional[ScheduleRepository] = None,
                     known_aircraft_types: Optional[Iterable[str]] = None,
                     reference_year: Optional[int] = None,
                     icao_aircraft: Optional[bool] = None) -> ReconciledBatch:
        result = parse_ssim(content, reference_year, icao_aircraft=icao_aircraft)
        logger.info(f"Parsed {len(result.records)} SSIM records with {len(result.errors)} errors "
                    f"from {result.total_lines} lines")
        return reconcile_ssim(result, repository or schedule_repo, known_aircraft_types)

    @staticmethod
    def import_ssim(content: str, repository: Optional[ScheduleRepository] = None,
                    known_aircraft_types: Optional[Iterable[str]] = None,
                    reference_year: Optional[int] = None,
                    icao_aircraft: Optional[bool] = None) -> ImportSummary:
        """Parse, reconcile and apply an SSIM file."""
        repository = repository or schedule_repo
        batch = ScheduleProcessor.preview_ssim(content, repository, known_aircraft_types,
                                               reference_year, icao_aircraft)
        return ScheduleProcessor.apply_batch(batch, repository)

    @staticmethod
    def select_for_export(repository: Optional[ScheduleRepository] = None,
                          filters: Optional[ExportFilters] = None) -> List[ScheduleRecord]:
        """Stored legs ordered by flight number and effective date, narrowed by filters."""
        records = (repository or schedule_repo).get_all()
        if filters is not None:
            records = [record for record in records if filters.matches(record)]
        return records

    @staticmethod
    def export_ssim(season: SeasonInfo, repository: Optional[ScheduleRepository] = None,
                    aircraft_type: Optional[str] = None,
                    creation_date: Optional[date] = None,
                    filters: Optional[ExportFilters] = None) -> SsimExport:
        """Write the stored legs selected by filters as an SSIM file."""
        records = ScheduleProcessor.select_for_export(repository, filters)
        if not records:
            logger.warning("No scheduled flights found to export")
        export = generate_ssim(season, records, aircraft_type=aircraft_type, creation_date=creation_date)
        logger.info(f"Exported {export.record_count} SSIM records for {season.carrier_code} {season.season_code}")
        return export

    @staticmethod
    def export_preview(season: SeasonInfo, repository: Optional[ScheduleRepository] = None,
                       filters: Optional[ExportFilters] = None,
                       sample_size: int = 5) -> ExportPreview:
        """Statistics of an export and its header, carrier and first flight lines."""
        records = ScheduleProcessor.select_for_export(repository, filters)
        if not records:
            return ExportPreview(stats=compute_stats(records))
        sample = generate_ssim(season, records[:sample_size]).content.split('\n')
        return ExportPreview(stats=compute_stats(records), sample_lines=sample[:2 + sample_size])

    @staticmethod
    def _inbound_entry(message: ParsedMessage, status: MessageStatus,
                       reject_reason: Optional[str] = None) -> MessageLogEntry:
        return MessageLogEntry(
            message_type=message.message_type,
            action_code=message.action_code.value if message.action_code else None,
            direction='inbound',
            status=status.value,
            flight_number=message.flight_number or None,
            flight_date=message.flight_date,
            summary=summarize_message(message),
            raw_message=message.raw_message,
            changes=changes_to_dict(message.changes),
            reject_reason=reject_reason,
        )

    @staticmethod
    def receive_message(raw: str, repository: Optional[ScheduleRepository] = None,
                        log: Optional[MessageLog] = None
                        ) -> Tuple[MessageLogEntry, ParsedMessage, MessageReconciliation]:
        """Parse and reconcile an inbound message and log it as pending."""
        message = parse_message(raw)
        reconciliation = reconcile_message(message, repository or schedule_repo)
        entry = (log or message_log).append(
            ScheduleProcessor._inbound_entry(message, MessageStatus.PENDING))
        logger.info(f"Received {message.message_type} {entry.summary} -> {reconciliation.status.value}")
        return entry, message, reconciliation

    @staticmethod
    def apply_logged_message(entry_id: str, repository: Optional[ScheduleRepository] = None,
                             log: Optional[MessageLog] = None) -> ApplyOutcome:
        """Apply a pending inbound message and close its log entry."""
        log = log or message_log
        entry = log.get(entry_id)
        if entry is None:
            raise ScheduleProcessorError(f"Message {entry_id} not found")
        if entry.direction != 'inbound':
            raise ScheduleProcessorError(f"Message {entry_id} is not an inbound message")
        if entry.status != MessageStatus.PENDING.value:
            return ApplyOutcome(success=False, error=f"Message {entry_id} is already {entry.status}")

        repository = repository or schedule_repo
        message = parse_message(entry.raw_message or '')
        reconciliation = reconcile_message(message, repository)
        outcome = ScheduleProcessor.apply_message(message, reconciliation, repository)
        if outcome.success:
            log.transition(entry_id, MessageStatus.APPLIED)
        else:
            log.transition(entry_id, MessageStatus.REJECTED, outcome.error)
        return outcome

    @staticmethod
    def reject_logged_message(entry_id: str, reason: str, log: Optional[MessageLog] = None) -> bool:
        return (log or message_log).transition(entry_id, MessageStatus.REJECTED, reason)

    @staticmethod
    def process_inbound_message(raw: str, repository: Optional[ScheduleRepository] = None,
                                log: Optional[MessageLog] = None) -> Tuple[MessageLogEntry, ApplyOutcome]:
        """Parse, reconcile and apply in one step, logging the final status."""
        repository = repository or schedule_repo
        message = parse_message(raw)
        reconciliation = reconcile_message(message, repository)
        outcome = ScheduleProcessor.apply_message(message, reconciliation, repository)
        if outcome.success:
            entry = ScheduleProcessor._inbound_entry(message, MessageStatus.APPLIED)
        else:
            entry = ScheduleProcessor._inbound_entry(message, MessageStatus.REJECTED, outcome.error)
        return (log or message_log).append(entry), outcome

    @staticmethod
    def send_message(action_code, airline: str, flight_number: str, flight_date: Optional[date],
                     changes: ChangeSet, message_type: str = "ASM",
                     log: Optional[MessageLog] = None) -> MessageLogEntry:
        """Render an outbound message and log it as sent."""
        raw = generate_message(action_code, airline, flight_number, flight_date, changes, message_type)
        message = parse_message(raw)
        entry = MessageLogEntry(
            message_type=message_type,
            action_code=message.action_code.value,
            direction='outbound',
            status=MessageStatus.SENT.value,
            flight_number=message.flight_number,
            flight_date=flight_date,
            summary=summarize_message(message),
            raw_message=raw,
            changes=changes_to_dict(changes),
        )
        return (log or message_log).append(entry)


# Global processor instance
schedule_processor = ScheduleProcessor()
