import dataclasses
from datetime import date

import pytest

from models import (ExportFilters, FieldChange, MessageStatus, ReconciledBatch,
                    ReconciledRecord, RecordStatus, ScheduleRecord)
from schedule_processor import ScheduleProcessorError, schedule_processor
from ssim_generator import generate_ssim
from ssim_parser import parse_ssim

TIME_CHANGE = "ASM\nTIM\nHZ100/15MAR25\n- 0600\n+ 0630"


def test_import_new_flight(repository, hz100, season):
    content = generate_ssim(season, [hz100]).content

    summary = schedule_processor.import_ssim(content, repository)

    assert (summary.new_count, summary.updated_count, summary.unchanged_count,
            summary.error_count) == (1, 0, 0, 0)
    stored = repository.get_all()
    assert stored == [hz100]
    assert stored[0].aircraft_type == "320"


def test_import_is_idempotent(repository, hz100, season):
    content = generate_ssim(season, [hz100]).content
    schedule_processor.import_ssim(content, repository)

    summary = schedule_processor.import_ssim(content, repository)

    assert (summary.new_count, summary.unchanged_count) == (0, 1)
    assert len(repository.get_all()) == 1


def test_import_updates_changed_fields_only(repository, hz100, season):
    schedule_processor.import_ssim(generate_ssim(season, [hz100]).content, repository)
    changed = dataclasses.replace(hz100, sta="08:30")

    summary = schedule_processor.import_ssim(generate_ssim(season, [changed]).content, repository)

    assert summary.updated_count == 1
    assert repository.get_all() == [changed]


def test_bad_line_does_not_stop_the_import(repository, hz100, season):
    other = dataclasses.replace(hz100, flight_number="HZ200")
    lines = generate_ssim(season, [hz100, other]).content.split("\n")
    lines[2] = lines[2][:36] + "S1N" + lines[2][39:]

    summary = schedule_processor.import_ssim("\n".join(lines), repository)

    assert summary.new_count == 1
    assert summary.error_count == 1
    assert summary.errors[0].startswith("Line 3:")
    assert [r.flight_number for r in repository.get_all()] == ["HZ200"]


def test_store_failure_counts_against_one_item(repository, hz100):
    twin = dataclasses.replace(hz100, std="07:00")
    other = dataclasses.replace(hz100, flight_number="HZ200")
    batch = ReconciledBatch(items=[
        ReconciledRecord(status=RecordStatus.NEW, record=hz100),
        ReconciledRecord(status=RecordStatus.NEW, record=twin),
        ReconciledRecord(status=RecordStatus.NEW, record=other),
    ])

    summary = schedule_processor.apply_batch(batch, repository)

    assert summary.new_count == 2
    assert summary.error_count == 1
    assert len(repository.get_all()) == 2


def test_export_reads_the_store(repository, hz100, season):
    repository.insert(hz100)
    repository.insert(dataclasses.replace(hz100, flight_number="HZ200", aircraft_type="321"))

    export = schedule_processor.export_ssim(season, repository)
    filtered = schedule_processor.export_ssim(season, repository, aircraft_type="321")

    assert export.record_count == 2
    assert parse_ssim(export.content).records == repository.get_all()
    assert filtered.record_count == 1


def test_time_change_applies_one_field(repository, log, hz100):
    repository.insert(hz100)

    entry, outcome = schedule_processor.process_inbound_message(TIME_CHANGE, repository, log)

    assert outcome.success
    assert outcome.applied_fields == {"std": "06:30"}
    assert outcome.warnings == []
    assert repository.get_all() == [hz100]
    assert repository.instance_view(repository.get_all()[0], date(2025, 3, 15)).std == "06:30"
    assert entry.status == MessageStatus.APPLIED.value
    assert log.get(entry.id).changes == {"std": {"from": "0600", "to": "0630"}}


def test_cancel_then_reinstate(repository, log, hz100):
    record_id = repository.insert(hz100)

    _, cancelled = schedule_processor.process_inbound_message(
        "ASM\nCNL\nHZ100/17MAR25", repository, log)

    assert cancelled.success
    assert repository.is_instance_cancelled(record_id, date(2025, 3, 17))
    assert not repository.is_instance_cancelled(record_id, date(2025, 3, 18))

    _, reinstated = schedule_processor.process_inbound_message(
        "ASM\nRIN\nHZ100/17MAR25", repository, log)

    assert reinstated.success
    assert repository.cancelled_dates(record_id) == []
    assert repository.get_all() == [hz100]


def test_unmatched_message_is_rejected_and_store_untouched(repository, log, hz100):
    repository.insert(hz100)

    entry, outcome = schedule_processor.process_inbound_message(
        "ASM\nTIM\nHZ999/15MAR25\n+ 0630", repository, log)

    assert not outcome.success
    assert "not found" in outcome.error
    assert entry.status == MessageStatus.REJECTED.value
    assert entry.reject_reason == outcome.error
    assert repository.get_all() == [hz100]


def test_new_flight_message(repository, log):
    raw = "ASM\nNEW\nHZ300/01APR25\n+ SGN\n+ DAD\n+ 0700\n+ 0820\n+ 1234567\n+ 320"

    _, outcome = schedule_processor.process_inbound_message(raw, repository, log)

    assert outcome.success
    stored = repository.find_by_identity("HZ300", "SGN", "DAD", date(2025, 4, 1))
    assert stored.std == "07:00"
    assert stored.effective_to == date(2025, 4, 1)
    assert outcome.applied_fields["id"] == stored.id


def test_flight_number_change(repository, log, hz100):
    repository.insert(hz100)

    _, outcome = schedule_processor.process_inbound_message(
        "ASM\nFLT\nHZ100/15MAR25\n- HZ100\n+ HZ0102", repository, log)

    assert outcome.success
    assert [r.flight_number for r in repository.get_all()] == ["HZ102"]


def test_receive_then_apply(repository, log, hz100):
    repository.insert(hz100)

    entry, message, reconciliation = schedule_processor.receive_message(TIME_CHANGE, repository, log)

    assert entry.status == MessageStatus.PENDING.value
    assert reconciliation.status == RecordStatus.UPDATED
    assert repository.get_all() == [hz100]

    outcome = schedule_processor.apply_logged_message(entry.id, repository, log)

    assert outcome.success
    assert log.get(entry.id).status == MessageStatus.APPLIED.value
    stored = repository.get_all()[0]
    assert stored.std == "06:00"
    assert repository.instance_view(stored, date(2025, 3, 15)).std == "06:30"


def test_logged_message_is_applied_once(repository, log, hz100):
    repository.insert(hz100)
    entry, _, _ = schedule_processor.receive_message(TIME_CHANGE, repository, log)
    schedule_processor.apply_logged_message(entry.id, repository, log)

    again = schedule_processor.apply_logged_message(entry.id, repository, log)

    assert not again.success
    assert "already applied" in again.error


def test_failed_apply_rejects_the_entry(repository, log):
    entry, _, reconciliation = schedule_processor.receive_message(TIME_CHANGE, repository, log)
    assert reconciliation.status == RecordStatus.ERROR

    outcome = schedule_processor.apply_logged_message(entry.id, repository, log)

    assert not outcome.success
    stored = log.get(entry.id)
    assert stored.status == MessageStatus.REJECTED.value
    assert stored.reject_reason == outcome.error


def test_reject_logged_message(repository, log, hz100):
    repository.insert(hz100)
    entry, _, _ = schedule_processor.receive_message(TIME_CHANGE, repository, log)

    assert schedule_processor.reject_logged_message(entry.id, "duplicate of earlier change", log)
    assert log.get(entry.id).reject_reason == "duplicate of earlier change"
    assert not schedule_processor.apply_logged_message(entry.id, repository, log).success
    assert repository.get_all() == [hz100]


def test_apply_unknown_entry(repository, log):
    with pytest.raises(ScheduleProcessorError):
        schedule_processor.apply_logged_message("missing", repository, log)


def test_send_message_is_logged_as_sent(log):
    entry = schedule_processor.send_message(
        "TIM", "HZ", "100", date(2025, 3, 15),
        {"std": FieldChange(to_value="0630", from_value="0600")}, log=log)

    assert entry.raw_message == TIME_CHANGE
    assert entry.direction == "outbound"
    assert entry.status == MessageStatus.SENT.value
    assert entry.flight_number == "HZ100"
    assert log.transition(entry.id, MessageStatus.APPLIED) is False


def test_dated_time_change_leaves_other_days_alone(repository, log, hz100):
    repository.insert(hz100)

    _, outcome = schedule_processor.process_inbound_message(TIME_CHANGE, repository, log)

    assert outcome.success
    assert repository.find_by_flight_and_date("HZ100", date(2025, 3, 16))[0].std == "06:00"
    stored = repository.find_by_flight_and_date("HZ100", date(2025, 3, 15))[0]
    assert repository.instance_view(stored, date(2025, 3, 15)).std == "06:30"
    assert repository.instance_view(stored, date(2025, 3, 16)).std == "06:00"


def test_repeated_dated_time_change_is_unchanged(repository, log, hz100):
    repository.insert(hz100)
    schedule_processor.process_inbound_message(TIME_CHANGE, repository, log)

    _, outcome = schedule_processor.process_inbound_message(
        "ASM\nTIM\nHZ100/15MAR25\n- 0600\n+ 0630", repository, log)

    assert outcome.success
    assert outcome.applied_fields == {}


def test_schedule_time_change_updates_the_leg(repository, log, hz100):
    repository.insert(hz100)

    _, outcome = schedule_processor.process_inbound_message(
        "SSM\nTIM\nHZ100\n- 0600\n+ 0630", repository, log)

    assert outcome.success
    assert repository.get_all() == [dataclasses.replace(hz100, std="06:30")]


def test_dated_time_change_cannot_carry_other_fields(repository, log, hz100):
    repository.insert(hz100)

    _, outcome = schedule_processor.process_inbound_message(
        "ASM\nTIM\nHZ100/15MAR25\n+ 0630\n+ EQT 321", repository, log)

    assert not outcome.success
    assert "cannot change aircraft_type" in outcome.error
    assert repository.get_all() == [hz100]


def test_icao_equipment_change(repository, log, hz100, season):
    repository.insert(hz100)

    _, outcome = schedule_processor.process_inbound_message(
        "ASM\nEQT\nHZ100/15MAR25\n+ A321", repository, log)

    assert outcome.success
    assert repository.get_all()[0].aircraft_type == "A321"
    export = schedule_processor.export_ssim(season, repository)
    assert export.content.split("\n")[2][72:75] == "321"


def test_icao_import_keeps_icao_codes(repository, season):
    record = ScheduleRecord(
        flight_number="HZ500", departure_station="SGN", arrival_station="BKK",
        std="09:00", sta="10:30", days_of_operation={1, 3, 5}, aircraft_type="A320",
        effective_from=date(2025, 3, 30), effective_to=date(2025, 10, 25))
    content = generate_ssim(season, [record]).content

    summary = schedule_processor.import_ssim(content, repository, icao_aircraft=True,
                                             known_aircraft_types={"A320"})

    assert summary.new_count == 1
    assert repository.get_all() == [record]


def _stored_network(repository, hz100):
    repository.insert(hz100)
    repository.insert(dataclasses.replace(
        hz100, flight_number="HZ200", departure_station="HAN", arrival_station="DAD",
        service_type="G", effective_from=date(2025, 6, 1), effective_to=date(2025, 6, 30)))
    repository.insert(dataclasses.replace(
        hz100, flight_number="HZ900", departure_station="DAD", arrival_station="SGN",
        aircraft_type="321"))


def _exported_flights(repository, season, filters):
    export = schedule_processor.export_ssim(season, repository, filters=filters)
    return [r.flight_number for r in parse_ssim(export.content).records]


def test_export_filter_by_dates(repository, hz100, season):
    _stored_network(repository, hz100)

    flights = _exported_flights(repository, season, ExportFilters(
        date_from=date(2025, 7, 1), date_to=date(2025, 7, 31)))

    assert flights == ["HZ100", "HZ900"]


def test_export_filter_by_service_type(repository, hz100, season):
    _stored_network(repository, hz100)

    assert _exported_flights(repository, season, ExportFilters(service_types=["G"])) == ["HZ200"]


def test_export_filter_by_flight_number_range(repository, hz100, season):
    _stored_network(repository, hz100)

    flights = _exported_flights(repository, season, ExportFilters(
        flight_number_from=150, flight_number_to=900))

    assert flights == ["HZ200", "HZ900"]


def test_export_filter_by_stations(repository, hz100, season):
    _stored_network(repository, hz100)

    assert _exported_flights(repository, season, ExportFilters(departure_stations=["DAD"])) == ["HZ900"]
    assert _exported_flights(repository, season, ExportFilters(arrival_stations=["HAN", "DAD"])) == [
        "HZ100", "HZ200"]


def test_export_filter_by_aircraft_type(repository, hz100, season):
    _stored_network(repository, hz100)

    assert _exported_flights(repository, season, ExportFilters(aircraft_types=["A321"])) == ["HZ900"]


def test_export_preview(repository, hz100, season):
    _stored_network(repository, hz100)

    preview = schedule_processor.export_preview(season, repository, sample_size=2)

    assert preview.stats["total_records"] == 3
    assert preview.stats["aircraft_type_counts"] == {"320": 2, "321": 1}
    assert len(preview.sample_lines) == 4
    assert preview.sample_lines[0].startswith("1AIRLINE STANDARD SCHEDULE DATA SET")
    assert preview.sample_lines[2][0] == "3"
    assert all(len(line) == 200 for line in preview.sample_lines)


def test_export_preview_of_empty_selection(repository, hz100, season):
    repository.insert(hz100)

    preview = schedule_processor.export_preview(season, repository, ExportFilters(service_types=["C"]))

    assert preview.stats == {"total_records": 0}
    assert preview.sample_lines == []
