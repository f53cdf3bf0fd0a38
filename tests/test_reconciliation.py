import dataclasses
from datetime import date

from asm_parser import parse_message
from models import RecordStatus
from reconciliation import reconcile_message, reconcile_ssim
from ssim_generator import generate_ssim
from ssim_parser import parse_ssim


def parse_records(season, records):
    return parse_ssim(generate_ssim(season, records).content)


def test_new_unchanged_and_updated(repository, hz100, season):
    existing = dataclasses.replace(hz100, flight_number="HZ200")
    repository.insert(hz100)
    repository.insert(existing)
    fresh = dataclasses.replace(hz100, flight_number="HZ300")
    changed = dataclasses.replace(existing, std="06:30", aircraft_type="321")

    batch = reconcile_ssim(parse_records(season, [hz100, changed, fresh]), repository)

    assert [item.status for item in batch.items] == [
        RecordStatus.UNCHANGED, RecordStatus.UPDATED, RecordStatus.NEW]
    assert batch.updated[0].changed_fields == ["std", "aircraft_type"]
    assert batch.updated[0].existing.id is not None
    assert batch.counts() == {"New": 1, "Updated": 1, "Unchanged": 1, "Error": 0}


def test_reconciliation_does_not_write(repository, hz100, season):
    reconcile_ssim(parse_records(season, [hz100]), repository)

    assert repository.get_all() == []


def test_duplicate_identity_in_file(repository, hz100, season):
    batch = reconcile_ssim(parse_records(season, [hz100, dataclasses.replace(hz100, std="07:00")]),
                           repository)

    assert [item.status for item in batch.items] == [RecordStatus.NEW, RecordStatus.ERROR]
    assert "duplicate identity" in batch.errors[0].message


def test_unknown_aircraft_type(repository, hz100, season):
    other = dataclasses.replace(hz100, flight_number="HZ200", aircraft_type="738")

    batch = reconcile_ssim(parse_records(season, [hz100, other]), repository,
                           known_aircraft_types={"320", "321"})

    assert len(batch.new) == 1
    assert "unknown aircraft type 738" in batch.errors[0].message


def test_parse_errors_become_error_rows(repository, hz100, season):
    lines = generate_ssim(season, [hz100]).content.split("\n")
    lines.insert(3, "3 HZ  9990101J" + "X" * 186)

    batch = reconcile_ssim(parse_ssim("\n".join(lines)), repository)

    assert len(batch.new) == 1
    assert batch.errors[0].line == 4


def test_time_change_resolves_target(repository, hz100):
    repository.insert(hz100)

    result = reconcile_message(parse_message("ASM\nTIM\nHZ100/15MAR25\n- 0600\n+ 0630"), repository)

    assert result.status == RecordStatus.UPDATED
    assert result.target.flight_number == "HZ100"
    assert result.warnings == []


def test_change_already_in_place_is_unchanged(repository, hz100):
    repository.insert(hz100)

    result = reconcile_message(parse_message("ASM\nTIM\nHZ100/15MAR25\n+ 0600"), repository)

    assert result.status == RecordStatus.UNCHANGED


def test_stale_previous_value_warns(repository, hz100):
    repository.insert(hz100)

    result = reconcile_message(parse_message("ASM\nTIM\nHZ100/15MAR25\n- 0555\n+ 0630"), repository)

    assert result.status == RecordStatus.UPDATED
    assert len(result.warnings) == 1
    assert "0555" in result.warnings[0]


def test_flight_not_found(repository, hz100):
    repository.insert(hz100)

    result = reconcile_message(parse_message("ASM\nTIM\nHZ999/15MAR25\n+ 0630"), repository)

    assert result.status == RecordStatus.ERROR
    assert "not found" in result.error


def test_flight_does_not_operate_on_date(repository, hz100):
    repository.insert(dataclasses.replace(hz100, days_of_operation={1, 3, 5}))

    result = reconcile_message(parse_message("ASM\nTIM\nHZ100/15MAR25\n+ 0630"), repository)

    assert result.status == RecordStatus.ERROR
    assert "does not operate" in result.error


def test_ambiguous_match(repository, hz100):
    repository.insert(hz100)
    repository.insert(dataclasses.replace(hz100, departure_station="HAN", arrival_station="DAD"))

    result = reconcile_message(parse_message("ASM\nTIM\nHZ100/15MAR25\n+ 0630"), repository)

    assert result.status == RecordStatus.ERROR
    assert "ambiguous" in result.error


def test_parse_errors_block_reconciliation(repository, hz100):
    repository.insert(hz100)

    result = reconcile_message(parse_message("ASM\nTIM\nHZ100/15MAR25\n+ 2560"), repository)

    assert result.status == RecordStatus.ERROR
    assert "parse errors" in result.error


def test_cancellation_requires_date(repository, hz100):
    repository.insert(hz100)

    result = reconcile_message(parse_message("SSM\nCNL\nHZ100"), repository)

    assert result.status == RecordStatus.ERROR
    assert "requires a flight date" in result.error


def test_cancel_and_reinstate_classification(repository, hz100):
    record_id = repository.insert(hz100)
    cancel = parse_message("ASM\nCNL\nHZ100/17MAR25")
    reinstate = parse_message("ASM\nRIN\nHZ100/17MAR25")

    assert reconcile_message(cancel, repository).status == RecordStatus.UPDATED
    assert reconcile_message(reinstate, repository).status == RecordStatus.UNCHANGED

    repository.cancel_instance(record_id, date(2025, 3, 17))

    assert reconcile_message(cancel, repository).status == RecordStatus.UNCHANGED
    assert reconcile_message(reinstate, repository).status == RecordStatus.UPDATED


def test_ssm_without_date_uses_flight_number(repository, hz100):
    repository.insert(hz100)

    result = reconcile_message(parse_message("SSM\nEQT\nHZ100\n+ 321"), repository)

    assert result.status == RecordStatus.UPDATED


def test_new_flight(repository, hz100):
    raw = "ASM\nNEW\nHZ300/01APR25\n+ SGN\n+ DAD\n+ 0700\n+ 0820\n+ 1234567\n+ 320"

    assert reconcile_message(parse_message(raw), repository).status == RecordStatus.NEW


def test_new_flight_missing_fields(repository):
    result = reconcile_message(parse_message("ASM\nNEW\nHZ300/01APR25\n+ SGN\n+ DAD"), repository)

    assert result.status == RecordStatus.ERROR
    assert "missing" in result.error


def test_new_flight_that_already_exists(repository, hz100):
    repository.insert(dataclasses.replace(hz100, effective_from=date(2025, 3, 15)))
    raw = "ASM\nNEW\nHZ100/15MAR25\n+ SGN\n+ HAN\n+ 0600\n+ 0815\n+ 1234567\n+ 320"

    result = reconcile_message(parse_message(raw), repository)

    assert result.status == RecordStatus.ERROR
    assert "already exists" in result.error


def test_change_that_would_break_the_record(repository, hz100):
    repository.insert(hz100)

    result = reconcile_message(
        parse_message("ASM\nSKD\nHZ100/15MAR25\n+ DIS 01MAR25"), repository)

    assert result.status == RecordStatus.ERROR
    assert "invalid" in result.error


def test_icao_previous_value_matches_ssim_code(repository, hz100):
    repository.insert(hz100)

    result = reconcile_message(parse_message("ASM\nEQT\nHZ100/15MAR25\n- A320\n+ A321"), repository)

    assert result.status == RecordStatus.UPDATED
    assert result.warnings == []
    assert result.instance_date is None


def test_dated_time_change_compares_against_that_day(repository, hz100):
    record_id = repository.insert(hz100)
    repository.set_instance_overrides(record_id, date(2025, 3, 15), {"std": "06:30"})

    on_the_day = reconcile_message(parse_message("ASM\nTIM\nHZ100/15MAR25\n+ 0630"), repository)
    next_day = reconcile_message(parse_message("ASM\nTIM\nHZ100/16MAR25\n+ 0630"), repository)

    assert on_the_day.status == RecordStatus.UNCHANGED
    assert on_the_day.instance_date == date(2025, 3, 15)
    assert next_day.status == RecordStatus.UPDATED


def test_known_aircraft_types_accept_icao_codes(repository, hz100, season):
    batch = reconcile_ssim(parse_records(season, [hz100]), repository, known_aircraft_types={"A320"})

    assert len(batch.new) == 1
