import os
from datetime import date

import pytest

# Two-digit SSIM dates in the fixtures belong to 2025
os.environ.setdefault("SSIM_REFERENCE_YEAR", "2025")

from database import DatabaseConnection, MessageLogRepository, ScheduleRepository  # noqa: E402
from message_log import MessageLog  # noqa: E402
from models import ScheduleRecord, SeasonInfo  # noqa: E402


@pytest.fixture
def db_connection(tmp_path):
    return DatabaseConnection(str(tmp_path / "schedule.duckdb"))


@pytest.fixture
def repository(db_connection):
    return ScheduleRepository(db_connection)


@pytest.fixture
def log(db_connection):
    return MessageLog(MessageLogRepository(db_connection))


@pytest.fixture
def hz100():
    return ScheduleRecord(
        flight_number="HZ100",
        departure_station="SGN",
        arrival_station="HAN",
        std="06:00",
        sta="08:15",
        days_of_operation={1, 2, 3, 4, 5, 6, 7},
        aircraft_type="320",
        effective_from=date(2025, 3, 15),
        effective_to=date(2025, 10, 31),
    )


@pytest.fixture
def season():
    return SeasonInfo(carrier_code="HZ", season_code="S25", airline_name="HZ AIRLINES")
