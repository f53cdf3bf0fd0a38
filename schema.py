"""
DDL for the schedule store and the message log.
"""
from config import config

SCHEDULE_STATEMENTS = [
    f"CREATE SEQUENCE IF NOT EXISTS {config.SCHEDULE_TABLE}_id_seq START 1",
    f"""
    CREATE TABLE IF NOT EXISTS {config.SCHEDULE_TABLE} (
        id INTEGER PRIMARY KEY DEFAULT nextval('{config.SCHEDULE_TABLE}_id_seq'),
        flight_number VARCHAR NOT NULL,
        dep_station VARCHAR NOT NULL,
        arr_station VARCHAR NOT NULL,
        std VARCHAR NOT NULL,
        sta VARCHAR NOT NULL,
        days_of_operation VARCHAR NOT NULL,
        aircraft_type VARCHAR,
        service_type VARCHAR NOT NULL DEFAULT 'J',
        configuration VARCHAR,
        effective_from DATE NOT NULL,
        effective_to DATE,
        arrival_day_offset INTEGER NOT NULL DEFAULT 0,
        dep_utc_offset VARCHAR,
        arr_utc_offset VARCHAR,
        updated_at TIMESTAMP DEFAULT current_timestamp,
        UNIQUE (flight_number, dep_station, arr_station, effective_from)
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {config.CANCELLATION_TABLE} (
        flight_id INTEGER NOT NULL,
        flight_date DATE NOT NULL,
        cancelled_at TIMESTAMP DEFAULT current_timestamp,
        PRIMARY KEY (flight_id, flight_date)
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {config.INSTANCE_OVERRIDE_TABLE} (
        flight_id INTEGER NOT NULL,
        flight_date DATE NOT NULL,
        field VARCHAR NOT NULL,
        value VARCHAR NOT NULL,
        updated_at TIMESTAMP DEFAULT current_timestamp,
        PRIMARY KEY (flight_id, flight_date, field)
    )
    """,
]

MESSAGE_LOG_STATEMENTS = [
    f"CREATE SEQUENCE IF NOT EXISTS {config.MESSAGE_LOG_TABLE}_seq START 1",
    f"""
    CREATE TABLE IF NOT EXISTS {config.MESSAGE_LOG_TABLE} (
        id VARCHAR PRIMARY KEY,
        seq BIGINT NOT NULL DEFAULT nextval('{config.MESSAGE_LOG_TABLE}_seq'),
        message_type VARCHAR NOT NULL,
        action_code VARCHAR,
        direction VARCHAR NOT NULL,
        flight_number VARCHAR,
        flight_date DATE,
        status VARCHAR NOT NULL,
        summary VARCHAR,
        raw_message VARCHAR,
        changes VARCHAR,
        reject_reason VARCHAR,
        created_at TIMESTAMP NOT NULL
    )
    """,
]

# Columns that ScheduleRepository.update may write
SCHEDULE_UPDATABLE_COLUMNS = (
    'flight_number', 'dep_station', 'arr_station', 'std', 'sta',
    'days_of_operation', 'aircraft_type', 'service_type', 'configuration',
    'effective_from', 'effective_to', 'arrival_day_offset',
    'dep_utc_offset', 'arr_utc_offset',
)

# Fields a dated message may change for a single day's operation
INSTANCE_FIELDS = ('std', 'sta', 'configuration')
