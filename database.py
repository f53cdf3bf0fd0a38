"""
Database operations for the schedule store and message log.
Provides connection management and data access layer.
"""
import dataclasses
import json
import logging
from contextlib import contextmanager
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple

import duckdb
import pandas as pd

from config import config
from models import MessageLogEntry, ScheduleRecord
from schema import (INSTANCE_FIELDS, MESSAGE_LOG_STATEMENTS, SCHEDULE_STATEMENTS,
                    SCHEDULE_UPDATABLE_COLUMNS)
from utility import condense_days

logger = logging.getLogger(__name__)

# ScheduleRecord attribute -> scheduled_flights column
FIELD_COLUMNS = {
    'flight_number': 'flight_number',
    'departure_station': 'dep_station',
    'arrival_station': 'arr_station',
    'std': 'std',
    'sta': 'sta',
    'days_of_operation': 'days_of_operation',
    'aircraft_type': 'aircraft_type',
    'service_type': 'service_type',
    'configuration': 'configuration',
    'effective_from': 'effective_from',
    'effective_to': 'effective_to',
    'arrival_day_offset': 'arrival_day_offset',
    'departure_utc_offset': 'dep_utc_offset',
    'arrival_utc_offset': 'arr_utc_offset',
}


class DatabaseError(Exception):
    """Custom exception for database operations."""
    pass


class DatabaseConnection:
    """Manages DuckDB database connections with proper error handling."""

    def __init__(self, db_path: Optional[str] = None):
        self._db_path = db_path

    @property
    def db_path(self) -> str:
        """Explicit path, otherwise the configured one at the time of the call."""
        return self._db_path or config.get_database_path()

    @contextmanager
    def get_connection(self, read_only: bool = False):
        """Context manager for database connections."""
        conn = None
        try:
            conn = duckdb.connect(database=self.db_path, read_only=read_only)
            logger.debug(f"Connected to database: {self.db_path}")
            yield conn
        except DatabaseError:
            raise
        except duckdb.Error as e:
            logger.error(f"Database error: {e}")
            raise DatabaseError(f"Failed to connect to database: {e}") from e
        finally:
            if conn:
                try:
                    conn.close()
                    logger.debug("Database connection closed")
                except Exception as e:
                    logger.warning(f"Error closing connection: {e}")

    def execute_query(self, query: str, params: Optional[Sequence[Any]] = None) -> None:
        """Execute a query without returning results."""
        with self.get_connection() as conn:
            try:
                if params:
                    conn.execute(query, params)
                else:
                    conn.execute(query)
                logger.debug("Query executed successfully")
            except duckdb.Error as e:
                logger.error(f"Query execution failed: {query.strip()}")
                raise DatabaseError(f"Query execution failed: {e}") from e

    def execute_script(self, statements: Sequence[str]) -> None:
        """Execute several statements on one connection."""
        with self.get_connection() as conn:
            try:
                for statement in statements:
                    conn.execute(statement)
            except duckdb.Error as e:
                logger.error(f"Script execution failed: {e}")
                raise DatabaseError(f"Script execution failed: {e}") from e

    def fetch_one(self, query: str, params: Optional[Sequence[Any]] = None) -> Optional[Tuple]:
        """Execute a query (possibly a DML ... RETURNING) and return the first row."""
        with self.get_connection() as conn:
            try:
                cursor = conn.execute(query, params) if params else conn.execute(query)
                return cursor.fetchone()
            except duckdb.Error as e:
                logger.error(f"Query failed: {query.strip()}")
                raise DatabaseError(f"Query failed: {e}") from e

    def fetch_dataframe(self, query: str, params: Optional[Sequence[Any]] = None) -> pd.DataFrame:
        """Execute a query and return results as a DataFrame."""
        with self.get_connection(read_only=True) as conn:
            try:
                cursor = conn.execute(query, params) if params else conn.execute(query)
                result = cursor.df()
                logger.debug(f"Query returned {len(result)} rows")
                return result
            except duckdb.Error as e:
                logger.error(f"Query failed: {query.strip()}")
                raise DatabaseError(f"Query failed: {e}") from e


class ScheduleRepository:
    """Repository for scheduled flight legs and cancelled flight instances."""

    def __init__(self, db_connection: Optional[DatabaseConnection] = None):
        self.db = db_connection or DatabaseConnection()
        self._schema_ready_for: Optional[str] = None

    def _ensure_schema(self) -> None:
        if self._schema_ready_for != self.db.db_path:
            self.db.execute_script(SCHEDULE_STATEMENTS)
            self._schema_ready_for = self.db.db_path

    def _select(self, where: str = "", params: Optional[Sequence[Any]] = None) -> List[ScheduleRecord]:
        self._ensure_schema()
        query = f"""
            SELECT * FROM {config.SCHEDULE_TABLE}
            {where}
            ORDER BY flight_number, effective_from, dep_station, id
        """
        df = self.db.fetch_dataframe(query, params)
        return [ScheduleRecord.from_dataframe_row(row) for row in df.to_dict('records')]

    def get_all(self) -> List[ScheduleRecord]:
        """Get every scheduled flight leg."""
        return self._select()

    def get(self, record_id: int) -> Optional[ScheduleRecord]:
        rows = self._select("WHERE id = ?", (record_id,))
        return rows[0] if rows else None

    def find_by_identity(self, flight_number: str, departure_station: str,
                         arrival_station: str, effective_from: date) -> Optional[ScheduleRecord]:
        """Look up a leg by its identity key."""
        rows = self._select(
            "WHERE flight_number = ? AND dep_station = ? AND arr_station = ? AND effective_from = ?",
            (flight_number, departure_station, arrival_station, effective_from),
        )
        return rows[0] if rows else None

    def find_by_flight_number(self, flight_number: str) -> List[ScheduleRecord]:
        return self._select("WHERE flight_number = ?", (flight_number,))

    def find_by_flight_and_date(self, flight_number: str, flight_date: date) -> List[ScheduleRecord]:
        """Legs of flight_number that operate on flight_date."""
        rows = self._select(
            "WHERE flight_number = ? AND effective_from <= ? "
            "AND (effective_to IS NULL OR effective_to >= ?)",
            (flight_number, flight_date, flight_date),
        )
        return [row for row in rows if row.operates_on(flight_date)]

    def insert(self, record: ScheduleRecord) -> int:
        """Insert a new leg and return its id."""
        self._ensure_schema()
        row = record.to_row()
        columns = list(row.keys())
        placeholders = ', '.join(['?' for _ in columns])
        query = f"""
            INSERT INTO {config.SCHEDULE_TABLE} ({', '.join(columns)})
            VALUES ({placeholders})
            RETURNING id
        """
        result = self.db.fetch_one(query, tuple(row[col] for col in columns))
        record_id = int(result[0])
        logger.info(f"INSERTED FLIGHT {record.flight_number} "
                    f"{record.departure_station}-{record.arrival_station} id={record_id}")
        return record_id

    def update(self, record_id: int, fields: Dict[str, Any]) -> None:
        """Overwrite the given ScheduleRecord fields of one leg."""
        if not fields:
            return
        self._ensure_schema()
        assignments = []
        params = []
        for name, value in fields.items():
            column = FIELD_COLUMNS.get(name)
            if column not in SCHEDULE_UPDATABLE_COLUMNS:
                raise DatabaseError(f"Field '{name}' cannot be updated")
            if name == 'days_of_operation':
                value = condense_days(value)
            assignments.append(f"{column} = ?")
            params.append(value)
        query = f"""
            UPDATE {config.SCHEDULE_TABLE}
            SET {', '.join(assignments)}, updated_at = current_timestamp
            WHERE id = ?
        """
        params.append(record_id)
        self.db.execute_query(query, tuple(params))
        logger.info(f"UPDATED FLIGHT id={record_id} fields={sorted(fields)}")

    def is_instance_cancelled(self, record_id: int, flight_date: date) -> bool:
        self._ensure_schema()
        row = self.db.fetch_one(
            f"SELECT count(*) FROM {config.CANCELLATION_TABLE} WHERE flight_id = ? AND flight_date = ?",
            (record_id, flight_date),
        )
        return bool(row and row[0])

    def cancelled_dates(self, record_id: int) -> List[date]:
        self._ensure_schema()
        df = self.db.fetch_dataframe(
            f"SELECT flight_date FROM {config.CANCELLATION_TABLE} WHERE flight_id = ? ORDER BY flight_date",
            (record_id,),
        )
        return [pd.Timestamp(value).date() for value in df['flight_date']]

    def cancel_instance(self, record_id: int, flight_date: date) -> bool:
        """Mark one dated instance as cancelled. Returns False when it already was."""
        if self.is_instance_cancelled(record_id, flight_date):
            return False
        self.db.execute_query(
            f"INSERT INTO {config.CANCELLATION_TABLE} (flight_id, flight_date) VALUES (?, ?)",
            (record_id, flight_date),
        )
        logger.info(f"CANCELLED INSTANCE id={record_id} date={flight_date}")
        return True

    def reinstate_instance(self, record_id: int, flight_date: date) -> bool:
        """Remove the cancellation of one dated instance. Returns False when it was active."""
        if not self.is_instance_cancelled(record_id, flight_date):
            return False
        self.db.execute_query(
            f"DELETE FROM {config.CANCELLATION_TABLE} WHERE flight_id = ? AND flight_date = ?",
            (record_id, flight_date),
        )
        logger.info(f"REINSTATED INSTANCE id={record_id} date={flight_date}")
        return True

    def instance_overrides(self, record_id: int, flight_date: date) -> Dict[str, str]:
        """Field values that replace the leg's own values on one date."""
        self._ensure_schema()
        df = self.db.fetch_dataframe(
            f"SELECT field, value FROM {config.INSTANCE_OVERRIDE_TABLE} "
            f"WHERE flight_id = ? AND flight_date = ?",
            (record_id, flight_date),
        )
        return {row['field']: row['value'] for row in df.to_dict('records')}

    def instance_view(self, record: ScheduleRecord, flight_date: date) -> ScheduleRecord:
        """The leg as it operates on flight_date."""
        overrides = self.instance_overrides(record.id, flight_date)
        return dataclasses.replace(record, **overrides) if overrides else record

    def set_instance_overrides(self, record_id: int, flight_date: date, fields: Dict[str, str]) -> None:
        """Change fields of one dated operation without touching the leg itself."""
        if not fields:
            return
        self._ensure_schema()
        params: List[Any] = []
        for name, value in fields.items():
            if name not in INSTANCE_FIELDS:
                raise DatabaseError(f"Field '{name}' cannot be changed for a single date")
            params.extend([record_id, flight_date, name, value])
        rows = ', '.join(['(?, ?, ?, ?)'] * len(fields))
        query = f"""
            INSERT OR REPLACE INTO {config.INSTANCE_OVERRIDE_TABLE} (flight_id, flight_date, field, value)
            VALUES {rows}
        """
        self.db.execute_query(query, tuple(params))
        logger.info(f"OVERRIDDEN INSTANCE id={record_id} date={flight_date} fields={sorted(fields)}")


class MessageLogRepository:
    """Append-only persistence for the message log."""

    def __init__(self, db_connection: Optional[DatabaseConnection] = None):
        self.db = db_connection or DatabaseConnection()
        self._schema_ready_for: Optional[str] = None

    def _ensure_schema(self) -> None:
        if self._schema_ready_for != self.db.db_path:
            self.db.execute_script(MESSAGE_LOG_STATEMENTS)
            self._schema_ready_for = self.db.db_path

    @staticmethod
    def _to_entry(row: Dict[str, Any]) -> MessageLogEntry:
        raw_changes = row.get('changes')
        changes = json.loads(raw_changes) if isinstance(raw_changes, str) and raw_changes else {}
        return MessageLogEntry.from_dataframe_row(row, changes)

    def insert(self, entry: MessageLogEntry) -> None:
        self._ensure_schema()
        query = f"""
            INSERT INTO {config.MESSAGE_LOG_TABLE} (
                id, message_type, action_code, direction, flight_number, flight_date,
                status, summary, raw_message, changes, reject_reason, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """
        params = (
            entry.id, entry.message_type, entry.action_code, entry.direction,
            entry.flight_number, entry.flight_date, entry.status, entry.summary,
            entry.raw_message, json.dumps(entry.changes or {}), entry.reject_reason,
            entry.created_at,
        )
        self.db.execute_query(query, params)
        logger.info(f"LOGGED {entry.direction} {entry.message_type} {entry.action_code} "
                    f"{entry.flight_number or ''} status={entry.status} id={entry.id}")

    def update_status(self, entry_id: str, from_status: str, to_status: str,
                      reject_reason: Optional[str] = None) -> None:
        """Move one entry from from_status to to_status; other entries are untouched."""
        self._ensure_schema()
        query = f"""
            UPDATE {config.MESSAGE_LOG_TABLE}
            SET status = ?, reject_reason = ?
            WHERE id = ? AND status = ?
        """
        self.db.execute_query(query, (to_status, reject_reason, entry_id, from_status))

    def get(self, entry_id: str) -> Optional[MessageLogEntry]:
        self._ensure_schema()
        df = self.db.fetch_dataframe(
            f"SELECT * FROM {config.MESSAGE_LOG_TABLE} WHERE id = ?", (entry_id,))
        rows = df.to_dict('records')
        return self._to_entry(rows[0]) if rows else None

    def query(self, direction: Optional[str] = None, action_code: Optional[str] = None,
              flight_number: Optional[str] = None, limit: Optional[int] = None) -> List[MessageLogEntry]:
        """Entries matching the filters, newest first."""
        self._ensure_schema()
        conditions = []
        params: List[Any] = []
        if direction:
            conditions.append("direction = ?")
            params.append(direction)
        if action_code:
            conditions.append("action_code = ?")
            params.append(action_code)
        if flight_number:
            conditions.append("flight_number ILIKE ?")
            params.append(f"%{flight_number}%")
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        query = f"""
            SELECT * FROM {config.MESSAGE_LOG_TABLE}
            {where}
            ORDER BY created_at DESC, seq DESC
            LIMIT {int(limit or config.get_message_log_limit())}
        """
        df = self.db.fetch_dataframe(query, tuple(params))
        return [self._to_entry(row) for row in df.to_dict('records')]


# Global instances
db_connection = DatabaseConnection()
schedule_repo = ScheduleRepository(db_connection)
message_log_repo = MessageLogRepository(db_connection)
