"""
Configuration for the schedule messaging application.
Values can be overridden through environment variables.
"""
import os
from datetime import date
from typing import Optional


class Config:
    """Application settings and table/format constants."""

    DEFAULT_DATABASE_PATH = "schedule.duckdb"

    # Tables
    SCHEDULE_TABLE = "scheduled_flights"
    CANCELLATION_TABLE = "cancelled_instances"
    INSTANCE_OVERRIDE_TABLE = "instance_overrides"
    MESSAGE_LOG_TABLE = "message_log"

    # SSIM Chapter 7
    SSIM_LINE_WIDTH = 200
    SSIM_TITLE = "AIRLINE STANDARD SCHEDULE DATA SET"
    SSIM_TIME_MODE = "L"
    SSIM_OPEN_END_DATE = "00XXX00"
    DEFAULT_SERVICE_TYPE = "J"

    # Message log
    DEFAULT_LOG_LIMIT = 100

    def get_database_path(self) -> str:
        return os.environ.get("SCHEDULE_DB_PATH", self.DEFAULT_DATABASE_PATH)

    def get_log_level(self) -> str:
        return os.environ.get("SCHEDULE_LOG_LEVEL", "INFO").upper()

    def get_log_file(self) -> Optional[str]:
        return os.environ.get("SCHEDULE_LOG_FILE") or None

    def get_reference_year(self) -> int:
        """Year used to expand two-digit SSIM dates when nothing better is known."""
        value = os.environ.get("SSIM_REFERENCE_YEAR")
        if value and value.isdigit():
            return int(value)
        return date.today().year

    def use_icao_aircraft_types(self) -> bool:
        """Map SSIM aircraft codes to ICAO designators (320 -> A320) on import."""
        return os.environ.get("SSIM_ICAO_AIRCRAFT", "").lower() in ("1", "true", "yes")

    def get_message_log_limit(self) -> int:
        value = os.environ.get("MESSAGE_LOG_LIMIT")
        if value and value.isdigit():
            return int(value)
        return self.DEFAULT_LOG_LIMIT


config = Config()
