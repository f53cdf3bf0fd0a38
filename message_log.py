"""
Append-only audit log of inbound and outbound schedule messages.
"""
import logging
import uuid
from datetime import datetime
from typing import List, Optional

from database import MessageLogRepository, message_log_repo
from models import MessageLogEntry, MessageStatus, TERMINAL_STATUSES

logger = logging.getLogger(__name__)

# Statuses an entry may be moved to after it was logged as pending
TRANSITION_TARGETS = frozenset({MessageStatus.APPLIED, MessageStatus.REJECTED})


class MessageLog:
    """Status-guarded access to the message log store."""

    def __init__(self, repository: Optional[MessageLogRepository] = None):
        self.repository = repository or message_log_repo

    def append(self, entry: MessageLogEntry) -> MessageLogEntry:
        entry.id = uuid.uuid4().hex
        entry.created_at = datetime.now()
        if isinstance(entry.status, MessageStatus):
            entry.status = entry.status.value
        self.repository.insert(entry)
        return entry

    def transition(self, entry_id: str, new_status, reject_reason: Optional[str] = None) -> bool:
        """
        Move a pending entry to applied or rejected.

        Returns False without touching the store when the entry is unknown or
        already terminal. Raises ValueError for any other target status.
        """
        target = MessageStatus(new_status)
        if target not in TRANSITION_TARGETS:
            raise ValueError(f"Cannot transition a message to '{target.value}'")

        entry = self.repository.get(entry_id)
        if entry is None:
            logger.warning(f"Message log entry {entry_id} not found")
            return False
        current = MessageStatus(entry.status)
        if current in TERMINAL_STATUSES:
            logger.info(f"Message {entry_id} is already {current.value}; "
                        f"ignoring transition to {target.value}")
            return False

        self.repository.update_status(entry_id, current.value, target.value,
                                      reject_reason if target == MessageStatus.REJECTED else None)
        logger.info(f"Message {entry_id}: {current.value} -> {target.value}")
        return True

    def get(self, entry_id: str) -> Optional[MessageLogEntry]:
        return self.repository.get(entry_id)

    def query(self, direction: Optional[str] = None, action_code: Optional[str] = None,
              flight_number: Optional[str] = None, limit: Optional[int] = None) -> List[MessageLogEntry]:
        return self.repository.query(direction=direction, action_code=action_code,
                                     flight_number=flight_number, limit=limit)


# Global message log instance
message_log = MessageLog()
