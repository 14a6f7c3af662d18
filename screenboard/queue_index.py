"""
Lookup from application id to its current processing status.
"""

from typing import Dict, Iterable, Iterator, Optional

from .models import QueueEntry, QueueStatus
from .normalize import latest_by_application, normalize_text


def status_matches(status: Optional[str], expected: str) -> bool:
    """Compare a free-form status label with one of the known labels."""
    if status is None:
        return False
    return normalize_text(status) == normalize_text(expected)


class QueueStatusIndex:
    """Read-only view over the queue, one entry per application id."""

    def __init__(self, entries: Optional[Dict[str, QueueEntry]] = None):
        self._entries: Dict[str, QueueEntry] = dict(entries or {})

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, application_id: str) -> bool:
        return application_id in self._entries

    def get(self, application_id: str) -> Optional[QueueEntry]:
        return self._entries.get(application_id)

    def status(self, application_id: str) -> Optional[str]:
        entry = self._entries.get(application_id)
        return entry.status if entry else None

    def is_completed(self, application_id: str) -> bool:
        return status_matches(self.status(application_id), QueueStatus.COMPLETED)

    def is_waiting(self, application_id: str) -> bool:
        return status_matches(self.status(application_id), QueueStatus.WAITING)

    def waiting_ids(self) -> Iterator[str]:
        """Yield waiting application ids in first-seen order."""
        for application_id, entry in self._entries.items():
            if status_matches(entry.status, QueueStatus.WAITING):
                yield application_id

    def as_dict(self) -> Dict[str, Optional[str]]:
        return {app_id: entry.status for app_id, entry in self._entries.items()}


def build_status_index(entries: Optional[Iterable[QueueEntry]]) -> QueueStatusIndex:
    """
    Build the status index from normalized queue entries.

    Duplicate ids resolve to the most recently created entry (see
    latest_by_application). Missing or empty input gives an empty index.
    """
    if not entries:
        return QueueStatusIndex()
    return QueueStatusIndex(latest_by_application(entries))
