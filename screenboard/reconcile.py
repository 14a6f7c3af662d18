"""
Reconciliation of tracker, queue and candidate rows into canonical records.

Admission is decided per application id:

- queue status Completed: admitted from the tracker row, not waiting.
- queue status Waiting, waiting records requested: admitted from the
  tracker row, waiting.
- anything else: not admitted through the tracker.

When waiting records are requested, waiting ids with no tracker row at all
are then backed by their candidate master row, if one exists.

This module does no store access of its own; candidate rows are pulled
through the loader the caller passes in.
"""

from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence

from .errors import SourceUnavailable
from .logger import get_logger
from .models import (
    TRACKER_FIELDS,
    CandidateEntry,
    CanonicalScreeningRecord,
    RecordSource,
    TrackerEntry,
)
from .normalize import latest_by_application
from .queue_index import QueueStatusIndex

logger = get_logger()

CandidateLoader = Callable[[Sequence[str]], Iterable[CandidateEntry]]


@dataclass
class ReconciliationStats:
    completed: int = 0
    waiting: int = 0
    standalone: int = 0
    skipped_by_status: int = 0
    dropped_standalone: int = 0
    candidate_source_failed: bool = False

    @property
    def admitted(self) -> int:
        return self.completed + self.waiting + self.standalone


@dataclass(frozen=True)
class ReconciliationResult:
    records: List[CanonicalScreeningRecord]
    stats: ReconciliationStats = field(default_factory=ReconciliationStats)


def resolve_date_created(
    source_created_at: Optional[str],
    source_date_created: Optional[str],
    queue_created_at: Optional[str] = None,
) -> Optional[str]:
    """First available of source created_at, explicit date created, queue created_at."""
    for candidate in (source_created_at, source_date_created, queue_created_at):
        if candidate is not None:
            return candidate
    return None


def record_from_tracker(entry: TrackerEntry, is_waiting: bool) -> CanonicalScreeningRecord:
    values = {name: getattr(entry, name) for name in TRACKER_FIELDS}
    return CanonicalScreeningRecord(
        application_id=entry.application_id,
        date_created=resolve_date_created(entry.created_at, entry.date_created),
        is_waiting=is_waiting,
        source=RecordSource.TRACKER,
        **values,
    )


def record_from_candidate(
    entry: CandidateEntry, queue_created_at: Optional[str] = None
) -> CanonicalScreeningRecord:
    """Standalone waiting record: profile fields only, no screening data."""
    return CanonicalScreeningRecord(
        application_id=entry.application_id,
        job_title=entry.job_applied,
        role_code=entry.role_code,
        candidate_name=entry.candidate_name,
        call_status=entry.profile_status,
        date_created=resolve_date_created(
            entry.created_at, entry.date_created, queue_created_at
        ),
        is_waiting=True,
        source=RecordSource.CANDIDATE_MASTER,
    )


class ReconciliationEngine:
    """Applies the admission rules for one pipeline run."""

    def __init__(self, include_waiting: bool = False):
        self.include_waiting = include_waiting

    def reconcile(
        self,
        tracker_entries: Iterable[TrackerEntry],
        status_index: QueueStatusIndex,
        load_candidates: Optional[CandidateLoader] = None,
    ) -> ReconciliationResult:
        stats = ReconciliationStats()
        tracker_by_id = latest_by_application(tracker_entries)

        records = self._tracker_pass(tracker_by_id, status_index, stats)

        if self.include_waiting:
            standalone_ids = [
                app_id for app_id in status_index.waiting_ids()
                if app_id not in tracker_by_id
            ]
            records.extend(
                self._standalone_pass(standalone_ids, status_index, load_candidates, stats)
            )

        logger.debug(
            "Reconciliation finished",
            completed=stats.completed,
            waiting=stats.waiting,
            standalone=stats.standalone,
            skipped=stats.skipped_by_status,
            include_waiting=self.include_waiting,
        )
        return ReconciliationResult(records=records, stats=stats)

    def _tracker_pass(self, tracker_by_id, status_index, stats) -> List[CanonicalScreeningRecord]:
        records = []
        for app_id, entry in tracker_by_id.items():
            if status_index.is_completed(app_id):
                records.append(record_from_tracker(entry, is_waiting=False))
                stats.completed += 1
            elif self.include_waiting and status_index.is_waiting(app_id):
                records.append(record_from_tracker(entry, is_waiting=True))
                stats.waiting += 1
            else:
                stats.skipped_by_status += 1
        return records

    def _standalone_pass(self, standalone_ids, status_index, load_candidates, stats):
        if not standalone_ids or load_candidates is None:
            return []

        try:
            candidates = latest_by_application(load_candidates(standalone_ids))
        except SourceUnavailable as e:
            stats.candidate_source_failed = True
            logger.warning(
                "Candidate master unavailable, skipping standalone waiting records",
                error=str(e.cause),
                waiting_ids=len(standalone_ids),
            )
            return []

        records = []
        for app_id in standalone_ids:
            candidate = candidates.get(app_id)
            if candidate is None:
                stats.dropped_standalone += 1
                continue
            queue_entry = status_index.get(app_id)
            records.append(
                record_from_candidate(candidate, queue_entry.created_at if queue_entry else None)
            )
            stats.standalone += 1
        return records
