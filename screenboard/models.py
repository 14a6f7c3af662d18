"""
Record types shared across the screening pipeline.

Raw rows come out of the store as plain dicts. Everything past the
normalizer works on the frozen dataclasses defined here.
"""

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, Optional


class Collection(str, Enum):
    """The three source collections the pipeline reads."""

    TRACKER = "tracker"
    QUEUE = "queue"
    CANDIDATE_MASTER = "candidate_master"

    @property
    def label(self) -> str:
        return {
            Collection.TRACKER: "Tracker",
            Collection.QUEUE: "Queue",
            Collection.CANDIDATE_MASTER: "CandidateMaster",
        }[self]


class RecordSource(str, Enum):
    """Which source profile backs a canonical record."""

    TRACKER = "tracker"
    CANDIDATE_MASTER = "candidate_master"


class QueueStatus:
    COMPLETED = "Completed"
    WAITING = "Waiting"
    PROCESSING = "Processing"


@dataclass(frozen=True)
class TrackerEntry:
    application_id: str
    job_title: Optional[str] = None
    role_code: Optional[str] = None
    candidate_name: Optional[str] = None
    screening_outcome: Optional[str] = None
    screening_summary: Optional[str] = None
    call_status: Optional[str] = None
    call_score: Optional[str] = None
    similarity_score: Optional[str] = None
    final_score: Optional[str] = None
    conversation_id: Optional[str] = None
    recording_link: Optional[str] = None
    notice_period: Optional[str] = None
    current_ctc: Optional[str] = None
    expected_ctc: Optional[str] = None
    other_job_offers: Optional[str] = None
    current_location: Optional[str] = None
    call_route: Optional[str] = None
    similarity_summary: Optional[str] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[str] = None
    date_created: Optional[str] = None


@dataclass(frozen=True)
class QueueEntry:
    application_id: str
    status: Optional[str] = None
    created_at: Optional[str] = None


@dataclass(frozen=True)
class CandidateEntry:
    application_id: str
    job_applied: Optional[str] = None
    role_code: Optional[str] = None
    candidate_name: Optional[str] = None
    profile_status: Optional[str] = None
    candidate_email: Optional[str] = None
    candidate_contact_number: Optional[str] = None
    notice_period: Optional[str] = None
    current_ctc: Optional[str] = None
    salary_expectation: Optional[str] = None
    current_location: Optional[str] = None
    resume_link: Optional[str] = None
    created_at: Optional[str] = None
    date_created: Optional[str] = None


@dataclass(frozen=True)
class CanonicalScreeningRecord:
    """One reconciled row per application."""

    application_id: str
    job_title: Optional[str] = None
    role_code: Optional[str] = None
    candidate_name: Optional[str] = None
    screening_outcome: Optional[str] = None
    screening_summary: Optional[str] = None
    call_status: Optional[str] = None
    call_score: Optional[str] = None
    similarity_score: Optional[str] = None
    final_score: Optional[str] = None
    conversation_id: Optional[str] = None
    recording_link: Optional[str] = None
    notice_period: Optional[str] = None
    current_ctc: Optional[str] = None
    expected_ctc: Optional[str] = None
    other_job_offers: Optional[str] = None
    current_location: Optional[str] = None
    call_route: Optional[str] = None
    similarity_summary: Optional[str] = None
    rejection_reason: Optional[str] = None
    date_created: Optional[str] = None
    is_waiting: bool = False
    source: RecordSource = RecordSource.TRACKER

    def to_dict(self) -> Dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["source"] = self.source.value
        return data


# Fields a tracker-backed record copies straight from its TrackerEntry.
TRACKER_FIELDS = tuple(
    f.name
    for f in fields(CanonicalScreeningRecord)
    if f.name not in ("application_id", "date_created", "is_waiting", "source")
)
