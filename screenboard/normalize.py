"""
Field normalization for raw store rows.

The store holds rows written by different tools: some use titled column
names ("Application ID", "Final Score"), others snake_case ones
(application_id, final_score). Each collection has one field map; a row's
key form is detected once and the row is then read through that form only.
"""

import math
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .models import CandidateEntry, Collection, QueueEntry, TrackerEntry

TITLED = "titled"
NORMALIZED = "normalized"

# attribute -> (titled key, normalized key)
TRACKER_FIELD_MAP: Dict[str, tuple] = {
    "application_id": ("Application ID", "application_id"),
    "job_title": ("Job Title", "job_title"),
    "role_code": ("Role Code", "role_code"),
    "candidate_name": ("Candidate Name", "candidate_name"),
    "screening_outcome": ("Screening Outcome", "screening_outcome"),
    "screening_summary": ("Screening Summary", "screening_summary"),
    "call_status": ("Call Status", "call_status"),
    "call_score": ("Call Score", "call_score"),
    "similarity_score": ("Similarity Score", "similarity_score"),
    "final_score": ("Final Score", "final_score"),
    "conversation_id": ("Conversation ID", "conversation_id"),
    "recording_link": ("Recording Link", "recording_link"),
    "notice_period": ("Notice Period", "notice_period"),
    "current_ctc": ("Current CTC", "current_ctc"),
    "expected_ctc": ("Expected CTC", "expected_ctc"),
    "other_job_offers": ("Other Job Offers", "other_job_offers"),
    "current_location": ("Current Location", "current_location"),
    "call_route": ("Call Route", "call_route"),
    "similarity_summary": ("Similarity Summary", "similarity_summary"),
    "rejection_reason": ("Rejection Reason", "rejection_reason"),
    "created_at": ("created_at", "created_at"),
    "date_created": ("Date Created", "date_created"),
}

QUEUE_FIELD_MAP: Dict[str, tuple] = {
    "application_id": ("Application ID", "application_id"),
    "status": ("Status", "status"),
    "created_at": ("created_at", "created_at"),
}

CANDIDATE_FIELD_MAP: Dict[str, tuple] = {
    "application_id": ("Application ID", "application_id"),
    "job_applied": ("Job Applied", "job_applied"),
    "role_code": ("Role Code", "role_code"),
    "candidate_name": ("Candidate Name", "candidate_name"),
    "profile_status": ("Profile Status", "profile_status"),
    "candidate_email": ("Candidate Email ID", "candidate_email_id"),
    "candidate_contact_number": ("Candidate Contact Number", "candidate_contact_number"),
    "notice_period": ("Notice Period", "notice_period"),
    "current_ctc": ("Current CTC", "current_ctc"),
    "salary_expectation": ("Candidate Salary Expectation", "candidate_salary_expectation"),
    "current_location": ("Current Location", "current_location"),
    "resume_link": ("Candidate Resume", "candidate_resume"),
    "created_at": ("created_at", "created_at"),
    "date_created": ("Date Created", "date_created"),
}

FIELD_MAPS = {
    Collection.TRACKER: TRACKER_FIELD_MAP,
    Collection.QUEUE: QUEUE_FIELD_MAP,
    Collection.CANDIDATE_MASTER: CANDIDATE_FIELD_MAP,
}


def normalize_text(s: str) -> str:
    return " ".join(s.strip().lower().split())


def _titled_only_keys(field_map: Mapping[str, tuple]) -> set:
    # created_at is spelled the same in both forms, so it says nothing.
    return {titled for titled, normalized in field_map.values() if titled != normalized}


def detect_key_form(raw: Mapping[str, Any], collection: Collection) -> str:
    """Return TITLED if the row carries any titled key for its collection."""
    titled_keys = _titled_only_keys(FIELD_MAPS[collection])
    if any(key in titled_keys for key in raw):
        return TITLED
    return NORMALIZED


def display_value(value: Any) -> Optional[str]:
    """
    Convert a stored value into its display string.

    Strings are stripped and kept verbatim otherwise, numbers keep their
    source precision, blanks become None.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat()
    text = str(value).strip()
    return text or None


def normalize_record(raw: Mapping[str, Any], collection: Collection) -> Dict[str, Optional[str]]:
    """Map a raw row onto its collection's attribute names; absent fields are None."""
    field_map = FIELD_MAPS[collection]
    position = 0 if detect_key_form(raw, collection) == TITLED else 1
    return {attr: display_value(raw.get(keys[position])) for attr, keys in field_map.items()}


def normalize_tracker(raw: Mapping[str, Any]) -> Optional[TrackerEntry]:
    values = normalize_record(raw, Collection.TRACKER)
    if values["application_id"] is None:
        return None
    return TrackerEntry(**values)


def normalize_queue(raw: Mapping[str, Any]) -> Optional[QueueEntry]:
    values = normalize_record(raw, Collection.QUEUE)
    if values["application_id"] is None:
        return None
    return QueueEntry(**values)


def normalize_candidate(raw: Mapping[str, Any]) -> Optional[CandidateEntry]:
    values = normalize_record(raw, Collection.CANDIDATE_MASTER)
    if values["application_id"] is None:
        return None
    return CandidateEntry(**values)


NORMALIZERS = {
    Collection.TRACKER: normalize_tracker,
    Collection.QUEUE: normalize_queue,
    Collection.CANDIDATE_MASTER: normalize_candidate,
}


def normalize_collection(rows: Iterable[Mapping[str, Any]], collection: Collection) -> List[Any]:
    """Normalize every usable row, silently dropping rows without an application id."""
    normalizer = NORMALIZERS[collection]
    entries = []
    for raw in rows or []:
        entry = normalizer(raw)
        if entry is not None:
            entries.append(entry)
    return entries


def parse_score(value: Optional[str]) -> Optional[float]:
    """Parse a score/compensation display string. Unparseable values are None, never 0."""
    if value is None:
        return None
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


# Postgres trims fractional seconds and may emit "+00" offsets
_PG_TIMESTAMP = re.compile(
    r"^(\d{4}-\d{2}-\d{2})[T ](\d{2}:\d{2}(?::\d{2})?)(?:\.(\d+))?(Z|[+-]\d{2}(?::?\d{2})?)?$"
)


def _isoformat_text(text: str) -> str:
    match = _PG_TIMESTAMP.match(text)
    if not match:
        return text
    day, clock, fraction, offset = match.groups()
    result = f"{day}T{clock}"
    if fraction:
        result += "." + fraction[:6].ljust(6, "0")
    if offset == "Z":
        result += "+00:00"
    elif offset:
        digits = offset[1:].replace(":", "")
        result += f"{offset[0]}{digits[:2]}:{digits[2:] or '00'}"
    return result


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO date or datetime string into an aware UTC datetime.

    Naive values are taken as UTC. Anything unparseable returns None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(_isoformat_text(text))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def latest_by_application(entries: Iterable[Any]) -> Dict[str, Any]:
    """
    Collapse entries sharing an application id into one.

    The entry with the latest parseable created_at wins. A dated entry beats
    an undated one; on equal or missing timestamps the later entry in input
    order wins. Result keys keep first-seen order.
    """
    chosen: Dict[str, Any] = {}
    for entry in entries:
        current = chosen.get(entry.application_id)
        if current is None:
            chosen[entry.application_id] = entry
            continue
        new_ts = parse_timestamp(entry.created_at)
        old_ts = parse_timestamp(current.created_at)
        if old_ts is not None and (new_ts is None or new_ts < old_ts):
            continue
        chosen[entry.application_id] = entry
    return chosen
