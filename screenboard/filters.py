"""
Filtering and facet derivation over reconciled screening records.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from .models import CanonicalScreeningRecord
from .normalize import normalize_text, parse_score

SCORE_FLOOR = 0.0
SCORE_CEILING = 100.0

PASS_OUTCOMES = {"pass", "passed", "selected"}
REJECT_OUTCOMES = {"reject", "rejected"}
PENDING_OUTCOMES = {"pending", "hold"}


@dataclass(frozen=True)
class FilterCriteria:
    """
    Active filters for one run. None means "no constraint".

    The final-score range is active when either bound is set; an unset
    bound falls back to the matching end of [0, 100].
    """

    call_status: Optional[str] = None
    role_code: Optional[str] = None
    screening_outcome: Optional[str] = None
    min_score: Optional[float] = None
    max_score: Optional[float] = None

    @property
    def score_range_active(self) -> bool:
        return self.min_score is not None or self.max_score is not None

    @property
    def score_bounds(self) -> Tuple[float, float]:
        low = SCORE_FLOOR if self.min_score is None else self.min_score
        high = SCORE_CEILING if self.max_score is None else self.max_score
        return low, high

    @property
    def is_empty(self) -> bool:
        return not (
            self.call_status or self.role_code or self.screening_outcome or self.score_range_active
        )


@dataclass(frozen=True)
class Facets:
    call_statuses: Tuple[str, ...] = ()
    role_codes: Tuple[str, ...] = ()
    outcomes: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "call_statuses": list(self.call_statuses),
            "role_codes": list(self.role_codes),
            "outcomes": list(self.outcomes),
        }


def _equals(value: Optional[str], wanted: Optional[str]) -> bool:
    # "" means unset, same as None
    if not wanted:
        return True
    return value == wanted


def _within_score_range(record: CanonicalScreeningRecord, criteria: FilterCriteria) -> bool:
    if not criteria.score_range_active:
        return True
    score = parse_score(record.final_score)
    if score is None:
        return False
    low, high = criteria.score_bounds
    return low <= score <= high


def matches(record: CanonicalScreeningRecord, criteria: FilterCriteria) -> bool:
    return (
        _equals(record.call_status, criteria.call_status)
        and _equals(record.role_code, criteria.role_code)
        and _equals(record.screening_outcome, criteria.screening_outcome)
        and _within_score_range(record, criteria)
    )


def apply_filters(
    records: Iterable[CanonicalScreeningRecord], criteria: Optional[FilterCriteria] = None
) -> List[CanonicalScreeningRecord]:
    """Return the records matching every active criterion, in input order."""
    if criteria is None:
        return list(records)
    return [r for r in records if matches(r, criteria)]


def _distinct_sorted(values: Iterable[Optional[str]]) -> Tuple[str, ...]:
    return tuple(sorted({v for v in values if v is not None}))


def derive_facets(records: Iterable[CanonicalScreeningRecord]) -> Facets:
    """Distinct filter choices, taken from the unfiltered reconciled list."""
    records = list(records)
    return Facets(
        call_statuses=_distinct_sorted(r.call_status for r in records),
        role_codes=_distinct_sorted(r.role_code for r in records),
        outcomes=_distinct_sorted(r.screening_outcome for r in records),
    )


def score_band(value: Optional[str]) -> Optional[str]:
    """Grade a score string: high (>= 80), medium (>= 60), low, or None if unparseable."""
    score = parse_score(value)
    if score is None:
        return None
    if score >= 80:
        return "high"
    if score >= 60:
        return "medium"
    return "low"


def outcome_category(outcome: Optional[str]) -> Optional[str]:
    if not outcome:
        return None
    key = normalize_text(outcome)
    if key in PASS_OUTCOMES:
        return "pass"
    if key in REJECT_OUTCOMES:
        return "reject"
    if key in PENDING_OUTCOMES:
        return "pending"
    return "other"
