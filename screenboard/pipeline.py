"""
Screening pipeline: fetch, normalize, reconcile, filter, sort, assemble.

Each run is a pure function of the three collection snapshots it reads
and the PipelineConfig it is given. Nothing is carried over between runs.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import QueryError, ReconciliationError, SourceUnavailable
from .filters import Facets, FilterCriteria, apply_filters, derive_facets
from .logger import get_logger
from .models import CandidateEntry, CanonicalScreeningRecord, Collection
from .normalize import normalize_collection
from .query_service import RecordQueryService
from .queue_index import build_status_index
from .reconcile import ReconciliationEngine, ReconciliationStats
from .sorting import SortDirection, sort_by_date

logger = get_logger()


@dataclass(frozen=True)
class PipelineConfig:
    include_waiting: bool = False
    filters: FilterCriteria = field(default_factory=FilterCriteria)
    sort_direction: SortDirection = SortDirection.NEWEST

    def cleared(self) -> "PipelineConfig":
        """Same include_waiting, no filters, newest first."""
        return PipelineConfig(include_waiting=self.include_waiting)


@dataclass(frozen=True)
class ScreeningView:
    records: Tuple[CanonicalScreeningRecord, ...]
    facets: Facets
    stats: ReconciliationStats = field(default_factory=ReconciliationStats)
    total: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "records": [r.to_dict() for r in self.records],
            "facets": self.facets.to_dict(),
            "total": self.total,
        }


def fetch_collection(
    service: RecordQueryService,
    collection: Collection,
    ids: Optional[Sequence[str]] = None,
) -> List[Dict[str, Any]]:
    """Read one collection, turning store failures into SourceUnavailable."""
    try:
        if ids is None:
            return service.fetch_all(collection)
        return service.fetch_by_ids(collection, ids)
    except QueryError as e:
        raise SourceUnavailable(collection, e) from e


def assemble_view(
    reconciled: Sequence[CanonicalScreeningRecord],
    config: PipelineConfig,
    stats: Optional[ReconciliationStats] = None,
) -> ScreeningView:
    """Filter and sort the reconciled list; facets come from the unfiltered list."""
    facets = derive_facets(reconciled)
    filtered = apply_filters(reconciled, config.filters)
    ordered = sort_by_date(filtered, config.sort_direction)
    return ScreeningView(
        records=tuple(ordered),
        facets=facets,
        stats=stats or ReconciliationStats(),
        total=len(reconciled),
    )


def run_pipeline(service: RecordQueryService, config: Optional[PipelineConfig] = None) -> ScreeningView:
    """
    Run one full pass over the store.

    Tracker and Queue are fetched concurrently. A Tracker failure aborts the
    run with ReconciliationError; a Queue failure leaves every tracker row
    unconfirmed (so nothing is admitted through the tracker); a
    CandidateMaster failure only drops the standalone waiting records.
    """
    config = config or PipelineConfig()
    logger.record_run_start()

    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="screenboard-fetch") as pool:
        tracker_future = pool.submit(fetch_collection, service, Collection.TRACKER)
        queue_future = pool.submit(fetch_collection, service, Collection.QUEUE)

        try:
            queue_rows = queue_future.result()
        except SourceUnavailable as e:
            logger.warning("Queue unavailable, continuing with an empty status index", error=str(e.cause))
            queue_rows = []

        try:
            tracker_rows = tracker_future.result()
        except SourceUnavailable as e:
            logger.record_run_failure("TrackerUnavailable")
            logger.error("Screening tracker could not be read", error=str(e.cause))
            raise ReconciliationError(f"Could not load screening tracker: {e.cause}") from e

    tracker_entries = normalize_collection(tracker_rows, Collection.TRACKER)
    queue_entries = normalize_collection(queue_rows, Collection.QUEUE)
    discarded = (len(tracker_rows) - len(tracker_entries)) + (len(queue_rows) - len(queue_entries))
    if discarded:
        logger.debug("Discarded rows without an application id", count=discarded)

    def load_candidates(ids: Sequence[str]) -> List[CandidateEntry]:
        rows = fetch_collection(service, Collection.CANDIDATE_MASTER, ids)
        return normalize_collection(rows, Collection.CANDIDATE_MASTER)

    engine = ReconciliationEngine(include_waiting=config.include_waiting)
    result = engine.reconcile(tracker_entries, build_status_index(queue_entries), load_candidates)

    view = assemble_view(result.records, config, result.stats)
    logger.record_run_complete(admitted=result.stats.admitted, discarded=discarded)
    logger.info(
        "Screening view refreshed",
        reconciled=view.total,
        shown=len(view.records),
        include_waiting=config.include_waiting,
    )
    return view


class ScreeningBoard:
    """
    Holds the currently published view for a consumer.

    Runs may overlap; the view from the most recently started run that has
    finished wins, and an older run finishing later is discarded. A failed
    run leaves the published view as it was and sets last_error; it still
    counts as the latest run, so older runs finishing after it are discarded.
    """

    def __init__(self, service: RecordQueryService, config: Optional[PipelineConfig] = None):
        self.service = service
        self.config = config or PipelineConfig()
        self.view: Optional[ScreeningView] = None
        self.last_error: Optional[str] = None
        self._lock = threading.Lock()
        self._issued = 0
        self._published = 0

    def refresh(self, config: Optional[PipelineConfig] = None) -> Optional[ScreeningView]:
        with self._lock:
            self._issued += 1
            ticket = self._issued
            if config is not None:
                self.config = config
            run_config = self.config

        try:
            view = run_pipeline(self.service, run_config)
        except ReconciliationError as e:
            with self._lock:
                if ticket > self._published:
                    self._published = ticket
                    self.last_error = str(e)
            raise

        with self._lock:
            if ticket < self._published:
                logger.debug("Discarding stale screening run", run=ticket, published=self._published)
                return self.view
            self._published = ticket
            self.view = view
            self.last_error = None
            return view

    def update(self, **changes) -> Optional[ScreeningView]:
        """Re-run with some config fields changed (include_waiting, filters, sort_direction)."""
        return self.refresh(replace(self.config, **changes))

    def reset_filters(self) -> Optional[ScreeningView]:
        return self.refresh(self.config.cleared())
