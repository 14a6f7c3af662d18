"""
Tests for the end-to-end pipeline and the screening board.
"""

import threading

import pytest

from screenboard.errors import QueryError, ReconciliationError
from screenboard.filters import FilterCriteria
from screenboard.models import Collection
from screenboard.pipeline import PipelineConfig, ScreeningBoard, run_pipeline
from screenboard.query_service import SnapshotQueryService
from screenboard.sorting import SortDirection


class FlakyService(SnapshotQueryService):
    """Snapshot service that fails reads for selected collections."""

    def __init__(self, rows, failing=()):
        super().__init__(rows)
        self.failing = set(failing)
        self.calls = []

    def fetch_all(self, collection):
        self.calls.append(("all", Collection(collection)))
        if Collection(collection) in self.failing:
            raise QueryError(f"{collection} is down")
        return super().fetch_all(collection)

    def fetch_by_ids(self, collection, ids):
        self.calls.append(("ids", Collection(collection), list(ids)))
        if Collection(collection) in self.failing:
            raise QueryError(f"{collection} is down")
        return super().fetch_by_ids(collection, ids)


def ids(view):
    return [r.application_id for r in view.records]


class TestRunPipeline:
    """Test full pipeline runs against a snapshot store."""

    def test_completed_only_by_default(self, snapshot_service):
        view = run_pipeline(snapshot_service, PipelineConfig())
        assert ids(view) == ["A1", "A3"]
        assert all(not r.is_waiting for r in view.records)

    def test_include_waiting(self, snapshot_service):
        view = run_pipeline(snapshot_service, PipelineConfig(include_waiting=True))
        assert ids(view) == ["A2", "A1", "A5", "A3"]
        waiting = {r.application_id for r in view.records if r.is_waiting}
        assert waiting == {"A2", "A5"}

    def test_standalone_record_from_candidate_master(self, snapshot_service):
        view = run_pipeline(snapshot_service, PipelineConfig(include_waiting=True))
        a2 = next(r for r in view.records if r.application_id == "A2")
        assert a2.candidate_name == "Jane Doe"
        assert a2.final_score is None
        assert a2.screening_outcome is None
        assert a2.date_created == "2024-04-01T00:00:00Z"

    def test_output_has_unique_ids(self, snapshot_service):
        view = run_pipeline(snapshot_service, PipelineConfig(include_waiting=True))
        assert len(ids(view)) == len(set(ids(view)))

    def test_tracker_fields_preserved(self, snapshot_service):
        view = run_pipeline(snapshot_service, PipelineConfig())
        a1 = next(r for r in view.records if r.application_id == "A1")
        assert a1.final_score == "78.25"
        assert a1.similarity_summary == "Good match"
        assert a1.is_waiting is False

    def test_oldest_first(self, snapshot_service):
        view = run_pipeline(
            snapshot_service, PipelineConfig(include_waiting=True, sort_direction=SortDirection.OLDEST)
        )
        assert ids(view) == ["A3", "A5", "A1", "A2"]

    def test_facets_from_unfiltered_list(self, snapshot_service):
        config = PipelineConfig(include_waiting=True, filters=FilterCriteria(role_code="DA-02"))
        view = run_pipeline(snapshot_service, config)
        assert ids(view) == ["A3"]
        assert view.total == 4
        assert view.facets.role_codes == ("BE-01", "DA-02", "QA-03")
        assert view.facets.call_statuses == ("Completed", "Scheduled", "Shortlisted")
        assert view.facets.outcomes == ("Pass", "Rejected")

    def test_score_filter(self, snapshot_service):
        config = PipelineConfig(include_waiting=True, filters=FilterCriteria(min_score=60))
        assert ids(run_pipeline(snapshot_service, config)) == ["A1"]

    def test_excluding_waiting_hides_standalone(self, snapshot_service):
        view = run_pipeline(snapshot_service, PipelineConfig(include_waiting=False))
        assert "A2" not in ids(view)

    def test_to_dict(self, snapshot_service):
        data = run_pipeline(snapshot_service, PipelineConfig()).to_dict()
        assert [r["application_id"] for r in data["records"]] == ["A1", "A3"]
        assert data["records"][0]["source"] == "tracker"
        assert set(data["facets"]) == {"call_statuses", "role_codes", "outcomes"}


class TestSourceFailures:
    """Test degradation when a collection cannot be read."""

    def test_tracker_failure_is_fatal(self, snapshot_rows):
        service = FlakyService(snapshot_rows, failing={Collection.TRACKER})
        with pytest.raises(ReconciliationError) as exc:
            run_pipeline(service, PipelineConfig(include_waiting=True))
        assert "tracker" in str(exc.value).lower()
        assert exc.value.__cause__ is not None

    def test_queue_failure_admits_nothing_from_tracker(self, snapshot_rows):
        service = FlakyService(snapshot_rows, failing={Collection.QUEUE})
        view = run_pipeline(service, PipelineConfig(include_waiting=True))
        assert view.records == ()

    def test_candidate_failure_keeps_tracker_records(self, snapshot_rows):
        service = FlakyService(snapshot_rows, failing={Collection.CANDIDATE_MASTER})
        view = run_pipeline(service, PipelineConfig(include_waiting=True))
        assert ids(view) == ["A1", "A5", "A3"]
        assert view.stats.candidate_source_failed

    def test_candidate_master_fetched_only_for_standalone_ids(self, snapshot_rows):
        service = FlakyService(snapshot_rows)
        run_pipeline(service, PipelineConfig(include_waiting=True))
        id_calls = [c for c in service.calls if c[0] == "ids"]
        assert id_calls == [("ids", Collection.CANDIDATE_MASTER, ["A2", "A6"])]

    def test_candidate_master_not_fetched_without_waiting(self, snapshot_rows):
        service = FlakyService(snapshot_rows)
        run_pipeline(service, PipelineConfig(include_waiting=False))
        assert all(c[1] != Collection.CANDIDATE_MASTER for c in service.calls)


class TestScreeningBoard:
    """Test the consumer-facing board."""

    def test_refresh_publishes_view(self, snapshot_service):
        board = ScreeningBoard(snapshot_service)
        view = board.refresh()
        assert board.view is view
        assert ids(view) == ["A1", "A3"]
        assert board.last_error is None

    def test_failure_keeps_previous_view(self, snapshot_rows):
        service = FlakyService(snapshot_rows)
        board = ScreeningBoard(service)
        first = board.refresh()

        service.failing.add(Collection.TRACKER)
        with pytest.raises(ReconciliationError):
            board.refresh()

        assert board.view is first
        assert "tracker" in board.last_error.lower()

    def test_success_clears_error(self, snapshot_rows):
        service = FlakyService(snapshot_rows, failing={Collection.TRACKER})
        board = ScreeningBoard(service)
        with pytest.raises(ReconciliationError):
            board.refresh()
        assert board.view is None

        service.failing.clear()
        board.refresh()
        assert board.last_error is None
        assert board.view is not None

    def test_reset_filters_preserves_include_waiting(self, snapshot_service):
        board = ScreeningBoard(snapshot_service)
        board.refresh(PipelineConfig(
            include_waiting=True,
            filters=FilterCriteria(role_code="DA-02"),
            sort_direction=SortDirection.OLDEST,
        ))
        assert ids(board.view) == ["A3"]

        board.reset_filters()
        assert board.config == PipelineConfig(include_waiting=True)
        assert ids(board.view) == ["A2", "A1", "A5", "A3"]

    def test_update_changes_one_setting(self, snapshot_service):
        board = ScreeningBoard(snapshot_service)
        board.refresh()
        board.update(include_waiting=True)
        assert "A2" in ids(board.view)
        assert board.config.sort_direction == SortDirection.NEWEST

    def test_latest_run_wins(self, snapshot_rows):
        """An older run finishing after a newer one must not overwrite it."""
        entered = threading.Event()
        release = threading.Event()

        class SlowFirstService(SnapshotQueryService):
            def __init__(self, rows):
                super().__init__(rows)
                self.tracker_calls = 0
                self.lock = threading.Lock()

            def fetch_all(self, collection):
                if Collection(collection) == Collection.TRACKER:
                    with self.lock:
                        self.tracker_calls += 1
                        first = self.tracker_calls == 1
                    if first:
                        entered.set()
                        release.wait(timeout=5)
                return super().fetch_all(collection)

        board = ScreeningBoard(SlowFirstService(snapshot_rows))
        results = {}

        def old_run():
            results["old"] = board.refresh(PipelineConfig(include_waiting=False))

        worker = threading.Thread(target=old_run)
        worker.start()
        assert entered.wait(timeout=5)

        newer = board.refresh(PipelineConfig(include_waiting=True))
        release.set()
        worker.join(timeout=5)

        assert board.view is newer
        assert ids(board.view) == ["A2", "A1", "A5", "A3"]
        assert results["old"] is newer

    def test_older_run_discarded_after_newer_run_fails(self, snapshot_rows):
        """A newer failed run still outranks an older run that finishes later."""
        entered = threading.Event()
        release = threading.Event()

        class SlowThenDownService(SnapshotQueryService):
            def __init__(self, rows):
                super().__init__(rows)
                self.tracker_calls = 0
                self.lock = threading.Lock()

            def fetch_all(self, collection):
                if Collection(collection) == Collection.TRACKER:
                    with self.lock:
                        self.tracker_calls += 1
                        call = self.tracker_calls
                    if call == 1:
                        entered.set()
                        release.wait(timeout=5)
                    else:
                        raise QueryError("tracker down")
                return super().fetch_all(collection)

        board = ScreeningBoard(SlowThenDownService(snapshot_rows))
        results = {}

        def old_run():
            results["old"] = board.refresh(PipelineConfig(include_waiting=False))

        worker = threading.Thread(target=old_run)
        worker.start()
        assert entered.wait(timeout=5)

        with pytest.raises(ReconciliationError):
            board.refresh(PipelineConfig(include_waiting=True))
        release.set()
        worker.join(timeout=5)

        assert board.view is None
        assert results["old"] is None
        assert board.last_error == "Could not load screening tracker: tracker down"
        assert board.config.include_waiting is True
