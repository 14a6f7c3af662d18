"""
Pytest configuration and shared fixtures.
"""

import pytest
import json
from pathlib import Path
from typing import Any, Dict, List

from screenboard.models import Collection
from screenboard.query_service import SnapshotQueryService


@pytest.fixture
def tracker_row_titled() -> Dict[str, Any]:
    """Tracker row written with titled column names."""
    return {
        "id": 1,
        "created_at": "2024-03-01T10:00:00+00:00",
        "Application ID": "A1",
        "Job Title": "Backend Engineer",
        "Role Code": "BE-01",
        "Candidate Name": "Ravi Kumar",
        "Screening Outcome": "Pass",
        "Screening Summary": "Strong on APIs",
        "Call Status": "Completed",
        "Call Score": "82",
        "Similarity Score": "74.5",
        "Final Score": "78.25",
        "Conversation ID": "conv-1",
        "Recording Link": "https://recordings.example.com/conv-1",
        "Notice Period": "30 days",
        "Current CTC": "12",
        "Expected CTC": "16",
        "Other Job Offers": "No",
        "Current Location": "Pune",
        "Call Route": "voice",
        "Similarity Summary": "Good match",
        "Rejection Reason": None,
    }


@pytest.fixture
def tracker_row_normalized() -> Dict[str, Any]:
    """Tracker row written with snake_case column names."""
    return {
        "created_at": "2024-01-01T09:00:00Z",
        "application_id": "A3",
        "job_title": "Data Analyst",
        "role_code": "DA-02",
        "candidate_name": "Meera Shah",
        "screening_outcome": "Rejected",
        "call_status": "Completed",
        "final_score": 55,
        "rejection_reason": "Low SQL depth",
    }


@pytest.fixture
def snapshot_rows(tracker_row_titled, tracker_row_normalized) -> Dict[Collection, List[Dict[str, Any]]]:
    """
    A small store:
    A1 completed (tracker), A2 waiting and only in candidate master,
    A3 completed (tracker, snake_case), A4 processing (tracker),
    A5 waiting with a tracker row, A6 waiting with no backing data.
    """
    return {
        Collection.TRACKER: [
            tracker_row_titled,
            tracker_row_normalized,
            {"Application ID": "A4", "Candidate Name": "Ana Lopez", "Call Status": "In Progress",
             "created_at": "2024-02-01T00:00:00Z"},
            {"Application ID": "A5", "Candidate Name": "Tom Reed", "Call Status": "Scheduled",
             "Role Code": "BE-01", "created_at": "2024-02-15T00:00:00Z"},
            {"Candidate Name": "No Id", "Call Status": "Completed"},
        ],
        Collection.QUEUE: [
            {"Application ID": "A1", "Status": "Completed", "created_at": "2024-02-28T00:00:00Z"},
            {"Application ID": "A2", "Status": "Waiting", "created_at": "2024-04-01T00:00:00Z"},
            {"application_id": "A3", "status": "Completed", "created_at": "2023-12-30T00:00:00Z"},
            {"Application ID": "A4", "Status": "Processing", "created_at": "2024-01-30T00:00:00Z"},
            {"Application ID": "A5", "Status": "Waiting", "created_at": "2024-02-14T00:00:00Z"},
            {"Application ID": "A6", "Status": "Waiting", "created_at": "2024-05-01T00:00:00Z"},
        ],
        Collection.CANDIDATE_MASTER: [
            {"Application ID": "A2", "Candidate Name": "Jane Doe", "Job Applied": "QA Engineer",
             "Role Code": "QA-03", "Profile Status": "Shortlisted", "created_at": None},
            {"Application ID": "A1", "Candidate Name": "Ravi Kumar", "Job Applied": "Backend Engineer",
             "Role Code": "BE-01", "Profile Status": "Screened", "created_at": "2024-01-10T00:00:00Z"},
        ],
    }


@pytest.fixture
def snapshot_service(snapshot_rows) -> SnapshotQueryService:
    return SnapshotQueryService(snapshot_rows)


@pytest.fixture
def snapshot_file(tmp_path, snapshot_rows) -> Path:
    """Write the sample store to a JSON snapshot file."""
    path = tmp_path / "snapshot.json"
    path.write_text(json.dumps({c.value: rows for c, rows in snapshot_rows.items()}, indent=2))
    return path
