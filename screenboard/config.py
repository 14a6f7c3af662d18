"""
Runtime settings, read from the environment (and .env via load_env).
"""

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_TRACKER_TABLE = "AEX_Screening_Tracker"
DEFAULT_QUEUE_TABLE = "AEX_Screening_Batch_Queue"
DEFAULT_CANDIDATE_TABLE = "AEX_Candidate_Data"
DEFAULT_ID_COLUMN = "Application ID"

TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in TRUTHY


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")


@dataclass(frozen=True)
class Settings:
    store_url: Optional[str] = None
    api_key: Optional[str] = None
    db_url: Optional[str] = None
    tracker_table: str = DEFAULT_TRACKER_TABLE
    queue_table: str = DEFAULT_QUEUE_TABLE
    candidate_table: str = DEFAULT_CANDIDATE_TABLE
    id_column: str = DEFAULT_ID_COLUMN
    timeout: float = 20.0
    log_level: str = "INFO"
    include_waiting: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            store_url=os.getenv("SCREENBOARD_STORE_URL") or None,
            api_key=os.getenv("SCREENBOARD_API_KEY") or None,
            db_url=os.getenv("SCREENBOARD_DB_URL") or None,
            tracker_table=os.getenv("SCREENBOARD_TRACKER_TABLE", DEFAULT_TRACKER_TABLE),
            queue_table=os.getenv("SCREENBOARD_QUEUE_TABLE", DEFAULT_QUEUE_TABLE),
            candidate_table=os.getenv("SCREENBOARD_CANDIDATE_TABLE", DEFAULT_CANDIDATE_TABLE),
            id_column=os.getenv("SCREENBOARD_ID_COLUMN", DEFAULT_ID_COLUMN),
            timeout=_env_float("SCREENBOARD_TIMEOUT", 20.0),
            log_level=os.getenv("SCREENBOARD_LOG_LEVEL", "INFO"),
            include_waiting=_env_flag("SCREENBOARD_INCLUDE_WAITING"),
        )
