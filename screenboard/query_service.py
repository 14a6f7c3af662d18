"""
Record query services: the only place that talks to the record store.

Every implementation returns raw rows (plain dicts keyed by column name)
and raises QueryError when a call fails. No call is transactional with
another; each one is an independent snapshot.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import requests
from sqlalchemy import MetaData, Table, create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError

from .config import (
    DEFAULT_CANDIDATE_TABLE,
    DEFAULT_ID_COLUMN,
    DEFAULT_QUEUE_TABLE,
    DEFAULT_TRACKER_TABLE,
    Settings,
)
from .errors import QueryError
from .logger import get_logger
from .models import Collection
from .normalize import normalize_record
from .retry import RetryError, exponential_backoff, should_retry_http_status
from .storage import load_snapshot

logger = get_logger()

RawRecord = Dict[str, Any]


@dataclass(frozen=True)
class CollectionMap:
    """Table name and id column for each collection."""

    tracker: str = DEFAULT_TRACKER_TABLE
    queue: str = DEFAULT_QUEUE_TABLE
    candidate_master: str = DEFAULT_CANDIDATE_TABLE
    id_column: str = DEFAULT_ID_COLUMN

    def table(self, collection: Collection) -> str:
        return getattr(self, Collection(collection).value)

    @classmethod
    def from_settings(cls, settings: Settings) -> "CollectionMap":
        return cls(
            tracker=settings.tracker_table,
            queue=settings.queue_table,
            candidate_master=settings.candidate_table,
            id_column=settings.id_column,
        )


def _chunks(items: Sequence[str], size: int) -> Iterable[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _unique(ids: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for app_id in ids:
        if app_id not in seen:
            seen.add(app_id)
            result.append(app_id)
    return result


class RecordQueryService(ABC):
    """Interface the pipeline reads through."""

    def __init__(self, collections: Optional[CollectionMap] = None):
        self.collections = collections or CollectionMap()

    @abstractmethod
    def fetch_all(self, collection: Collection) -> List[RawRecord]:
        """Every row of one collection."""

    @abstractmethod
    def fetch_by_ids(self, collection: Collection, ids: Sequence[str]) -> List[RawRecord]:
        """Rows whose application id is one of ids."""

    @abstractmethod
    def fetch_where(self, collection: Collection, field: str, value: Any) -> List[RawRecord]:
        """Rows whose field equals value."""


class _RetryableStatus(Exception):
    def __init__(self, response):
        self.response = response
        super().__init__(f"HTTP {response.status_code}")


class RestQueryService(RecordQueryService):
    """
    Reads collections from a PostgREST-style HTTP API.

    Rows are requested with select=*; id lookups use in.(...) filters,
    split into chunks so URLs stay short. Timeouts, dropped connections
    and 408/429/5xx responses are retried with exponential backoff.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        collections: Optional[CollectionMap] = None,
        timeout: float = 20.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        chunk_size: int = 100,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(collections)
        if not base_url:
            raise ValueError("A store URL is required for RestQueryService")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.chunk_size = chunk_size
        self.session = session or requests.Session()
        self._send = exponential_backoff(
            max_retries=max_retries,
            base_delay=retry_delay,
            exceptions=(requests.exceptions.Timeout, requests.exceptions.ConnectionError, _RetryableStatus),
        )(self._request)

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _url(self, collection: Collection) -> str:
        return f"{self.base_url}/rest/v1/{self.collections.table(collection)}"

    def _request(self, url: str, params: Dict[str, str]):
        resp = self.session.get(url, params=params, headers=self._headers(), timeout=self.timeout)
        if should_retry_http_status(resp.status_code):
            raise _RetryableStatus(resp)
        return resp

    def _get(self, collection: Collection, filters: Optional[Dict[str, str]] = None) -> List[RawRecord]:
        label = Collection(collection).label
        params = {"select": "*"}
        params.update(filters or {})
        logger.record_fetch_attempt(Collection(collection).value)
        try:
            resp = self._send(self._url(collection), params)
            resp.raise_for_status()
            data = resp.json()
        except RetryError as e:
            logger.record_fetch_failure(Collection(collection).value, "RetryExhausted")
            logger.warning(f"{label} request kept failing", error=str(e.__cause__))
            raise QueryError(f"{label} request failed after retries: {e.__cause__}") from e
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else "HTTPError"
            logger.record_fetch_failure(Collection(collection).value, f"HTTPError_{status}")
            logger.error(f"{label} request failed", status=status)
            raise QueryError(f"{label} request failed ({status})") from e
        except requests.exceptions.RequestException as e:
            logger.record_fetch_failure(Collection(collection).value, "RequestException")
            logger.error(f"{label} request error", error=str(e))
            raise QueryError(f"{label} request error: {e}") from e
        except ValueError as e:
            logger.record_fetch_failure(Collection(collection).value, "InvalidJSON")
            raise QueryError(f"{label} returned invalid JSON: {e}") from e

        if not isinstance(data, list):
            logger.record_fetch_failure(Collection(collection).value, "UnexpectedPayload")
            raise QueryError(f"{label} returned {type(data).__name__}, expected a list of rows")
        return data

    @staticmethod
    def _quote(value: Any) -> str:
        escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'

    @staticmethod
    def _in_filter(values: Sequence[str]) -> str:
        quoted = ",".join(RestQueryService._quote(v) for v in values)
        return f"in.({quoted})"

    def fetch_all(self, collection: Collection) -> List[RawRecord]:
        return self._get(collection)

    def fetch_by_ids(self, collection: Collection, ids: Sequence[str]) -> List[RawRecord]:
        ids = _unique(ids)
        rows: List[RawRecord] = []
        for chunk in _chunks(ids, self.chunk_size):
            rows.extend(self._get(collection, {self.collections.id_column: self._in_filter(chunk)}))
        return rows

    def fetch_where(self, collection: Collection, field: str, value: Any) -> List[RawRecord]:
        return self._get(collection, {field: f"eq.{value}"})


class SqlQueryService(RecordQueryService):
    """Reads collections straight from a SQL database via table reflection."""

    def __init__(
        self,
        engine: Union[Engine, str],
        collections: Optional[CollectionMap] = None,
        chunk_size: int = 500,
    ):
        super().__init__(collections)
        if isinstance(engine, str):
            # pipeline runs read collections from worker threads
            connect_args = {"check_same_thread": False} if engine.startswith("sqlite") else {}
            engine = create_engine(engine, connect_args=connect_args)
        self.engine = engine
        self.chunk_size = chunk_size
        self._metadata = MetaData()
        self._tables: Dict[str, Table] = {}
        self._reflect_lock = threading.Lock()

    def _table(self, collection: Collection) -> Table:
        name = self.collections.table(collection)
        with self._reflect_lock:
            if name not in self._tables:
                self._tables[name] = Table(name, self._metadata, autoload_with=self.engine)
            return self._tables[name]

    def _execute(self, collection: Collection, build) -> List[RawRecord]:
        label = Collection(collection).label
        logger.record_fetch_attempt(Collection(collection).value)
        try:
            table = self._table(collection)
            with self.engine.connect() as conn:
                rows = []
                for stmt in build(table):
                    rows.extend(dict(row) for row in conn.execute(stmt).mappings())
                return rows
        except NoSuchTableError as e:
            logger.record_fetch_failure(Collection(collection).value, "NoSuchTable")
            raise QueryError(f"{label} table not found: {e}") from e
        except (SQLAlchemyError, KeyError) as e:
            logger.record_fetch_failure(Collection(collection).value, type(e).__name__)
            logger.error(f"{label} query failed", error=str(e))
            raise QueryError(f"{label} query failed: {e}") from e

    def fetch_all(self, collection: Collection) -> List[RawRecord]:
        return self._execute(collection, lambda table: [select(table)])

    def fetch_by_ids(self, collection: Collection, ids: Sequence[str]) -> List[RawRecord]:
        ids = _unique(ids)
        if not ids:
            return []
        id_column = self.collections.id_column
        return self._execute(
            collection,
            lambda table: [
                select(table).where(table.c[id_column].in_(list(chunk)))
                for chunk in _chunks(ids, self.chunk_size)
            ],
        )

    def fetch_where(self, collection: Collection, field: str, value: Any) -> List[RawRecord]:
        return self._execute(
            collection, lambda table: [select(table).where(table.c[field] == value)]
        )


class SnapshotQueryService(RecordQueryService):
    """In-memory collections, e.g. loaded from a JSON snapshot file."""

    def __init__(
        self,
        rows: Optional[Mapping[Collection, Iterable[RawRecord]]] = None,
        collections: Optional[CollectionMap] = None,
    ):
        super().__init__(collections)
        self._rows = {
            Collection(key): [dict(row) for row in value]
            for key, value in (rows or {}).items()
        }

    def fetch_all(self, collection: Collection) -> List[RawRecord]:
        logger.record_fetch_attempt(Collection(collection).value)
        return [dict(row) for row in self._rows.get(Collection(collection), [])]

    def fetch_by_ids(self, collection: Collection, ids: Sequence[str]) -> List[RawRecord]:
        wanted = set(ids)
        return [
            row for row in self.fetch_all(collection)
            if normalize_record(row, Collection(collection))["application_id"] in wanted
        ]

    def fetch_where(self, collection: Collection, field: str, value: Any) -> List[RawRecord]:
        return [row for row in self.fetch_all(collection) if row.get(field) == value]


def build_query_service(
    settings: Settings,
    snapshot_path=None,
    db_url: Optional[str] = None,
) -> RecordQueryService:
    """Pick a query service: explicit snapshot, then SQL URL, then the REST store."""
    collections = CollectionMap.from_settings(settings)
    if snapshot_path is not None:
        return SnapshotQueryService(load_snapshot(snapshot_path), collections)
    db_url = db_url or settings.db_url
    if db_url:
        return SqlQueryService(db_url, collections)
    if not settings.store_url:
        raise ValueError(
            "No record store configured. Set SCREENBOARD_STORE_URL, SCREENBOARD_DB_URL "
            "or pass --snapshot/--db."
        )
    return RestQueryService(
        settings.store_url,
        api_key=settings.api_key,
        collections=collections,
        timeout=settings.timeout,
    )
