from enum import Enum
from typing import Callable, Iterable, List, Optional, TypeVar

from .normalize import parse_timestamp

T = TypeVar("T")


class SortDirection(str, Enum):
    NEWEST = "new"
    OLDEST = "old"


def _date_created(record) -> Optional[str]:
    return record.date_created


def sort_by_date(
    records: Iterable[T],
    direction: SortDirection = SortDirection.NEWEST,
    date_of: Callable[[T], Optional[str]] = _date_created,
) -> List[T]:
    """
    Stable sort by date (date_created unless date_of says otherwise).

    Records without a parseable date always go last, in input order,
    whichever direction is requested.
    """
    dated = []
    undated = []
    for record in records:
        ts = parse_timestamp(date_of(record))
        if ts is None:
            undated.append(record)
        else:
            dated.append((ts, record))

    # reverse=True keeps equal keys in input order
    dated.sort(key=lambda pair: pair[0], reverse=SortDirection(direction) == SortDirection.NEWEST)
    return [record for _, record in dated] + undated
