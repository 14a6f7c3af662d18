"""
JSON snapshots of the three source collections.

A snapshot file looks like {"tracker": [...], "queue": [...],
"candidate_master": [...]}, each list holding raw rows exactly as the
store returned them.
"""

import json
from pathlib import Path
from typing import Any, Dict, List

from .models import Collection


def empty_snapshot() -> Dict[Collection, List[Dict[str, Any]]]:
    return {collection: [] for collection in Collection}


def load_snapshot(path: Path) -> Dict[Collection, List[Dict[str, Any]]]:
    path = Path(path)
    snapshot = empty_snapshot()
    if not path.exists():
        return snapshot
    with path.open("r", encoding="utf-8") as f:
        content = f.read().strip()
    if not content:
        return snapshot
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ValueError(f"Snapshot {path} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Snapshot {path} must hold an object keyed by collection")

    for collection in Collection:
        rows = data.get(collection.value, [])
        if not isinstance(rows, list):
            raise ValueError(f"Snapshot {path}: '{collection.value}' must be a list of rows")
        snapshot[collection] = [row for row in rows if isinstance(row, dict)]
    return snapshot


def save_snapshot(path: Path, snapshot: Dict[Collection, List[Dict[str, Any]]]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {Collection(key).value: rows for key, rows in snapshot.items()}
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False, default=str)
