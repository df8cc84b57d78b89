from __future__ import annotations

from datetime import datetime
import json
import logging
from pathlib import Path
from typing import Any, Iterator, Optional

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
LAST_ID_FILE = "last_id.txt"


def record_path(root: Path, record_id: int) -> Path:
    return root / f"{int(record_id)}.json"


def next_record_id(root: Path) -> int:
    """Issue a new id for ``root``; ids of deleted records are never handed out again."""
    highest = 0
    for path in root.glob("*.json"):
        try:
            highest = max(highest, int(path.stem))
        except ValueError:
            continue
    counter = root / LAST_ID_FILE
    if counter.exists():
        stored = counter.read_text(encoding="utf-8").strip()
        if stored.isdigit():
            highest = max(highest, int(stored))
    root.mkdir(parents=True, exist_ok=True)
    counter.write_text(str(highest + 1), encoding="utf-8")
    return highest + 1


def iter_json_records(root: Path) -> Iterator[dict[str, Any]]:
    for path in sorted(root.glob("*.json"), key=_numeric_stem):
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Skipping unreadable record %s: %s", path, exc)
            continue
        if not isinstance(data, dict):
            logger.warning("Skipping malformed record %s", path)
            continue
        yield data


def read_json(path: Path) -> dict[str, Any]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Record must be a JSON object: {path}")
    return data


def write_json(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = dict(data)
    payload.setdefault("schema_version", SCHEMA_VERSION)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


def parse_record_id(value: Any) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _numeric_stem(path: Path) -> tuple[int, str]:
    try:
        return int(path.stem), path.stem
    except ValueError:
        return 0, path.stem
