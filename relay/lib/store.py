"""One-file-per-record JSON storage shared by every agent process.

Each collection is a directory and each record a `<key>.json` file holding a
single JSON object. There is no locking: writes go to a temp file in the same
directory and are renamed over the target, so readers never observe a torn
record and the last writer wins on same-key races.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from relay.errors import StorageError

from . import paths

log = logging.getLogger(__name__)

SUFFIX = ".json"
_TMP_PREFIX = ".tmp-"


def collection_dir(collection: str) -> Path:
    """Return the collection directory, creating it on first use."""
    path = paths.collection_dir(collection)
    path.mkdir(parents=True, exist_ok=True)
    return path


def record_path(collection: str, key: str) -> Path:
    if not key or "/" in key or os.sep in key or "\x00" in key or key.startswith("."):
        raise ValueError(f"Invalid record key: {key!r}")
    return collection_dir(collection) / f"{key}{SUFFIX}"


def _write(path: Path, record: dict[str, Any]) -> None:
    payload = json.dumps(record, indent=2, ensure_ascii=False)
    fd, tmp_name = tempfile.mkstemp(prefix=_TMP_PREFIX, suffix=SUFFIX, dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_name)
        raise


def _read(path: Path) -> dict[str, Any] | None:
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as e:
        log.debug(f"Unreadable record {path.name}: {e}")
        return None
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        log.debug(f"Skipping corrupted record {path.name}: {e}")
        return None
    if not isinstance(data, dict):
        log.debug(f"Skipping non-object record {path.name}")
        return None
    return data


def _record_files(directory: Path) -> list[Path]:
    return [
        entry
        for entry in directory.iterdir()
        if entry.suffix == SUFFIX and not entry.name.startswith(_TMP_PREFIX)
    ]


def _put(collection: str, key: str, record: dict[str, Any]) -> None:
    try:
        _write(record_path(collection, key), record)
    except OSError as e:
        raise StorageError(f"Failed to write {collection}/{key}: {e}") from e


def _lookup_path(collection: str, key: str) -> Path | None:
    """Path for a read or delete; an unsafe key names no record."""
    try:
        return record_path(collection, key)
    except ValueError:
        return None


def _get(collection: str, key: str) -> dict[str, Any] | None:
    path = _lookup_path(collection, key)
    return _read(path) if path is not None else None


def _list_all(collection: str) -> list[dict[str, Any]]:
    records = []
    for path in _record_files(collection_dir(collection)):
        data = _read(path)
        if data is not None:
            records.append(data)
    return records


def _keys(collection: str) -> list[str]:
    return [path.stem for path in _record_files(collection_dir(collection))]


def _delete(collection: str, key: str) -> bool:
    path = _lookup_path(collection, key)
    if path is None:
        return False
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        raise StorageError(f"Failed to delete {collection}/{key}: {e}") from e
    return True


def _modified_at(collection: str, key: str) -> float | None:
    path = _lookup_path(collection, key)
    if path is None:
        return None
    try:
        return path.stat().st_mtime
    except FileNotFoundError:
        return None


async def put(collection: str, key: str, record: dict[str, Any]) -> None:
    """Atomically replace `<collection>/<key>.json`. Raises StorageError on failure."""
    await asyncio.to_thread(_put, collection, key, record)


async def get(collection: str, key: str) -> dict[str, Any] | None:
    """Return the record, or None when it is missing or unparseable."""
    return await asyncio.to_thread(_get, collection, key)


async def list_all(collection: str) -> list[dict[str, Any]]:
    """Return every parseable record in directory order, skipping corrupted files."""
    return await asyncio.to_thread(_list_all, collection)


async def keys(collection: str) -> list[str]:
    return await asyncio.to_thread(_keys, collection)


async def delete(collection: str, key: str) -> bool:
    """Remove a record. Missing records are not an error; returns whether one was removed."""
    return await asyncio.to_thread(_delete, collection, key)


async def modified_at(collection: str, key: str) -> float | None:
    """File modification time (epoch seconds), or None if the record is gone."""
    return await asyncio.to_thread(_modified_at, collection, key)


__all__ = [
    "collection_dir",
    "delete",
    "get",
    "keys",
    "list_all",
    "modified_at",
    "put",
    "record_path",
]
