"""Persistence utilities for the budget tracker core services.

Every collection is stored as one JSON array under its own key. Two stores
share the same ``load``/``save`` interface: a file-backed one for real use and
an in-memory one for tests and embedding.
"""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .exceptions import PersistenceError


class JSONStorage:
    """File-based JSON storage with crash-safe writes, one ``<key>.json`` per collection."""

    def __init__(self, base_path: Path) -> None:
        self._base_path = Path(base_path)
        self._base_path.mkdir(parents=True, exist_ok=True)

    def load(self, key: str) -> List[Dict[str, Any]]:
        path = self._path_for(key)
        if not path.exists():
            return []
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Corrupted JSON data in {path}") from exc
        except OSError as exc:
            raise PersistenceError(f"Unable to read from {path}") from exc

        if payload is None:
            return []
        if not isinstance(payload, list):
            raise PersistenceError(f"Expected list payload in {path}")
        return payload

    def save(self, key: str, records: Iterable[Dict[str, Any]]) -> None:
        path = self._path_for(key)
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            with temp_path.open("w", encoding="utf-8") as handle:
                json.dump(list(records), handle, indent=2, ensure_ascii=False)
                handle.flush()
            # Atomic move on POSIX.
            temp_path.replace(path)
        except OSError as exc:
            raise PersistenceError(f"Unable to write to {path}") from exc

    def _path_for(self, key: str) -> Path:
        return self._base_path / f"{key}.json"

    @property
    def base_path(self) -> Path:
        return self._base_path


class MemoryStorage:
    """Dictionary-backed storage; ``fail_writes`` makes every save raise."""

    def __init__(self, initial: Optional[Dict[str, List[Dict[str, Any]]]] = None) -> None:
        self._blobs: Dict[str, List[Dict[str, Any]]] = copy.deepcopy(initial or {})
        self.fail_writes = False
        self.save_count = 0

    def load(self, key: str) -> List[Dict[str, Any]]:
        return copy.deepcopy(self._blobs.get(key, []))

    def save(self, key: str, records: Iterable[Dict[str, Any]]) -> None:
        if self.fail_writes:
            raise PersistenceError(f"Storage quota exceeded while saving {key}")
        # Round-trip through JSON so non-serialisable values fail here as they would on disk.
        try:
            self._blobs[key] = json.loads(json.dumps(list(records)))
        except (TypeError, ValueError) as exc:
            raise PersistenceError(f"Unable to serialise {key}") from exc
        self.save_count += 1
