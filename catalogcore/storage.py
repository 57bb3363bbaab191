"""File-backed persistence helpers for the catalog engine.

Two flavours share the same redundancy scheme: every write goes to a temporary
file which is fsynced and atomically moved into place, and the previous
versions are kept as rotating ``.bakN`` copies. Reads fall back to the newest
readable backup when the primary file is missing or corrupt, which matters for
self-hosted deployments where abrupt shutdowns are common.

* ``JsonStore`` keeps a JSON object keyed by string (runtime overrides and
  usage counters).
* ``TableStore`` keeps a header row plus data rows, the on-disk shape of a
  catalog sheet.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Sequence

logger = logging.getLogger(__name__)

Table = List[List[str]]


class StoreError(RuntimeError):
    """Raised when a persistence operation fails."""


class _RedundantFile(ABC):
    """Atomic writes and backup rotation for a single JSON file."""

    def __init__(self, path: Path | str, backups: int = 2, *, label: str | None = None):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.backups = max(0, backups)
        self._label = label or self.path.name

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------
    def _backup_path(self, index: int) -> Path:
        return self.path.with_suffix(self.path.suffix + f".bak{index}")

    def _candidate_paths(self) -> list[Path]:
        return [self.path] + [self._backup_path(idx) for idx in range(1, self.backups + 1)]

    @abstractmethod
    def _decode(self, data: Any) -> Any | None:
        """Return the parsed payload or ``None`` when it has the wrong shape."""

    @abstractmethod
    def _empty(self) -> Any:
        """Payload used when the file is missing or blank."""

    def _read(self, path: Path) -> Any | None:
        if not path.exists():
            return None
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as exc:  # pragma: no cover - surfaced to callers
            raise StoreError(str(exc)) from exc
        if not raw:
            return self._empty()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            return None
        return self._decode(data)

    def _write(self, data: Any) -> None:
        payload = json.dumps(data, indent=2)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            with tmp_path.open("w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, self.path)
        except OSError as exc:  # pragma: no cover - bubbled up to callers
            raise StoreError(str(exc)) from exc
        finally:
            tmp_path.unlink(missing_ok=True)

    def _rotate_backups(self) -> None:
        if self.backups <= 0:
            return
        for idx in range(self.backups, 0, -1):
            src = self.path if idx == 1 else self._backup_path(idx - 1)
            dest = self._backup_path(idx)
            if src.exists():
                try:
                    os.replace(src, dest)
                except OSError:
                    # Rotation is best effort; the new write still lands.
                    continue

    def _load(self) -> Any:
        for candidate in self._candidate_paths():
            data = self._read(candidate)
            if data is not None:
                if candidate != self.path:
                    logger.warning("Recovered %s from backup %s", self._label, candidate.name)
                return data
        return self._empty()

    def _dump(self, data: Any) -> None:
        self._rotate_backups()
        self._write(data)

    def exists(self) -> bool:
        return any(candidate.exists() for candidate in self._candidate_paths())


class JsonStore(_RedundantFile):
    """Tiny JSON document store keyed by identifier."""

    def _decode(self, data: Any) -> Dict[str, Any] | None:
        return data if isinstance(data, dict) else None

    def _empty(self) -> Dict[str, Any]:
        return {}

    def get(self, key: str, default: Any | None = None) -> Any:
        return self._load().get(key, default)

    def put(self, key: str, value: Any) -> Any:
        data = self._load()
        data[key] = value
        self._dump(data)
        return value

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._dump(data)

    def all(self) -> Dict[str, Any]:
        return self._load()

    def increment(self, key: str, amount: int = 1) -> int:
        data = self._load()
        try:
            current = int(data.get(key, 0))
        except (TypeError, ValueError):
            current = 0
        data[key] = current + amount
        self._dump(data)
        return data[key]


class TableStore(_RedundantFile):
    """Header + rows table persisted as a JSON list of string lists.

    The first row is always the header. Cells are stored as strings, the way
    a spreadsheet export would present them.
    """

    def _decode(self, data: Any) -> Table | None:
        if not isinstance(data, list):
            return None
        table: Table = []
        for row in data:
            if not isinstance(row, list):
                return None
            table.append(["" if cell is None else str(cell) for cell in row])
        return table

    def _empty(self) -> Table:
        return []

    def load(self) -> Table:
        return self._load()

    def save(self, table: Iterable[Sequence[Any]]) -> Table:
        snapshot = [["" if cell is None else str(cell) for cell in row] for row in table]
        self._dump(snapshot)
        return snapshot

    def mutate(self, mutator: Callable[[Table], Iterable[Sequence[Any]] | None]) -> Table:
        snapshot = self.load()
        outcome = mutator(snapshot)
        return self.save(snapshot if outcome is None else outcome)
