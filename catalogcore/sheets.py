"""Catalog sheets: tabular product records addressed by product name."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Protocol
import logging
import re

from .catalog import COLUMNS, rows_to_dicts
from .errors import NotFoundError, ValidationError
from .storage import StoreError, Table, TableStore

logger = logging.getLogger(__name__)

_SOURCE_ID = re.compile(r"^[A-Za-z0-9_.-]+$")


class CatalogStore(Protocol):
    source_id: str

    def rows(self) -> list[dict[str, str]]:
        """Every data row keyed by header column."""

    def append(self, row: Mapping[str, str]) -> None:
        ...

    def replace(self, name: str, row: Mapping[str, str]) -> None:
        ...

    def update_cell(self, name: str, column: str, value: str) -> None:
        ...

    def delete(self, name: str) -> None:
        ...


def _row_position(table: Table, name: str) -> int:
    """Translate a product name to its row index in ``table`` (header is row 0)."""

    if not table:
        raise NotFoundError(f"Product '{name}' not found")
    header = [cell.strip() for cell in table[0]]
    try:
        name_col = header.index("name")
    except ValueError as exc:
        raise StoreError("Catalog sheet has no 'name' column") from exc
    for idx in range(1, len(table)):
        row = table[idx]
        if len(row) > name_col and row[name_col].strip() == name:
            return idx
    raise NotFoundError(f"Product '{name}' not found")


def _header(table: Table) -> list[str]:
    if not table:
        return list(COLUMNS)
    return [cell.strip() for cell in table[0]]


def _layout(header: list[str], row: Mapping[str, str]) -> list[str]:
    return [str(row.get(column, "")) for column in header]


@dataclass(slots=True)
class TableCatalogStore:
    """Key-addressed catalog operations over a :class:`TableStore` file."""

    source_id: str
    path: str | Path
    backups: int = 2
    _store: TableStore = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._store = TableStore(self.path, backups=self.backups, label=f"catalog sheet {self.source_id}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def exists(self) -> bool:
        return self._store.exists()

    def table(self) -> Table:
        return self._store.load()

    def rows(self) -> list[dict[str, str]]:
        return rows_to_dicts(self._store.load())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def append(self, row: Mapping[str, str]) -> None:
        def mutator(table: Table) -> Table:
            if not table:
                table = [list(COLUMNS)]
            table.append(_layout(_header(table), row))
            return table

        self._store.mutate(mutator)

    def replace(self, name: str, row: Mapping[str, str]) -> None:
        def mutator(table: Table) -> None:
            position = _row_position(table, name)
            table[position] = _layout(_header(table), row)

        self._store.mutate(mutator)

    def update_cell(self, name: str, column: str, value: str) -> None:
        def mutator(table: Table) -> None:
            position = _row_position(table, name)
            header = _header(table)
            if column not in header:
                raise StoreError(f"Catalog sheet has no '{column}' column")
            col = header.index(column)
            row = table[position]
            row.extend([""] * (len(header) - len(row)))
            row[col] = value

        self._store.mutate(mutator)

    def delete(self, name: str) -> None:
        def mutator(table: Table) -> None:
            del table[_row_position(table, name)]

        self._store.mutate(mutator)

    def write_header(self) -> None:
        self._store.save([list(COLUMNS)])


class SheetDirectory:
    """Opens catalog sheets stored as ``<root>/<source_id>.json``."""

    def __init__(self, root: Path | str, backups: int = 2):
        self.root = Path(root)
        self.backups = backups

    def _path(self, source_id: str) -> Path:
        source_id = (source_id or "").strip()
        if not _SOURCE_ID.match(source_id) or source_id in {".", ".."}:
            raise ValidationError(f"Invalid catalog source id: {source_id!r}")
        return self.root / f"{source_id}.json"

    def open(self, source_id: str) -> TableCatalogStore:
        """Open an existing sheet; raises :class:`StoreError` if there is none."""

        path = self._path(source_id)
        store = TableCatalogStore(source_id, path, backups=self.backups)
        if not store.exists():
            raise StoreError(f"No catalog sheet at {path}")
        table = store.table()
        if not table or "name" not in _header(table):
            raise StoreError(f"Catalog sheet {source_id!r} has no header row")
        return store

    def create(self, source_id: str) -> TableCatalogStore:
        """Create an empty sheet with the standard header (no-op if it exists)."""

        path = self._path(source_id)
        store = TableCatalogStore(source_id, path, backups=self.backups)
        if not store.exists():
            store.write_header()
            logger.info("Created catalog sheet %s", path)
        return store

    def list_ids(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(path.stem for path in self.root.glob("*.json"))
