"""Validated writes against the authoritative catalog sheet.

Every operation is a one-shot pipeline: validate the input, verify the
artifact folder when it changes, write the row, then drop the cached catalog.
Nothing is written unless every earlier step succeeded.

The sheet is a single-writer resource with last-write-wins semantics. Two
administrators editing the same product at the same time can overwrite each
other's changes; there is no row versioning to detect it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence, Union
import logging
import time

from .artifacts import ArtifactStore
from .catalog import Catalog, Product, parse_catalog
from .errors import (
    CatalogError,
    ContainerUnreachableError,
    DuplicateError,
    NotFoundError,
    ValidationError,
)
from .resolver import ConfigResolver
from .retry import RetryError, call_with_retry
from .schemas import BulkOperation, ProductInput, ProductPatch, parse_payload
from .sheets import CatalogStore
from .storage import StoreError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MutationResult:
    ok: bool
    message: str
    product: Optional[Product] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"ok": self.ok, "message": self.message}
        if self.product is not None:
            data["product"] = self.product.to_dict()
        return data


@dataclass(frozen=True)
class BulkItemResult:
    index: int
    action: str
    name: str
    ok: bool
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "action": self.action,
            "name": self.name,
            "ok": self.ok,
            "message": self.message,
        }


@dataclass
class BulkReport:
    results: list[BulkItemResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for item in self.results if item.ok)

    @property
    def failed(self) -> int:
        return len(self.results) - self.succeeded

    def to_dict(self) -> dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "failed": self.failed,
            "results": [item.to_dict() for item in self.results],
        }


class _ContainerMissing(Exception):
    pass


class CatalogMutator:
    def __init__(
        self,
        resolver: ConfigResolver,
        artifacts: ArtifactStore,
        *,
        attempts: int = 3,
        delay: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.resolver = resolver
        self.artifacts = artifacts
        self.attempts = attempts
        self.delay = delay
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------
    def _current(self) -> tuple[CatalogStore, Catalog]:
        store = self.resolver.open_store()
        try:
            rows = store.rows()
        except StoreError as exc:
            logger.error("Catalog sheet %r could not be read: %s", store.source_id, exc)
            raise
        return store, parse_catalog(rows, source_id=store.source_id)

    def verify_container(self, container_id: str) -> None:
        """Probe the artifact folder, retrying transient failures."""

        def probe() -> None:
            try:
                reachable = self.artifacts.exists(container_id)
            except Exception as exc:
                raise _ContainerMissing(str(exc)) from exc
            if not reachable:
                raise _ContainerMissing(f"container {container_id!r} not found")

        try:
            call_with_retry(
                probe,
                attempts=self.attempts,
                delay=self.delay,
                retry_on=(_ContainerMissing,),
                sleep=self._sleep,
                label=f"Container check for {container_id!r}",
            )
        except RetryError as exc:
            logger.error("Container %r unreachable: %s", container_id, exc.last_error)
            raise ContainerUnreachableError() from exc

    @staticmethod
    def _require(catalog: Catalog, name: str) -> Product:
        product = catalog.get(name)
        if product is None:
            raise NotFoundError(f"Product '{name}' not found")
        return product

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def _add(self, data: Union[ProductInput, Mapping[str, Any]]) -> MutationResult:
        payload = parse_payload(ProductInput, data)
        store, catalog = self._current()
        clash = catalog.find_casefold(payload.name)
        if clash is not None:
            raise DuplicateError(f"Product '{clash.name}' already exists")
        self.verify_container(payload.container_id)
        product = Product(
            name=payload.name,
            container_id=payload.container_id,
            display_name=payload.display_name,
            enabled=True if payload.enabled is None else payload.enabled,
            description=payload.description,
            category=payload.category,
            tags=tuple(payload.tags),
        )
        store.append(product.to_row())
        logger.info("Added product %s (container %s)", product.name, product.container_id)
        return MutationResult(True, f"Product '{product.name}' added", product)

    def _update(self, name: str, data: Union[ProductPatch, Mapping[str, Any]]) -> MutationResult:
        patch = parse_payload(ProductPatch, data)
        if patch.name is not None and patch.name != name:
            raise ValidationError("Product names cannot be changed; delete and re-add instead")
        store, catalog = self._current()
        current = self._require(catalog, name)
        changes = patch.model_dump(exclude_none=True, exclude={"name"})
        if "tags" in changes:
            changes["tags"] = tuple(changes["tags"])
        updated = current.with_changes(**changes)
        if updated.container_id != current.container_id:
            self.verify_container(updated.container_id)
        store.replace(name, updated.to_row())
        logger.info("Updated product %s", name)
        return MutationResult(True, f"Product '{name}' updated", updated)

    def _toggle(self, name: str) -> bool:
        store, catalog = self._current()
        current = self._require(catalog, name)
        new_state = not current.enabled
        store.update_cell(name, "enabled", "TRUE" if new_state else "FALSE")
        logger.info("Product %s %s", name, "enabled" if new_state else "disabled")
        return new_state

    def _delete(self, name: str) -> MutationResult:
        store, catalog = self._current()
        self._require(catalog, name)
        store.delete(name)
        logger.info("Deleted product %s", name)
        return MutationResult(True, f"Product '{name}' deleted")

    def add_product(self, data: Union[ProductInput, Mapping[str, Any]]) -> MutationResult:
        result = self._add(data)
        self.resolver.invalidate()
        return result

    def update_product(self, name: str, patch: Union[ProductPatch, Mapping[str, Any]]) -> MutationResult:
        result = self._update(name, patch)
        self.resolver.invalidate()
        return result

    def toggle_enabled(self, name: str) -> bool:
        new_state = self._toggle(name)
        self.resolver.invalidate()
        return new_state

    def delete_product(self, name: str) -> MutationResult:
        result = self._delete(name)
        self.resolver.invalidate()
        return result

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------
    def _apply_one(self, op: BulkOperation) -> str:
        if op.action == "add":
            data = dict(op.data)
            if op.name:
                data.setdefault("name", op.name)
            return self._add(data).message
        if not op.name:
            raise ValidationError("name is required")
        if op.action == "update":
            return self._update(op.name, op.data).message
        if op.action == "toggle":
            state = self._toggle(op.name)
            return f"Product '{op.name}' {'enabled' if state else 'disabled'}"
        return self._delete(op.name).message

    def bulk_apply(self, ops: Iterable[Union[BulkOperation, Mapping[str, Any]]]) -> BulkReport:
        """Apply each operation independently; the cache is dropped once at the end."""

        report = BulkReport()
        for index, raw in enumerate(ops):
            action = name = ""
            try:
                op = parse_payload(BulkOperation, raw)
                action, name = op.action, op.name or str(op.data.get("name", ""))
                message = self._apply_one(op)
            except (CatalogError, StoreError) as exc:
                if not action and isinstance(raw, Mapping):
                    action, name = str(raw.get("action", "")), str(raw.get("name", ""))
                logger.info("Bulk item %d (%s %s) failed: %s", index, action, name, exc)
                report.results.append(BulkItemResult(index, action, name, False, str(exc)))
                continue
            report.results.append(BulkItemResult(index, action, name, True, message))
        if report.succeeded:
            self.resolver.invalidate()
        return report

    def import_rows(self, rows: Sequence[Mapping[str, Any]]) -> BulkReport:
        """Add every row of an uploaded sheet as a new product."""

        return self.bulk_apply({"action": "add", "data": dict(row)} for row in rows)
