"""Deciding which catalog sheet is authoritative, and caching what it holds.

Resolution order for the catalog source:

1. the runtime override written by an administrator (persisted, so it
   survives restarts);
2. the deploy-time default from configuration;
3. single-container fallback mode, where a one-product catalog is synthesised
   around the configured fallback folder.

Loaded catalogs are cached as serialized JSON for a fixed TTL. Expiry is
checked lazily when :meth:`ConfigResolver.load` runs; mutations call
:meth:`ConfigResolver.invalidate` so the administrator who made a change reads
it back immediately.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol
import logging
import threading
import time

from .catalog import Catalog, Product, parse_catalog
from .errors import CatalogError, ConfigLoadError, ValidationError
from .sheets import CatalogStore
from .storage import StoreError

logger = logging.getLogger(__name__)

SOURCE_OVERRIDE_KEY = "catalog_source_id"
FALLBACK_SOURCE = "__fallback__"
DEFAULT_TTL = 300.0


class KeyValueStore(Protocol):
    def get(self, key: str, default: Any | None = None) -> Any:
        ...

    def put(self, key: str, value: Any) -> Any:
        ...

    def remove(self, key: str) -> None:
        ...


@dataclass(frozen=True)
class SourceInfo:
    source_id: str
    tier: str
    cached: bool

    def to_dict(self) -> dict[str, Any]:
        return {"source_id": self.source_id, "tier": self.tier, "cached": self.cached}


@dataclass
class _CacheEntry:
    payload: str
    expires_at: float


class ConfigResolver:
    def __init__(
        self,
        overrides: KeyValueStore,
        open_store: Callable[[str], CatalogStore],
        *,
        default_source_id: str = "",
        fallback_container_id: str = "",
        fallback_product_name: str = "template",
        ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._overrides = overrides
        self._open_store = open_store
        self.default_source_id = (default_source_id or "").strip()
        self.fallback_container_id = (fallback_container_id or "").strip()
        self.fallback_product_name = fallback_product_name or "template"
        self.ttl = max(0.0, float(ttl))
        self._clock = clock
        self._lock = threading.Lock()
        self._cache: Optional[_CacheEntry] = None
        self._generation = 0

    # ------------------------------------------------------------------
    # Source resolution
    # ------------------------------------------------------------------
    def _override(self) -> str:
        try:
            value = self._overrides.get(SOURCE_OVERRIDE_KEY)
        except StoreError as exc:
            logger.warning("Could not read catalog source override: %s", exc)
            return ""
        return str(value or "").strip()

    def resolve_source_id(self) -> str:
        """Return the authoritative source id, or ``FALLBACK_SOURCE``."""

        return self._override() or self.default_source_id or FALLBACK_SOURCE

    def describe(self) -> SourceInfo:
        override = self._override()
        if override:
            source_id, tier = override, "override"
        elif self.default_source_id:
            source_id, tier = self.default_source_id, "default"
        else:
            source_id, tier = FALLBACK_SOURCE, "fallback"
        return SourceInfo(source_id=source_id, tier=tier, cached=self._cached_payload() is not None)

    def set_source_id(self, source_id: str) -> None:
        """Persist a new override after checking a sheet exists there."""

        source_id = (source_id or "").strip()
        if not source_id:
            raise ValidationError("Catalog source id is required")
        self._open(source_id)
        try:
            self._overrides.put(SOURCE_OVERRIDE_KEY, source_id)
        except StoreError as exc:
            logger.error("Failed to persist catalog source override: %s", exc)
            raise ConfigLoadError("Could not save the catalog source") from exc
        logger.info("Catalog source override set to %s", source_id)
        self.invalidate()

    def clear_source_id(self) -> None:
        try:
            self._overrides.remove(SOURCE_OVERRIDE_KEY)
        except StoreError as exc:
            logger.error("Failed to clear catalog source override: %s", exc)
            raise ConfigLoadError("Could not clear the catalog source") from exc
        self.invalidate()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    def _open(self, source_id: str) -> CatalogStore:
        try:
            return self._open_store(source_id)
        except (StoreError, CatalogError, OSError) as exc:
            logger.error("Catalog sheet %r could not be opened: %s", source_id, exc)
            raise ConfigLoadError(f"Catalog source '{source_id}' is not available") from exc

    def open_store(self) -> CatalogStore:
        """Return the writable sheet backing the catalog."""

        source_id = self.resolve_source_id()
        if source_id == FALLBACK_SOURCE:
            raise ConfigLoadError("No catalog sheet is configured; the single-folder catalog is read-only")
        return self._open(source_id)

    def _fallback_catalog(self) -> Catalog:
        if not self.fallback_container_id:
            raise ConfigLoadError("No catalog source or fallback folder is configured")
        product = Product(name=self.fallback_product_name, container_id=self.fallback_container_id)
        return Catalog(products=(product,), source_id=FALLBACK_SOURCE)

    def load_uncached(self) -> Catalog:
        source_id = self.resolve_source_id()
        if source_id == FALLBACK_SOURCE:
            return self._fallback_catalog()
        store = self._open(source_id)
        try:
            rows = store.rows()
        except (StoreError, OSError) as exc:
            logger.error("Catalog sheet %r could not be read: %s", source_id, exc)
            raise ConfigLoadError(f"Catalog source '{source_id}' is not available") from exc
        return parse_catalog(rows, source_id=source_id)

    def _cached_payload(self) -> Optional[str]:
        with self._lock:
            entry = self._cache
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                self._cache = None
                return None
            return entry.payload

    def load(self) -> Catalog:
        payload = self._cached_payload()
        if payload is not None:
            return Catalog.from_json(payload)
        with self._lock:
            generation = self._generation
        catalog = self.load_uncached()
        payload = catalog.to_json()
        with self._lock:
            # An invalidate() during the read means this catalog may predate a write.
            if generation != self._generation:
                logger.debug("Catalog %s changed while loading; not caching", catalog.source_id)
                return catalog
            self._cache = _CacheEntry(payload=payload, expires_at=self._clock() + self.ttl)
        logger.debug("Cached catalog %s with %d products", catalog.source_id, len(catalog))
        return catalog

    def invalidate(self) -> None:
        with self._lock:
            self._generation += 1
            self._cache = None
