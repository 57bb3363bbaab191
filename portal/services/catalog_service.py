"""Wiring between the portal and the catalog engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional
import csv
import io
import logging

from catalogcore.artifacts import Artifact, ArtifactStore, FolderArtifactStore
from catalogcore.catalog import COLUMNS, Product
from catalogcore.config import PortalConfig
from catalogcore.errors import NotFoundError, ValidationError
from catalogcore.mutator import CatalogMutator
from catalogcore.resolver import ConfigResolver
from catalogcore.sheets import SheetDirectory
from catalogcore.storage import JsonStore
from catalogcore.versions import list_detected_versions, select_by_version, select_latest

logger = logging.getLogger(__name__)


class UsageCounter:
    """Per-product hit counters; recording never raises."""

    def __init__(self, store: Optional[JsonStore]):
        self._store = store

    def record(self, key: str) -> None:
        if self._store is None:
            return
        try:
            self._store.increment(key)
        except Exception as exc:  # counters must never break resolution
            logger.warning("Could not record usage for %s: %s", key, exc)

    def snapshot(self) -> dict:
        if self._store is None:
            return {}
        return self._store.all()


@dataclass(frozen=True)
class Resolution:
    product: Product
    artifact: Artifact
    version: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "product": self.product.public_dict(),
            "artifact": self.artifact.to_dict(),
            "version": self.version,
            "locator": self.artifact.locator,
        }


@dataclass(slots=True)
class CatalogServices:
    """Everything a request handler needs, built once per application."""

    resolver: ConfigResolver
    artifacts: ArtifactStore
    mutator: CatalogMutator
    sheets: Optional[SheetDirectory] = None
    usage: UsageCounter = field(default_factory=lambda: UsageCounter(None))

    def resolve(self, name: str, version: Optional[str] = None) -> Resolution:
        """Map a product name (and optional version) to one artifact."""

        catalog = self.resolver.load()
        product = catalog.get(name)
        if product is None or not product.enabled:
            raise NotFoundError(f"Template '{name}' not found")
        artifacts = self.artifacts.list_artifacts(product.container_id)
        wanted = (version or "").strip()
        if wanted and artifacts:
            artifact = select_by_version(artifacts, wanted)
            if artifact is None:
                available = ", ".join(list_detected_versions(artifacts))
                raise NotFoundError(
                    f"Version '{wanted}' of '{product.display_name}' not found. "
                    f"Available versions: {available}"
                )
        else:
            artifact = select_latest(artifacts)
            if artifact is None:
                raise NotFoundError(f"No templates are available for '{product.display_name}'")
        self.usage.record(f"{product.name}@{wanted or 'latest'}")
        return Resolution(product=product, artifact=artifact, version=wanted or None)


def build_services(config: PortalConfig) -> CatalogServices:
    sheets = SheetDirectory(config.sheets_dir, backups=config.store_backups)
    overrides = JsonStore(config.overrides_file, backups=config.store_backups, label="portal settings")
    resolver = ConfigResolver(
        overrides,
        sheets.open,
        default_source_id=config.default_source_id,
        fallback_container_id=config.fallback_container_id,
        fallback_product_name=config.fallback_product_name,
        ttl=config.cache_ttl,
    )
    artifacts = FolderArtifactStore(config.artifacts_dir, base_url=config.artifact_base_url)
    mutator = CatalogMutator(
        resolver,
        artifacts,
        attempts=config.container_check_attempts,
        delay=config.container_check_delay,
    )
    usage = UsageCounter(JsonStore(config.usage_file, backups=0, label="usage counters"))
    return CatalogServices(resolver=resolver, artifacts=artifacts, mutator=mutator, sheets=sheets, usage=usage)


def parse_csv(text: str) -> list[dict[str, str]]:
    """Parse an uploaded catalog sheet; the header row must name ``name``."""

    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    header = [(column or "").strip() for column in (reader.fieldnames or [])]
    if "name" not in header:
        raise ValidationError(f"CSV header must include: {', '.join(COLUMNS)}")
    reader.fieldnames = header
    rows = []
    for row in reader:
        cleaned = {key: (value or "").strip() for key, value in row.items() if key}
        if any(cleaned.values()):
            rows.append(cleaned)
    return rows
