"""Template catalog resolution and management engine."""

from .artifacts import Artifact, ArtifactStore, FolderArtifactStore  # noqa: F401
from .catalog import Catalog, Product
from .errors import (
    CatalogError,
    ConfigLoadError,
    ContainerUnreachableError,
    DuplicateError,
    NotFoundError,
    ValidationError,
)
from .mutator import BulkReport, CatalogMutator, MutationResult
from .resolver import FALLBACK_SOURCE, ConfigResolver
from .sheets import SheetDirectory, TableCatalogStore
from .storage import JsonStore, StoreError, TableStore
from .versions import NONE_DETECTED, list_detected_versions, select_by_version, select_latest

__all__ = [
    "Artifact",
    "ArtifactStore",
    "FolderArtifactStore",
    "Catalog",
    "Product",
    "CatalogError",
    "ConfigLoadError",
    "ContainerUnreachableError",
    "DuplicateError",
    "NotFoundError",
    "ValidationError",
    "BulkReport",
    "CatalogMutator",
    "MutationResult",
    "FALLBACK_SOURCE",
    "ConfigResolver",
    "SheetDirectory",
    "TableCatalogStore",
    "JsonStore",
    "StoreError",
    "TableStore",
    "NONE_DETECTED",
    "list_detected_versions",
    "select_by_version",
    "select_latest",
]
