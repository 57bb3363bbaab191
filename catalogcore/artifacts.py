"""Artifact containers: where the versioned template files live."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol
from urllib.parse import quote
import logging
import re

from .errors import ContainerUnreachableError

logger = logging.getLogger(__name__)

_CONTAINER_ID = re.compile(r"^[A-Za-z0-9_.-]+$")


@dataclass(frozen=True)
class Artifact:
    """A candidate template file inside a container."""

    name: str
    created_at: datetime
    locator: str

    def to_dict(self) -> dict[str, str]:
        return {
            "name": self.name,
            "created_at": self.created_at.isoformat(),
            "locator": self.locator,
        }


class ArtifactStore(Protocol):
    def list_artifacts(self, container_id: str) -> list[Artifact]:
        """Return every artifact in the container or raise ``ContainerUnreachableError``."""

    def exists(self, container_id: str) -> bool:
        """Cheap reachability probe."""


def build_url(base: str, path: str = "/") -> str:
    """Combine a base URL with a path while avoiding double slashes."""

    base = (base or "").rstrip("/")
    if not path:
        return base
    suffix = path if path.startswith("/") else f"/{path}"
    return f"{base}{suffix}"


class FolderArtifactStore:
    """Containers are sub-directories of ``root``; artifacts are the files inside.

    Hidden files and nested directories are ignored. The creation timestamp is
    the file's birth time where the platform records one, otherwise its
    modification time. When ``base_url`` is set, locators point at
    ``<base_url>/<container>/<file>`` so a static file server (or a CDN in front
    of the folder) can hand the artifact out; otherwise they are ``file://``
    URIs.
    """

    def __init__(self, root: Path | str, base_url: str = ""):
        self.root = Path(root)
        self.base_url = (base_url or "").strip()

    def _container_path(self, container_id: str) -> Path | None:
        container_id = (container_id or "").strip()
        if not _CONTAINER_ID.match(container_id) or container_id in {".", ".."}:
            return None
        return self.root / container_id

    def exists(self, container_id: str) -> bool:
        path = self._container_path(container_id)
        return bool(path is not None and path.is_dir())

    def _locator(self, container_id: str, path: Path) -> str:
        if self.base_url:
            return build_url(self.base_url, f"{quote(container_id)}/{quote(path.name)}")
        return path.resolve().as_uri()

    def list_artifacts(self, container_id: str) -> list[Artifact]:
        path = self._container_path(container_id)
        if path is None or not path.is_dir():
            logger.error("Artifact container %r is missing under %s", container_id, self.root)
            raise ContainerUnreachableError()
        artifacts: list[Artifact] = []
        try:
            entries = sorted(path.iterdir(), key=lambda entry: entry.name)
            for entry in entries:
                if entry.name.startswith(".") or not entry.is_file():
                    continue
                stat = entry.stat()
                stamp = getattr(stat, "st_birthtime", None) or stat.st_mtime
                artifacts.append(
                    Artifact(
                        name=entry.name,
                        created_at=datetime.fromtimestamp(stamp, tz=timezone.utc),
                        locator=self._locator(container_id, entry),
                    )
                )
        except OSError as exc:
            logger.error("Failed to list artifact container %r: %s", container_id, exc)
            raise ContainerUnreachableError() from exc
        return artifacts
