"""Selecting one artifact out of an unordered container listing.

Matching is deliberately loose: a requested version is searched anywhere in
the artifact name, so ``"1.5"`` also matches ``"Planner-v1.50"``. Existing
share links rely on that forgiving behaviour.
"""

from __future__ import annotations

from typing import Optional, Sequence
import re

from .artifacts import Artifact

NONE_DETECTED = "none detected"

_DETECT = re.compile(r"[vV]?[0-9.]*[0-9][0-9.]*")


def select_latest(artifacts: Sequence[Artifact]) -> Optional[Artifact]:
    """Return the most recently created artifact; the first one wins ties."""

    latest: Optional[Artifact] = None
    for artifact in artifacts:
        if latest is None or artifact.created_at > latest.created_at:
            latest = artifact
    return latest


def version_pattern(version: str) -> re.Pattern[str]:
    """Compile the matcher for a requested version such as ``"v2.0"``."""

    wanted = (version or "").strip()
    if wanted[:1] in ("v", "V"):
        wanted = wanted[1:]
    return re.compile("v?" + re.escape(wanted), re.IGNORECASE)


def select_by_version(artifacts: Sequence[Artifact], version: str) -> Optional[Artifact]:
    """Return the first artifact whose name contains the requested version."""

    pattern = version_pattern(version)
    for artifact in artifacts:
        if pattern.search(artifact.name):
            return artifact
    return None


def list_detected_versions(artifacts: Sequence[Artifact]) -> list[str]:
    """Version-looking fragments of each artifact name, for error messages only."""

    found = []
    for artifact in artifacts:
        match = _DETECT.search(artifact.name)
        if match:
            found.append(match.group(0))
    return found or [NONE_DETECTED]
