"""Configuration helpers for the template portal.

Installers and tests prime the expected values through a ``.env`` file or an
explicit mapping instead of touching application internals.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping
import os

from dotenv import load_dotenv


@dataclass(frozen=True)
class PortalConfig:
    """Strongly typed configuration for the portal service."""

    base_dir: Path
    secret_key: str
    admin_token: str
    default_source_id: str
    fallback_container_id: str
    fallback_product_name: str
    cache_ttl: float
    data_dir: Path
    sheets_dir: Path
    artifacts_dir: Path
    artifact_base_url: str
    container_check_attempts: int
    container_check_delay: float
    store_backups: int
    allowed_origins: tuple[str, ...]
    force_tls: bool
    log_level: str

    @property
    def overrides_file(self) -> Path:
        return self.data_dir / "settings.json"

    @property
    def usage_file(self) -> Path:
        return self.data_dir / "usage.json"


def env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _coerce_origins(raw: str | Iterable[str]) -> tuple[str, ...]:
    if isinstance(raw, str):
        items = [piece.strip() for piece in raw.split(",")]
    else:
        items = [piece.strip() for piece in raw]
    return tuple(filter(None, items)) or (
        "https://localhost",
        "https://127.0.0.1",
        "http://localhost",
        "http://127.0.0.1",
    )


def _resolve_dir(base_dir: Path, raw: str | None, default: Path) -> Path:
    raw = (raw or "").strip()
    if not raw:
        return default
    path = Path(raw)
    return path if path.is_absolute() else base_dir / path


def load_portal_config(base_dir: Path, env: Mapping[str, str] | None = None) -> PortalConfig:
    """Load portal configuration from the given base directory and env mapping."""

    base_dir = Path(base_dir)
    load_dotenv(base_dir / ".env")
    env_map = dict(os.environ if env is None else env)

    data_dir = _resolve_dir(base_dir, env_map.get("DATA_DIR"), base_dir / "data")

    return PortalConfig(
        base_dir=base_dir,
        secret_key=env_map.get("SECRET_KEY", "dev-change-me"),
        admin_token=env_map.get("ADMIN_TOKEN", "").strip(),
        default_source_id=env_map.get("CATALOG_SOURCE_ID", "").strip(),
        fallback_container_id=env_map.get("FALLBACK_CONTAINER_ID", "").strip(),
        fallback_product_name=env_map.get("FALLBACK_PRODUCT_NAME", "template").strip() or "template",
        cache_ttl=float(env_map.get("CATALOG_CACHE_TTL", "300")),
        data_dir=data_dir,
        sheets_dir=_resolve_dir(base_dir, env_map.get("SHEETS_DIR"), data_dir / "sheets"),
        artifacts_dir=_resolve_dir(base_dir, env_map.get("ARTIFACTS_DIR"), data_dir / "templates"),
        artifact_base_url=env_map.get("ARTIFACT_BASE_URL", "").strip().rstrip("/"),
        container_check_attempts=int(env_map.get("CONTAINER_CHECK_ATTEMPTS", "3")),
        container_check_delay=float(env_map.get("CONTAINER_CHECK_DELAY", "0.5")),
        store_backups=int(env_map.get("STORE_BACKUPS", "2")),
        allowed_origins=_coerce_origins(env_map.get("ALLOWED_ORIGINS", "")),
        force_tls=env_bool(env_map.get("FORCE_TLS"), False),
        log_level=env_map.get("LOG_LEVEL", "INFO").strip() or "INFO",
    )
