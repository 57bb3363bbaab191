from datetime import datetime, timedelta, timezone

import pytest

from catalogcore.artifacts import Artifact
from catalogcore.config import load_portal_config
from catalogcore.errors import ContainerUnreachableError
from catalogcore.mutator import CatalogMutator
from catalogcore.resolver import ConfigResolver
from catalogcore.sheets import SheetDirectory
from catalogcore.storage import JsonStore
from portal.app import create_app
from portal.services.catalog_service import CatalogServices, UsageCounter

ADMIN_TOKEN = "test-admin-token"
STAMP = datetime(2024, 3, 1, tzinfo=timezone.utc)


class StubArtifacts:
    def __init__(self):
        self.containers = {
            "folder-plan": [
                Artifact("Planner v1.0", STAMP, "https://files.example/plan-1.0"),
                Artifact("Planner v2.0", STAMP + timedelta(days=2), "https://files.example/plan-2.0"),
                Artifact("Planner v1.50", STAMP + timedelta(days=1), "https://files.example/plan-1.50"),
            ],
            "folder-budget": [
                Artifact("Budget", STAMP, "https://files.example/budget"),
            ],
            "folder-empty": [],
        }

    def exists(self, container_id):
        return container_id in self.containers

    def list_artifacts(self, container_id):
        if container_id not in self.containers:
            raise ContainerUnreachableError()
        return list(self.containers[container_id])


@pytest.fixture
def portal_env(tmp_path):
    config = load_portal_config(
        tmp_path,
        {
            "ADMIN_TOKEN": ADMIN_TOKEN,
            "CATALOG_SOURCE_ID": "main",
            "CONTAINER_CHECK_DELAY": "0",
            "FORCE_TLS": "false",
        },
    )
    sheets = SheetDirectory(config.sheets_dir)
    store = sheets.create("main")
    store.append({"name": "Planner", "containerId": "folder-plan", "displayName": "Event Planner", "enabled": "TRUE"})
    store.append({"name": "Budget", "containerId": "folder-budget", "enabled": "FALSE"})
    store.append({"name": "Empty", "containerId": "folder-empty", "enabled": "TRUE"})

    resolver = ConfigResolver(
        JsonStore(config.overrides_file),
        sheets.open,
        default_source_id=config.default_source_id,
        ttl=config.cache_ttl,
    )
    artifacts = StubArtifacts()
    services = CatalogServices(
        resolver=resolver,
        artifacts=artifacts,
        mutator=CatalogMutator(resolver, artifacts, attempts=2, delay=0, sleep=lambda _: None),
        sheets=sheets,
        usage=UsageCounter(JsonStore(config.usage_file, backups=0)),
    )
    app = create_app(config, services=services)
    app.config.update(TESTING=True)
    yield app, services


@pytest.fixture
def client(portal_env):
    app, _ = portal_env
    return app.test_client()


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}
