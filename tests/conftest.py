import pytest

from catalogcore.mutator import CatalogMutator
from catalogcore.resolver import ConfigResolver

from catalog_fakes import FakeArtifacts, FakeClock, FakeSheet, MemoryKV, SheetOpener


@pytest.fixture
def sheet():
    return FakeSheet(
        "main",
        rows=[
            ["A", "folder-a", "Alpha", "TRUE", "First", "Forms", "one, two"],
            ["B", "folder-b", "", "false", "", "", ""],
        ],
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def resolver(sheet, clock):
    return ConfigResolver(MemoryKV(), SheetOpener(sheet), default_source_id="main", ttl=300, clock=clock)


@pytest.fixture
def artifacts():
    return FakeArtifacts({"folder-a": [], "folder-b": [], "folder-c": [], "folder-d": []})


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def mutator(resolver, artifacts, sleeps):
    return CatalogMutator(resolver, artifacts, attempts=3, delay=0.5, sleep=sleeps.append)
