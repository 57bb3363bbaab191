import pytest

from catalogcore.errors import ConfigLoadError, ValidationError
from catalogcore.resolver import FALLBACK_SOURCE, SOURCE_OVERRIDE_KEY, ConfigResolver

from catalog_fakes import FakeSheet, MemoryKV, SheetOpener


def test_resolve_source_prefers_override():
    resolver = ConfigResolver(
        MemoryKV({SOURCE_OVERRIDE_KEY: "admin-set"}), SheetOpener(), default_source_id="deployed"
    )
    assert resolver.resolve_source_id() == "admin-set"
    assert resolver.describe().tier == "override"


def test_resolve_source_uses_default_without_override():
    resolver = ConfigResolver(MemoryKV(), SheetOpener(), default_source_id="deployed")
    assert resolver.resolve_source_id() == "deployed"
    assert resolver.describe().tier == "default"


def test_resolve_source_falls_back_when_nothing_is_set():
    resolver = ConfigResolver(MemoryKV(), SheetOpener())
    assert resolver.resolve_source_id() == FALLBACK_SOURCE
    assert resolver.describe().tier == "fallback"


def test_resolve_source_survives_override_store_failure():
    resolver = ConfigResolver(MemoryKV(fail=True), SheetOpener(), default_source_id="deployed")
    assert resolver.resolve_source_id() == "deployed"


def test_load_parses_rows(resolver):
    catalog = resolver.load()
    assert catalog.names() == ["A", "B"]
    alpha = catalog.get("A")
    assert alpha.display_name == "Alpha"
    assert alpha.enabled is True
    assert alpha.tags == ("one", "two")
    beta = catalog.get("B")
    assert beta.enabled is False
    assert beta.display_name == "B"
    assert beta.category == "Uncategorized"


def test_load_skips_incomplete_rows_and_defaults_enabled():
    sheet = FakeSheet(
        "main",
        rows=[
            ["", "folder-x", "", "", "", "", ""],
            ["NoFolder", "", "", "", "", "", ""],
            ["Kept", "folder-k", "", "", "", "", ""],
            ["Shouty", "folder-s", "", "True", "", "", ""],
        ],
    )
    resolver = ConfigResolver(MemoryKV(), SheetOpener(sheet), default_source_id="main")
    catalog = resolver.load()
    assert catalog.names() == ["Kept", "Shouty"]
    assert catalog.get("Kept").enabled is True
    assert catalog.get("Shouty").enabled is True


def test_load_within_ttl_reads_store_once(resolver, sheet, clock):
    first = resolver.load()
    clock.advance(299)
    second = resolver.load()
    assert sheet.reads == 1
    assert first == second
    assert first.to_json() == second.to_json()


def test_load_after_expiry_reads_again(resolver, sheet, clock):
    resolver.load()
    clock.advance(300)
    resolver.load()
    assert sheet.reads == 2


def test_invalidate_forces_reload_and_is_idempotent(resolver, sheet):
    resolver.load()
    resolver.invalidate()
    resolver.invalidate()
    resolver.load()
    assert sheet.reads == 2


def test_load_fallback_synthesises_single_product():
    resolver = ConfigResolver(
        MemoryKV(), SheetOpener(), fallback_container_id="only-folder", fallback_product_name="planner"
    )
    catalog = resolver.load()
    assert len(catalog) == 1
    product = catalog.get("planner")
    assert product.container_id == "only-folder"
    assert product.enabled is True
    assert catalog.source_id == FALLBACK_SOURCE


def test_load_without_any_source_fails():
    resolver = ConfigResolver(MemoryKV(), SheetOpener())
    with pytest.raises(ConfigLoadError):
        resolver.load()


def test_load_unreachable_store_fails():
    resolver = ConfigResolver(MemoryKV(), SheetOpener(), default_source_id="missing")
    with pytest.raises(ConfigLoadError):
        resolver.load()


def test_set_source_id_validates_before_persisting():
    kv = MemoryKV()
    resolver = ConfigResolver(kv, SheetOpener(FakeSheet("real")), default_source_id="")
    with pytest.raises(ConfigLoadError):
        resolver.set_source_id("bogus")
    assert SOURCE_OVERRIDE_KEY not in kv.data

    with pytest.raises(ValidationError):
        resolver.set_source_id("   ")


def test_set_source_id_persists_and_invalidates(clock):
    old = FakeSheet("old", rows=[["A", "folder-a", "", "", "", "", ""]])
    new = FakeSheet("new", rows=[["Z", "folder-z", "", "", "", "", ""]])
    kv = MemoryKV()
    resolver = ConfigResolver(kv, SheetOpener(old, new), default_source_id="old", clock=clock)
    assert resolver.load().names() == ["A"]

    resolver.set_source_id("new")

    assert kv.data[SOURCE_OVERRIDE_KEY] == "new"
    assert resolver.load().names() == ["Z"]

    resolver.clear_source_id()
    assert resolver.load().names() == ["A"]


def test_open_store_refuses_fallback_mode():
    resolver = ConfigResolver(MemoryKV(), SheetOpener(), fallback_container_id="only-folder")
    with pytest.raises(ConfigLoadError):
        resolver.open_store()


def test_name_lookup_is_case_sensitive(resolver):
    catalog = resolver.load()
    assert catalog.get("b") is None
    assert catalog.get("B") is not None
    assert catalog.find_casefold("b").name == "B"


class _WriteDuringRead(FakeSheet):
    """Sheet where a writer lands (and invalidates) while the first read is in flight."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.resolver = None

    def rows(self):
        snapshot = super().rows()
        if self.reads == 1:
            self.table.append(["New", "folder-new", "", "", "", "", ""])
            self.resolver.invalidate()
        return snapshot


def test_invalidate_during_load_is_not_lost(clock):
    sheet = _WriteDuringRead("main", rows=[["A", "folder-a", "", "", "", "", ""]])
    resolver = ConfigResolver(MemoryKV(), SheetOpener(sheet), default_source_id="main", clock=clock)
    sheet.resolver = resolver

    assert resolver.load().names() == ["A"]
    assert resolver.describe().cached is False
    assert resolver.load().names() == ["A", "New"]
    assert resolver.load().names() == ["A", "New"]
    assert sheet.reads == 2
