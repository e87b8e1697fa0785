"""Tests for schema caching functionality."""

import os
import shutil
import tempfile
import time
from pathlib import Path

import pytest

from mydata_schema.cache import CacheEntry, SchemaCache, get_cache_instance, get_structure
from mydata_schema.exceptions import XsdStructureError
from mydata_schema.xsd_structure import StructureConfig, XsdStructure

FIXTURE_DIR = Path(__file__).resolve().parent / "fixtures" / "schema"


def _touch_later(path: Path) -> None:
    """Move the file's mtime forward so staleness checks see a change."""
    stat = path.stat()
    os.utime(path, (stat.st_atime, stat.st_mtime + 10))


@pytest.fixture
def schema_copy(tmp_path):
    """Copy the fixture schema (and its include) into a writable directory."""
    for name in ("sample_invoices.xsd", "sample_types.xsd"):
        shutil.copy(FIXTURE_DIR / name, tmp_path / name)
    return tmp_path / "sample_invoices.xsd"


def test_cache_entry_expiration():
    """Test cache entry TTL expiration."""
    entry = CacheEntry(data="test", ttl=0.1)

    assert not entry.is_expired()
    time.sleep(0.2)
    assert entry.is_expired()


def test_cache_entry_staleness():
    """Test cache staleness based on file modification time."""
    with tempfile.NamedTemporaryFile(mode="w", delete=False) as f:
        f.write("test content")
        path = Path(f.name)

    try:
        entry = CacheEntry(data="test", file_mtime=path.stat().st_mtime)
        assert not entry.is_stale(path)

        _touch_later(path)
        assert entry.is_stale(path)

        path.unlink()
        assert entry.is_stale(path)
    finally:
        if path.exists():
            path.unlink()


def test_schema_cache_basic_operations():
    """Test basic cache operations."""
    cache = SchemaCache(default_ttl=1.0)

    cache.set("test_key", "test_value")
    assert cache.get("test_key") == "test_value"

    assert cache.get("nonexistent") is None

    cache.invalidate("test_key")
    assert cache.get("test_key") is None

    cache.set("test_key", "test_value")
    cache.clear()
    assert cache.get("test_key") is None


def test_schema_cache_ttl():
    """Test cache TTL functionality."""
    cache = SchemaCache(default_ttl=0.1)

    cache.set("short_ttl", "value")
    assert cache.get("short_ttl") == "value"

    time.sleep(0.2)
    assert cache.get("short_ttl") is None


def test_schema_cache_file_tracking(tmp_path):
    """Test file modification tracking."""
    cache = SchemaCache()
    path = tmp_path / "tracked.xsd"
    path.write_text("original content")

    cache.set("file_key", "original_value", file_path=path)
    assert cache.get("file_key") == "original_value"
    assert not cache.check_file_staleness("file_key", path)

    _touch_later(path)
    assert cache.check_file_staleness("file_key", path)
    assert cache.check_file_staleness("missing_key", path)


def test_schema_cache_keys_are_deterministic():
    cache = SchemaCache()

    assert cache._make_key("xsd", "/a.xsd") == cache._make_key("xsd", "/a.xsd")
    assert cache._make_key("xsd", "/a.xsd") != cache._make_key("xsd", "/b.xsd")


def test_schema_cache_stats():
    cache = SchemaCache(default_ttl=60.0)
    cache.set("a", 1)

    assert cache.get_cache_stats() == {"backend": "local", "cache_size": 1, "default_ttl": 60.0}


def test_get_structure_is_cached(schema_copy):
    cache = SchemaCache()

    first = get_structure(schema_copy, cache=cache)
    second = get_structure(schema_copy, cache=cache)

    assert isinstance(first, XsdStructure)
    assert first is second


def test_get_structure_reparses_modified_file(schema_copy):
    cache = SchemaCache()
    first = get_structure(schema_copy, cache=cache)

    schema_copy.write_text(schema_copy.read_text().replace('name="uid"', 'name="mark"'))
    _touch_later(schema_copy)
    second = get_structure(schema_copy, cache=cache)

    assert second is not first
    names = [name for name, _, _ in second.resource_attributes("AadeBookInvoiceType", "complex_type")]
    assert names[0] == "mark"


def test_get_structure_force_refresh(schema_copy):
    cache = SchemaCache()
    first = get_structure(schema_copy, cache=cache)

    assert get_structure(schema_copy, cache=cache, force_refresh=True) is not first


def test_get_structure_config_is_part_of_key(schema_copy):
    cache = SchemaCache()

    default = get_structure(schema_copy, cache=cache)
    flat = get_structure(
        schema_copy, config=StructureConfig(detect_collection_wrappers=False), cache=cache
    )

    assert default is not flat
    assert flat.config.detect_collection_wrappers is False


def test_get_structure_from_environment(monkeypatch, schema_copy):
    monkeypatch.setenv("MYDATA_XSD_PATH", str(schema_copy))

    structure = get_structure(cache=SchemaCache())

    assert structure.xsd_path == schema_copy


def test_get_structure_without_path(monkeypatch):
    monkeypatch.delenv("MYDATA_XSD_PATH", raising=False)

    with pytest.raises(XsdStructureError, match="MYDATA_XSD_PATH"):
        get_structure(cache=SchemaCache())


def test_get_structure_missing_file(tmp_path):
    with pytest.raises(XsdStructureError, match="not found"):
        get_structure(tmp_path / "missing.xsd", cache=SchemaCache())


def test_get_cache_instance_defaults_to_local(monkeypatch):
    monkeypatch.delenv("MYDATA_CACHE_TYPE", raising=False)
    monkeypatch.delenv("REDIS_URL", raising=False)

    cache = get_cache_instance()

    assert isinstance(cache, SchemaCache)
    assert get_cache_instance() is cache


def test_schema_cache_zero_ttl_is_kept():
    cache = SchemaCache(default_ttl=60.0)

    cache.set("k", "v", ttl=0)

    assert cache._cache["k"].ttl == 0
