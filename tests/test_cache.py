"""Tests for the content-addressed record cache."""

import json
import threading

import pytest

from engine.cache import DiskCache, MemoryCache
from engine.hashing import package_hash
from engine.models import PackageIdentity, PackageRecord


def _record(name="lodash", version="4.17.21", license_id="MIT", deps=None):
    return PackageRecord(
        name=name,
        version=version,
        registry="npm",
        display_name=f"{name}@{version}",
        license=license_id,
        url=f"https://www.npmjs.com/package/{name}",
        dependencies=deps or [],
        processed=True,
    )


class TestDiskCache:
    """Disk-backed cache behaviour."""

    def test_miss_returns_none(self, tmp_path):
        cache = DiskCache(tmp_path / "cache")
        assert cache.get("0" * 64) is None
        assert cache.stats()["misses"] == 1

    def test_put_then_get(self, tmp_path):
        cache = DiskCache(tmp_path / "cache")
        dep = PackageIdentity(name="dep", version="1.0.0")
        record = _record(deps=[dep])
        key = package_hash(record.identity)

        assert cache.put(key, record) is True
        loaded = cache.get(key)

        assert loaded.name == "lodash"
        assert loaded.license == "MIT"
        assert loaded.dependencies == [dep]
        assert (tmp_path / "cache" / f"{key}.json").is_file()

    def test_directory_created_lazily(self, tmp_path):
        target = tmp_path / "nested" / "cache"
        cache = DiskCache(target)
        assert not target.exists()
        cache.put("a" * 64, _record())
        assert target.is_dir()

    def test_ensure_dir_is_idempotent(self, tmp_path):
        cache = DiskCache(tmp_path / "cache")
        assert cache.ensure_dir()
        assert cache.ensure_dir()

    def test_get_resets_retry_marker(self, tmp_path):
        cache = DiskCache(tmp_path)
        record = _record(license_id="UNKNOWN")
        record.retry_for_unknown = True
        cache.put("b" * 64, record)
        assert cache.get("b" * 64).retry_for_unknown is False

    def test_put_replaces_whole_entry(self, tmp_path):
        cache = DiskCache(tmp_path)
        key = "c" * 64
        cache.put(key, _record(license_id="UNKNOWN"))
        cache.put(key, _record(license_id="MIT"))
        assert cache.get(key).license == "MIT"
        # no temporary files left behind
        assert [p.name for p in tmp_path.iterdir()] == [f"{key}.json"]

    def test_corrupt_entry_is_a_miss(self, tmp_path):
        cache = DiskCache(tmp_path)
        key = "d" * 64
        (tmp_path / f"{key}.json").write_text("{not json", encoding="utf-8")
        assert cache.get(key) is None
        assert cache.stats()["errors"] == 1

    def test_non_object_entry_is_a_miss(self, tmp_path):
        cache = DiskCache(tmp_path)
        key = "e" * 64
        (tmp_path / f"{key}.json").write_text(json.dumps([1, 2]), encoding="utf-8")
        assert cache.get(key) is None

    def test_malformed_dependencies_are_a_miss(self, tmp_path):
        cache = DiskCache(tmp_path)
        key = "a1" * 32
        payload = {"name": "A", "version": "1.0.0", "license": "MIT", "dependencies": 5}
        (tmp_path / f"{key}.json").write_text(json.dumps(payload), encoding="utf-8")
        assert cache.get(key) is None
        assert cache.stats()["errors"] == 1

    @pytest.mark.parametrize("key", ["", "../escape", ".hidden"])
    def test_invalid_keys_rejected(self, tmp_path, key):
        cache = DiskCache(tmp_path)
        assert cache.get(key) is None
        assert cache.put(key, _record()) is False

    def test_write_failure_reported(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x", encoding="utf-8")
        cache = DiskCache(blocker / "sub")
        assert cache.put("f" * 64, _record()) is False

    def test_concurrent_writers_leave_a_complete_entry(self, tmp_path):
        cache = DiskCache(tmp_path)
        key = "9" * 64
        licenses = ["MIT", "ISC", "Apache-2.0", "BSD-3-Clause"]

        def writer(license_id):
            for _ in range(20):
                cache.put(key, _record(license_id=license_id))

        threads = [threading.Thread(target=writer, args=(lic,)) for lic in licenses]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert cache.get(key).license in licenses
        assert not list(tmp_path.glob("*.tmp"))


class TestMemoryCache:
    """In-memory cache shares the disk cache contract."""

    def test_round_trip_copies(self):
        cache = MemoryCache()
        record = _record()
        cache.put("k", record)
        record.license = "changed"
        assert cache.get("k").license == "MIT"

    def test_initial_entries(self):
        cache = MemoryCache({"k": _record(license_id="ISC")})
        assert "k" in cache
        assert len(cache) == 1
        assert cache.get("k").license == "ISC"

    def test_miss(self):
        cache = MemoryCache()
        assert cache.get("nope") is None
        assert cache.stats() == {"hits": 0, "misses": 1, "writes": 0, "errors": 0}
