"""
Tests for relserve.releases.ingestion module.

Tests monotonic ingestion including:
- Accepting strictly newer versions
- Rejecting regressions and duplicates (with and without a refresh)
- New partitions
- Concurrent inserts into one partition
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import threading

import pytest

from relserve.exceptions import (
    DuplicateReleaseError,
    InvalidVersionError,
    VersionRegressionError,
)
from relserve.releases import IngestionGuard, ReleaseCache, VersionResolver


@pytest.fixture
def cache(store):
    cache = ReleaseCache(store)
    cache.refresh()
    return cache


@pytest.fixture
def guard(store, cache):
    return IngestionGuard(store, cache)


class TestInsert:
    """Tests for IngestionGuard.insert."""

    def test_insert_newer_version(self, guard, store, cache, make_release):
        """Test that a newer version is written with its preview flag."""
        store.insert_release("dev", "osx", make_release("0.5.0"))
        cache.refresh()

        stored = guard.insert("dev", "osx", make_release("0.6.0", preview=True))

        row = store.find_release("dev", "osx", "0.6.0")
        assert row is not None
        assert row.preview is True
        assert stored.version == "0.6.0"

    def test_insert_overrides_channel_and_platform(self, guard, store, make_release):
        """Test that the target partition comes from the arguments."""
        guard.insert("beta", "winx64", make_release("1.0.0"))

        assert store.find_release("beta", "winx64", "1.0.0") is not None
        assert store.find_release("dev", "osx", "1.0.0") is None

    def test_lower_version_rejected_against_cache(self, guard, store, cache, make_release):
        """Test that a version below the cached head is rejected."""
        store.insert_release("dev", "osx", make_release("0.5.0"))
        cache.refresh()

        with pytest.raises(VersionRegressionError):
            guard.insert("dev", "osx", make_release("0.4.0"))

        assert store.find_release("dev", "osx", "0.4.0") is None

    def test_equal_version_rejected(self, guard, store, cache, make_release):
        """Test that re-publishing the head version is rejected."""
        store.insert_release("dev", "osx", make_release("0.5.0"))
        cache.refresh()

        with pytest.raises(VersionRegressionError):
            guard.insert("dev", "osx", make_release("0.5.0", notes="again"))

        assert store.find_release("dev", "osx", "0.5.0").notes == "notes for 0.5.0"

    def test_second_insert_without_refresh_rejected(self, guard, store, make_release):
        """Test that two inserts in a row are ordered even before a refresh."""
        guard.insert("dev", "osx", make_release("0.6.0"))

        with pytest.raises(VersionRegressionError):
            guard.insert("dev", "osx", make_release("0.5.0"))
        with pytest.raises(VersionRegressionError):
            guard.insert("dev", "osx", make_release("0.6.0"))

        assert store.find_release("dev", "osx", "0.5.0") is None

    def test_prerelease_below_release_rejected(self, guard, make_release):
        """Test that precedence, not string order, decides regressions."""
        guard.insert("dev", "osx", make_release("1.0.0"))

        with pytest.raises(VersionRegressionError):
            guard.insert("dev", "osx", make_release("1.0.0-rc.1"))

        guard.insert("dev", "osx", make_release("1.0.10"))

    def test_invalid_version_rejected(self, guard, store, make_release):
        """Test that a malformed version never reaches the store."""
        with pytest.raises(InvalidVersionError):
            guard.insert("dev", "osx", make_release("six"))

        assert store.fetch_all_releases() == []

    def test_new_partition_accepts_any_version(self, guard, store, cache, make_release):
        """Test that an unknown partition has no baseline and resolves afterwards."""
        guard.insert("nightly", "linux64", make_release("0.0.1", preview=False))
        cache.refresh()

        result = VersionResolver(cache).resolve("nightly", "linux64", "0.0.0")
        assert result.version == "0.0.1"

    def test_partitions_are_independent(self, guard, store, cache, make_release):
        """Test that another partition's head is not a baseline."""
        store.insert_release("dev", "osx", make_release("2.0.0"))
        cache.refresh()

        guard.insert("dev", "winx64", make_release("1.0.0"))

        assert store.find_release("dev", "winx64", "1.0.0") is not None


class TestStoreUniqueness:
    """Tests for the store's own uniqueness constraint."""

    def test_duplicate_is_a_regression(self, store, make_release):
        """Test that stores report duplicates as DuplicateReleaseError."""
        store.insert_release("dev", "osx", make_release("0.5.0"))

        with pytest.raises(DuplicateReleaseError) as exc_info:
            store.insert_release("dev", "osx", make_release("0.5.0"))

        assert isinstance(exc_info.value, VersionRegressionError)


class TestConcurrentInsert:
    """Tests for inserts racing each other."""

    def test_racing_inserts_keep_partition_monotonic(self, guard, store, make_release):
        """Test that only the inserts that advance the head succeed."""
        barrier = threading.Barrier(5)

        def _insert(minor):
            barrier.wait()
            try:
                guard.insert("dev", "osx", make_release(f"0.{minor}.0"))
                return minor
            except VersionRegressionError:
                return None

        with ThreadPoolExecutor(max_workers=5) as pool:
            accepted = [m for m in pool.map(_insert, range(1, 6)) if m is not None]

        # Every accepted insert is stored once; rejected ones leave no row
        assert accepted
        stored = sorted(int(r.version.split(".")[1]) for r in store.fetch_all_releases())
        assert stored == sorted(accepted)
        assert len(set(stored)) == len(stored)
