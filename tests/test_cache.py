"""
Tests for relserve.releases.cache module.

Tests the release cache including:
- Grouping and newest-first ordering on refresh
- Read-only snapshots
- Per-channel views
- Keeping the previous snapshot when a refresh fails
"""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from relserve.exceptions import MalformedReleaseError, StoreUnavailableError
from relserve.releases import ReleaseCache
from relserve.store import MemoryReleaseStore


def _seed(store, *releases):
    for release in releases:
        store.insert_release(release.channel, release.platform, release)


class TestRefresh:
    """Tests for loading the cache from the store."""

    def test_partitions_sorted_newest_first(self, store, make_release):
        """Test that every partition is strictly descending after refresh."""
        _seed(
            store,
            make_release("0.9.0"),
            make_release("0.10.0"),
            make_release("0.2.0"),
            make_release("0.10.1-beta.1", preview=True),
        )
        cache = ReleaseCache(store)

        result = cache.refresh()

        versions = [r.version for r in cache.partition("dev", "osx")]
        assert versions == ["0.10.1-beta.1", "0.10.0", "0.9.0", "0.2.0"]
        assert result.release_count == 4
        assert result.partition_count == 1
        assert cache.refreshed_at == result.refreshed_at

    def test_groups_by_channel_and_platform(self, store, make_release):
        """Test that releases are grouped per (channel, platform)."""
        _seed(
            store,
            make_release("0.5.0"),
            make_release("0.5.0", platform="winx64"),
            make_release("0.4.0", channel="beta", platform="winia32"),
        )
        cache = ReleaseCache(store)
        cache.refresh()

        assert set(cache.snapshot()) == {
            ("dev", "osx"),
            ("dev", "winx64"),
            ("beta", "winia32"),
        }

    def test_refresh_picks_up_new_rows(self, store, make_release):
        """Test that rows written after a refresh appear only after the next."""
        cache = ReleaseCache(store)
        cache.refresh()
        store.insert_release("dev", "osx", make_release("0.5.0"))

        assert cache.newest("dev", "osx") is None

        cache.refresh()
        assert cache.newest("dev", "osx").version == "0.5.0"

    def test_unknown_partition_is_empty(self, store):
        """Test that unknown partitions read as empty, not as errors."""
        cache = ReleaseCache(store)
        cache.refresh()

        assert cache.partition("nightly", "osx") == ()
        assert cache.newest("nightly", "osx") is None
        assert cache.for_channel("nightly") == {}


class TestSnapshot:
    """Tests for snapshot immutability."""

    def test_snapshot_is_read_only(self, memory_store, make_release):
        """Test that callers cannot mutate the snapshot."""
        memory_store.insert_release("dev", "osx", make_release("0.5.0"))
        cache = ReleaseCache(memory_store)
        cache.refresh()
        snapshot = cache.snapshot()

        with pytest.raises(TypeError):
            snapshot[("dev", "osx")] = ()  # type: ignore[index]

        assert isinstance(snapshot[("dev", "osx")], tuple)

    def test_old_snapshot_unchanged_by_refresh(self, memory_store, make_release):
        """Test that a reader holding a snapshot keeps a consistent view."""
        memory_store.insert_release("dev", "osx", make_release("0.5.0"))
        cache = ReleaseCache(memory_store)
        cache.refresh()
        before = cache.snapshot()

        memory_store.insert_release("dev", "osx", make_release("0.6.0"))
        cache.refresh()

        assert [r.version for r in before[("dev", "osx")]] == ["0.5.0"]
        assert [r.version for r in cache.partition("dev", "osx")] == ["0.6.0", "0.5.0"]


class TestChannelViews:
    """Tests for per-channel views."""

    @pytest.fixture
    def cache(self, memory_store, make_release):
        for release in [
            make_release("0.4.0"),
            make_release("0.5.0"),
            make_release("0.6.0", preview=True),
            make_release("0.5.0", platform="winx64"),
            make_release("0.3.0", channel="beta"),
        ]:
            memory_store.insert_release(release.channel, release.platform, release)
        cache = ReleaseCache(memory_store)
        cache.refresh()
        return cache

    def test_for_channel_newest_per_platform(self, cache):
        """Test that for_channel returns the head of each platform."""
        heads = cache.for_channel("dev")

        assert {p: r.version for p, r in heads.items()} == {
            "osx": "0.6.0",
            "winx64": "0.5.0",
        }

    def test_latest_for_channel_includes_previews(self, cache):
        """Test that latest_for_channel does not filter previews."""
        latest = cache.latest_for_channel("dev")

        assert latest["osx"].version == "0.6.0"
        assert latest["osx"].preview is True

    def test_all_for_channel_full_sequences(self, cache):
        """Test that all_for_channel returns every release per platform."""
        everything = cache.all_for_channel("dev")

        assert [r.version for r in everything["osx"]] == ["0.6.0", "0.5.0", "0.4.0"]
        assert [r.version for r in everything["winx64"]] == ["0.5.0"]
        assert set(everything) == {"osx", "winx64"}

    def test_newest_live_skips_previews(self, cache):
        """Test that newest_live ignores preview releases."""
        assert cache.newest_live("dev", "osx").version == "0.5.0"


class TestRefreshFailure:
    """Tests for refresh failures."""

    def test_store_unavailable_keeps_previous_snapshot(self, make_release):
        """Test that an unreachable store leaves the cache untouched."""
        store = MemoryReleaseStore()
        store.insert_release("dev", "osx", make_release("0.5.0"))
        cache = ReleaseCache(store)
        cache.refresh()
        before = cache.snapshot()
        refreshed_at = cache.refreshed_at

        def _down():
            raise StoreUnavailableError("connection refused")

        store.fetch_all_releases = _down  # type: ignore[method-assign]

        with pytest.raises(StoreUnavailableError):
            cache.refresh()

        assert cache.snapshot() is before
        assert cache.refreshed_at == refreshed_at

    def test_malformed_row_keeps_previous_snapshot(self, sql_store, make_release):
        """Test that a row with an invalid version aborts the refresh."""
        from relserve.store.sql import releases_table

        sql_store.insert_release("dev", "osx", make_release("0.5.0"))
        cache = ReleaseCache(sql_store)
        cache.refresh()

        with sql_store.engine.begin() as conn:
            conn.execute(
                releases_table.insert().values(
                    channel="dev",
                    platform="osx",
                    version="not-a-version",
                    name="Broken",
                    notes="",
                    pub_date=datetime(2025, 1, 1, tzinfo=UTC),
                    preview=False,
                    url=None,
                )
            )

        with pytest.raises(MalformedReleaseError):
            cache.refresh()

        assert [r.version for r in cache.partition("dev", "osx")] == ["0.5.0"]
