# Copyright 2025 Roger Cibrian
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""In-memory release cache.

Holds every release grouped by (channel, platform), each group sorted
newest first by semantic-version precedence. All read paths (update checks,
listing endpoints, the ingestion baseline) use this cache and never query
the store.

A refresh builds a complete new snapshot off to the side and installs it
with a single reference assignment. Readers therefore see either the old
snapshot or the new one, never a mix, and need no locking. If building the
new snapshot fails, the old one stays in place and the error propagates.

Example:
    ```python
    from relserve.releases import ReleaseCache

    cache = ReleaseCache(store)
    cache.refresh()
    head = cache.newest("dev", "osx")
    per_platform = cache.latest_for_channel("dev")
    ```
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Mapping
from datetime import UTC, datetime
from types import MappingProxyType
from typing import TYPE_CHECKING

from relserve.logging import Logger, get_global_logger
from relserve.releases.model import Partition, Release
from relserve.results import RefreshResult
from relserve.versioning import sort_newest_first

if TYPE_CHECKING:
    from relserve.store.base import ReleaseStore

Snapshot = Mapping[Partition, tuple[Release, ...]]

_EMPTY: Snapshot = MappingProxyType({})


def build_snapshot(releases: list[Release]) -> Snapshot:
    """Group releases by partition and sort each group newest first.

    Raises:
        InvalidVersionError: If a release carries an invalid version.
    """
    grouped: dict[Partition, list[Release]] = defaultdict(list)
    for release in releases:
        grouped[release.partition].append(release)
    return MappingProxyType(
        {
            partition: tuple(sort_newest_first(group, lambda r: r.version))
            for partition, group in grouped.items()
        }
    )


class ReleaseCache:
    """Immutable-snapshot cache of all releases.

    Attributes:
        store: Store the cache is refreshed from.
        refreshed_at: When the current snapshot was installed (None before
            the first successful refresh).

    """

    def __init__(self, store: ReleaseStore, *, logger: Logger | None = None) -> None:
        self.store = store
        self.refreshed_at: datetime | None = None
        self._snapshot: Snapshot = _EMPTY
        self._logger = logger

    @property
    def logger(self) -> Logger:
        return self._logger or get_global_logger()

    def refresh(self) -> RefreshResult:
        """Reload every release from the store and swap in a new snapshot.

        Returns:
            Counts for the installed snapshot.

        Raises:
            StoreUnavailableError: If the store cannot be reached.
            MalformedReleaseError: If a stored row is invalid.

        Note:
            Concurrent refreshes are allowed; the last one to finish wins.

        """
        try:
            snapshot = build_snapshot(self.store.fetch_all_releases())
        except Exception as err:
            self.logger.warn("CACHE", f"Refresh failed, keeping previous snapshot: {err}")
            raise

        refreshed_at = datetime.now(UTC)
        self._snapshot = snapshot
        self.refreshed_at = refreshed_at

        release_count = sum(len(group) for group in snapshot.values())
        self.logger.verbose(
            "CACHE",
            f"Loaded {release_count} release(s) in {len(snapshot)} partition(s)",
        )
        return RefreshResult(
            release_count=release_count,
            partition_count=len(snapshot),
            refreshed_at=refreshed_at,
        )

    def snapshot(self) -> Snapshot:
        """The current snapshot (read-only mapping of tuples)."""
        return self._snapshot

    def partition(self, channel: str, platform: str) -> tuple[Release, ...]:
        """Releases of one partition, newest first (empty if unknown)."""
        return self._snapshot.get((channel, platform), ())

    def newest(self, channel: str, platform: str) -> Release | None:
        """Head of a partition, regardless of preview state."""
        releases = self.partition(channel, platform)
        return releases[0] if releases else None

    def newest_live(self, channel: str, platform: str) -> Release | None:
        """Newest release of a partition that is not a preview."""
        for release in self.partition(channel, platform):
            if not release.preview:
                return release
        return None

    def all_for_channel(self, channel: str) -> dict[str, tuple[Release, ...]]:
        """Every platform's full release sequence for a channel."""
        snapshot = self._snapshot
        return {
            platform: releases
            for (c, platform), releases in snapshot.items()
            if c == channel
        }

    def for_channel(self, channel: str) -> dict[str, Release]:
        """Newest release per platform for a channel.

        Platforms without releases are simply absent.
        """
        snapshot = self._snapshot
        return {
            platform: releases[0]
            for (c, platform), releases in snapshot.items()
            if c == channel and releases
        }

    def latest_for_channel(self, channel: str) -> dict[str, Release]:
        """Newest release per platform, previews included."""
        return self.for_channel(channel)
