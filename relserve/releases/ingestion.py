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

"""Monotonic release ingestion.

Every new release must be strictly newer than everything already published
for its (channel, platform). The check runs twice:

1. Against the cache head, which rejects ordinary regressions without a
   store round-trip.
2. Against the store, inside the write transaction and under a partition
   lock. This catches releases inserted since the last refresh, so two
   inserts in a row without a refresh cannot both pass.

A release that passes is written with its preview flag exactly as given.
The cache is not refreshed here.
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

from relserve.exceptions import VersionRegressionError
from relserve.logging import Logger, get_global_logger
from relserve.releases.cache import ReleaseCache
from relserve.releases.locks import PartitionLocks
from relserve.releases.model import Release
from relserve.versioning import parse_version, version_key

if TYPE_CHECKING:
    from relserve.store.base import ReleaseStore


class IngestionGuard:
    """Validates and writes new releases."""

    def __init__(
        self,
        store: ReleaseStore,
        cache: ReleaseCache,
        *,
        locks: PartitionLocks | None = None,
        logger: Logger | None = None,
    ) -> None:
        self.store = store
        self.cache = cache
        self.locks = locks or PartitionLocks()
        self._logger = logger

    @property
    def logger(self) -> Logger:
        return self._logger or get_global_logger()

    def insert(self, channel: str, platform: str, release: Release) -> Release:
        """Insert a release into a partition.

        Args:
            channel: Target channel.
            platform: Target platform.
            release: The release; its channel and platform are overridden by
                the arguments.

        Returns:
            The release as stored.

        Raises:
            InvalidVersionError: If release.version is not a semantic version.
            VersionRegressionError: If the version is not newer than the
                partition head (DuplicateReleaseError when equal to a stored
                version).
            StoreUnavailableError: If the store cannot be reached.

        """
        new_key = parse_version(release.version).key
        release = replace(release, channel=channel, platform=platform)

        head = self.cache.newest(channel, platform)
        if head is not None and new_key <= version_key(head.version):
            raise VersionRegressionError(
                f"Version {release.version} is not newer than {head.version} "
                f"for {channel}:{platform}"
            )

        with self.locks.hold((channel, platform)):
            with self.store.transaction() as txn:
                stored = txn.partition_versions(channel, platform)
                newest_stored = max(stored, key=version_key, default=None)
                if newest_stored is not None and new_key <= version_key(newest_stored):
                    raise VersionRegressionError(
                        f"Version {release.version} is not newer than stored "
                        f"{newest_stored} for {channel}:{platform}"
                    )
                txn.insert_release(release)

        self.logger.verbose(
            "INGEST",
            f"Inserted {channel}:{platform} {release.version}"
            f"{' (preview)' if release.preview else ''}",
        )
        return release
