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

"""Service facade for relserve.

UpdateService wires the store, cache, resolver, promotion engine and
ingestion guard together and is the single entry point used by the HTTP
layer and the CLI.

Mutations (publish, promote) go to the store and are NOT visible to update
checks until refresh() is called. The facade never refreshes on its own;
the caller decides when (the HTTP admin routes expose an explicit refresh,
the CLI refreshes before reading).

Example:
    Programmatic usage:
        ```python
        from relserve.config import load_config
        from relserve.service import build_service

        service = build_service(load_config())
        service.publish("dev", "osx", "0.6.0", notes="Fixes", preview=True)
        service.promote("dev", "osx", "0.6.0", notes="foo the bar")
        service.refresh()

        result = service.check_for_update("dev", "osx", "0.5.0")
        print(result.version, result.notes)
        ```

"""

from __future__ import annotations

from datetime import UTC, datetime

from relserve.config import ServiceConfig
from relserve.logging import Logger, get_global_logger
from relserve.releases import (
    IngestionGuard,
    PartitionLocks,
    PromotionEngine,
    Release,
    ReleaseCache,
    VersionResolver,
)
from relserve.releases.cache import Snapshot
from relserve.results import PromotionResult, RefreshResult, ResolveResult
from relserve.store import ReleaseStore, open_store


class UpdateService:
    """Facade over the release core.

    Attributes:
        config: Effective configuration.
        store: Release store (system of record).
        cache: Release cache every read answers from.
        resolver: Update-check resolver.
        promotions: Preview to live promotion engine.
        ingestion: Monotonic insert guard.

    """

    def __init__(
        self,
        store: ReleaseStore,
        config: ServiceConfig,
        *,
        logger: Logger | None = None,
    ) -> None:
        self.config = config
        self.store = store
        self._logger = logger
        self.cache = ReleaseCache(store, logger=logger)
        self.resolver = VersionResolver(self.cache, logger=logger)
        self.promotions = PromotionEngine(
            store, locks=PartitionLocks(config.store_timeout), logger=logger
        )
        self.ingestion = IngestionGuard(
            store, self.cache, locks=PartitionLocks(config.store_timeout), logger=logger
        )

    @property
    def logger(self) -> Logger:
        return self._logger or get_global_logger()

    def refresh(self) -> RefreshResult:
        """Reload the cache from the store."""
        return self.cache.refresh()

    def snapshot(self) -> Snapshot:
        return self.cache.snapshot()

    def check_for_update(
        self,
        channel: str,
        platform: str,
        version: str,
        accept_preview: bool = False,
    ) -> ResolveResult:
        """Resolve the update for a client; returns a Release or NoUpdate."""
        return self.resolver.resolve(channel, platform, version, accept_preview)

    def publish(
        self,
        channel: str,
        platform: str,
        version: str,
        notes: str,
        *,
        preview: bool = False,
        url: str | None = None,
        name: str | None = None,
        pub_date: datetime | None = None,
    ) -> Release:
        """Publish a new release.

        The name defaults to "<product name> <version>" and pub_date to now.

        Raises:
            InvalidVersionError: If version is not a semantic version.
            VersionRegressionError: If version does not advance the partition.
            StoreUnavailableError: If the store cannot be reached.

        """
        release = Release(
            channel=channel,
            platform=platform,
            version=version,
            name=name or f"{self.config.product_name} {version}".strip(),
            notes=notes,
            pub_date=pub_date or datetime.now(UTC),
            preview=preview,
            url=url,
        )
        return self.ingestion.insert(channel, platform, release)

    def promote(
        self, channel: str, platform: str, version: str, notes: str | None = None
    ) -> PromotionResult:
        return self.promotions.promote(channel, platform, version, notes)

    def promote_all_platforms(
        self, channel: str, version: str, notes: str | None = None
    ) -> PromotionResult:
        return self.promotions.promote_all_platforms(channel, version, notes)

    def releases_for(self, channel: str, platform: str) -> tuple[Release, ...]:
        """Every cached release of one partition, newest first."""
        return self.cache.partition(channel, platform)

    def all_for_channel(self, channel: str) -> dict[str, tuple[Release, ...]]:
        return self.cache.all_for_channel(channel)

    def for_channel(self, channel: str) -> dict[str, Release]:
        return self.cache.for_channel(channel)

    def latest_for_channel(self, channel: str) -> dict[str, Release]:
        return self.cache.latest_for_channel(channel)

    def latest_download_url(self, channel: str, platform: str) -> str | None:
        """Installer URL for the newest live release of a partition.

        Returns:
            The expanded installer URL, or None when the partition has no
            live release or the platform has no installer template.
        """
        release = self.cache.newest_live(channel, platform)
        if release is None:
            return None
        return self.config.installer_url(channel, platform, release.version)


def build_service(config: ServiceConfig, *, logger: Logger | None = None) -> UpdateService:
    """Open the configured store and build an UpdateService on top of it.

    The cache starts empty; call refresh() before serving reads.
    """
    store = open_store(config.database_url, timeout=config.store_timeout, logger=logger)
    return UpdateService(store, config, logger=logger)
