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

"""Preview to live promotion.

A release starts as a preview (offered only to clients that accept previews)
and is promoted once to general availability. Promotion is one-way:

    Preview --promote--> Live

Promoting a live release raises AlreadyPromotedError rather than silently
succeeding.

Both operations read the target row(s) and write inside one store
transaction while holding the (channel, version) partition lock, so two
concurrent promotions of the same release cannot both succeed and a failure
part way through promote_all_platforms leaves every row as it was.

The engine writes to the store only. Clients see the promotion after the
next cache refresh.

Example:
    ```python
    from relserve.releases import PromotionEngine

    engine = PromotionEngine(store)
    engine.promote("dev", "osx", "0.6.0", notes="foo the bar")
    cache.refresh()
    ```
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from relserve.exceptions import AlreadyPromotedError, ReleaseNotFoundError
from relserve.logging import Logger, get_global_logger
from relserve.releases.locks import PartitionLocks
from relserve.results import PromotionResult

if TYPE_CHECKING:
    from relserve.store.base import ReleaseStore


class PromotionEngine:
    """Moves releases from preview to live in the store."""

    def __init__(
        self,
        store: ReleaseStore,
        *,
        locks: PartitionLocks | None = None,
        logger: Logger | None = None,
    ) -> None:
        self.store = store
        self.locks = locks or PartitionLocks()
        self._logger = logger

    @property
    def logger(self) -> Logger:
        return self._logger or get_global_logger()

    def promote(
        self, channel: str, platform: str, version: str, notes: str | None = None
    ) -> PromotionResult:
        """Promote a single platform's release.

        Args:
            channel: Release channel.
            platform: Release platform.
            version: Version to promote.
            notes: Replacement notes, or None to keep the stored notes.

        Raises:
            ReleaseNotFoundError: If the release does not exist.
            AlreadyPromotedError: If the release is already live.
            StoreUnavailableError: If the store cannot be reached.

        """
        with self.locks.hold((channel, version)):
            with self.store.transaction() as txn:
                rows = txn.find_releases(channel, version, platform=platform)
                if not rows:
                    raise ReleaseNotFoundError(
                        f"No release {version} for {channel}:{platform}"
                    )
                if not rows[0].preview:
                    raise AlreadyPromotedError(
                        f"Release {version} for {channel}:{platform} is already promoted"
                    )
                txn.mark_promoted(channel, platform, version, notes)

        self.logger.verbose("PROMOTE", f"Promoted {channel}:{platform} {version}")
        return PromotionResult(
            channel=channel,
            version=version,
            platforms=(platform,),
            notes_replaced=notes is not None,
        )

    def promote_all_platforms(
        self, channel: str, version: str, notes: str | None = None
    ) -> PromotionResult:
        """Promote every platform's release of a version, all or nothing.

        Raises:
            ReleaseNotFoundError: If no platform has this version.
            AlreadyPromotedError: If any matching release is already live.
                No row is changed in that case.
            StoreUnavailableError: If the store cannot be reached. No row is
                changed in that case either.

        """
        with self.locks.hold((channel, version)):
            with self.store.transaction() as txn:
                rows = txn.find_releases(channel, version)
                if not rows:
                    raise ReleaseNotFoundError(f"No release {version} in channel {channel}")
                live = [row.platform for row in rows if not row.preview]
                if live:
                    raise AlreadyPromotedError(
                        f"Release {version} in channel {channel} is already promoted "
                        f"for: {', '.join(live)}"
                    )
                for row in rows:
                    txn.mark_promoted(channel, row.platform, version, notes)

        platforms = tuple(row.platform for row in rows)
        self.logger.verbose(
            "PROMOTE", f"Promoted {channel} {version} on {len(platforms)} platform(s)"
        )
        return PromotionResult(
            channel=channel,
            version=version,
            platforms=platforms,
            notes_replaced=notes is not None,
        )
