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

"""Release store contract.

The store is the system of record for releases. The core talks to it only
through the two protocols below, so the SQL backend and the in-memory
backend are interchangeable.

Read-modify-write sequences (promotion, ingestion) always run inside
``store.transaction()``: the yielded StoreTransaction sees a consistent view,
locks the rows it reads where the backend can, and commits on a clean exit.
Any exception inside the block rolls back every write made in it.

Example:
    Conditional write inside a transaction:
        ```python
        with store.transaction() as txn:
            rows = txn.find_releases("dev", "0.6.0")
            if all(r.preview for r in rows):
                for r in rows:
                    txn.mark_promoted("dev", r.platform, "0.6.0", notes=None)
        ```
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Protocol

from relserve.releases.model import Release


class StoreTransaction(Protocol):
    """Operations available inside a single store transaction."""

    def find_releases(
        self, channel: str, version: str, platform: str | None = None
    ) -> list[Release]:
        """Rows matching (channel, version), optionally one platform only.

        Backends that support row locks lock the returned rows until the
        transaction ends.
        """
        ...

    def partition_versions(self, channel: str, platform: str) -> list[str]:
        """All version strings stored for a partition (unordered)."""
        ...

    def mark_promoted(
        self, channel: str, platform: str, version: str, notes: str | None
    ) -> None:
        """Set preview=False; overwrite notes only when notes is not None."""
        ...

    def insert_release(self, release: Release) -> None:
        """Insert a row.

        Raises:
            DuplicateReleaseError: If (channel, platform, version) exists.
        """
        ...


class ReleaseStore(Protocol):
    """Persistent store adapter consumed by the cache, engine and guard."""

    def fetch_all_releases(self) -> list[Release]:
        """Every release, ordered by channel, platform."""
        ...

    def find_release(self, channel: str, platform: str, version: str) -> Release | None:
        ...

    def update_promotion(
        self, channel: str, platform: str, version: str, notes: str | None = None
    ) -> bool:
        """Unconditionally promote one row. Returns False if no row matched."""
        ...

    def update_promotion_all_platforms(
        self, channel: str, version: str, notes: str | None = None
    ) -> int:
        """Unconditionally promote every platform row. Returns rows changed."""
        ...

    def insert_release(self, channel: str, platform: str, release: Release) -> None:
        """Insert a release under (channel, platform).

        Raises:
            DuplicateReleaseError: On a uniqueness violation.
        """
        ...

    def transaction(self) -> AbstractContextManager[StoreTransaction]:
        ...

    def create_schema(self) -> None:
        """Create the releases table if it does not exist."""
        ...
