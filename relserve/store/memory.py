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

"""In-process release store with optional JSON persistence.

Keeps rows in a dict keyed by (channel, platform, version). When a state
file is given, the rows are loaded from it on start-up and written back
after every committed transaction, so a single-node deployment (or a demo)
can run without a database.

Transactions hold the store lock for their whole duration and work on a
staged copy of the rows; the copy replaces the live rows only when the
block exits cleanly. An exception anywhere in the block discards the copy,
which gives the same all-or-nothing behaviour as a database transaction.

State File Format:

    {
      "metadata": {"relserve_version": "0.3.0", "schema_version": "1",
                   "last_updated": "2025-01-01T00:00:00+00:00"},
      "releases": [
        {"channel": "dev", "platform": "osx", "version": "0.5.0", ...}
      ]
    }

Example:
    ```python
    from pathlib import Path
    from relserve.store.memory import MemoryReleaseStore

    store = MemoryReleaseStore(Path("state/releases.json"))
    store.insert_release("dev", "osx", release)
    ```
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import UTC, datetime
import json
import os
from pathlib import Path
import threading
from typing import Any

from relserve import __version__
from relserve.exceptions import (
    DuplicateReleaseError,
    MalformedReleaseError,
    StoreUnavailableError,
)
from relserve.logging import Logger, get_global_logger
from relserve.releases.model import Release

RowKey = tuple[str, str, str]


class _MemoryTransaction:
    """StoreTransaction over a staged copy of the rows."""

    def __init__(self, rows: dict[RowKey, Release]) -> None:
        self.rows = rows

    def find_releases(
        self, channel: str, version: str, platform: str | None = None
    ) -> list[Release]:
        found = [
            r
            for (c, p, v), r in self.rows.items()
            if c == channel and v == version and (platform is None or p == platform)
        ]
        return sorted(found, key=lambda r: r.platform)

    def partition_versions(self, channel: str, platform: str) -> list[str]:
        return [v for (c, p, v) in self.rows if c == channel and p == platform]

    def mark_promoted(
        self, channel: str, platform: str, version: str, notes: str | None
    ) -> None:
        key = (channel, platform, version)
        current = self.rows.get(key)
        if current is None:
            return
        changes: dict[str, Any] = {"preview": False}
        if notes is not None:
            changes["notes"] = notes
        self.rows[key] = replace(current, **changes)

    def insert_release(self, release: Release) -> None:
        key = (release.channel, release.platform, release.version)
        if key in self.rows:
            raise DuplicateReleaseError(
                f"Release {release.version} already exists for "
                f"{release.channel}:{release.platform}"
            )
        self.rows[key] = release


class MemoryReleaseStore:
    """Release store held in process memory.

    Attributes:
        state_file: JSON file the rows are persisted to, or None.
        timeout: Seconds to wait for the store lock before giving up.

    """

    def __init__(
        self,
        state_file: Path | None = None,
        *,
        timeout: float = 5.0,
        logger: Logger | None = None,
    ) -> None:
        self.state_file = state_file
        self.timeout = timeout
        self._logger = logger
        self._lock = threading.RLock()
        self._rows: dict[RowKey, Release] = {}
        if state_file is not None and state_file.exists():
            with self._unavailable_on_io_errors():
                releases = load_releases(state_file)
            self._rows = {(r.channel, r.platform, r.version): r for r in releases}

    @property
    def logger(self) -> Logger:
        return self._logger or get_global_logger()

    @contextmanager
    def _locked(self) -> Iterator[None]:
        if not self._lock.acquire(timeout=self.timeout):
            raise StoreUnavailableError(
                f"Timed out after {self.timeout}s waiting for the release store"
            )
        try:
            yield
        finally:
            self._lock.release()

    @contextmanager
    def _unavailable_on_io_errors(self) -> Iterator[None]:
        """Translate state-file I/O failures to StoreUnavailableError."""
        try:
            yield
        except OSError as err:
            self.logger.warn("STORE", f"State file unavailable: {err}")
            raise StoreUnavailableError(
                f"Release state file {self.state_file} unavailable: {err}"
            ) from err

    @contextmanager
    def transaction(self) -> Iterator[_MemoryTransaction]:
        with self._locked():
            txn = _MemoryTransaction(dict(self._rows))
            yield txn
            if self.state_file is not None:
                with self._unavailable_on_io_errors():
                    save_releases(list(txn.rows.values()), self.state_file)
            self._rows = txn.rows

    def create_schema(self) -> None:
        if self.state_file is not None and not self.state_file.exists():
            with self._locked(), self._unavailable_on_io_errors():
                save_releases([], self.state_file)
            self.logger.verbose("STORE", f"Created state file {self.state_file}")

    def fetch_all_releases(self) -> list[Release]:
        with self._locked():
            rows = list(self._rows.values())
        return sorted(rows, key=lambda r: (r.channel, r.platform))

    def find_release(self, channel: str, platform: str, version: str) -> Release | None:
        with self._locked():
            return self._rows.get((channel, platform, version))

    def update_promotion(
        self, channel: str, platform: str, version: str, notes: str | None = None
    ) -> bool:
        with self.transaction() as txn:
            if not txn.find_releases(channel, version, platform=platform):
                return False
            txn.mark_promoted(channel, platform, version, notes)
        return True

    def update_promotion_all_platforms(
        self, channel: str, version: str, notes: str | None = None
    ) -> int:
        with self.transaction() as txn:
            rows = txn.find_releases(channel, version)
            for row in rows:
                txn.mark_promoted(channel, row.platform, version, notes)
        return len(rows)

    def insert_release(self, channel: str, platform: str, release: Release) -> None:
        with self.transaction() as txn:
            txn.insert_release(replace(release, channel=channel, platform=platform))


def load_releases(state_file: Path) -> list[Release]:
    """Load releases from a JSON state file.

    Raises:
        FileNotFoundError: If the state file doesn't exist.
        MalformedReleaseError: If the file is not valid JSON or a row is bad.

    """
    try:
        with open(state_file, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as err:
        raise MalformedReleaseError(f"Corrupted state file {state_file}: {err}") from err
    return [Release.from_row(row) for row in data.get("releases", [])]


def save_releases(releases: list[Release], state_file: Path) -> None:
    """Save releases to a JSON state file with pretty-printing.

    Uses 2-space indentation and sorted keys for consistent diffs, and
    creates parent directories if needed. The file is written next to the
    target and renamed over it, so readers never see a partial file.

    Raises:
        OSError: If the directory or file cannot be written.

    """
    state = {
        "metadata": {
            "relserve_version": __version__,
            "schema_version": "1",
            "last_updated": datetime.now(UTC).isoformat(),
        },
        "releases": [
            {
                "channel": r.channel,
                "platform": r.platform,
                "version": r.version,
                "name": r.name,
                "notes": r.notes,
                "pub_date": r.pub_date.isoformat(),
                "preview": r.preview,
                "url": r.url,
            }
            for r in sorted(releases, key=lambda r: (r.channel, r.platform, r.version))
        ],
    }
    state_file.parent.mkdir(parents=True, exist_ok=True)
    tmp_file = state_file.with_name(f".{state_file.name}.tmp")
    try:
        with open(tmp_file, "w", encoding="utf-8") as f:
            json.dump(state, f, indent=2, sort_keys=True)
            f.write("\n")  # Trailing newline for git
        os.replace(tmp_file, state_file)
    finally:
        tmp_file.unlink(missing_ok=True)
