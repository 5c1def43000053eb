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

"""SQLAlchemy release store.

Persists releases in a single relational table:

    releases(channel, platform, version, name, pub_date, notes, preview, url)
    primary key (channel, platform, version)

Any database SQLAlchemy speaks works; PostgreSQL is the production target
and SQLite is used for development and tests.

Key Features:

- Transactions via ``engine.begin()``: commit on success, rollback on error
- ``SELECT ... FOR UPDATE`` on rows read inside a transaction (ignored by
  SQLite, which serializes writers instead)
- Every call bounded by the configured timeout: connect timeout and
  statement_timeout on PostgreSQL, busy timeout on SQLite, pool checkout
  timeout elsewhere
- Driver errors mapped onto the relserve hierarchy: connectivity and
  timeouts become StoreUnavailableError, uniqueness violations become
  DuplicateReleaseError

Example:
    ```python
    from relserve.store.sql import SqlReleaseStore

    store = SqlReleaseStore("postgresql+psycopg://relserve@db/relserve", timeout=3.0)
    store.create_schema()
    releases = store.fetch_all_releases()
    ```
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import UTC
import math
from typing import Any

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
    create_engine,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.pool import StaticPool

from relserve.exceptions import DuplicateReleaseError, StoreUnavailableError
from relserve.logging import Logger, get_global_logger
from relserve.releases.model import Release

metadata = MetaData()

releases_table = Table(
    "releases",
    metadata,
    Column("channel", String(64), nullable=False),
    Column("platform", String(64), nullable=False),
    Column("version", String(128), nullable=False),
    Column("name", String(255), nullable=False),
    Column("pub_date", DateTime(timezone=True), nullable=False),
    Column("notes", Text, nullable=False),
    Column("preview", Boolean, nullable=False),
    Column("url", Text, nullable=True),
    PrimaryKeyConstraint("channel", "platform", "version", name="releases_pkey"),
)


def create_store_engine(url: str, timeout: float) -> Engine:
    """Create an engine whose connections honour the store timeout.

    Args:
        url: SQLAlchemy database URL.
        timeout: Upper bound, in seconds, for connecting and for each
            statement.

    Returns:
        A configured Engine.

    """
    parsed = make_url(url)
    backend = parsed.get_backend_name()
    kwargs: dict[str, Any] = {"pool_pre_ping": True}

    if backend == "sqlite":
        kwargs["connect_args"] = {"timeout": timeout, "check_same_thread": False}
        if parsed.database in (None, "", ":memory:"):
            # One shared connection, otherwise every thread sees its own empty database
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_timeout"] = timeout
        if backend == "postgresql":
            kwargs["connect_args"] = {
                "connect_timeout": max(1, math.ceil(timeout)),
                "options": f"-c statement_timeout={int(timeout * 1000)}",
            }

    return create_engine(url, **kwargs)


def _release_values(release: Release) -> dict[str, Any]:
    return {
        "channel": release.channel,
        "platform": release.platform,
        "version": release.version,
        "name": release.name,
        "pub_date": release.pub_date.astimezone(UTC),
        "notes": release.notes,
        "preview": release.preview,
        "url": release.url,
    }


class _SqlTransaction:
    """StoreTransaction bound to one open connection."""

    def __init__(self, conn: Connection, logger: Logger) -> None:
        self._conn = conn
        self._logger = logger

    def find_releases(
        self, channel: str, version: str, platform: str | None = None
    ) -> list[Release]:
        stmt = select(releases_table).where(
            releases_table.c.channel == channel,
            releases_table.c.version == version,
        )
        if platform is not None:
            stmt = stmt.where(releases_table.c.platform == platform)
        stmt = stmt.order_by(releases_table.c.platform).with_for_update()
        rows = self._conn.execute(stmt).mappings().all()
        return [Release.from_row(row) for row in rows]

    def partition_versions(self, channel: str, platform: str) -> list[str]:
        stmt = (
            select(releases_table.c.version)
            .where(
                releases_table.c.channel == channel,
                releases_table.c.platform == platform,
            )
            .with_for_update()
        )
        return list(self._conn.execute(stmt).scalars().all())

    def mark_promoted(
        self, channel: str, platform: str, version: str, notes: str | None
    ) -> None:
        values: dict[str, Any] = {"preview": False}
        if notes is not None:
            values["notes"] = notes
        self._conn.execute(
            update(releases_table)
            .where(
                releases_table.c.channel == channel,
                releases_table.c.platform == platform,
                releases_table.c.version == version,
            )
            .values(**values)
        )
        self._logger.debug("STORE", f"Promoted row {channel}:{platform}:{version}")

    def insert_release(self, release: Release) -> None:
        try:
            self._conn.execute(insert(releases_table).values(**_release_values(release)))
        except IntegrityError as err:
            raise DuplicateReleaseError(
                f"Release {release.version} already exists for "
                f"{release.channel}:{release.platform}"
            ) from err
        self._logger.debug(
            "STORE",
            f"Inserted row {release.channel}:{release.platform}:{release.version}",
        )


class SqlReleaseStore:
    """Release store backed by a SQLAlchemy engine.

    Attributes:
        url: Database URL the store was created with.
        timeout: Per-call bound in seconds.
        engine: The SQLAlchemy engine.

    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 5.0,
        engine: Engine | None = None,
        logger: Logger | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.engine = engine or create_store_engine(url, timeout)
        self._logger = logger

    @property
    def logger(self) -> Logger:
        return self._logger or get_global_logger()

    @contextmanager
    def _unavailable_on_driver_errors(self) -> Iterator[None]:
        """Translate connectivity and timeout failures to StoreUnavailableError."""
        try:
            yield
        except (OperationalError, InterfaceError, PoolTimeoutError) as err:
            self.logger.warn("STORE", f"Store unavailable: {err}")
            raise StoreUnavailableError(f"Release store unavailable: {err}") from err
        except DBAPIError as err:
            if err.connection_invalidated:
                raise StoreUnavailableError(f"Release store connection lost: {err}") from err
            raise

    @contextmanager
    def transaction(self) -> Iterator[_SqlTransaction]:
        with self._unavailable_on_driver_errors():
            with self.engine.begin() as conn:
                yield _SqlTransaction(conn, self.logger)

    def create_schema(self) -> None:
        with self._unavailable_on_driver_errors():
            metadata.create_all(self.engine)
        self.logger.verbose("STORE", "Ensured table 'releases' exists")

    def fetch_all_releases(self) -> list[Release]:
        stmt = select(releases_table).order_by(
            releases_table.c.channel, releases_table.c.platform
        )
        with self._unavailable_on_driver_errors():
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).mappings().all()
        self.logger.debug("STORE", f"Fetched {len(rows)} release row(s)")
        return [Release.from_row(row) for row in rows]

    def find_release(self, channel: str, platform: str, version: str) -> Release | None:
        stmt = select(releases_table).where(
            releases_table.c.channel == channel,
            releases_table.c.platform == platform,
            releases_table.c.version == version,
        )
        with self._unavailable_on_driver_errors():
            with self.engine.connect() as conn:
                row = conn.execute(stmt).mappings().first()
        return Release.from_row(row) if row is not None else None

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

    def dispose(self) -> None:
        """Close pooled connections."""
        self.engine.dispose()
