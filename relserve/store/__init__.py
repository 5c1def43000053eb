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

"""Release store backends for relserve.

The store is the system of record; the in-memory cache is rebuilt from it
on every refresh.

Available Backends:

    sql : SqlReleaseStore
        Any SQLAlchemy URL (``postgresql+psycopg://...``, ``sqlite:///...``).
    memory : MemoryReleaseStore
        ``memory://`` keeps rows in process memory only;
        ``json:///path/releases.json`` persists them to a JSON file.

Example:
    Open a store from a URL:

        from relserve.store import open_store

        store = open_store("sqlite:///relserve.db", timeout=5.0)
        store.create_schema()

"""

from __future__ import annotations

from pathlib import Path

from relserve.exceptions import ConfigError
from relserve.logging import Logger

from .base import ReleaseStore, StoreTransaction
from .memory import MemoryReleaseStore
from .sql import SqlReleaseStore

__all__ = [
    "MemoryReleaseStore",
    "ReleaseStore",
    "SqlReleaseStore",
    "StoreTransaction",
    "open_store",
]


def open_store(url: str, *, timeout: float = 5.0, logger: Logger | None = None) -> ReleaseStore:
    """Open the store backend named by a URL.

    Args:
        url: ``memory://``, ``json://<path>`` or any SQLAlchemy URL.
        timeout: Per-call bound in seconds.
        logger: Optional logger passed to the backend.

    Returns:
        A ReleaseStore implementation.

    Raises:
        ConfigError: If the URL is empty or the JSON path is missing.

    """
    if not url:
        raise ConfigError("No store URL configured (set RELSERVE_DATABASE_URL)")
    if url == "memory://":
        return MemoryReleaseStore(timeout=timeout, logger=logger)
    if url.startswith("json://"):
        path = url[len("json://") :]
        if not path:
            raise ConfigError(f"JSON store URL needs a file path: {url!r}")
        return MemoryReleaseStore(Path(path), timeout=timeout, logger=logger)
    return SqlReleaseStore(url, timeout=timeout, logger=logger)
