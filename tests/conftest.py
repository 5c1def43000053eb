"""
Pytest configuration and shared fixtures for relserve tests.

This module provides reusable fixtures and test utilities used across
the test suite: a release factory, SQLite and in-memory stores, a service
wired to them, and a store wrapper that fails on demand.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest

from relserve.config import ServiceConfig, load_config
from relserve.exceptions import StoreUnavailableError
from relserve.releases import Release
from relserve.service import UpdateService
from relserve.store import MemoryReleaseStore, SqlReleaseStore

TEST_TOKEN = "test-token"

ReleaseFactory = Callable[..., Release]


@pytest.fixture
def make_release() -> ReleaseFactory:
    """
    Provide a factory for Release objects.

    Defaults to a live dev:osx release whose notes name its version.
    """

    def _make(
        version: str,
        *,
        channel: str = "dev",
        platform: str = "osx",
        notes: str | None = None,
        preview: bool = False,
        url: str | None = None,
        pub_date: datetime | None = None,
    ) -> Release:
        return Release(
            channel=channel,
            platform=platform,
            version=version,
            name=f"Brave {version}",
            notes=notes if notes is not None else f"notes for {version}",
            pub_date=pub_date or datetime(2025, 1, 1, 12, 0, tzinfo=UTC),
            preview=preview,
            url=url,
        )

    return _make


@pytest.fixture
def sql_store(tmp_path: Path) -> Iterator[SqlReleaseStore]:
    """Provide a SQLite-file store with the releases table created."""
    store = SqlReleaseStore(f"sqlite:///{tmp_path / 'releases.db'}", timeout=5.0)
    store.create_schema()
    yield store
    store.dispose()


@pytest.fixture
def memory_store() -> MemoryReleaseStore:
    """Provide a process-memory store."""
    return MemoryReleaseStore()


@pytest.fixture(params=["sql", "memory"])
def store(request: pytest.FixtureRequest, tmp_path: Path) -> Iterator[Any]:
    """Provide each store backend in turn."""
    if request.param == "sql":
        sql = SqlReleaseStore(f"sqlite:///{tmp_path / 'releases.db'}", timeout=5.0)
        sql.create_schema()
        yield sql
        sql.dispose()
    else:
        yield MemoryReleaseStore()


@pytest.fixture
def service_config() -> ServiceConfig:
    """Provide the default configuration with a test admin token."""
    config = load_config(environ={}, load_env_file=False)
    return replace(config, database_url="memory://", api_token=TEST_TOKEN)


@pytest.fixture
def service(store: Any, service_config: ServiceConfig) -> UpdateService:
    """Provide an UpdateService over each store backend."""
    return UpdateService(store, service_config)


class FailingTransaction:
    """Wraps a StoreTransaction and fails the Nth mark_promoted call."""

    def __init__(self, inner: Any, fail_on_call: int) -> None:
        self.inner = inner
        self.fail_on_call = fail_on_call
        self.calls = 0

    def mark_promoted(self, *args: Any, **kwargs: Any) -> None:
        self.calls += 1
        if self.calls == self.fail_on_call:
            raise StoreUnavailableError("injected failure")
        self.inner.mark_promoted(*args, **kwargs)

    def __getattr__(self, name: str) -> Any:
        return getattr(self.inner, name)


class FailingStore:
    """
    Store wrapper whose transactions fail part way through promotion.

    Everything except transaction() is delegated to the wrapped store.
    """

    def __init__(self, inner: Any, fail_on_call: int = 2) -> None:
        self.inner = inner
        self.fail_on_call = fail_on_call

    @contextmanager
    def transaction(self) -> Iterator[FailingTransaction]:
        with self.inner.transaction() as txn:
            yield FailingTransaction(txn, self.fail_on_call)

    def __getattr__(self, name: str) -> Any:
        return getattr(self.inner, name)


class UnreachableStore:
    """Store whose every call fails as if the database were down."""

    def _fail(self, *args: Any, **kwargs: Any) -> Any:
        raise StoreUnavailableError("connection refused")

    fetch_all_releases = _fail
    find_release = _fail
    update_promotion = _fail
    update_promotion_all_platforms = _fail
    insert_release = _fail
    transaction = _fail
    create_schema = _fail


@pytest.fixture
def failing_store() -> Callable[..., FailingStore]:
    """Provide a factory wrapping a store so its Nth promotion write fails."""
    return FailingStore


@pytest.fixture
def unreachable_store() -> UnreachableStore:
    """Provide a store that is always down."""
    return UnreachableStore()
