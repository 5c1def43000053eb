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

"""Keyed in-process locks.

Serializes check-then-write sequences that touch the same partition while
letting unrelated partitions proceed in parallel. Used together with store
transactions: the lock covers backends without row locking.
"""

from __future__ import annotations

from collections.abc import Hashable, Iterator
from contextlib import contextmanager
import threading

from relserve.exceptions import StoreUnavailableError


class PartitionLocks:
    """A lazily created threading.Lock per key."""

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}

    def _lock_for(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        """Hold the lock for ``key`` for the duration of the block.

        Raises:
            StoreUnavailableError: If the lock is not acquired within the
                timeout (a writer on the same partition is stuck).
        """
        lock = self._lock_for(key)
        acquired = lock.acquire(timeout=self.timeout) if self.timeout else lock.acquire()
        if not acquired:
            raise StoreUnavailableError(
                f"Timed out after {self.timeout}s waiting for partition {key}"
            )
        try:
            yield
        finally:
            lock.release()
