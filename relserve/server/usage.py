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

"""Usage records for update checks.

Browsers send activity flags (``daily``, ``weekly``, ``monthly``, ``first``)
as query parameters on the update-check URL. When ``daily`` is present the
HTTP layer builds a UsageRecord and hands it to a UsageRecorder. The default
recorder only logs; deployments that aggregate usage supply their own.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

from relserve.logging import Logger, get_global_logger


@dataclass(frozen=True)
class UsageRecord:
    """One client's activity ping, attached to an update check."""

    channel: str
    platform: str
    version: str
    daily: bool
    weekly: bool
    monthly: bool
    first: bool


class UsageRecorder(Protocol):
    def record(self, usage: UsageRecord) -> None: ...


class LoggingUsageRecorder:
    """Writes each usage record to the relserve logger."""

    def __init__(self, logger: Logger | None = None) -> None:
        self._logger = logger

    def record(self, usage: UsageRecord) -> None:
        logger = self._logger or get_global_logger()
        flags = [
            name
            for name in ("daily", "weekly", "monthly", "first")
            if getattr(usage, name)
        ]
        logger.verbose(
            "HTTP",
            f"usage {usage.channel}:{usage.platform} {usage.version} "
            f"[{', '.join(flags) or 'none'}]",
        )


def build_usage(
    query: Mapping[str, str], channel: str, platform: str, version: str
) -> UsageRecord | None:
    """Build a usage record from update-check query parameters.

    Returns:
        A UsageRecord, or None when the request carries no ``daily`` flag.
    """
    if not query.get("daily"):
        return None
    return UsageRecord(
        channel=channel or "unknown",
        platform=platform or "unknown",
        version=version or "unknown",
        daily=query.get("daily") == "true",
        weekly=query.get("weekly") == "true",
        monthly=query.get("monthly") == "true",
        first=query.get("first") == "true",
    )
