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

"""Public API return types for relserve.

This module defines dataclasses for return values from public API functions:
update checks, promotions and cache refreshes.

All dataclasses are frozen (immutable) to prevent accidental mutation of
return values.

Example:
    Telling "no update" apart from an update:
        ```python
        from relserve.results import NoUpdate

        result = service.check_for_update("dev", "osx", "0.5.0")
        if isinstance(result, NoUpdate):
            print("client is current")
        else:
            print(f"offer {result.version}")
        ```

Note:
    Only public API return types belong in this module. The Release domain
    type stays with the rest of the release logic in relserve.releases.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from relserve.releases.model import Release


@dataclass(frozen=True)
class NoUpdate:
    """Outcome of an update check when the client is already current.

    This is a valid result, not an error. The HTTP layer turns it into
    204 No Content.

    Attributes:
        channel: Channel that was checked.
        platform: Platform that was checked.
        version: The client's version.
        accept_preview: Whether preview releases were considered.
    """

    channel: str
    platform: str
    version: str
    accept_preview: bool = False


ResolveResult = Union["Release", NoUpdate]


@dataclass(frozen=True)
class PromotionResult:
    """Result from promoting a release (or every platform of a version).

    Attributes:
        channel: Channel of the promoted release(s).
        version: Promoted version.
        platforms: Platforms whose rows were promoted.
        notes_replaced: True if stored notes were overwritten.
        status: Always "ok" for a successful promotion.
    """

    channel: str
    version: str
    platforms: tuple[str, ...]
    notes_replaced: bool
    status: str = "ok"


@dataclass(frozen=True)
class RefreshResult:
    """Result from reloading the release cache.

    Attributes:
        release_count: Number of releases in the new snapshot.
        partition_count: Number of (channel, platform) partitions.
        refreshed_at: When the new snapshot was installed (UTC).
    """

    release_count: int
    partition_count: int
    refreshed_at: datetime
