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

"""Update resolution against the release cache.

Given a client's channel, platform and current version, decide which release
(if any) it should be offered and build the notes it should see. A client
that is several versions behind gets the newest release, with the notes of
every release it skipped, newest first.

Resolution answers only from the cache snapshot and never touches the store.
It is pure: usage recording and HTTP shaping are left to the caller.

Example:
    ```python
    from relserve.releases import ReleaseCache, VersionResolver
    from relserve.results import NoUpdate

    resolver = VersionResolver(cache)
    result = resolver.resolve("dev", "osx", "0.4.0", accept_preview=True)
    if not isinstance(result, NoUpdate):
        print(result.version, result.notes)
    ```
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace

from relserve.logging import Logger, get_global_logger
from relserve.releases.cache import ReleaseCache
from relserve.releases.model import Release
from relserve.results import NoUpdate, ResolveResult
from relserve.versioning import parse_version

NOTES_SEPARATOR = "\n\n"


def potential_releases(
    releases: Sequence[Release], client_version: str, accept_preview: bool = False
) -> list[Release]:
    """Releases a client on ``client_version`` could move to, newest first.

    Args:
        releases: One partition, sorted newest first.
        client_version: The client's current version.
        accept_preview: If False, preview releases are skipped.

    Returns:
        The qualifying releases, in the input order.

    Raises:
        InvalidVersionError: If client_version (or a release version) is
            not a valid semantic version.

    """
    current = parse_version(client_version).key
    return [
        release
        for release in releases
        if parse_version(release.version).key > current
        and (accept_preview or not release.preview)
    ]


def build_release_notes(releases: Sequence[Release]) -> str:
    """Join the notes of several releases, in order, separated by a blank line."""
    return NOTES_SEPARATOR.join(release.notes for release in releases)


class VersionResolver:
    """Answers update checks from a ReleaseCache."""

    def __init__(self, cache: ReleaseCache, *, logger: Logger | None = None) -> None:
        self.cache = cache
        self._logger = logger

    @property
    def logger(self) -> Logger:
        return self._logger or get_global_logger()

    def resolve(
        self,
        channel: str,
        platform: str,
        client_version: str,
        accept_preview: bool = False,
    ) -> ResolveResult:
        """Find the release a client should update to.

        Args:
            channel: Client's channel.
            platform: Client's platform.
            client_version: Version the client is running.
            accept_preview: Offer preview releases too.

        Returns:
            The newest qualifying release with aggregated notes, or NoUpdate.
            Unknown channels and platforms resolve to NoUpdate.

        Raises:
            InvalidVersionError: If client_version is not a valid semantic
                version.

        """
        candidates = potential_releases(
            self.cache.partition(channel, platform), client_version, accept_preview
        )
        if not candidates:
            self.logger.debug(
                "RESOLVE", f"{channel}:{platform} has nothing newer than {client_version}"
            )
            return NoUpdate(
                channel=channel,
                platform=platform,
                version=client_version,
                accept_preview=accept_preview,
            )

        head = candidates[0]
        self.logger.debug(
            "RESOLVE",
            f"{channel}:{platform} {client_version} -> {head.version} "
            f"({len(candidates)} release(s) of notes)",
        )
        return replace(head, notes=build_release_notes(candidates))
