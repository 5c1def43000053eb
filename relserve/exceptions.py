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

"""Exception hierarchy for relserve.

Every failure the core can report has its own exception type so callers
(the HTTP layer, the CLI, library users) can tell them apart:

- InvalidVersionError: A version string is not a valid semantic version
- VersionRegressionError: A new release does not advance its partition
- ReleaseNotFoundError: A promotion target does not exist
- AlreadyPromotedError: A promotion target is already live
- StoreUnavailableError: The release store could not be reached or timed out
- MalformedReleaseError: A stored row could not be loaded into the cache
- ConfigError: Configuration file or environment problems
- NetworkError: The admin client could not talk to a running server

All exceptions inherit from RelServeError, allowing users to catch every
relserve error with a single except clause if needed.

"No update available" is not an error. The resolver returns a NoUpdate
result for it (see relserve.results).

Example:
    Catching specific error types:
        ```python
        from relserve.exceptions import AlreadyPromotedError, ReleaseNotFoundError

        try:
            service.promote("dev", "osx", "0.6.0", notes="foo the bar")
        except ReleaseNotFoundError as e:
            print(f"No such release: {e}")
        except AlreadyPromotedError as e:
            print(f"Nothing to do: {e}")
        ```

    Catching all relserve errors:
        ```python
        from relserve.exceptions import RelServeError

        try:
            service.refresh()
        except RelServeError as e:
            print(f"relserve error: {e}")
        ```
"""

from __future__ import annotations

__all__ = [
    "RelServeError",
    "InvalidVersionError",
    "VersionRegressionError",
    "DuplicateReleaseError",
    "ReleaseNotFoundError",
    "AlreadyPromotedError",
    "StoreUnavailableError",
    "MalformedReleaseError",
    "ConfigError",
    "NetworkError",
]


class RelServeError(Exception):
    """Base exception for all relserve errors.

    All relserve-specific exceptions inherit from this class, allowing users
    to catch all relserve errors with a single except clause if needed.
    """

    pass


class InvalidVersionError(RelServeError):
    """Raised when a version string is not a valid semantic version.

    Raised by the resolver for a malformed client version and by the
    ingestion guard for a malformed release version. It is a validation
    rejection: nothing reaches the store.

    Attributes:
        version: The rejected version string.
    """

    def __init__(self, version: str, message: str | None = None) -> None:
        self.version = version
        super().__init__(message or f"Invalid version {version!r}")


class VersionRegressionError(RelServeError):
    """Raised when a new release is not newer than its partition's head.

    The insert is rejected and the store is left untouched.

    Example:
        Catching a regression:
            ```python
            from relserve.exceptions import VersionRegressionError

            try:
                guard.insert("dev", "osx", release)
            except VersionRegressionError as e:
                print(f"Rejected: {e}")
            ```
    """

    pass


class DuplicateReleaseError(VersionRegressionError):
    """Raised by a store when (channel, platform, version) already exists.

    A duplicate is the "equal" case of a regression, so it subclasses
    VersionRegressionError and callers only need to handle one of them.
    """

    pass


class ReleaseNotFoundError(RelServeError):
    """Raised when a promotion target does not exist. No mutation happens."""

    pass


class AlreadyPromotedError(RelServeError):
    """Raised when a promotion target is already live.

    Promotion is one-way and deliberately not idempotent: promoting the
    same release twice is reported so operator mistakes surface.
    """

    pass


class StoreUnavailableError(RelServeError):
    """Raised when the release store cannot be reached or times out.

    This exception is raised when there are problems with:

    - Connecting to the database (refused, DNS, authentication)
    - Statement or pool timeouts
    - The connection dropping mid-transaction

    No partial mutation is assumed; the in-memory cache keeps its last good
    snapshot.
    """

    pass


class MalformedReleaseError(RelServeError):
    """Raised when a stored row cannot be turned into a release.

    Raised during a cache refresh (for example a row whose version is not a
    semantic version). The previous snapshot is retained.
    """

    pass


class ConfigError(RelServeError):
    """Raised for configuration-related errors.

    This exception is raised when there are problems with:

    - YAML parsing (syntax errors, invalid structure)
    - Missing configuration files
    - Invalid values (e.g. a non-numeric store timeout)
    - Unsupported store URLs

    Example:
        Catching configuration errors:
            ```python
            from relserve.exceptions import ConfigError

            try:
                config = load_config(Path("relserve.yaml"))
            except ConfigError as e:
                print(f"Config error: {e}")
            ```
    """

    pass


class NetworkError(RelServeError):
    """Raised by the admin client for HTTP and connection failures.

    Attributes:
        status_code: HTTP status returned by the server, or None when the
            request never got a response.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)
