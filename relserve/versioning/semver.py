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

"""Semantic version parsing and precedence for relserve.

This module is storage-agnostic: it does NOT touch the cache or the store.
It only parses and orders version strings, strictly following Semantic
Versioning 2.0.0 precedence:

- MAJOR.MINOR.PATCH compared numerically
- a prerelease ranks below the same release ("1.0.0-rc.1" < "1.0.0")
- prerelease identifiers compared left to right: numeric ones numerically,
  alphanumeric ones in ASCII order, numeric before alphanumeric, and a
  shorter identifier list first when all shared identifiers are equal
- build metadata ("+build.5") ignored for ordering

A single leading "v" is accepted ("v1.2.3" equals "1.2.3"). Anything else
that is not a valid semantic version raises InvalidVersionError; there is no
lexicographic fallback.
"""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Callable, Iterable, TypeVar

from relserve.exceptions import InvalidVersionError

T = TypeVar("T")

# ----------------------------
# Parsing
# ----------------------------

_NUM = r"0|[1-9][0-9]*"
_PRE_IDENT = r"(?:0|[1-9][0-9]*|[0-9]*[A-Za-z-][0-9A-Za-z-]*)"
_SEMVER_RE = re.compile(
    rf"^v?(?P<major>{_NUM})\.(?P<minor>{_NUM})\.(?P<patch>{_NUM})"
    rf"(?:-(?P<pre>{_PRE_IDENT}(?:\.{_PRE_IDENT})*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)

# Release versions sort above any prerelease of the same core.
_RELEASE_RANK = 1
_PRERELEASE_RANK = 0


@dataclass(frozen=True)
class SemVer:
    """A parsed semantic version.

    Attributes:
        major: Major version number.
        minor: Minor version number.
        patch: Patch version number.
        prerelease: Dot-separated prerelease identifiers (empty for releases).
        build: Dot-separated build metadata identifiers (ignored in ordering).

    """

    major: int
    minor: int
    patch: int
    prerelease: tuple[str, ...] = ()
    build: tuple[str, ...] = ()

    @property
    def is_prerelease(self) -> bool:
        return bool(self.prerelease)

    @property
    def key(self) -> tuple:
        """Sortable precedence key (build metadata excluded)."""
        if not self.prerelease:
            return (self.major, self.minor, self.patch, _RELEASE_RANK, ())
        return (
            self.major,
            self.minor,
            self.patch,
            _PRERELEASE_RANK,
            _prerelease_tokens(self.prerelease),
        )

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += "-" + ".".join(self.prerelease)
        if self.build:
            text += "+" + ".".join(self.build)
        return text


def _prerelease_tokens(identifiers: tuple[str, ...]) -> tuple[tuple[int, object], ...]:
    """Encode prerelease identifiers for tuple comparison.

    Numeric identifiers become (0, int) and alphanumeric ones (1, str), so
    numeric identifiers sort first and tuple-prefix ordering gives
    "alpha" < "alpha.1".
    """
    out: list[tuple[int, object]] = []
    for ident in identifiers:
        if ident.isascii() and ident.isdigit():
            out.append((0, int(ident)))
        else:
            out.append((1, ident))
    return tuple(out)


def parse_version(text: str) -> SemVer:
    """Parse a semantic version string.

    Args:
        text: Version string, optionally prefixed with "v". Surrounding
            whitespace is ignored.

    Returns:
        The parsed SemVer.

    Raises:
        InvalidVersionError: If text is not a valid semantic version.

    Example:
        ```python
        parse_version("1.0.0-rc.1+build.7")
        # SemVer(major=1, minor=0, patch=0, prerelease=('rc', '1'), build=('build', '7'))
        ```

    """
    if not isinstance(text, str):
        raise InvalidVersionError(repr(text), f"Version must be a string, got {text!r}")
    m = _SEMVER_RE.match(text.strip())
    if not m:
        raise InvalidVersionError(text)
    pre = m.group("pre")
    build = m.group("build")
    return SemVer(
        major=int(m.group("major")),
        minor=int(m.group("minor")),
        patch=int(m.group("patch")),
        prerelease=tuple(pre.split(".")) if pre else (),
        build=tuple(build.split(".")) if build else (),
    )


def is_valid_version(text: str) -> bool:
    """Return True if text parses as a semantic version."""
    try:
        parse_version(text)
    except InvalidVersionError:
        return False
    return True


# ----------------------------
# Comparison
# ----------------------------


def version_key(text: str) -> tuple:
    """Compute the precedence key for a version string.

    Raises:
        InvalidVersionError: If text is not a valid semantic version.
    """
    return parse_version(text).key


def compare_versions(a: str, b: str) -> int:
    """Compare two versions by semver precedence.

    Returns -1 if a < b, 0 if equal, 1 if a > b.

    Raises:
        InvalidVersionError: If either string is not a valid semantic version.
    """
    ka = version_key(a)
    kb = version_key(b)
    return (ka > kb) - (ka < kb)


def is_newer(candidate: str, current: str | None) -> bool:
    """Decide if 'candidate' is strictly newer than 'current'.

    A missing current version (None) means anything is newer.
    """
    if current is None:
        return True
    return compare_versions(candidate, current) > 0


def sort_newest_first(items: Iterable[T], version_of: Callable[[T], str]) -> list[T]:
    """Sort items descending by the semver precedence of their version.

    Args:
        items: Objects to sort.
        version_of: Function returning the version string of an item.

    Returns:
        A new list, newest version first.

    Raises:
        InvalidVersionError: If any item carries an invalid version.
    """
    return sorted(items, key=lambda item: version_key(version_of(item)), reverse=True)
