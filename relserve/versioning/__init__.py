"""
Version parsing and ordering for relserve.

Every ordering decision in relserve (cache sort order, "newer than the
client" filtering, monotonic ingestion) goes through this package, so the
whole service agrees on one definition of "newer".

Modules
-------
semver : module
    Strict Semantic Versioning 2.0.0 parsing and precedence.

Public API
----------
SemVer : dataclass
    A parsed version with a sortable precedence key.
parse_version : function
    Parse a version string, raising InvalidVersionError when malformed.
is_valid_version : function
    Boolean validity check.
compare_versions : function
    Compare two version strings, returning -1, 0, or 1.
is_newer : function
    Check if a candidate version is newer than the current one.
version_key : function
    Generate a sortable key for a version string.
sort_newest_first : function
    Sort arbitrary objects descending by their version.

Examples
--------
Basic comparison:

    >>> from relserve.versioning import compare_versions, is_newer
    >>> compare_versions("0.10.0", "0.9.0")  # numeric, not lexical
    1
    >>> is_newer("0.6.0", "0.5.0")
    True

Prerelease handling:

    >>> compare_versions("1.0.0-rc.1", "1.0.0-beta.11")
    1
    >>> compare_versions("1.0.0", "1.0.0-rc.1")
    1
"""

from .semver import (
    SemVer,
    compare_versions,
    is_newer,
    is_valid_version,
    parse_version,
    sort_newest_first,
    version_key,
)

__all__ = [
    "SemVer",
    "compare_versions",
    "is_newer",
    "is_valid_version",
    "parse_version",
    "sort_newest_first",
    "version_key",
]
