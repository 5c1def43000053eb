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

"""Release domain type.

A Release is one published artifact for a (channel, platform, version).
Instances are frozen: the cache hands the same objects to every reader, and
"changing" a release (e.g. replacing its notes in a resolver response) means
building a new one with dataclasses.replace().
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Mapping

from relserve.exceptions import InvalidVersionError, MalformedReleaseError
from relserve.versioning import parse_version

Partition = tuple[str, str]


@dataclass(frozen=True)
class Release:
    """One published release.

    Attributes:
        channel: Release track (e.g. "dev", "beta", "stable").
        platform: OS/architecture target (e.g. "osx", "winx64").
        version: Semantic version string, the primary ordering key.
        name: Display name (e.g. "Brave 0.6.0").
        notes: Release notes shown to end users.
        pub_date: Publication timestamp.
        preview: True until the release is promoted to general availability.
        url: Download location. None means the key is omitted from output.

    """

    channel: str
    platform: str
    version: str
    name: str
    notes: str
    pub_date: datetime
    preview: bool
    url: str | None = None

    @property
    def partition(self) -> Partition:
        return (self.channel, self.platform)

    @property
    def is_live(self) -> bool:
        return not self.preview

    def to_payload(self) -> dict[str, Any]:
        """Client-facing representation.

        Channel and platform are implied by the request and left out; url is
        only present when set.
        """
        payload: dict[str, Any] = {
            "version": self.version,
            "name": self.name,
            "pub_date": _format_timestamp(self.pub_date),
            "notes": self.notes,
            "preview": self.preview,
        }
        if self.url is not None:
            payload["url"] = self.url
        return payload

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Release:
        """Build a release from a store row.

        Args:
            row: Mapping with the columns of the ``releases`` table.

        Raises:
            MalformedReleaseError: If a required column is missing or the
                version is not a valid semantic version.

        """
        try:
            version = row["version"]
            parse_version(version)
            return cls(
                channel=row["channel"],
                platform=row["platform"],
                version=version,
                name=row["name"] or "",
                notes=row["notes"] or "",
                pub_date=_coerce_timestamp(row["pub_date"]),
                preview=bool(row["preview"]),
                url=row.get("url") or None,
            )
        except KeyError as err:
            raise MalformedReleaseError(f"Release row is missing column {err}") from err
        except InvalidVersionError as err:
            raise MalformedReleaseError(
                f"Release row {row.get('channel')}:{row.get('platform')} "
                f"has an invalid version: {err}"
            ) from err
        except (TypeError, ValueError) as err:
            raise MalformedReleaseError(f"Release row could not be read: {err}") from err


def _coerce_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    raise TypeError(f"unsupported pub_date value {value!r}")


def _format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")
