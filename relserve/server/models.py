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

"""Request and response payloads for the admin API."""

from __future__ import annotations

from pydantic import BaseModel, field_validator

from relserve.results import PromotionResult, RefreshResult
from relserve.versioning import is_valid_version


class ReleaseCreate(BaseModel):
    notes: str
    version: str
    preview: bool
    url: str | None = None

    @field_validator("version")
    @classmethod
    def _semver(cls, value: str) -> str:
        if not is_valid_version(value):
            raise ValueError(f"Invalid version {value}")
        return value


class PromoteRequest(BaseModel):
    notes: str | None = None


class PromotionResponse(BaseModel):
    status: str
    channel: str
    version: str
    platforms: list[str]
    notes_replaced: bool

    @classmethod
    def from_result(cls, result: PromotionResult) -> PromotionResponse:
        return cls(
            status=result.status,
            channel=result.channel,
            version=result.version,
            platforms=list(result.platforms),
            notes_replaced=result.notes_replaced,
        )


class RefreshResponse(BaseModel):
    status: str = "ok"
    release_count: int
    partition_count: int
    refreshed_at: str

    @classmethod
    def from_result(cls, result: RefreshResult) -> RefreshResponse:
        return cls(
            release_count=result.release_count,
            partition_count=result.partition_count,
            refreshed_at=result.refreshed_at.isoformat(),
        )
