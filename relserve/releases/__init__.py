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

"""Release logic for relserve.

Modules:

    model : Release dataclass and row conversion
    cache : ReleaseCache, the in-memory snapshot every read path uses
    resolver : VersionResolver, the update check
    promotion : PromotionEngine, preview to live
    ingestion : IngestionGuard, monotonic inserts
    locks : PartitionLocks, keyed in-process locks
"""

from .cache import ReleaseCache, build_snapshot
from .ingestion import IngestionGuard
from .locks import PartitionLocks
from .model import Partition, Release
from .promotion import PromotionEngine
from .resolver import VersionResolver, build_release_notes, potential_releases

__all__ = [
    "IngestionGuard",
    "Partition",
    "PartitionLocks",
    "PromotionEngine",
    "Release",
    "ReleaseCache",
    "VersionResolver",
    "build_release_notes",
    "build_snapshot",
    "potential_releases",
]
