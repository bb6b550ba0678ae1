# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
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

"""Content cache models."""

from .s3 import ObjectIdentifier
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict


@dataclass
class CacheEntry:
    """A resident local copy of one object."""

    local_path: Path
    size: int
    identifier: ObjectIdentifier
    last_accessed: float


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time view of content cache usage."""

    entries: int
    resident_bytes: int
    capacity_bytes: int
    utilization_percent: float

    @property
    def resident_mb(self) -> float:
        """Resident size in MiB, rounded to two decimals."""
        return round(self.resident_bytes / (1024 * 1024), 2)


@dataclass
class BatchCacheResult:
    """Outcome of a batch cache fill, reported per identifier URI."""

    cached: Dict[str, Path] = field(default_factory=dict)
    failed: Dict[str, str] = field(default_factory=dict)
    cancelled: bool = False

    @property
    def success_count(self) -> int:
        """Number of identifiers now resident."""
        return len(self.cached)

    @property
    def failure_count(self) -> int:
        """Number of identifiers that could not be cached."""
        return len(self.failed)
