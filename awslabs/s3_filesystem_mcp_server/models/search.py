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

"""Search-related models for text search and metadata filtering."""

from awslabs.s3_filesystem_mcp_server.errors import (
    SearchAbortedError,
    SearchExecutionError,
    SearchTimeoutError,
)
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pydantic import BaseModel, field_validator, model_validator
from typing import List, Optional


class SearchStatus(str, Enum):
    """Lifecycle states of one text search request."""

    IDLE = 'idle'
    PREPARING = 'preparing'
    SEARCHING = 'searching'
    COMPLETED = 'completed'
    TIMED_OUT = 'timed_out'
    ABORTED = 'aborted'
    FAILED = 'failed'

    @property
    def is_terminal(self) -> bool:
        """True for states a request can end in."""
        return self in (
            SearchStatus.COMPLETED,
            SearchStatus.TIMED_OUT,
            SearchStatus.ABORTED,
            SearchStatus.FAILED,
        )


class SearchMode(str, Enum):
    """How a text search was executed."""

    RIPGREP = 'ripgrep'
    FALLBACK = 'fallback'


@dataclass
class SearchOutcome:
    """Result lines of a text search plus how it ended."""

    status: SearchStatus
    mode: SearchMode
    lines: List[str] = field(default_factory=list)
    match_count: int = 0
    truncated: bool = False
    error_message: Optional[str] = None
    exit_code: Optional[int] = None
    duration_ms: int = 0
    history: List[SearchStatus] = field(default_factory=list)

    def raise_for_status(self) -> None:
        """Raise the typed error for a timed out, aborted or failed search."""
        message = self.error_message or f'Search {self.status.value}'
        if self.status == SearchStatus.TIMED_OUT:
            raise SearchTimeoutError(message)
        if self.status == SearchStatus.ABORTED:
            raise SearchAbortedError(message)
        if self.status == SearchStatus.FAILED:
            raise SearchExecutionError(message, exit_code=self.exit_code)


class MetadataFilterCriteria(BaseModel):
    """Composable predicates over manifest entries. Unset fields are no-ops."""

    min_size: Optional[int] = None
    max_size: Optional[int] = None
    modified_after: Optional[datetime] = None
    modified_before: Optional[datetime] = None
    storage_class: Optional[str] = None
    key_pattern: Optional[str] = None

    @field_validator('min_size', 'max_size')
    @classmethod
    def validate_size(cls, v: Optional[int]) -> Optional[int]:
        """Sizes must be non-negative."""
        if v is not None and v < 0:
            raise ValueError('Size bounds must be non-negative')
        return v

    @field_validator('modified_after', 'modified_before')
    @classmethod
    def ensure_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Treat naive datetimes as UTC so comparisons with S3 timestamps are valid."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @model_validator(mode='after')
    def validate_ranges(self) -> 'MetadataFilterCriteria':
        """Reject inverted size ranges."""
        if (
            self.min_size is not None
            and self.max_size is not None
            and self.min_size > self.max_size
        ):
            raise ValueError('min_size cannot be greater than max_size')
        return self

    @property
    def is_empty(self) -> bool:
        """True when no predicate is set."""
        return all(value is None for value in self.model_dump().values())
