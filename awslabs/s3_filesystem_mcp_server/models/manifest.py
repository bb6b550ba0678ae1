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

"""Manifest model: a pre-computed snapshot of a bucket listing."""

from .s3 import ObjectMetadata
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Any, Optional, Tuple


class Manifest(BaseModel):
    """Bucket-wide object listing loaded from a side channel.

    Two JSON shapes are accepted. The structured form lists objects with their
    metadata; the legacy form lists bare key strings. Both are resolved here into
    ``ObjectMetadata`` entries so nothing downstream needs to know which shape
    was loaded.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    files: Tuple[ObjectMetadata, ...] = ()
    last_updated: datetime = Field(alias='lastUpdated')
    version: Optional[int] = None

    @model_validator(mode='before')
    @classmethod
    def normalize_legacy_entries(cls, data: Any) -> Any:
        """Convert bare key strings into structured entries."""
        if not isinstance(data, dict):
            return data

        files = data.get('files')
        if files is None:
            return data
        if not isinstance(files, (list, tuple)):
            raise ValueError('Manifest "files" must be an array')

        normalized = []
        for entry in files:
            if isinstance(entry, str):
                normalized.append({'key': entry})
            else:
                normalized.append(entry)

        return {**data, 'files': normalized}

    @property
    def has_metadata(self) -> bool:
        """True when at least one entry carries size, date, etag or storage class."""
        return any(entry.has_metadata for entry in self.files)
