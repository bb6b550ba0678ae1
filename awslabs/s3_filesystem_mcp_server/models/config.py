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

"""Server configuration model."""

import os
import tempfile
from awslabs.s3_filesystem_mcp_server.consts import (
    DEFAULT_CACHE_DIR_NAME,
    DEFAULT_CACHE_MAX_BYTES,
    DEFAULT_CACHE_MAX_ENTRIES,
    DEFAULT_CACHE_MAX_FILE_BYTES,
    DEFAULT_MANIFEST_DIR,
    DEFAULT_MANIFEST_KEY,
    DEFAULT_MANIFEST_TTL_SECONDS,
    DEFAULT_MAX_CONCURRENT_DOWNLOADS,
    DEFAULT_REGION,
    DEFAULT_SEARCH_TIMEOUT_SECONDS,
)
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class FilesystemConfig:
    """Configuration for one exposed bucket and its caches."""

    bucket: str
    prefix: str = ''  # Always empty or ending with '/'
    region: str = DEFAULT_REGION

    # Manifest side channel
    manifest_dir: str = DEFAULT_MANIFEST_DIR
    manifest_path: Optional[str] = None  # Overrides manifest_dir when set
    manifest_key: Optional[str] = DEFAULT_MANIFEST_KEY  # Remote fallback, None disables it
    manifest_ttl_seconds: int = DEFAULT_MANIFEST_TTL_SECONDS

    # Content cache
    cache_dir: str = field(
        default_factory=lambda: os.path.join(tempfile.gettempdir(), DEFAULT_CACHE_DIR_NAME)
    )
    cache_max_bytes: int = DEFAULT_CACHE_MAX_BYTES
    cache_max_entries: int = DEFAULT_CACHE_MAX_ENTRIES
    cache_max_file_bytes: int = DEFAULT_CACHE_MAX_FILE_BYTES
    max_concurrent_downloads: int = DEFAULT_MAX_CONCURRENT_DOWNLOADS

    # Text search
    search_timeout_seconds: float = DEFAULT_SEARCH_TIMEOUT_SECONDS
    ripgrep_path: Optional[str] = None  # None means "rg" on PATH, if any
