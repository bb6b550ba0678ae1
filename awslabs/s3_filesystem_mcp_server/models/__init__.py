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

"""S3 Filesystem MCP Server data models package."""

# Cache models
from .cache import BatchCacheResult, CacheEntry, CacheStats

# Configuration
from .config import FilesystemConfig

# Manifest model
from .manifest import Manifest

# S3 object models
from .s3 import (
    ListPage,
    ObjectIdentifier,
    ObjectMetadata,
    StorageClass,
    object_metadata_from_s3_object,
)

# Search models
from .search import MetadataFilterCriteria, SearchMode, SearchOutcome, SearchStatus

__all__ = [
    # Cache models
    'BatchCacheResult',
    'CacheEntry',
    'CacheStats',
    # Configuration
    'FilesystemConfig',
    # Manifest
    'Manifest',
    # S3 models
    'ListPage',
    'ObjectIdentifier',
    'ObjectMetadata',
    'StorageClass',
    'object_metadata_from_s3_object',
    # Search models
    'MetadataFilterCriteria',
    'SearchMode',
    'SearchOutcome',
    'SearchStatus',
]
