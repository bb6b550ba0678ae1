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

"""Object access, manifest loading and local content caching."""

from .content_cache import ContentCache
from .manifest_store import DirectoryIndex, ManifestStore
from .s3_object_store import S3ObjectStore

__all__ = [
    'ContentCache',
    'DirectoryIndex',
    'ManifestStore',
    'S3ObjectStore',
]
