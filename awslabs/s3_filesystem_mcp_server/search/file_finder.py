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

"""Resolve glob patterns to object identifiers."""

from awslabs.s3_filesystem_mcp_server.consts import DEFAULT_S3_PAGE_SIZE, PATH_SEPARATOR
from awslabs.s3_filesystem_mcp_server.models import Manifest, ObjectIdentifier
from awslabs.s3_filesystem_mcp_server.search.pattern_matcher import extract_fixed_prefix, matches
from awslabs.s3_filesystem_mcp_server.storage.manifest_store import ManifestStore
from awslabs.s3_filesystem_mcp_server.storage.s3_object_store import S3ObjectStore
from loguru import logger
from typing import List, Optional


class FileFinder:
    """Finds objects whose keys match a glob pattern.

    The manifest is used when one is available. Otherwise the bucket is listed
    page by page. Either way the literal leading directories of the pattern
    narrow the keys considered before any glob is evaluated, and patterns are
    always evaluated against keys relative to the base prefix.
    """

    def __init__(
        self,
        object_store: S3ObjectStore,
        manifest_store: Optional[ManifestStore] = None,
        excluded_keys: Optional[List[str]] = None,
    ):
        """Initialize the file finder.

        Args:
            object_store: Store used for the listing fallback
            manifest_store: Manifest source for the fast path
            excluded_keys: Keys never returned, such as the remote manifest itself
        """
        self.object_store = object_store
        self.manifest_store = manifest_store
        self.excluded_keys = frozenset(excluded_keys or ())

    async def find(
        self,
        pattern: str,
        base_prefix: str = '',
        max_results: Optional[int] = None,
    ) -> List[ObjectIdentifier]:
        """Find objects matching a glob pattern.

        Args:
            pattern: Glob pattern, relative to base_prefix
            base_prefix: Key prefix the pattern is rooted at
            max_results: Stop after this many matches, unlimited when None

        Returns:
            Matching identifiers in manifest order, or in listing (lexicographic) order

        Raises:
            UpstreamError: If listing the bucket fails
        """
        if max_results is not None and max_results <= 0:
            return []

        manifest = await self.manifest_store.fetch() if self.manifest_store else None
        if manifest is not None:
            logger.debug(f'Finding {pattern} in manifest with {len(manifest.files)} files')
            return self.find_in_manifest(manifest, pattern, base_prefix, max_results)

        return await self._find_by_listing(pattern, base_prefix, max_results)

    def find_in_manifest(
        self,
        manifest: Manifest,
        pattern: str,
        base_prefix: str = '',
        max_results: Optional[int] = None,
    ) -> List[ObjectIdentifier]:
        """Find matching manifest entries, stopping as soon as max_results is reached."""
        search_prefix = base_prefix + extract_fixed_prefix(pattern)
        bucket = self.object_store.bucket
        found: List[ObjectIdentifier] = []

        for entry in manifest.files:
            key = entry.key
            if not key.startswith(search_prefix) or self._is_excluded(key):
                continue
            if matches(pattern, key[len(base_prefix) :]):
                found.append(ObjectIdentifier(bucket=bucket, key=key))
                if max_results is not None and len(found) >= max_results:
                    break

        return found

    async def _find_by_listing(
        self,
        pattern: str,
        base_prefix: str,
        max_results: Optional[int],
    ) -> List[ObjectIdentifier]:
        search_prefix = base_prefix + extract_fixed_prefix(pattern)
        bucket = self.object_store.bucket
        logger.debug(
            f'No manifest, listing s3://{bucket}/{search_prefix} for pattern {pattern}'
        )

        found: List[ObjectIdentifier] = []
        continuation_token: Optional[str] = None
        page_count = 0

        while True:
            page = await self.object_store.list_objects_page(
                prefix=search_prefix,
                continuation_token=continuation_token,
                max_keys=DEFAULT_S3_PAGE_SIZE,
            )
            page_count += 1

            for item in page.items:
                key = item.key
                if self._is_excluded(key):
                    continue
                relative_key = key[len(base_prefix) :] if key.startswith(base_prefix) else key
                if matches(pattern, relative_key):
                    found.append(ObjectIdentifier(bucket=bucket, key=key))
                    if max_results is not None and len(found) >= max_results:
                        logger.debug(f'Reached {max_results} matches after {page_count} pages')
                        return found

            continuation_token = page.next_token
            if not continuation_token:
                break

        logger.debug(f'Found {len(found)} matches for {pattern} in {page_count} pages')
        return found

    def _is_excluded(self, key: str) -> bool:
        return key.endswith(PATH_SEPARATOR) or key in self.excluded_keys
