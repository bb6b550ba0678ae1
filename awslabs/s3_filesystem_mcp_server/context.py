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

"""Process-scoped filesystem components, built once at startup and torn down at shutdown."""

from awslabs.s3_filesystem_mcp_server.consts import (
    ERROR_BUCKET_MISMATCH,
    ERROR_INVALID_S3_URI,
    PATH_SEPARATOR,
    S3_URI_SCHEME,
)
from awslabs.s3_filesystem_mcp_server.errors import InvalidIdentifierError
from awslabs.s3_filesystem_mcp_server.models import FilesystemConfig, ObjectIdentifier
from awslabs.s3_filesystem_mcp_server.search.file_finder import FileFinder
from awslabs.s3_filesystem_mcp_server.search.text_search_engine import TextSearchEngine
from awslabs.s3_filesystem_mcp_server.storage.content_cache import ContentCache
from awslabs.s3_filesystem_mcp_server.storage.manifest_store import ManifestStore
from awslabs.s3_filesystem_mcp_server.storage.s3_object_store import S3ObjectStore
from awslabs.s3_filesystem_mcp_server.utils.aws_utils import get_s3_client
from dataclasses import dataclass
from loguru import logger
from mcp.server.fastmcp import Context
from pathlib import Path
from typing import Any, Optional


def key_to_uri(bucket: str, prefix: str, key: str) -> str:
    """Format a bucket key as a URI relative to the prefix."""
    if prefix and key.startswith(prefix):
        key = key[len(prefix) :]
    return f'{S3_URI_SCHEME}{bucket}/{key}'


@dataclass
class FilesystemContext:
    """Every long-lived component of one exposed bucket.

    Agent-facing URIs are relative to the configured prefix:
    ``s3://bucket/a/b.txt`` names the key ``<prefix>a/b.txt``.
    """

    config: FilesystemConfig
    object_store: S3ObjectStore
    manifest_store: ManifestStore
    file_finder: FileFinder
    content_cache: ContentCache
    search_engine: TextSearchEngine

    @property
    def bucket(self) -> str:
        """Exposed bucket."""
        return self.config.bucket

    @property
    def prefix(self) -> str:
        """Key prefix the virtual filesystem is rooted at."""
        return self.config.prefix

    def key_to_uri(self, key: str) -> str:
        """Format a bucket key as an agent-facing URI."""
        return key_to_uri(self.bucket, self.prefix, key)

    def display_uri(self, identifier: ObjectIdentifier) -> str:
        """Format an identifier as an agent-facing URI."""
        return self.key_to_uri(identifier.key)

    def resolve_key(self, path: str) -> str:
        """Resolve an agent-supplied URI or relative path to a bucket key.

        ``s3://<bucket>/<path>`` must name the configured bucket. A bare path
        is taken relative to the prefix.

        Raises:
            InvalidIdentifierError: If the URI is malformed or names another bucket
        """
        path = path.strip()
        if path.startswith(S3_URI_SCHEME):
            # Keys may contain "?" and "#"
            bucket, _, relative = path[len(S3_URI_SCHEME) :].partition(PATH_SEPARATOR)
            if not bucket:
                raise InvalidIdentifierError(
                    f'{ERROR_INVALID_S3_URI.format(path)}. Missing bucket name'
                )
            if bucket != self.bucket:
                raise InvalidIdentifierError(ERROR_BUCKET_MISMATCH.format(bucket, self.bucket))
        else:
            relative = path.lstrip(PATH_SEPARATOR)
        return self.prefix + relative

    def resolve_identifier(self, path: str) -> ObjectIdentifier:
        """Resolve an agent-supplied URI or relative path to an object identifier.

        Raises:
            InvalidIdentifierError: If the path does not name an object
        """
        key = self.resolve_key(path)
        if not key or key.endswith(PATH_SEPARATOR):
            raise InvalidIdentifierError(f'{ERROR_INVALID_S3_URI.format(path)}. Not a file path')
        return ObjectIdentifier(bucket=self.bucket, key=key)

    async def aclose(self) -> None:
        """Cancel background work owned by the components."""
        await self.content_cache.aclose()
        logger.info(f'S3 filesystem for s3://{self.bucket}/{self.prefix} shut down')


def create_filesystem_context(
    config: FilesystemConfig, s3_client: Optional[Any] = None
) -> FilesystemContext:
    """Build and wire every component for one bucket.

    Args:
        config: Filesystem configuration
        s3_client: Pre-built boto3 S3 client, created from the session when omitted

    Returns:
        FilesystemContext
    """
    if s3_client is None:
        s3_client = get_s3_client(
            config.region, max_pool_connections=config.max_concurrent_downloads
        )
    object_store = S3ObjectStore(config.bucket, s3_client=s3_client)
    manifest_store = ManifestStore(
        config.bucket,
        object_store=object_store,
        manifest_dir=config.manifest_dir,
        manifest_path=config.manifest_path,
        manifest_key=config.manifest_key,
        ttl_seconds=config.manifest_ttl_seconds,
    )
    file_finder = FileFinder(
        object_store,
        manifest_store,
        excluded_keys=[config.manifest_key] if config.manifest_key else None,
    )
    content_cache = ContentCache(
        object_store,
        Path(config.cache_dir),
        max_bytes=config.cache_max_bytes,
        max_entries=config.cache_max_entries,
        max_file_bytes=config.cache_max_file_bytes,
        max_concurrent_downloads=config.max_concurrent_downloads,
    )

    search_engine = TextSearchEngine(
        file_finder,
        content_cache,
        object_store,
        base_prefix=config.prefix,
        ripgrep_path=config.ripgrep_path,
        timeout_seconds=config.search_timeout_seconds,
        max_concurrent_downloads=config.max_concurrent_downloads,
        display_uri=lambda identifier: key_to_uri(config.bucket, config.prefix, identifier.key),
    )
    context = FilesystemContext(
        config=config,
        object_store=object_store,
        manifest_store=manifest_store,
        file_finder=file_finder,
        content_cache=content_cache,
        search_engine=search_engine,
    )

    logger.info(
        f'S3 filesystem initialized: bucket={config.bucket}, region={config.region}, '
        f'prefix={config.prefix or "(none)"}'
    )
    return context


def get_filesystem_context(ctx: Context) -> FilesystemContext:
    """Get the filesystem components from a tool call's lifespan context."""
    return ctx.request_context.lifespan_context
