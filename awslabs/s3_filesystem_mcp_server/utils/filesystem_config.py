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

"""Configuration utilities for the S3 filesystem server."""

import os
from awslabs.s3_filesystem_mcp_server.consts import (
    CACHE_DIR_ENV,
    CACHE_MAX_BYTES_ENV,
    CACHE_MAX_ENTRIES_ENV,
    CACHE_MAX_FILE_BYTES_ENV,
    DEFAULT_CACHE_MAX_BYTES,
    DEFAULT_CACHE_MAX_ENTRIES,
    DEFAULT_CACHE_MAX_FILE_BYTES,
    DEFAULT_MANIFEST_DIR,
    DEFAULT_MANIFEST_KEY,
    DEFAULT_MANIFEST_TTL_SECONDS,
    DEFAULT_MAX_CONCURRENT_DOWNLOADS,
    DEFAULT_SEARCH_TIMEOUT_SECONDS,
    ERROR_BUCKET_NOT_CONFIGURED,
    MANIFEST_DIR_ENV,
    MANIFEST_KEY_ENV,
    MANIFEST_PATH_ENV,
    MANIFEST_TTL_ENV,
    MAX_CONCURRENT_DOWNLOADS_ENV,
    RIPGREP_PATH_ENV,
    S3_BUCKET_ENV,
    S3_PREFIX_ENV,
    SEARCH_TIMEOUT_ENV,
)
from awslabs.s3_filesystem_mcp_server.models import FilesystemConfig
from awslabs.s3_filesystem_mcp_server.utils.aws_utils import get_region
from awslabs.s3_filesystem_mcp_server.utils.s3_utils import is_valid_bucket_name, normalize_prefix
from loguru import logger
from typing import Optional


def get_filesystem_config() -> FilesystemConfig:
    """Get the filesystem configuration from environment variables.

    Returns:
        FilesystemConfig: Configuration object with validated settings

    Raises:
        ValueError: If the bucket is missing
    """
    bucket = get_bucket()
    prefix = normalize_prefix(os.environ.get(S3_PREFIX_ENV, ''))
    if prefix:
        logger.info(f'Exposing s3://{bucket}/{prefix}')

    defaults = FilesystemConfig(bucket=bucket)

    return FilesystemConfig(
        bucket=bucket,
        prefix=prefix,
        region=get_region(),
        manifest_dir=os.environ.get(MANIFEST_DIR_ENV, '').strip() or DEFAULT_MANIFEST_DIR,
        manifest_path=_get_optional_str(MANIFEST_PATH_ENV),
        manifest_key=get_manifest_key(),
        manifest_ttl_seconds=_get_int(
            MANIFEST_TTL_ENV, DEFAULT_MANIFEST_TTL_SECONDS, 'manifest TTL', allow_zero=True
        ),
        cache_dir=_get_optional_str(CACHE_DIR_ENV) or defaults.cache_dir,
        cache_max_bytes=_get_int(CACHE_MAX_BYTES_ENV, DEFAULT_CACHE_MAX_BYTES, 'cache max bytes'),
        cache_max_entries=_get_int(
            CACHE_MAX_ENTRIES_ENV, DEFAULT_CACHE_MAX_ENTRIES, 'cache max entries'
        ),
        cache_max_file_bytes=_get_int(
            CACHE_MAX_FILE_BYTES_ENV, DEFAULT_CACHE_MAX_FILE_BYTES, 'cache max file bytes'
        ),
        max_concurrent_downloads=_get_int(
            MAX_CONCURRENT_DOWNLOADS_ENV,
            DEFAULT_MAX_CONCURRENT_DOWNLOADS,
            'max concurrent downloads',
        ),
        search_timeout_seconds=get_search_timeout_seconds(),
        ripgrep_path=_get_optional_str(RIPGREP_PATH_ENV),
    )


def get_bucket() -> str:
    """Get and validate the bucket name from environment variables.

    Returns:
        Bucket name

    Raises:
        ValueError: If the bucket is unset
    """
    bucket = os.environ.get(S3_BUCKET_ENV, '').strip()
    if not bucket:
        logger.error(ERROR_BUCKET_NOT_CONFIGURED)
        raise ValueError(ERROR_BUCKET_NOT_CONFIGURED)

    if not is_valid_bucket_name(bucket):
        # Legacy buckets may still carry uppercase or underscores, so only warn
        logger.warning(f'Bucket name {bucket} does not look like a valid S3 bucket name')

    return bucket


def get_manifest_key() -> Optional[str]:
    """Get the remote manifest key. An explicit empty value disables the remote fallback."""
    if MANIFEST_KEY_ENV not in os.environ:
        return DEFAULT_MANIFEST_KEY
    return os.environ[MANIFEST_KEY_ENV].strip() or None


def get_search_timeout_seconds() -> float:
    """Get the text search timeout in seconds from environment variables.

    Returns:
        Search timeout in seconds
    """
    try:
        timeout = float(
            os.environ.get(SEARCH_TIMEOUT_ENV, str(DEFAULT_SEARCH_TIMEOUT_SECONDS))
        )
        if timeout <= 0:
            logger.warning(
                f'Invalid search timeout value: {timeout}. Using default: {DEFAULT_SEARCH_TIMEOUT_SECONDS}'
            )
            return DEFAULT_SEARCH_TIMEOUT_SECONDS
        return timeout
    except ValueError:
        logger.warning(
            f'Invalid search timeout value in environment. Using default: {DEFAULT_SEARCH_TIMEOUT_SECONDS}'
        )
        return DEFAULT_SEARCH_TIMEOUT_SECONDS


def _get_int(env_name: str, default: int, description: str, allow_zero: bool = False) -> int:
    """Read a positive (or non-negative) integer setting, falling back to the default."""
    try:
        value = int(os.environ.get(env_name, str(default)))
        if value < 0 or (value == 0 and not allow_zero):
            logger.warning(f'Invalid {description} value: {value}. Using default: {default}')
            return default
        return value
    except ValueError:
        logger.warning(f'Invalid {description} value in environment. Using default: {default}')
        return default


def _get_optional_str(env_name: str) -> Optional[str]:
    value = os.environ.get(env_name, '').strip()
    return value or None
