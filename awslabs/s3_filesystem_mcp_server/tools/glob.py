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

"""Glob tool for the S3 filesystem MCP server."""

from awslabs.s3_filesystem_mcp_server.consts import (
    BACKGROUND_WARM_MAX_UTILIZATION_PERCENT,
    GREP_MAX_CANDIDATE_FILES,
)
from awslabs.s3_filesystem_mcp_server.context import FilesystemContext, get_filesystem_context
from awslabs.s3_filesystem_mcp_server.models import ObjectIdentifier
from awslabs.s3_filesystem_mcp_server.utils.error_utils import handle_tool_error
from loguru import logger
from mcp.server.fastmcp import Context
from pydantic import Field
from typing import Any, Dict, List, Optional, Union


async def glob_files(
    ctx: Context,
    file_pattern: str = Field(
        ...,
        description='Glob pattern like "**/*.json" or "data/**/*.txt", relative to the bucket root',
    ),
    limit: Optional[int] = Field(
        None,
        description='Maximum number of results to return',
        ge=1,
    ),
    offset: int = Field(
        0,
        description='Number of results to skip (for pagination)',
        ge=0,
    ),
) -> Union[str, Dict[str, Any]]:
    """Find files by glob pattern.

    Pattern syntax:
    - **/*.json matches JSON files in any directory
    - data/**/*.txt matches text files under data/
    - **/*test* matches files with "test" in their name

    Matching files are copied into the local content cache in the background
    so a following Grep over them runs locally.

    Args:
        ctx: MCP context for error reporting
        file_pattern: Glob pattern
        limit: Maximum number of results to return
        offset: Number of results to skip

    Returns:
        One S3 URI per line, or error dict
    """
    try:
        filesystem = get_filesystem_context(ctx)
        max_results = offset + limit if limit is not None else None

        files = await filesystem.file_finder.find(
            file_pattern, filesystem.prefix, max_results=max_results
        )
        files = files[offset:]
        logger.info(f'Glob {file_pattern!r} matched {len(files)} files')

        warm_cache(filesystem, files)

        if not files:
            return 'No files found'
        return '\n'.join(filesystem.display_uri(identifier) for identifier in files)
    except Exception as e:
        return await handle_tool_error(ctx, e, f'Error matching {file_pattern}')


def warm_cache(filesystem: FilesystemContext, files: List[ObjectIdentifier]) -> None:
    """Start caching a small enough result set unless the cache is nearly full."""
    if not files or len(files) > GREP_MAX_CANDIDATE_FILES:
        return
    stats = filesystem.content_cache.stats()
    if stats.utilization_percent >= BACKGROUND_WARM_MAX_UTILIZATION_PERCENT:
        logger.debug(f'Cache {stats.utilization_percent}% full, not warming')
        return
    filesystem.content_cache.warm_in_background(files)
