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

"""Grep tool for the S3 filesystem MCP server."""

from awslabs.s3_filesystem_mcp_server.context import get_filesystem_context
from awslabs.s3_filesystem_mcp_server.utils.error_utils import handle_tool_error
from loguru import logger
from mcp.server.fastmcp import Context
from pydantic import Field
from typing import Any, Dict, Optional, Union


async def grep_files(
    ctx: Context,
    pattern: str = Field(
        ...,
        description='The regular expression to search for',
        min_length=1,
    ),
    path: Optional[str] = Field(
        None,
        description='S3 URI or path prefix to search in (e.g., "s3://bucket/data/" or "data/")',
    ),
    glob: Optional[str] = Field(
        None,
        description='Glob pattern to filter files (e.g., "**/*.txt")',
    ),
    case_sensitive: bool = Field(
        False,
        description='Whether to search case-sensitively',
    ),
) -> Union[str, Dict[str, Any]]:
    """Search file contents for a regular expression.

    Use 'path' to narrow the search to a prefix and 'glob' to filter by file
    type. Results are limited to 10 matches per file and 100 in total; each
    result line is "<s3 uri>:<line number>:<text>".

    Args:
        ctx: MCP context for error reporting
        pattern: Regular expression
        path: Optional path prefix filter
        glob: Optional glob filter
        case_sensitive: Whether matching respects letter case

    Returns:
        Matching lines, or error dict
    """
    try:
        filesystem = get_filesystem_context(ctx)
        path_filter = None
        if path:
            # Same URI rules as Read and List, relative to the prefix
            path_filter = filesystem.resolve_key(path)[len(filesystem.prefix) :]
        outcome = await filesystem.search_engine.search(
            pattern,
            path_filter=path_filter,
            glob_filter=glob,
            case_sensitive=case_sensitive,
        )
        outcome.raise_for_status()

        logger.debug(f'Grep {pattern!r} returned {outcome.match_count} matches')
        return '\n'.join(outcome.lines) if outcome.lines else 'No matches found'
    except Exception as e:
        return await handle_tool_error(ctx, e, f'Error searching for {pattern}')
