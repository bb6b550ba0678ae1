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

"""Read tool for the S3 filesystem MCP server."""

from awslabs.s3_filesystem_mcp_server.consts import (
    ERROR_NO_MANIFEST,
    PATH_SEPARATOR,
    READ_DEFAULT_MAX_LINES,
)
from awslabs.s3_filesystem_mcp_server.context import FilesystemContext, get_filesystem_context
from awslabs.s3_filesystem_mcp_server.errors import InvalidArgumentError, NoManifestError
from awslabs.s3_filesystem_mcp_server.storage.manifest_store import DirectoryIndex
from awslabs.s3_filesystem_mcp_server.utils.error_utils import handle_tool_error
from loguru import logger
from mcp.server.fastmcp import Context
from pydantic import Field
from typing import Any, Dict, List, Optional, Union


async def read_path(
    ctx: Context,
    path: str = Field(
        ...,
        description='S3 URI to read (e.g., s3://bucket/path/to/file.txt). End with "/" to list a directory',
    ),
    read_range: Optional[List[int]] = Field(
        None,
        description='Line range to read [start, end] (1-indexed, inclusive). Example: [500, 700]',
        min_length=2,
        max_length=2,
    ),
) -> Union[str, Dict[str, Any]]:
    """Read a file or list a directory.

    Files are returned line-numbered, the first 1000 lines unless read_range is
    given. Directory paths (ending in "/") are listed from the manifest, with
    chains of single-subdirectory levels collapsed into one step.

    Args:
        ctx: MCP context for error reporting
        path: S3 URI or path relative to the configured prefix
        read_range: Optional [start, end] line range, 1-indexed and inclusive

    Returns:
        Numbered file lines or directory entries, or error dict
    """
    try:
        filesystem = get_filesystem_context(ctx)

        if path.strip().endswith(PATH_SEPARATOR):
            return await list_collapsed_directory(filesystem, path)

        start, end = _validate_read_range(read_range)
        identifier = filesystem.resolve_identifier(path)
        logger.info(f'Reading {identifier.uri}')
        content = await filesystem.object_store.read_text(identifier)

        return number_lines(content, start, end)
    except Exception as e:
        return await handle_tool_error(ctx, e, f'Error reading {path}')


async def list_collapsed_directory(filesystem: FilesystemContext, path: str) -> str:
    """List a directory from the manifest, descending through single-subdirectory levels.

    Raises:
        NoManifestError: If no manifest is available
    """
    await filesystem.manifest_store.fetch()
    current = filesystem.resolve_key(path)
    collapsed = ''

    while True:
        entries = filesystem.manifest_store.list_directory(current)
        if entries is None:
            raise NoManifestError(ERROR_NO_MANIFEST)
        if not entries:
            return 'Directory not found or empty'

        if len(entries) == 1 and entries[0].endswith(PATH_SEPARATOR):
            collapsed += entries[0]
            current = DirectoryIndex.normalize_path(current) + entries[0]
            continue

        header = f'Showing {collapsed}\n\n' if collapsed else ''
        numbered = '\n'.join(f'{i}: {entry}' for i, entry in enumerate(entries, start=1))
        return header + numbered


def number_lines(content: str, start: Optional[int] = None, end: Optional[int] = None) -> str:
    """Prefix each line with its 1-indexed number, limited to a range or the default window."""
    lines = content.split('\n')
    if start is None:
        start, end = 1, READ_DEFAULT_MAX_LINES
    selected = lines[start - 1 : end]
    return '\n'.join(f'{start + i}: {line}' for i, line in enumerate(selected))


def _validate_read_range(read_range: Optional[List[int]]):
    if read_range is None:
        return None, None
    if len(read_range) != 2:
        raise InvalidArgumentError('read_range must be [start, end]')
    start, end = read_range
    if start < 1 or end < start:
        raise InvalidArgumentError(
            f'read_range must satisfy 1 <= start <= end, got [{start}, {end}]'
        )
    return start, end
