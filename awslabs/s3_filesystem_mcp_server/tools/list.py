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

"""List tool for the S3 filesystem MCP server."""

from awslabs.s3_filesystem_mcp_server.consts import PATH_SEPARATOR
from awslabs.s3_filesystem_mcp_server.context import FilesystemContext, get_filesystem_context
from awslabs.s3_filesystem_mcp_server.storage.manifest_store import DirectoryIndex
from awslabs.s3_filesystem_mcp_server.utils.error_utils import handle_tool_error
from loguru import logger
from mcp.server.fastmcp import Context
from pydantic import Field
from typing import Any, Dict, List, Optional, Union


async def list_directory(
    ctx: Context,
    path: str = Field(
        ...,
        description='S3 URI of the directory to list (e.g., s3://bucket/path/to/dir/)',
    ),
) -> Union[str, Dict[str, Any]]:
    """List the immediate children of a directory.

    Subdirectories carry a trailing "/". The manifest is used when one is
    available, otherwise the bucket is listed directly.

    Args:
        ctx: MCP context for error reporting
        path: S3 URI or path relative to the configured prefix

    Returns:
        One entry name per line, or error dict
    """
    try:
        filesystem = get_filesystem_context(ctx)
        directory = DirectoryIndex.normalize_path(filesystem.resolve_key(path))

        await filesystem.manifest_store.fetch()
        entries = filesystem.manifest_store.list_directory(directory)
        if entries is None:
            logger.debug(f'No manifest, listing s3://{filesystem.bucket}/{directory} directly')
            entries = await list_by_delimiter(filesystem, directory)

        return '\n'.join(entries) if entries else 'Empty directory'
    except Exception as e:
        return await handle_tool_error(ctx, e, f'Error listing {path}')


async def list_by_delimiter(filesystem: FilesystemContext, directory: str) -> List[str]:
    """List a directory with delimited ListObjectsV2 calls, sorted like a manifest listing."""
    excluded = {filesystem.config.manifest_key}
    children = set()
    token: Optional[str] = None

    while True:
        page = await filesystem.object_store.list_objects_page(
            prefix=directory, continuation_token=token, delimiter=PATH_SEPARATOR
        )
        for common_prefix in page.common_prefixes:
            name = common_prefix[len(directory) :]
            if name.strip(PATH_SEPARATOR):
                children.add(name)
        for item in page.items:
            name = item.key[len(directory) :]
            # Skip the directory's own marker object
            if name and item.key not in excluded:
                children.add(name)
        token = page.next_token
        if not token:
            break

    return sorted(children)
