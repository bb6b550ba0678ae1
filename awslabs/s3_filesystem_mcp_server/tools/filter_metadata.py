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

"""Metadata filter tool for the S3 filesystem MCP server."""

from awslabs.s3_filesystem_mcp_server.context import FilesystemContext, get_filesystem_context
from awslabs.s3_filesystem_mcp_server.errors import InvalidArgumentError
from awslabs.s3_filesystem_mcp_server.models import MetadataFilterCriteria, ObjectMetadata
from awslabs.s3_filesystem_mcp_server.search.metadata_filter import filter_metadata
from awslabs.s3_filesystem_mcp_server.utils.error_utils import handle_tool_error
from datetime import datetime
from loguru import logger
from mcp.server.fastmcp import Context
from pydantic import Field, ValidationError
from typing import Any, Dict, Optional, Union


async def filter_files_by_metadata(
    ctx: Context,
    min_size: Optional[int] = Field(None, description='Minimum file size in bytes', ge=0),
    max_size: Optional[int] = Field(None, description='Maximum file size in bytes', ge=0),
    modified_after: Optional[datetime] = Field(
        None,
        description='Only files modified at or after this ISO date (e.g., "2024-01-01T00:00:00Z")',
    ),
    modified_before: Optional[datetime] = Field(
        None,
        description='Only files modified at or before this ISO date (e.g., "2024-12-31T23:59:59Z")',
    ),
    storage_class: Optional[str] = Field(
        None,
        description='Storage class (STANDARD, GLACIER, DEEP_ARCHIVE, INTELLIGENT_TIERING, etc.)',
    ),
    key_pattern: Optional[str] = Field(
        None,
        description='Regular expression searched for in each full object key',
    ),
    limit: Optional[int] = Field(None, description='Maximum number of results to return', ge=1),
    offset: int = Field(0, description='Number of results to skip (for pagination)', ge=0),
) -> Union[str, Dict[str, Any]]:
    """Filter files by size, modification date, storage class and key pattern.

    All filters are optional and combine with AND. Files missing the metadata
    a filter needs never match it. Requires a manifest.

    Examples:
    - Large files: min_size=104857600
    - Modified in 2024: modified_after="2024-01-01T00:00:00Z", modified_before="2024-12-31T23:59:59Z"
    - Small log files: max_size=1048576, key_pattern="\\.log$"
    - Archived files: storage_class="GLACIER"

    Args:
        ctx: MCP context for error reporting
        min_size: Minimum size in bytes, inclusive
        max_size: Maximum size in bytes, inclusive
        modified_after: Earliest modification time, inclusive
        modified_before: Latest modification time, inclusive
        storage_class: Exact storage class
        key_pattern: Regular expression over the object key
        limit: Maximum number of results
        offset: Number of matching results to skip

    Returns:
        One line per matching file, or error dict
    """
    try:
        filesystem = get_filesystem_context(ctx)
        try:
            criteria = MetadataFilterCriteria(
                min_size=min_size,
                max_size=max_size,
                modified_after=modified_after,
                modified_before=modified_before,
                storage_class=storage_class,
                key_pattern=key_pattern,
            )
        except ValidationError as e:
            reasons = '; '.join(err['msg'] for err in e.errors())
            raise InvalidArgumentError(f'Invalid filters: {reasons}') from e

        logger.info(f'Filtering manifest with {criteria.model_dump(exclude_none=True)}')
        manifest = await filesystem.manifest_store.fetch()
        results = filter_metadata(manifest, criteria, limit=limit, offset=offset)

        if not results:
            return 'No files match the specified filters'
        return '\n'.join(format_entry(filesystem, entry) for entry in results)
    except Exception as e:
        return await handle_tool_error(ctx, e, 'Error filtering files by metadata')


def format_entry(filesystem: FilesystemContext, entry: ObjectMetadata) -> str:
    """Format one entry as ``<uri> (<size> KB, modified: <time>, class: <class>)``."""
    size = f'{entry.size / 1024:.2f} KB' if entry.size is not None else 'unknown'
    modified = entry.last_modified.isoformat() if entry.last_modified else 'unknown'
    storage_class = entry.storage_class_name or 'unknown'
    return (
        f'{filesystem.key_to_uri(entry.key)} '
        f'({size}, modified: {modified}, class: {storage_class})'
    )
