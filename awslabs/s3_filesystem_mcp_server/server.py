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

"""awslabs s3-filesystem MCP Server implementation."""

import argparse
import os
import sys
from awslabs.s3_filesystem_mcp_server.consts import (
    S3_BUCKET_ENV,
    S3_PREFIX_ENV,
    S3_REGION_ENV,
)
from awslabs.s3_filesystem_mcp_server.context import create_filesystem_context
from awslabs.s3_filesystem_mcp_server.tools.filter_metadata import filter_files_by_metadata
from awslabs.s3_filesystem_mcp_server.tools.glob import glob_files
from awslabs.s3_filesystem_mcp_server.tools.grep import grep_files
from awslabs.s3_filesystem_mcp_server.tools.list import list_directory
from awslabs.s3_filesystem_mcp_server.tools.read import read_path
from awslabs.s3_filesystem_mcp_server.utils.filesystem_config import get_filesystem_config
from contextlib import asynccontextmanager
from loguru import logger
from mcp.server.fastmcp import FastMCP


@asynccontextmanager
async def server_lifespan(server: FastMCP):
    """Build the filesystem components on startup and release them on shutdown."""
    config = get_filesystem_config()
    filesystem = create_filesystem_context(config)

    # Load the manifest once so the first listing does not pay for it
    await filesystem.manifest_store.fetch()
    logger.info('S3 filesystem MCP server ready')
    try:
        yield filesystem
    finally:
        await filesystem.aclose()


mcp = FastMCP(
    'awslabs.s3-filesystem-mcp-server',
    instructions="""
# S3 Filesystem MCP Server

This MCP server exposes one S3 bucket (optionally a prefix of it) as a read-only filesystem.
Paths are S3 URIs such as s3://bucket/path/to/file.txt, relative to the configured prefix.

## Available Tools

- **Read**: Read a file with line numbers (first 1000 lines, or a read_range), or list a directory
  when the path ends with "/"
- **List**: List the immediate children of a directory; subdirectories end with "/"
- **Glob**: Find files by glob pattern such as "**/*.json" or "data/**/*.csv"
- **Grep**: Search file contents with a regular expression, optionally narrowed by path or glob
- **FilterMetadata**: Find files by size, modification date, storage class or key regex

## Usage Notes

- Start with Glob or List to explore, then Grep to find content and Read to inspect it
- Glob results are cached locally in the background, which makes a following Grep faster
- Grep returns at most 10 matches per file and 100 in total; narrow the path or glob when
  results are truncated
- Directory listings through Read and FilterMetadata require a manifest generated with
  awslabs.s3-filesystem-manifest
""",
    dependencies=[
        'boto3',
        'cachetools',
        'loguru',
        'pydantic',
    ],
    lifespan=server_lifespan,
)

# Register file reading and listing tools
mcp.tool(name='Read')(read_path)
mcp.tool(name='List')(list_directory)

# Register search tools
mcp.tool(name='Glob')(glob_files)
mcp.tool(name='Grep')(grep_files)
mcp.tool(name='FilterMetadata')(filter_files_by_metadata)


def main():
    """Run the MCP server with CLI argument support."""
    parser = argparse.ArgumentParser(
        description='An AWS Labs Model Context Protocol (MCP) server exposing S3 as a filesystem'
    )
    parser.add_argument('--bucket', help=f'Bucket to expose (overrides {S3_BUCKET_ENV})')
    parser.add_argument('--prefix', help=f'Key prefix to root the filesystem at ({S3_PREFIX_ENV})')
    parser.add_argument('--region', help=f'AWS region of the bucket ({S3_REGION_ENV})')
    args = parser.parse_args()

    # The lifespan reads its configuration from the environment
    if args.bucket:
        os.environ[S3_BUCKET_ENV] = args.bucket
    if args.prefix:
        os.environ[S3_PREFIX_ENV] = args.prefix
    if args.region:
        os.environ[S3_REGION_ENV] = args.region

    logger.remove()
    logger.add(sys.stderr, level=os.getenv('FASTMCP_LOG_LEVEL', 'WARNING'))

    logger.info('S3 filesystem MCP server starting')
    mcp.run()


if __name__ == '__main__':
    main()
