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

"""Generate a bucket manifest so listings and metadata filters avoid live S3 listing.

Usage:
    awslabs.s3-filesystem-manifest <bucket> [prefix] [--region REGION] [--output PATH]
"""

import argparse
import os
import sys
from awslabs.s3_filesystem_mcp_server.consts import (
    DEFAULT_MANIFEST_DIR,
    DEFAULT_MANIFEST_KEY,
    DEFAULT_S3_PAGE_SIZE,
    MANIFEST_FORMAT_VERSION,
)
from awslabs.s3_filesystem_mcp_server.models import Manifest, object_metadata_from_s3_object
from awslabs.s3_filesystem_mcp_server.utils.aws_utils import get_s3_client
from awslabs.s3_filesystem_mcp_server.utils.s3_utils import (
    is_valid_bucket_name,
    manifest_filename_for_bucket,
)
from botocore.exceptions import BotoCoreError, ClientError
from datetime import datetime, timezone
from loguru import logger
from pathlib import Path
from typing import Any, Optional


def build_manifest(
    s3_client: Any,
    bucket: str,
    prefix: str = '',
    manifest_key: str = DEFAULT_MANIFEST_KEY,
) -> Manifest:
    """List every object under a prefix into a structured manifest.

    Args:
        s3_client: boto3 S3 client
        bucket: Bucket to list
        prefix: Key prefix to restrict the listing to
        manifest_key: Key of a stored manifest, left out of the listing

    Returns:
        Manifest with one entry per object, in listing order
    """
    paginator = s3_client.get_paginator('list_objects_v2')
    files = []
    page_count = 0

    for page in paginator.paginate(
        Bucket=bucket, Prefix=prefix, PaginationConfig={'PageSize': DEFAULT_S3_PAGE_SIZE}
    ):
        page_count += 1
        contents = page.get('Contents', [])
        for s3_object in contents:
            if s3_object['Key'] == manifest_key:
                continue
            files.append(object_metadata_from_s3_object(s3_object))
        logger.info(f'Page {page_count}: {len(contents)} objects ({len(files)} total)')

    return Manifest(
        files=tuple(files),
        last_updated=datetime.now(timezone.utc),
        version=MANIFEST_FORMAT_VERSION,
    )


def write_manifest(manifest: Manifest, output: Path) -> int:
    """Write a manifest as camelCase JSON and return its size in bytes."""
    content = manifest.model_dump_json(by_alias=True, exclude_none=True, indent=2)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(content, encoding='utf-8')
    return len(content.encode('utf-8'))


def main(argv: Optional[list] = None) -> int:
    """Run the manifest generator."""
    parser = argparse.ArgumentParser(
        description='Generate a manifest file for an S3 bucket to speed up listings and searches'
    )
    parser.add_argument('bucket', help='Bucket to list')
    parser.add_argument('prefix', nargs='?', default='', help='Key prefix to restrict to')
    parser.add_argument('--region', help='AWS region of the bucket')
    parser.add_argument(
        '--output',
        help=f'Output file (default: {DEFAULT_MANIFEST_DIR}/<bucket>-manifest.json)',
    )
    args = parser.parse_args(argv)

    logger.remove()
    logger.add(sys.stderr, level=os.getenv('FASTMCP_LOG_LEVEL', 'INFO'))

    if not is_valid_bucket_name(args.bucket):
        logger.warning(f'Bucket name {args.bucket!r} does not look like a valid S3 bucket name')

    output = (
        Path(args.output)
        if args.output
        else Path(DEFAULT_MANIFEST_DIR) / manifest_filename_for_bucket(args.bucket)
    )

    location = f's3://{args.bucket}/{args.prefix}'
    logger.info(f'Generating manifest for {location}, this may take a while for large buckets')
    try:
        manifest = build_manifest(get_s3_client(args.region), args.bucket, args.prefix)
    except (BotoCoreError, ClientError) as e:
        logger.error(f'Error generating manifest for {location}: {e}')
        return 1

    size = write_manifest(manifest, output)
    logger.info(
        f'Manifest with {len(manifest.files)} files ({size / 1024:.2f} KB) saved to {output}'
    )
    return 0


if __name__ == '__main__':
    sys.exit(main())
