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

"""S3 utility functions for the S3 filesystem MCP server."""

import re
from awslabs.s3_filesystem_mcp_server.consts import PATH_SEPARATOR


def is_valid_bucket_name(bucket_name: str) -> bool:
    """Perform basic validation of S3 bucket name format.

    Args:
        bucket_name: Bucket name to validate

    Returns:
        True if bucket name appears valid, False otherwise
    """
    # Basic validation - AWS has more complex rules, but this covers common cases
    if not bucket_name:
        return False

    if len(bucket_name) < 3 or len(bucket_name) > 63:
        return False

    # Must start and end with alphanumeric
    if not (bucket_name[0].isalnum() and bucket_name[-1].isalnum()):
        return False

    # Can contain lowercase letters, numbers, hyphens, and periods
    allowed_chars = set('abcdefghijklmnopqrstuvwxyz0123456789-.')
    if not all(c in allowed_chars for c in bucket_name):
        return False

    return True


def normalize_prefix(prefix: str) -> str:
    """Normalize a key prefix to be empty or end with a single separator.

    Args:
        prefix: Raw key prefix, possibly with leading slashes

    Returns:
        Normalized prefix
    """
    prefix = prefix.strip().lstrip(PATH_SEPARATOR)
    if prefix and not prefix.endswith(PATH_SEPARATOR):
        prefix += PATH_SEPARATOR
    return prefix


def manifest_filename_for_bucket(bucket_name: str) -> str:
    """Build the local manifest file name for a bucket.

    Every character outside ``[A-Za-z0-9]`` becomes ``-``, so
    ``my.bucket`` maps to ``my-bucket-manifest.json``.
    """
    return f'{re.sub(r"[^a-zA-Z0-9]", "-", bucket_name)}-manifest.json'
