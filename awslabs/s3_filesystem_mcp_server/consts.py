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

"""Defines constants used across the server."""

# Service constants
DEFAULT_REGION = 'us-east-1'
S3_URI_SCHEME = 's3://'
PATH_SEPARATOR = '/'

# S3 listing
DEFAULT_S3_PAGE_SIZE = 1000

# Environment variables
S3_BUCKET_ENV = 'S3_BUCKET'
S3_PREFIX_ENV = 'S3_PREFIX'
S3_REGION_ENV = 'S3_REGION'
MANIFEST_DIR_ENV = 'S3_FS_MANIFEST_DIR'
MANIFEST_PATH_ENV = 'S3_FS_MANIFEST_PATH'
MANIFEST_KEY_ENV = 'S3_FS_MANIFEST_KEY'
MANIFEST_TTL_ENV = 'S3_FS_MANIFEST_TTL_SECONDS'
CACHE_DIR_ENV = 'S3_FS_CACHE_DIR'
CACHE_MAX_BYTES_ENV = 'S3_FS_CACHE_MAX_BYTES'
CACHE_MAX_ENTRIES_ENV = 'S3_FS_CACHE_MAX_ENTRIES'
CACHE_MAX_FILE_BYTES_ENV = 'S3_FS_CACHE_MAX_FILE_BYTES'
MAX_CONCURRENT_DOWNLOADS_ENV = 'S3_FS_MAX_CONCURRENT_DOWNLOADS'
SEARCH_TIMEOUT_ENV = 'S3_FS_SEARCH_TIMEOUT_SECONDS'
RIPGREP_PATH_ENV = 'S3_FS_RIPGREP_PATH'

# Manifest defaults
DEFAULT_MANIFEST_DIR = '.manifest'
DEFAULT_MANIFEST_KEY = '.amp-manifest.json'
DEFAULT_MANIFEST_TTL_SECONDS = 300  # 5 minutes
MANIFEST_FORMAT_VERSION = 2

# Content cache defaults
DEFAULT_CACHE_DIR_NAME = 's3-mcp-cache'
DEFAULT_CACHE_MAX_BYTES = 2 * 1024 * 1024 * 1024  # 2 GiB
DEFAULT_CACHE_MAX_ENTRIES = 10000
DEFAULT_CACHE_MAX_FILE_BYTES = 100 * 1024 * 1024  # 100 MiB
DEFAULT_MAX_CONCURRENT_DOWNLOADS = 10
BACKGROUND_WARM_MAX_UTILIZATION_PERCENT = 90

# Text search defaults
DEFAULT_RIPGREP_EXECUTABLE = 'rg'
DEFAULT_SEARCH_TIMEOUT_SECONDS = 45
GREP_MAX_TOTAL_RESULTS = 100
GREP_MAX_RESULTS_PER_FILE = 10
GREP_MAX_COLUMN_LENGTH = 200
GREP_MAX_CANDIDATE_FILES = 1000
GREP_DEFAULT_GLOB = '**/*'

GREP_TRUNCATION_HEADER = '\nResults truncated: showing first {} matches.'
GREP_TRUNCATION_HINT = (
    'To see more results:\n'
    "  • Use the 'path' parameter to search in a specific directory\n"
    "  • Use the 'glob' parameter to filter by file type\n"
    '  • Make your search pattern more specific'
)

# Read tool defaults
READ_DEFAULT_MAX_LINES = 1000

# Error messages
ERROR_BUCKET_NOT_CONFIGURED = (
    'No S3 bucket configured. Set the S3_BUCKET environment variable to the bucket to expose.'
)
ERROR_NO_MANIFEST = (
    'No manifest available. Generate one using: '
    'awslabs.s3-filesystem-manifest <bucket> [prefix] [--region REGION]'
)
ERROR_INVALID_S3_URI = 'Invalid S3 URI: {}'
ERROR_BUCKET_MISMATCH = 'URI bucket {} does not match configured bucket {}'
