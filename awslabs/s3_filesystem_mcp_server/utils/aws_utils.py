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

"""AWS utility functions for the S3 filesystem MCP server."""

import boto3
import botocore.session
import os
from awslabs.s3_filesystem_mcp_server import __version__
from awslabs.s3_filesystem_mcp_server.consts import DEFAULT_REGION, S3_REGION_ENV
from botocore.config import Config
from loguru import logger
from typing import Any, Optional


def get_region() -> str:
    """Get the AWS region from environment variables or default.

    ``S3_REGION`` takes precedence over ``AWS_REGION``.

    Returns:
        str: AWS region name
    """
    region = os.environ.get(S3_REGION_ENV) or os.environ.get('AWS_REGION')
    if region and region.strip():
        return region.strip()
    return DEFAULT_REGION


def get_aws_session(region_name: Optional[str] = None) -> boto3.Session:
    """Get an AWS session with the centralized region configuration.

    Args:
        region_name: Region override, defaults to get_region()

    Returns:
        boto3.Session: Configured AWS session
    """
    botocore_session = botocore.session.Session()
    user_agent_extra = f'awslabs/mcp/s3-filesystem-mcp-server/{__version__}'
    botocore_session.user_agent_extra = user_agent_extra
    return boto3.Session(
        region_name=region_name or get_region(), botocore_session=botocore_session
    )


def get_s3_client(region_name: Optional[str] = None, max_pool_connections: int = 10) -> Any:
    """Get an Amazon S3 client.

    The connection pool is sized for the download concurrency window so that
    batch cache fills do not queue on the HTTP pool.

    Args:
        region_name: Region override, defaults to get_region()
        max_pool_connections: Size of the urllib3 connection pool

    Returns:
        boto3.client: Configured S3 client

    Raises:
        Exception: If client creation fails
    """
    session = get_aws_session(region_name)
    try:
        return session.client('s3', config=Config(max_pool_connections=max_pool_connections))
    except Exception as e:
        logger.error(f'Failed to create s3 client in region {session.region_name}: {str(e)}')
        raise
