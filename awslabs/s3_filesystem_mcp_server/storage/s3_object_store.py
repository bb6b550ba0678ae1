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

"""Async wrapper around the boto3 S3 client for one bucket."""

import asyncio
import gzip
from awslabs.s3_filesystem_mcp_server.consts import DEFAULT_S3_PAGE_SIZE
from awslabs.s3_filesystem_mcp_server.errors import NotFoundError, UpstreamError
from awslabs.s3_filesystem_mcp_server.models import (
    ListPage,
    ObjectIdentifier,
    ObjectMetadata,
    object_metadata_from_s3_object,
)
from awslabs.s3_filesystem_mcp_server.utils.aws_utils import get_s3_client
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger
from typing import Any, Dict, Optional


NOT_FOUND_ERROR_CODES = frozenset({'NoSuchKey', 'NoSuchBucket', 'NotFound', '404'})

GZIP_SUFFIX = '.gz'


class S3ObjectStore:
    """Read-only access to the objects of one bucket.

    boto3 is synchronous, so every call runs in the default executor. botocore
    errors are translated here and nowhere else: ``NotFoundError`` for missing
    keys or buckets, ``UpstreamError`` for everything else.
    """

    def __init__(self, bucket: str, s3_client: Optional[Any] = None, region: Optional[str] = None):
        """Initialize the store.

        Args:
            bucket: Bucket that listings are scoped to
            s3_client: Pre-built boto3 S3 client, created from the session when omitted
            region: Region used when creating the client
        """
        self.bucket = bucket
        self.s3_client = s3_client if s3_client is not None else get_s3_client(region)

    async def get_object_bytes(self, identifier: ObjectIdentifier) -> bytes:
        """Download the raw bytes of an object.

        Raises:
            NotFoundError: If the object does not exist
            UpstreamError: If the request fails for any other reason
        """

        def _download() -> bytes:
            response = self.s3_client.get_object(Bucket=identifier.bucket, Key=identifier.key)
            return response['Body'].read()

        loop = asyncio.get_event_loop()
        try:
            data = await loop.run_in_executor(None, _download)
        except ClientError as e:
            raise self._translate_client_error(e, identifier.uri) from e
        except BotoCoreError as e:
            logger.error(f'Error downloading {identifier.uri}: {e}')
            raise UpstreamError(f'Failed to download {identifier.uri}: {e}') from e

        logger.debug(f'Downloaded {len(data)} bytes from {identifier.uri}')
        return data

    async def get_object_content(self, identifier: ObjectIdentifier) -> bytes:
        """Download an object, transparently decompressing ``.gz`` keys.

        Raises:
            NotFoundError: If the object does not exist
            UpstreamError: If the request fails or the gzip stream is corrupt
        """
        data = await self.get_object_bytes(identifier)
        if not identifier.key.endswith(GZIP_SUFFIX):
            return data

        try:
            return gzip.decompress(data)
        except (OSError, EOFError) as e:
            logger.error(f'Error decompressing {identifier.uri}: {e}')
            raise UpstreamError(f'Failed to decompress {identifier.uri}: {e}') from e

    async def read_text(self, identifier: ObjectIdentifier) -> str:
        """Download an object as UTF-8 text, replacing undecodable bytes."""
        content = await self.get_object_content(identifier)
        return content.decode('utf-8', errors='replace')

    async def head_object(self, identifier: ObjectIdentifier) -> ObjectMetadata:
        """Fetch an object's metadata without downloading it.

        Raises:
            NotFoundError: If the object does not exist
            UpstreamError: If the request fails for any other reason
        """
        loop = asyncio.get_event_loop()
        try:
            response = await loop.run_in_executor(
                None,
                lambda: self.s3_client.head_object(Bucket=identifier.bucket, Key=identifier.key),
            )
        except ClientError as e:
            raise self._translate_client_error(e, identifier.uri) from e
        except BotoCoreError as e:
            logger.error(f'Error reading metadata of {identifier.uri}: {e}')
            raise UpstreamError(f'Failed to read metadata of {identifier.uri}: {e}') from e

        etag = response.get('ETag')
        return ObjectMetadata(
            key=identifier.key,
            size=response.get('ContentLength'),
            last_modified=response.get('LastModified'),
            etag=etag.strip('"') if etag else None,
            # HeadObject omits the storage class for STANDARD objects
            storage_class=response.get('StorageClass', 'STANDARD'),
        )

    async def list_objects_page(
        self,
        prefix: str = '',
        continuation_token: Optional[str] = None,
        max_keys: int = DEFAULT_S3_PAGE_SIZE,
        delimiter: Optional[str] = None,
    ) -> ListPage:
        """List one page of objects under a prefix.

        Args:
            prefix: Object key prefix to filter by
            continuation_token: S3 continuation token from the previous page
            max_keys: Maximum number of keys to return (at most 1000)
            delimiter: Group keys below the next delimiter into common prefixes

        Returns:
            ListPage with the page's objects, common prefixes and the next
            continuation token, if any

        Raises:
            NotFoundError: If the bucket does not exist
            UpstreamError: If the request fails for any other reason
        """
        params: Dict[str, Any] = {
            'Bucket': self.bucket,
            'Prefix': prefix,
            'MaxKeys': min(max_keys, DEFAULT_S3_PAGE_SIZE),
        }
        if continuation_token:
            params['ContinuationToken'] = continuation_token
        if delimiter:
            params['Delimiter'] = delimiter

        # Execute the list operation asynchronously
        loop = asyncio.get_event_loop()
        try:
            response = await loop.run_in_executor(
                None, lambda: self.s3_client.list_objects_v2(**params)
            )
        except ClientError as e:
            raise self._translate_client_error(e, f's3://{self.bucket}/{prefix}') from e
        except BotoCoreError as e:
            logger.error(f'Error listing objects in s3://{self.bucket}/{prefix}: {e}')
            raise UpstreamError(f'Failed to list s3://{self.bucket}/{prefix}: {e}') from e

        items = [object_metadata_from_s3_object(obj) for obj in response.get('Contents', [])]
        common_prefixes = [cp['Prefix'] for cp in response.get('CommonPrefixes', [])]
        next_token = (
            response.get('NextContinuationToken') if response.get('IsTruncated', False) else None
        )

        logger.debug(
            f'Listed {len(items)} objects in s3://{self.bucket}/{prefix} '
            f'(next_token: {bool(next_token)})'
        )
        return ListPage(items=items, next_token=next_token, common_prefixes=common_prefixes)

    @staticmethod
    def _translate_client_error(error: ClientError, location: str) -> Exception:
        error_code = error.response.get('Error', {}).get('Code', '')
        if error_code in NOT_FOUND_ERROR_CODES:
            logger.debug(f'{location} not found ({error_code})')
            return NotFoundError(f'Not found: {location}')

        error_message = error.response.get('Error', {}).get('Message', str(error))
        logger.error(f'S3 request for {location} failed: {error_code} {error_message}')
        return UpstreamError(f'S3 request for {location} failed: {error_code}: {error_message}')
