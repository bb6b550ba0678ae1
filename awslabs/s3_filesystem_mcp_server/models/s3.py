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

"""S3 object models: identifiers, listing metadata and listing pages."""

from awslabs.s3_filesystem_mcp_server.consts import (
    ERROR_INVALID_S3_URI,
    PATH_SEPARATOR,
    S3_URI_SCHEME,
)
from awslabs.s3_filesystem_mcp_server.errors import InvalidIdentifierError
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from typing import Any, Dict, List, Optional, Union


class StorageClass(str, Enum):
    """S3 storage classes reported by ListObjectsV2."""

    STANDARD = 'STANDARD'
    REDUCED_REDUNDANCY = 'REDUCED_REDUNDANCY'
    STANDARD_IA = 'STANDARD_IA'
    ONEZONE_IA = 'ONEZONE_IA'
    INTELLIGENT_TIERING = 'INTELLIGENT_TIERING'
    GLACIER = 'GLACIER'
    DEEP_ARCHIVE = 'DEEP_ARCHIVE'
    OUTPOSTS = 'OUTPOSTS'
    GLACIER_IR = 'GLACIER_IR'
    SNOW = 'SNOW'
    EXPRESS_ONEZONE = 'EXPRESS_ONEZONE'


class ObjectIdentifier(BaseModel):
    """Immutable locator for one object in a bucket."""

    model_config = ConfigDict(frozen=True)

    bucket: str
    key: str

    @field_validator('bucket')
    @classmethod
    def validate_bucket(cls, v: str) -> str:
        """Reject empty bucket names and names containing a separator."""
        if not v:
            raise ValueError('Bucket name cannot be empty')
        if PATH_SEPARATOR in v:
            raise ValueError('Bucket name cannot contain "/"')
        return v

    @field_validator('key')
    @classmethod
    def validate_key(cls, v: str) -> str:
        """Validate S3 object key."""
        if not v:
            raise ValueError('Object key cannot be empty')

        # S3 keys can be up to 1024 characters
        if len(v) > 1024:
            raise ValueError('Object key cannot exceed 1024 characters')

        return v

    @property
    def uri(self) -> str:
        """Get the canonical s3://bucket/key form."""
        return f'{S3_URI_SCHEME}{self.bucket}/{self.key}'

    @property
    def filename(self) -> str:
        """Extract the final path segment of the key."""
        return self.key.rstrip(PATH_SEPARATOR).split(PATH_SEPARATOR)[-1]

    @property
    def is_directory_marker(self) -> bool:
        """True for zero-byte keys that only mark a folder."""
        return self.key.endswith(PATH_SEPARATOR)

    @classmethod
    def from_uri(cls, uri: str) -> 'ObjectIdentifier':
        """Parse an ``s3://bucket/key`` URI.

        Raises:
            InvalidIdentifierError: If the URI is not a well-formed S3 object URI
        """
        if not isinstance(uri, str) or not uri.startswith(S3_URI_SCHEME):
            raise InvalidIdentifierError(ERROR_INVALID_S3_URI.format(uri))

        bucket, sep, key = uri[len(S3_URI_SCHEME) :].partition(PATH_SEPARATOR)
        if not sep:
            raise InvalidIdentifierError(f'{ERROR_INVALID_S3_URI.format(uri)}. Missing object key')

        try:
            return cls(bucket=bucket, key=key)
        except ValidationError as e:
            reasons = '; '.join(err['msg'] for err in e.errors())
            raise InvalidIdentifierError(f'{ERROR_INVALID_S3_URI.format(uri)}. {reasons}') from e

    def __str__(self) -> str:
        """String representation returns the S3 URI."""
        return self.uri


class ObjectMetadata(BaseModel):
    """Listing metadata for one object, as found in a manifest or ListObjectsV2 page.

    Field aliases follow the manifest JSON (camelCase). ``storage_class`` keeps
    unknown values verbatim so newer storage classes never break a manifest load.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    key: str
    size: Optional[int] = None
    last_modified: Optional[datetime] = Field(default=None, alias='lastModified')
    etag: Optional[str] = Field(default=None, alias='eTag')
    storage_class: Optional[Union[StorageClass, str]] = Field(
        default=None, alias='storageClass', union_mode='left_to_right'
    )

    @field_validator('last_modified')
    @classmethod
    def ensure_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Treat timestamps without an offset as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def storage_class_name(self) -> Optional[str]:
        """Storage class as a plain string, known or not."""
        if isinstance(self.storage_class, StorageClass):
            return self.storage_class.value
        return self.storage_class

    @property
    def has_metadata(self) -> bool:
        """True when any field beyond the key is populated."""
        return any(
            value is not None
            for value in (self.size, self.last_modified, self.etag, self.storage_class)
        )


def object_metadata_from_s3_object(s3_object: Dict[str, Any]) -> ObjectMetadata:
    """Create ObjectMetadata from a list_objects_v2 ``Contents`` entry.

    Args:
        s3_object: S3 object dictionary from list_objects_v2

    Returns:
        ObjectMetadata instance
    """
    etag = s3_object.get('ETag')
    return ObjectMetadata(
        key=s3_object['Key'],
        size=s3_object.get('Size'),
        last_modified=s3_object.get('LastModified'),
        etag=etag.strip('"') if etag else None,  # Remove quotes from ETag
        storage_class=s3_object.get('StorageClass'),
    )


@dataclass
class ListPage:
    """One page of a ListObjectsV2 listing."""

    items: List[ObjectMetadata] = field(default_factory=list)
    next_token: Optional[str] = None
    common_prefixes: List[str] = field(default_factory=list)  # Only with a delimiter
