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

"""Unit tests for models."""

import pytest
from awslabs.s3_filesystem_mcp_server.errors import (
    InvalidIdentifierError,
    SearchAbortedError,
    SearchExecutionError,
    SearchTimeoutError,
)
from awslabs.s3_filesystem_mcp_server.models import (
    BatchCacheResult,
    CacheStats,
    Manifest,
    MetadataFilterCriteria,
    ObjectIdentifier,
    ObjectMetadata,
    SearchMode,
    SearchOutcome,
    SearchStatus,
    StorageClass,
    object_metadata_from_s3_object,
)
from datetime import datetime, timezone
from pathlib import Path
from pydantic import ValidationError


def test_object_identifier_from_uri():
    """Test parsing an object URI."""
    identifier = ObjectIdentifier.from_uri('s3://test-bucket/data/raw/events.json')

    assert identifier.bucket == 'test-bucket'
    assert identifier.key == 'data/raw/events.json'
    assert identifier.filename == 'events.json'
    assert identifier.uri == 's3://test-bucket/data/raw/events.json'
    assert str(identifier) == identifier.uri
    assert not identifier.is_directory_marker


def test_object_identifier_keeps_special_characters():
    """Test that keys containing URI delimiters are kept verbatim."""
    identifier = ObjectIdentifier.from_uri('s3://test-bucket/notes/a#b?c.txt')
    assert identifier.key == 'notes/a#b?c.txt'


def test_object_identifier_directory_marker():
    """Test directory marker detection."""
    identifier = ObjectIdentifier(bucket='test-bucket', key='data/raw/')
    assert identifier.is_directory_marker
    assert identifier.filename == 'raw'


@pytest.mark.parametrize(
    'uri',
    ['', 'https://test-bucket/key', 's3://test-bucket', 's3://test-bucket/', 's3:///key'],
)
def test_object_identifier_from_uri_invalid(uri):
    """Test malformed URIs raise InvalidIdentifierError."""
    with pytest.raises(InvalidIdentifierError, match='Invalid S3 URI'):
        ObjectIdentifier.from_uri(uri)


def test_object_identifier_validation():
    """Test identifier field validation."""
    with pytest.raises(ValidationError):
        ObjectIdentifier(bucket='', key='a')
    with pytest.raises(ValidationError):
        ObjectIdentifier(bucket='test-bucket', key='x' * 1025)


def test_object_identifier_is_hashable():
    """Test identifiers can key dictionaries."""
    a = ObjectIdentifier(bucket='b1', key='k')
    b = ObjectIdentifier(bucket='b1', key='k')
    assert a == b
    assert len({a: 1, b: 2}) == 1


def test_object_metadata_aliases():
    """Test manifest camelCase aliases and snake_case names both populate fields."""
    from_json = ObjectMetadata.model_validate(
        {
            'key': 'a.txt',
            'size': 10,
            'lastModified': '2024-01-15T10:30:00Z',
            'eTag': 'abc',
            'storageClass': 'GLACIER',
        }
    )
    by_name = ObjectMetadata(key='a.txt', storage_class='GLACIER')

    assert from_json.last_modified == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
    assert from_json.etag == 'abc'
    assert from_json.storage_class == 'GLACIER'
    assert from_json.has_metadata
    assert by_name.storage_class == 'GLACIER'
    assert not ObjectMetadata(key='bare.txt').has_metadata


def test_object_metadata_unknown_storage_class():
    """Test unknown storage classes are kept verbatim."""
    entry = ObjectMetadata.model_validate({'key': 'a', 'storageClass': 'FUTURE_TIER'})
    assert entry.storage_class == 'FUTURE_TIER'
    assert not isinstance(entry.storage_class, StorageClass)
    assert entry.storage_class_name == 'FUTURE_TIER'


def test_object_metadata_known_storage_class_is_enum():
    """Test known storage classes load as StorageClass members."""
    entry = ObjectMetadata.model_validate({'key': 'a', 'storageClass': 'GLACIER_IR'})

    assert entry.storage_class is StorageClass.GLACIER_IR
    assert entry.storage_class_name == 'GLACIER_IR'
    assert ObjectMetadata(key='b').storage_class_name is None


def test_manifest_json_keeps_storage_class_strings():
    """Test that known and unknown storage classes serialize as plain strings."""
    manifest = Manifest(
        files=(
            ObjectMetadata(key='a', storage_class=StorageClass.GLACIER),
            ObjectMetadata(key='b', storage_class='FUTURE_TIER'),
        ),
        last_updated=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )

    dumped = manifest.model_dump(mode='json', by_alias=True)

    assert [f['storageClass'] for f in dumped['files']] == ['GLACIER', 'FUTURE_TIER']


def test_object_metadata_from_s3_object():
    """Test conversion from a list_objects_v2 entry."""
    modified = datetime(2024, 3, 1, tzinfo=timezone.utc)
    entry = object_metadata_from_s3_object(
        {
            'Key': 'logs/app.log',
            'Size': 2048,
            'LastModified': modified,
            'ETag': '"d41d8cd98f00b204e9800998ecf8427e"',
            'StorageClass': 'STANDARD',
        }
    )

    assert entry.key == 'logs/app.log'
    assert entry.size == 2048
    assert entry.last_modified == modified
    assert entry.etag == 'd41d8cd98f00b204e9800998ecf8427e'
    assert entry.storage_class == 'STANDARD'


class TestManifest:
    """Test cases for the Manifest model."""

    def test_structured_manifest(self):
        """Test the structured JSON shape."""
        manifest = Manifest.model_validate(
            {
                'files': [
                    {'key': 'a.txt', 'size': 1, 'storageClass': 'STANDARD'},
                    {'key': 'b/c.txt', 'size': 2},
                ],
                'lastUpdated': '2024-05-01T00:00:00Z',
                'version': 2,
            }
        )

        assert [entry.key for entry in manifest.files] == ['a.txt', 'b/c.txt']
        assert manifest.version == 2
        assert manifest.has_metadata

    def test_legacy_manifest(self):
        """Test the legacy shape of bare key strings."""
        manifest = Manifest.model_validate(
            {'files': ['a.txt', 'b/c.txt'], 'lastUpdated': '2024-05-01T00:00:00Z'}
        )

        assert [entry.key for entry in manifest.files] == ['a.txt', 'b/c.txt']
        assert all(entry.size is None for entry in manifest.files)
        assert not manifest.has_metadata
        assert manifest.version is None

    def test_mixed_manifest(self):
        """Test that bare keys and structured entries can be mixed."""
        manifest = Manifest.model_validate(
            {'files': ['a.txt', {'key': 'b.txt', 'size': 5}], 'lastUpdated': '2024-05-01'}
        )
        assert manifest.files[1].size == 5

    def test_manifest_files_must_be_array(self):
        """Test that a non-array files value is rejected."""
        with pytest.raises(ValidationError):
            Manifest.model_validate({'files': 'a.txt', 'lastUpdated': '2024-05-01'})

    def test_manifest_requires_last_updated(self):
        """Test that lastUpdated is required."""
        with pytest.raises(ValidationError):
            Manifest.model_validate({'files': []})

    def test_manifest_from_code(self):
        """Test constructing a manifest from entries in code."""
        manifest = Manifest(
            files=(ObjectMetadata(key='x'),),
            last_updated=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
        assert manifest.files[0].key == 'x'


class TestMetadataFilterCriteria:
    """Test cases for metadata filter criteria validation."""

    def test_empty_criteria(self):
        """Test that no predicates means is_empty."""
        assert MetadataFilterCriteria().is_empty
        assert not MetadataFilterCriteria(min_size=0).is_empty

    def test_negative_size_rejected(self):
        """Test negative size bounds are rejected."""
        with pytest.raises(ValidationError, match='non-negative'):
            MetadataFilterCriteria(min_size=-1)

    def test_inverted_size_range_rejected(self):
        """Test min_size greater than max_size is rejected."""
        with pytest.raises(ValidationError, match='min_size cannot be greater'):
            MetadataFilterCriteria(min_size=10, max_size=5)

    def test_naive_datetimes_become_utc(self):
        """Test naive datetimes are interpreted as UTC."""
        criteria = MetadataFilterCriteria(modified_after=datetime(2024, 1, 1))
        assert criteria.modified_after == datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestSearchOutcome:
    """Test cases for search outcomes."""

    def test_completed_does_not_raise(self):
        """Test completed searches raise nothing."""
        outcome = SearchOutcome(status=SearchStatus.COMPLETED, mode=SearchMode.FALLBACK)
        outcome.raise_for_status()

    @pytest.mark.parametrize(
        'status,error_class',
        [
            (SearchStatus.TIMED_OUT, SearchTimeoutError),
            (SearchStatus.ABORTED, SearchAbortedError),
            (SearchStatus.FAILED, SearchExecutionError),
        ],
    )
    def test_failure_states_raise(self, status, error_class):
        """Test each failure state maps to its error type."""
        outcome = SearchOutcome(status=status, mode=SearchMode.RIPGREP, exit_code=2)
        with pytest.raises(error_class):
            outcome.raise_for_status()

    def test_failed_keeps_exit_code(self):
        """Test the exit code travels with the execution error."""
        outcome = SearchOutcome(
            status=SearchStatus.FAILED,
            mode=SearchMode.RIPGREP,
            error_message='ripgrep exited with code 2',
            exit_code=2,
        )
        with pytest.raises(SearchExecutionError) as exc_info:
            outcome.raise_for_status()
        assert exc_info.value.exit_code == 2
        assert exc_info.value.message == 'ripgrep exited with code 2'

    def test_terminal_states(self):
        """Test terminal state classification."""
        assert SearchStatus.COMPLETED.is_terminal
        assert SearchStatus.FAILED.is_terminal
        assert not SearchStatus.SEARCHING.is_terminal
        assert not SearchStatus.IDLE.is_terminal


def test_cache_stats_resident_mb():
    """Test resident size conversion."""
    stats = CacheStats(
        entries=1,
        resident_bytes=3 * 1024 * 1024,
        capacity_bytes=10 * 1024 * 1024,
        utilization_percent=30.0,
    )
    assert stats.resident_mb == 3.0


def test_batch_cache_result_counts():
    """Test batch result counters."""
    result = BatchCacheResult(cached={'s3://b/a': Path('/tmp/a')}, failed={'s3://b/c': 'x'})
    assert result.success_count == 1
    assert result.failure_count == 1
    assert not result.cancelled
