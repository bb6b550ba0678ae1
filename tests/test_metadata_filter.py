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

"""Tests for metadata filtering over manifest entries."""

import pytest
from awslabs.s3_filesystem_mcp_server.errors import InvalidArgumentError, NoManifestError
from awslabs.s3_filesystem_mcp_server.models import Manifest, MetadataFilterCriteria
from awslabs.s3_filesystem_mcp_server.search.metadata_filter import (
    build_predicates,
    filter_entries,
    filter_metadata,
)
from datetime import datetime, timezone
from tests.fixtures.s3_test_data import S3FilesystemTestData


def _keys(entries):
    return [entry.key for entry in entries]


class TestFilterMetadata:
    """Test cases for metadata filtering."""

    def setup_method(self):
        """Load the sample manifest."""
        self.manifest = Manifest.model_validate_json(
            S3FilesystemTestData.structured_manifest(S3FilesystemTestData.metadata_entries())
        )

    def _filter(self, **kwargs):
        limit = kwargs.pop('limit', None)
        offset = kwargs.pop('offset', 0)
        return _keys(
            filter_metadata(
                self.manifest, MetadataFilterCriteria(**kwargs), limit=limit, offset=offset
            )
        )

    def test_no_criteria_returns_everything(self):
        """Test that empty criteria keep every entry, including bare keys."""
        assert len(self._filter()) == 5

    def test_min_size(self):
        """Test the inclusive lower size bound."""
        assert self._filter(min_size=4096) == ['data/large.csv', 'logs/app.log']

    def test_max_size(self):
        """Test the inclusive upper size bound."""
        assert self._filter(max_size=2048) == ['data/small.csv', 'archive/old.log']

    def test_size_range(self):
        """Test both size bounds together."""
        assert self._filter(min_size=1000, max_size=10000) == [
            'archive/old.log',
            'logs/app.log',
        ]

    def test_modified_after(self):
        """Test the inclusive lower date bound."""
        assert self._filter(modified_after=datetime(2024, 3, 1, tzinfo=timezone.utc)) == [
            'data/large.csv',
            'logs/app.log',
        ]

    def test_modified_before_accepts_naive_dates(self):
        """Test that naive dates are compared as UTC."""
        assert self._filter(modified_before=datetime(2023, 1, 1)) == ['archive/old.log']

    def test_storage_class(self):
        """Test exact storage class matching."""
        assert self._filter(storage_class='GLACIER') == ['archive/old.log']
        assert self._filter(storage_class='DEEP_ARCHIVE') == []

    def test_key_pattern(self):
        """Test regex search over the key."""
        assert self._filter(key_pattern=r'\.log$') == ['archive/old.log', 'logs/app.log']
        assert self._filter(key_pattern='^data/') == [
            'data/small.csv',
            'data/large.csv',
            'data/unknown.bin',
        ]

    def test_missing_fields_never_match(self):
        """Test that entries without metadata fail any predicate on that metadata."""
        assert 'data/unknown.bin' not in self._filter(min_size=0)
        assert 'data/unknown.bin' not in self._filter(max_size=10**12)
        assert 'data/unknown.bin' not in self._filter(
            modified_before=datetime(2100, 1, 1, tzinfo=timezone.utc)
        )
        assert 'data/unknown.bin' not in self._filter(storage_class='STANDARD')

    def test_combined_criteria(self):
        """Test that criteria combine with AND."""
        assert self._filter(
            key_pattern='^data/', storage_class='STANDARD', max_size=1000
        ) == ['data/small.csv']

    def test_predicate_order_does_not_matter(self):
        """Test that applying predicates in any order gives the same result."""
        criteria = MetadataFilterCriteria(min_size=50, key_pattern='csv', storage_class='STANDARD')
        predicates = build_predicates(criteria)

        forward = [e for e in self.manifest.files if all(p(e) for p in predicates)]
        backward = [e for e in self.manifest.files if all(p(e) for p in reversed(predicates))]

        assert forward == backward == filter_entries(self.manifest.files, criteria)

    def test_sequential_filters_equal_combined(self):
        """Test that filtering in two passes equals filtering once with both bounds."""
        combined = filter_entries(
            self.manifest.files, MetadataFilterCriteria(min_size=100, max_size=5000)
        )
        by_max = filter_entries(self.manifest.files, MetadataFilterCriteria(max_size=5000))
        then_min = filter_entries(by_max, MetadataFilterCriteria(min_size=100))

        assert then_min == combined
        assert _keys(combined) == ['data/small.csv', 'archive/old.log', 'logs/app.log']

    def test_offset_then_limit(self):
        """Test that offset is applied before limit."""
        assert self._filter(offset=1, limit=2) == ['data/large.csv', 'archive/old.log']
        assert self._filter(offset=4) == ['data/unknown.bin']
        assert self._filter(offset=10) == []

    def test_no_manifest(self):
        """Test that filtering needs a manifest."""
        with pytest.raises(NoManifestError, match='No manifest available'):
            filter_metadata(None, MetadataFilterCriteria())

    def test_invalid_key_pattern(self):
        """Test that an invalid regex is an argument error."""
        with pytest.raises(InvalidArgumentError, match='Invalid key pattern'):
            self._filter(key_pattern='[unclosed')

    @pytest.mark.parametrize('limit,offset', [(0, 0), (-1, 0), (None, -1)])
    def test_invalid_pagination(self, limit, offset):
        """Test that invalid pagination arguments are rejected."""
        with pytest.raises(InvalidArgumentError):
            filter_metadata(self.manifest, MetadataFilterCriteria(), limit=limit, offset=offset)

    def test_timestamps_without_offset_are_utc(self):
        """Test that manifest timestamps without an offset compare as UTC."""
        manifest = Manifest.model_validate(
            {
                'files': [
                    {'key': 'naive.txt', 'size': 1, 'lastModified': '2024-06-01T00:00:00'},
                    {'key': 'old.txt', 'size': 1, 'lastModified': '2023-06-01T00:00:00'},
                ],
                'lastUpdated': '2024-06-02T00:00:00Z',
            }
        )
        criteria = MetadataFilterCriteria(modified_after='2024-01-01T00:00:00Z')

        assert _keys(filter_metadata(manifest, criteria)) == ['naive.txt']
        assert manifest.files[0].last_modified.tzinfo == timezone.utc
