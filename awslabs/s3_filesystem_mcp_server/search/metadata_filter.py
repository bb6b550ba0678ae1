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

"""Metadata predicates over manifest entries."""

import re
from awslabs.s3_filesystem_mcp_server.consts import ERROR_NO_MANIFEST
from awslabs.s3_filesystem_mcp_server.errors import InvalidArgumentError, NoManifestError
from awslabs.s3_filesystem_mcp_server.models import (
    Manifest,
    MetadataFilterCriteria,
    ObjectMetadata,
)
from typing import Callable, Iterable, List, Optional


Predicate = Callable[[ObjectMetadata], bool]


def build_predicates(criteria: MetadataFilterCriteria) -> List[Predicate]:
    """Turn each set criterion into an independent predicate.

    An entry missing the field a predicate needs never satisfies it.

    Raises:
        InvalidArgumentError: If key_pattern is not a valid regular expression
    """
    predicates: List[Predicate] = []

    if criteria.min_size is not None:
        min_size = criteria.min_size
        predicates.append(lambda entry: entry.size is not None and entry.size >= min_size)

    if criteria.max_size is not None:
        max_size = criteria.max_size
        predicates.append(lambda entry: entry.size is not None and entry.size <= max_size)

    if criteria.modified_after is not None:
        after = criteria.modified_after
        predicates.append(
            lambda entry: entry.last_modified is not None and entry.last_modified >= after
        )

    if criteria.modified_before is not None:
        before = criteria.modified_before
        predicates.append(
            lambda entry: entry.last_modified is not None and entry.last_modified <= before
        )

    if criteria.storage_class is not None:
        storage_class = criteria.storage_class
        predicates.append(lambda entry: entry.storage_class_name == storage_class)

    if criteria.key_pattern is not None:
        try:
            key_regex = re.compile(criteria.key_pattern)
        except re.error as e:
            raise InvalidArgumentError(
                f'Invalid key pattern {criteria.key_pattern!r}: {e}'
            ) from e
        predicates.append(lambda entry: key_regex.search(entry.key) is not None)

    return predicates


def filter_entries(
    entries: Iterable[ObjectMetadata], criteria: MetadataFilterCriteria
) -> List[ObjectMetadata]:
    """Keep the entries satisfying every set criterion, preserving order."""
    predicates = build_predicates(criteria)
    return [entry for entry in entries if all(predicate(entry) for predicate in predicates)]


def filter_metadata(
    manifest: Optional[Manifest],
    criteria: MetadataFilterCriteria,
    limit: Optional[int] = None,
    offset: int = 0,
) -> List[ObjectMetadata]:
    """Filter manifest entries, then apply offset, then limit.

    Args:
        manifest: Loaded manifest
        criteria: Filter criteria, unset fields are ignored
        limit: Maximum number of entries returned, unlimited when None
        offset: Number of matching entries skipped

    Returns:
        Matching entries in manifest order

    Raises:
        NoManifestError: If no manifest is loaded
        InvalidArgumentError: If the pagination arguments or key pattern are invalid
    """
    if manifest is None:
        raise NoManifestError(ERROR_NO_MANIFEST)
    if offset < 0:
        raise InvalidArgumentError(f'offset must be non-negative, got {offset}')
    if limit is not None and limit < 1:
        raise InvalidArgumentError(f'limit must be positive, got {limit}')

    matched = filter_entries(manifest.files, criteria)
    matched = matched[offset:]
    if limit is not None:
        matched = matched[:limit]
    return matched
