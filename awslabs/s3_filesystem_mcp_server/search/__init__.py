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

"""Pattern matching, file finding, text search and metadata filtering."""

from .file_finder import FileFinder
from .metadata_filter import filter_metadata
from .pattern_matcher import extract_fixed_prefix, matches
from .search_process import SearchProcess
from .text_search_engine import TextSearchEngine

__all__ = [
    'FileFinder',
    'filter_metadata',
    'extract_fixed_prefix',
    'matches',
    'SearchProcess',
    'TextSearchEngine',
]
