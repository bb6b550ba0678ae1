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

"""Tests for the text search engine."""

import asyncio
import pytest
import stat
import sys
from awslabs.s3_filesystem_mcp_server.errors import InvalidArgumentError
from awslabs.s3_filesystem_mcp_server.models import ObjectIdentifier, SearchMode, SearchStatus
from awslabs.s3_filesystem_mcp_server.search.file_finder import FileFinder
from awslabs.s3_filesystem_mcp_server.search.text_search_engine import (
    TextSearchEngine,
    truncation_trailer,
)
from awslabs.s3_filesystem_mcp_server.storage.content_cache import ContentCache
from awslabs.s3_filesystem_mcp_server.storage.s3_object_store import S3ObjectStore
from tests.fixtures.s3_test_data import InMemoryS3Client


# Stand-in for ripgrep: literal substring search printing path:line:text
FAKE_RIPGREP = """#!{python}
import os
import sys

args = sys.argv[1:]
pattern = args[args.index('--regexp') + 1]
targets = args[args.index('--') + 1 :]
files = []
for target in targets:
    if os.path.isdir(target):
        for root, _, names in os.walk(target):
            files.extend(os.path.join(root, name) for name in names)
    else:
        files.append(target)
found = False
for path in sorted(files):
    with open(path) as f:
        for number, line in enumerate(f, 1):
            if pattern in line:
                print(f'{{path}}:{{number}}:{{line.rstrip()}}')
                found = True
sys.exit(0 if found else 1)
"""

FAILING_RIPGREP = """#!{python}
import sys

sys.stderr.write('regex parse error')
sys.exit(2)
"""


def _write_executable(path, template):
    path.write_text(template.format(python=sys.executable))
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


class TestFallbackSearch:
    """Test cases for the in-process search used without ripgrep."""

    def setup_method(self):
        """Set up an in-memory bucket."""
        self.client = InMemoryS3Client()
        self.object_store = S3ObjectStore('test-bucket', s3_client=self.client)

    def _engine(self, tmp_path, base_prefix='', **kwargs) -> TextSearchEngine:
        return TextSearchEngine(
            FileFinder(self.object_store),
            content_cache=None,
            object_store=self.object_store,
            base_prefix=base_prefix,
            ripgrep_path=str(tmp_path / 'missing-rg'),
            **kwargs,
        )

    @pytest.mark.asyncio
    async def test_basic_match(self, tmp_path):
        """Test that matches are reported as uri:line:text."""
        self.client.put_text('logs/app.log', 'start\nERROR disk full\nend\n')
        self.client.put_text('logs/other.log', 'all good\n')
        engine = self._engine(tmp_path)

        outcome = await engine.search('error')

        assert engine.ripgrep_executable is None
        assert outcome.status == SearchStatus.COMPLETED
        assert outcome.mode == SearchMode.FALLBACK
        assert outcome.lines == ['s3://test-bucket/logs/app.log:2:ERROR disk full']
        assert outcome.match_count == 1
        assert not outcome.truncated

    @pytest.mark.asyncio
    async def test_case_sensitive(self, tmp_path):
        """Test case-sensitive matching."""
        self.client.put_text('a.txt', 'Error\nerror\n')
        engine = self._engine(tmp_path)

        outcome = await engine.search('error', case_sensitive=True)

        assert outcome.lines == ['s3://test-bucket/a.txt:2:error']

    @pytest.mark.asyncio
    async def test_no_matches(self, tmp_path):
        """Test that no matches is a completed outcome with no lines."""
        self.client.put_text('a.txt', 'nothing here\n')
        engine = self._engine(tmp_path)

        outcome = await engine.search('needle')

        assert outcome.status == SearchStatus.COMPLETED
        assert outcome.lines == []

    @pytest.mark.asyncio
    async def test_per_file_cap(self, tmp_path):
        """Test that at most ten matches are reported per file."""
        self.client.put_text('many.txt', '\n'.join(['match'] * 25))
        engine = self._engine(tmp_path)

        outcome = await engine.search('match')

        assert outcome.match_count == 10
        assert outcome.lines[-1] == 's3://test-bucket/many.txt:10:match'

    @pytest.mark.asyncio
    async def test_total_cap_truncates_with_trailer(self, tmp_path):
        """Test that results beyond one hundred are cut and a trailer is added."""
        for i in range(15):
            self.client.put_text(f'files/f{i:02d}.txt', '\n'.join(['hit'] * 10))
        engine = self._engine(tmp_path)

        outcome = await engine.search('hit')

        assert outcome.truncated
        assert outcome.match_count == 100
        assert len(outcome.lines) == 102
        assert outcome.lines[100:] == truncation_trailer()
        assert 'Results truncated: showing first 100 matches.' in outcome.lines[100]

    @pytest.mark.asyncio
    async def test_exactly_one_hundred_is_not_truncated(self, tmp_path):
        """Test that hitting the cap exactly is not reported as truncation."""
        for i in range(10):
            self.client.put_text(f'files/f{i}.txt', '\n'.join(['hit'] * 10))
        engine = self._engine(tmp_path)

        outcome = await engine.search('hit')

        assert not outcome.truncated
        assert len(outcome.lines) == 100

    @pytest.mark.asyncio
    async def test_long_lines_are_cut(self, tmp_path):
        """Test that very long matching lines are shortened."""
        self.client.put_text('wide.txt', 'x' * 500)
        engine = self._engine(tmp_path)

        outcome = await engine.search('x')

        assert outcome.lines[0].endswith('x' * 200 + '...')

    @pytest.mark.asyncio
    async def test_path_filter(self, tmp_path):
        """Test that a path filter limits the files searched."""
        self.client.put_text('logs/app.log', 'token\n')
        self.client.put_text('data/app.log', 'token\n')
        engine = self._engine(tmp_path)

        outcome = await engine.search('token', path_filter='/logs/')

        assert outcome.lines == ['s3://test-bucket/logs/app.log:1:token']

    @pytest.mark.asyncio
    async def test_glob_filter(self, tmp_path):
        """Test that a glob filter limits the files searched."""
        self.client.put_text('src/main.py', 'token\n')
        self.client.put_text('src/readme.md', 'token\n')
        engine = self._engine(tmp_path)

        outcome = await engine.search('token', glob_filter='**/*.py')

        assert outcome.lines == ['s3://test-bucket/src/main.py:1:token']

    @pytest.mark.asyncio
    async def test_base_prefix_and_display_uri(self, tmp_path):
        """Test that paths are relative to the base prefix and URIs use the formatter."""
        self.client.put_text('root/logs/app.log', 'token\n')
        self.client.put_text('outside/app.log', 'token\n')
        engine = self._engine(
            tmp_path,
            base_prefix='root/',
            display_uri=lambda identifier: f'rel:{identifier.key[len("root/") :]}',
        )

        outcome = await engine.search('token', path_filter='logs')

        assert outcome.lines == ['rel:logs/app.log:1:token']

    @pytest.mark.asyncio
    async def test_invalid_regex(self, tmp_path):
        """Test that an invalid regex raises InvalidArgumentError."""
        engine = self._engine(tmp_path)

        with pytest.raises(InvalidArgumentError, match='Invalid regular expression'):
            await engine.search('(unclosed')

    @pytest.mark.asyncio
    async def test_unreadable_files_are_skipped(self, tmp_path):
        """Test that a file failing to download does not fail the search."""
        self.client.put_text('a.txt', 'token\n')
        self.client.put_text('b.txt', 'token\n')
        self.client.failing_keys.add('a.txt')
        engine = self._engine(tmp_path)

        outcome = await engine.search('token')

        assert outcome.lines == ['s3://test-bucket/b.txt:1:token']

    @pytest.mark.asyncio
    async def test_preset_cancel_aborts(self, tmp_path):
        """Test that a set cancel event aborts the scan."""
        self.client.put_text('a.txt', 'token\n')
        engine = self._engine(tmp_path)
        cancel_event = asyncio.Event()
        cancel_event.set()

        outcome = await engine.search('token', cancel_event=cancel_event)

        assert outcome.status == SearchStatus.ABORTED

    @pytest.mark.asyncio
    async def test_history_records_lifecycle(self, tmp_path):
        """Test that the outcome lists every state the request passed through."""
        self.client.put_text('a.txt', 'token\n')
        engine = self._engine(tmp_path)

        outcome = await engine.search('token')

        assert outcome.history == [
            SearchStatus.IDLE,
            SearchStatus.PREPARING,
            SearchStatus.SEARCHING,
            SearchStatus.COMPLETED,
        ]
        assert outcome.history[-1].is_terminal

    @pytest.mark.asyncio
    async def test_timeout(self, tmp_path):
        """Test that a slow scan times out."""
        self.client.put_text('a.txt', 'token\n')
        engine = self._engine(tmp_path, timeout_seconds=0.1)

        async def slow_read(identifier):
            await asyncio.sleep(5)
            return ''

        self.object_store.read_text = slow_read

        outcome = await engine.search('token')

        assert outcome.status == SearchStatus.TIMED_OUT
        assert 'timed out' in outcome.error_message


class TestRipgrepSearch:
    """Test cases for searching cached copies with an external executable."""

    def setup_method(self):
        """Set up an in-memory bucket."""
        self.client = InMemoryS3Client()
        self.object_store = S3ObjectStore('test-bucket', s3_client=self.client)
        self.client.put_text('logs/app.log', 'boot\nneedle in logs\n')
        self.client.put_text('data/notes.txt', 'needle in data\n')
        self.client.put_text('data/other.md', 'needle in markdown\n')

    def _engine(self, tmp_path, script=FAKE_RIPGREP):
        cache = ContentCache(self.object_store, tmp_path / 'cache')
        engine = TextSearchEngine(
            FileFinder(self.object_store),
            content_cache=cache,
            object_store=self.object_store,
            ripgrep_path=_write_executable(tmp_path / 'rg', script),
            timeout_seconds=30,
        )
        return engine, cache

    @pytest.mark.asyncio
    async def test_searches_cached_files(self, tmp_path):
        """Test that local paths in results are rewritten to object URIs."""
        engine, cache = self._engine(tmp_path)
        await cache.ensure_cached(ObjectIdentifier(bucket='test-bucket', key='logs/app.log'))
        await cache.ensure_cached(ObjectIdentifier(bucket='test-bucket', key='data/notes.txt'))

        outcome = await engine.search('needle')

        assert outcome.mode == SearchMode.RIPGREP
        assert outcome.status == SearchStatus.COMPLETED
        assert sorted(outcome.lines) == [
            's3://test-bucket/data/notes.txt:1:needle in data',
            's3://test-bucket/logs/app.log:2:needle in logs',
        ]

    @pytest.mark.asyncio
    async def test_path_filter_limits_targets(self, tmp_path):
        """Test that a path filter passes only resident files under it."""
        engine, cache = self._engine(tmp_path)
        await cache.ensure_cached(ObjectIdentifier(bucket='test-bucket', key='logs/app.log'))
        await cache.ensure_cached(ObjectIdentifier(bucket='test-bucket', key='data/notes.txt'))

        outcome = await engine.search('needle', path_filter='data/')

        assert outcome.lines == ['s3://test-bucket/data/notes.txt:1:needle in data']

    @pytest.mark.asyncio
    async def test_glob_filter_caches_matches_first(self, tmp_path):
        """Test that glob matches are downloaded before the search runs."""
        engine, cache = self._engine(tmp_path)

        outcome = await engine.search('needle', glob_filter='data/*.md')

        assert outcome.mode == SearchMode.RIPGREP
        assert outcome.lines == ['s3://test-bucket/data/other.md:1:needle in markdown']
        assert cache.stats().entries == 1

    @pytest.mark.asyncio
    async def test_truncates_ripgrep_output(self, tmp_path):
        """Test that 150 matches across cached files yield 100 lines plus the trailer."""
        engine, cache = self._engine(tmp_path)
        for i in range(15):
            key = f'bulk/f{i:02d}.txt'
            self.client.put_text(key, '\n'.join(['needle'] * 10))
            await cache.ensure_cached(ObjectIdentifier(bucket='test-bucket', key=key))

        outcome = await engine.search('needle', path_filter='bulk/')

        assert outcome.mode == SearchMode.RIPGREP
        assert outcome.truncated
        assert len(outcome.lines) == 102
        assert outcome.lines[100:] == truncation_trailer()

    @pytest.mark.asyncio
    async def test_empty_cache_uses_fallback(self, tmp_path):
        """Test that nothing resident means the in-process search runs."""
        engine, _ = self._engine(tmp_path)

        outcome = await engine.search('needle', path_filter='logs/')

        assert outcome.mode == SearchMode.FALLBACK
        assert outcome.lines == ['s3://test-bucket/logs/app.log:2:needle in logs']

    @pytest.mark.asyncio
    async def test_executable_failure(self, tmp_path):
        """Test that exit codes of two or more are reported as failures."""
        engine, cache = self._engine(tmp_path, FAILING_RIPGREP)
        await cache.ensure_cached(ObjectIdentifier(bucket='test-bucket', key='logs/app.log'))

        outcome = await engine.search('needle')

        assert outcome.status == SearchStatus.FAILED
        assert outcome.exit_code == 2
        assert 'regex parse error' in outcome.error_message

    @pytest.mark.asyncio
    async def test_abort_while_caching_skips_searching(self, tmp_path):
        """Test that a cancel during glob caching ends the request before searching."""
        engine, cache = self._engine(tmp_path)
        cancel_event = asyncio.Event()
        cancel_event.set()

        outcome = await engine.search('needle', glob_filter='**/*.txt', cancel_event=cancel_event)

        assert outcome.status == SearchStatus.ABORTED
        assert outcome.history == [
            SearchStatus.IDLE,
            SearchStatus.PREPARING,
            SearchStatus.ABORTED,
        ]
        assert cache.stats().entries == 0

    def test_build_ripgrep_args(self, tmp_path):
        """Test the ripgrep command line."""
        engine, _ = self._engine(tmp_path)

        args = engine.build_ripgrep_args('-pattern', ['/cache'], case_sensitive=False)

        assert args[-4:] == ['--regexp', '-pattern', '--', '/cache']
        assert '-i' in args
        assert args[args.index('--max-count') + 1] == '10'
        assert '-i' not in engine.build_ripgrep_args('p', ['/cache'], case_sensitive=True)
