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

"""Full-text search over cached object copies with ripgrep, or over remote content in-process."""

import asyncio
import re
import shutil
import time
from awslabs.s3_filesystem_mcp_server.consts import (
    DEFAULT_MAX_CONCURRENT_DOWNLOADS,
    DEFAULT_RIPGREP_EXECUTABLE,
    DEFAULT_SEARCH_TIMEOUT_SECONDS,
    GREP_DEFAULT_GLOB,
    GREP_MAX_CANDIDATE_FILES,
    GREP_MAX_COLUMN_LENGTH,
    GREP_MAX_RESULTS_PER_FILE,
    GREP_MAX_TOTAL_RESULTS,
    GREP_TRUNCATION_HEADER,
    GREP_TRUNCATION_HINT,
    PATH_SEPARATOR,
)
from awslabs.s3_filesystem_mcp_server.errors import (
    InvalidArgumentError,
    S3FilesystemError,
    SearchExecutionError,
)
from awslabs.s3_filesystem_mcp_server.models import (
    ObjectIdentifier,
    SearchMode,
    SearchOutcome,
    SearchStatus,
)
from awslabs.s3_filesystem_mcp_server.search.file_finder import FileFinder
from awslabs.s3_filesystem_mcp_server.search.pattern_matcher import matches
from awslabs.s3_filesystem_mcp_server.search.search_process import SearchProcess
from awslabs.s3_filesystem_mcp_server.storage.content_cache import ContentCache
from awslabs.s3_filesystem_mcp_server.storage.s3_object_store import S3ObjectStore
from loguru import logger
from typing import Callable, List, Optional, Pattern


def truncation_trailer(limit: int = GREP_MAX_TOTAL_RESULTS) -> List[str]:
    """Lines appended when results were cut at the total cap."""
    return [GREP_TRUNCATION_HEADER.format(limit), GREP_TRUNCATION_HINT]


class TextSearchEngine:
    """Runs regex searches over the files of the bucket.

    Searches normally run ripgrep over the content cache. With a glob filter
    the matching files are cached first, since ripgrep only sees local files.
    When ripgrep is unavailable or nothing relevant is cached, files are read
    from the bucket and matched in-process instead. Both modes apply the same
    per-file and total caps and report truncation the same way.
    """

    def __init__(
        self,
        file_finder: FileFinder,
        content_cache: Optional[ContentCache],
        object_store: S3ObjectStore,
        base_prefix: str = '',
        ripgrep_path: Optional[str] = None,
        timeout_seconds: float = DEFAULT_SEARCH_TIMEOUT_SECONDS,
        max_concurrent_downloads: int = DEFAULT_MAX_CONCURRENT_DOWNLOADS,
        display_uri: Optional[Callable[[ObjectIdentifier], str]] = None,
    ):
        """Initialize the search engine.

        Args:
            file_finder: Resolves glob filters to candidate files
            content_cache: Local copies searched by ripgrep, None forces fallback mode
            object_store: Source of content in fallback mode
            base_prefix: Key prefix that paths and globs are relative to
            ripgrep_path: ripgrep executable, defaults to ``rg`` on PATH
            timeout_seconds: Wall-clock limit for one search
            max_concurrent_downloads: Concurrency window when caching glob matches
            display_uri: Formats identifiers in result lines
        """
        self.file_finder = file_finder
        self.content_cache = content_cache
        self.object_store = object_store
        self.base_prefix = base_prefix
        self.timeout_seconds = timeout_seconds
        self.max_concurrent_downloads = max_concurrent_downloads
        self.display_uri = display_uri or (lambda identifier: identifier.uri)
        self.ripgrep_executable = shutil.which(ripgrep_path or DEFAULT_RIPGREP_EXECUTABLE)

        if self.ripgrep_executable:
            logger.info(f'Using ripgrep at {self.ripgrep_executable}')
        else:
            logger.warning('ripgrep not found, text search will read files from S3 directly')

    async def search(
        self,
        pattern: str,
        path_filter: Optional[str] = None,
        glob_filter: Optional[str] = None,
        case_sensitive: bool = False,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> SearchOutcome:
        """Search file contents for a regular expression.

        Args:
            pattern: Regular expression
            path_filter: Only search files under this path, relative to the base prefix
            glob_filter: Only search files whose relative path matches this glob
            case_sensitive: Match letter case exactly
            cancel_event: Abort signal

        Returns:
            SearchOutcome. "No matches" is a COMPLETED outcome with no lines;
            timeouts, aborts and executable failures are reported through the
            outcome status rather than raised

        Raises:
            InvalidArgumentError: If the pattern is not a valid regex in fallback mode
            UpstreamError: If listing candidates for the glob filter fails
        """
        started = time.monotonic()
        history = [SearchStatus.IDLE, SearchStatus.PREPARING]
        path_filter = self._normalize_path_filter(path_filter)
        logger.debug(f'Search {pattern!r} path={path_filter!r} glob={glob_filter!r}: preparing')

        if glob_filter and self._ripgrep_usable():
            await self._cache_glob_matches(glob_filter, cancel_event)
            if cancel_event is not None and cancel_event.is_set():
                return self._finish(
                    SearchOutcome(
                        status=SearchStatus.ABORTED,
                        mode=SearchMode.RIPGREP,
                        error_message='Search aborted while caching files',
                    ),
                    started,
                    history,
                )

        history.append(SearchStatus.SEARCHING)
        entries = []
        if self._ripgrep_usable():
            entries = self.content_cache.resident_entries(self.base_prefix + path_filter)

        if entries:
            local_paths = None
            if path_filter:
                local_paths = [str(entry.local_path) for entry in entries]
            outcome = await self._search_with_ripgrep(
                pattern, local_paths, glob_filter, case_sensitive, cancel_event
            )
        else:
            outcome = await self._search_fallback(
                pattern, path_filter, glob_filter, case_sensitive, cancel_event
            )

        return self._finish(outcome, started, history)

    def _ripgrep_usable(self) -> bool:
        return self.ripgrep_executable is not None and self.content_cache is not None

    async def _cache_glob_matches(
        self, glob_filter: str, cancel_event: Optional[asyncio.Event]
    ) -> None:
        candidates = await self.file_finder.find(
            glob_filter, self.base_prefix, max_results=GREP_MAX_CANDIDATE_FILES
        )
        uncached = [c for c in candidates if self.content_cache.get_cached_path(c) is None]
        if not uncached:
            return

        logger.info(f'Caching {len(uncached)} additional files for glob {glob_filter}')
        await self.content_cache.ensure_cached_batch(
            uncached, max_concurrent=self.max_concurrent_downloads, cancel_event=cancel_event
        )

    def build_ripgrep_args(
        self, pattern: str, targets: List[str], case_sensitive: bool
    ) -> List[str]:
        """Build the ripgrep command line (without the executable)."""
        args = [
            '--with-filename',
            '--line-number',
            '--no-heading',
            '--no-require-git',
            '--no-messages',
            '--max-columns',
            str(GREP_MAX_COLUMN_LENGTH),
            '--trim',
            '--max-count',
            str(GREP_MAX_RESULTS_PER_FILE),
        ]
        if not case_sensitive:
            args.append('-i')
        args.extend(['--regexp', pattern, '--'])
        args.extend(targets)
        return args

    async def _search_with_ripgrep(
        self,
        pattern: str,
        local_paths: Optional[List[str]],
        glob_filter: Optional[str],
        case_sensitive: bool,
        cancel_event: Optional[asyncio.Event],
    ) -> SearchOutcome:
        root = str(self.content_cache.root)
        targets = local_paths if local_paths is not None else [root]
        stats = self.content_cache.stats()
        logger.debug(
            f'Searching {len(targets) if local_paths is not None else stats.entries} cached files '
            f'({stats.resident_mb} MB) with ripgrep'
        )

        process = SearchProcess(
            self.ripgrep_executable,
            self.build_ripgrep_args(pattern, targets, case_sensitive),
            self.timeout_seconds,
            cancel_event,
        )
        try:
            result = await process.run()
        except SearchExecutionError as e:
            return SearchOutcome(
                status=SearchStatus.FAILED, mode=SearchMode.RIPGREP, error_message=e.message
            )

        if result.status == SearchStatus.TIMED_OUT:
            return SearchOutcome(
                status=SearchStatus.TIMED_OUT,
                mode=SearchMode.RIPGREP,
                error_message=f'Search timed out after {self.timeout_seconds:g}s',
            )
        if result.status == SearchStatus.ABORTED:
            return SearchOutcome(
                status=SearchStatus.ABORTED,
                mode=SearchMode.RIPGREP,
                error_message='Search aborted',
            )
        # 0 means matches, 1 means no matches
        if result.exit_code is None or result.exit_code >= 2:
            return SearchOutcome(
                status=SearchStatus.FAILED,
                mode=SearchMode.RIPGREP,
                exit_code=result.exit_code,
                error_message=(
                    f'ripgrep exited with code {result.exit_code}: {result.stderr.strip()}'
                ),
            )

        found = []
        for line in result.stdout.splitlines():
            rewritten = self._rewrite_ripgrep_line(line, root, glob_filter, case_sensitive)
            if rewritten is not None:
                found.append(rewritten)

        return self._capped_outcome(found, SearchMode.RIPGREP)

    def _rewrite_ripgrep_line(
        self,
        line: str,
        root: str,
        glob_filter: Optional[str],
        case_sensitive: bool,
    ) -> Optional[str]:
        """Replace the local path of a ripgrep result with the object URI.

        Lines from files that are not resident, or whose relative key fails the
        glob filter, are dropped.
        """
        if not line.startswith(root):
            return None
        path_tail, separator, remainder = line[len(root) :].partition(':')
        if not separator:
            return None

        identifier = self.content_cache.identifier_for_path(root + path_tail)
        if identifier is None:
            return None

        if glob_filter and not matches(
            glob_filter, self._relative_key(identifier.key), case_sensitive
        ):
            return None

        return f'{self.display_uri(identifier)}:{remainder}'

    async def _search_fallback(
        self,
        pattern: str,
        path_filter: str,
        glob_filter: Optional[str],
        case_sensitive: bool,
        cancel_event: Optional[asyncio.Event],
    ) -> SearchOutcome:
        try:
            regex = re.compile(pattern, 0 if case_sensitive else re.IGNORECASE)
        except re.error as e:
            raise InvalidArgumentError(f'Invalid regular expression {pattern!r}: {e}') from e

        try:
            return await asyncio.wait_for(
                self._scan_remote(regex, path_filter, glob_filter, cancel_event),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            return SearchOutcome(
                status=SearchStatus.TIMED_OUT,
                mode=SearchMode.FALLBACK,
                error_message=f'Search timed out after {self.timeout_seconds:g}s',
            )

    async def _scan_remote(
        self,
        regex: Pattern[str],
        path_filter: str,
        glob_filter: Optional[str],
        cancel_event: Optional[asyncio.Event],
    ) -> SearchOutcome:
        candidates = await self.file_finder.find(
            glob_filter or GREP_DEFAULT_GLOB,
            self.base_prefix,
            max_results=GREP_MAX_CANDIDATE_FILES,
        )
        if path_filter:
            candidates = [
                c for c in candidates if self._relative_key(c.key).startswith(path_filter)
            ]
        logger.debug(f'Fallback search over {len(candidates)} files')

        found: List[str] = []
        for identifier in candidates:
            # One match past the cap is enough to know the results were truncated
            if len(found) > GREP_MAX_TOTAL_RESULTS:
                break
            if cancel_event is not None and cancel_event.is_set():
                return SearchOutcome(
                    status=SearchStatus.ABORTED,
                    mode=SearchMode.FALLBACK,
                    error_message='Search aborted',
                )

            try:
                content = await self.object_store.read_text(identifier)
            except S3FilesystemError as e:
                logger.debug(f'Skipping unreadable {identifier.uri}: {e.message}')
                continue

            file_matches = 0
            for line_number, line in enumerate(content.split('\n'), start=1):
                if not regex.search(line):
                    continue
                text = line.rstrip('\r').lstrip()
                if len(text) > GREP_MAX_COLUMN_LENGTH:
                    text = f'{text[:GREP_MAX_COLUMN_LENGTH]}...'
                found.append(f'{self.display_uri(identifier)}:{line_number}:{text}')
                file_matches += 1
                if (
                    file_matches >= GREP_MAX_RESULTS_PER_FILE
                    or len(found) > GREP_MAX_TOTAL_RESULTS
                ):
                    break

        return self._capped_outcome(found, SearchMode.FALLBACK)

    @staticmethod
    def _capped_outcome(found: List[str], mode: SearchMode) -> SearchOutcome:
        truncated = len(found) > GREP_MAX_TOTAL_RESULTS
        lines = found[:GREP_MAX_TOTAL_RESULTS]
        match_count = len(lines)
        if truncated:
            lines.extend(truncation_trailer())
        return SearchOutcome(
            status=SearchStatus.COMPLETED,
            mode=mode,
            lines=lines,
            match_count=match_count,
            truncated=truncated,
        )

    def _finish(
        self, outcome: SearchOutcome, started: float, history: List[SearchStatus]
    ) -> SearchOutcome:
        outcome.history = [*history, outcome.status]
        outcome.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            f'Search finished as {outcome.status.value} ({outcome.mode.value}) with '
            f'{outcome.match_count} matches in {outcome.duration_ms}ms'
        )
        return outcome

    def _relative_key(self, key: str) -> str:
        if key.startswith(self.base_prefix):
            return key[len(self.base_prefix) :]
        return key

    @staticmethod
    def _normalize_path_filter(path_filter: Optional[str]) -> str:
        if not path_filter:
            return ''
        path_filter = path_filter.lstrip(PATH_SEPARATOR)
        return '' if path_filter in ('.', './') else path_filter
