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

"""Bounded local disk cache of object content with LRU eviction."""

import asyncio
import hashlib
import shutil
import time
from awslabs.s3_filesystem_mcp_server.consts import (
    DEFAULT_CACHE_MAX_BYTES,
    DEFAULT_CACHE_MAX_ENTRIES,
    DEFAULT_CACHE_MAX_FILE_BYTES,
    DEFAULT_MAX_CONCURRENT_DOWNLOADS,
)
from awslabs.s3_filesystem_mcp_server.errors import InvalidArgumentError
from awslabs.s3_filesystem_mcp_server.models import (
    BatchCacheResult,
    CacheEntry,
    CacheStats,
    ObjectIdentifier,
)
from awslabs.s3_filesystem_mcp_server.storage.s3_object_store import S3ObjectStore
from cachetools import Cache, LRUCache
from loguru import logger
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple


def _entry_weight(entry: CacheEntry) -> int:
    # Empty files still occupy a slot
    return max(1, entry.size)


class _BoundedLRUCache(LRUCache):
    """LRUCache bounded by total entry size and by entry count.

    Every eviction goes through ``popitem``, which calls the eviction hook
    before returning, so the entry leaves the map and its file is cleaned up in
    the same synchronous step.
    """

    def __init__(self, max_bytes: int, max_entries: int, on_evict: Callable[[CacheEntry], None]):
        super().__init__(maxsize=max_bytes, getsizeof=_entry_weight)
        self.max_entries = max_entries
        self._on_evict = on_evict

    def __setitem__(self, key: str, value: CacheEntry) -> None:
        if key not in self:
            while len(self) >= self.max_entries:
                self.popitem()
        super().__setitem__(key, value)

    def popitem(self) -> Tuple[str, CacheEntry]:
        key, entry = super().popitem()
        self._on_evict(entry)
        return key, entry

    def peek(self, key: str) -> Optional[CacheEntry]:
        """Look up an entry without refreshing its recency."""
        if key not in self:
            return None
        return Cache.__getitem__(self, key)

    def peek_values(self) -> List[CacheEntry]:
        """Snapshot all entries without refreshing their recency."""
        return [Cache.__getitem__(self, key) for key in list(self)]


class ContentCache:
    """Local copies of object content, keyed by a hash of the object URI.

    Files live at ``<root>/<hash[:2]>/<hash>``. Resident size and entry count
    are both bounded; inserting past either bound evicts least recently used
    entries and deletes their files. Objects are assumed immutable once
    written, so a resident copy is never re-validated against the bucket.
    """

    def __init__(
        self,
        object_store: S3ObjectStore,
        root: Path,
        max_bytes: int = DEFAULT_CACHE_MAX_BYTES,
        max_entries: int = DEFAULT_CACHE_MAX_ENTRIES,
        max_file_bytes: int = DEFAULT_CACHE_MAX_FILE_BYTES,
        max_concurrent_downloads: int = DEFAULT_MAX_CONCURRENT_DOWNLOADS,
    ):
        """Initialize the cache and create its root directory.

        Args:
            object_store: Store objects are downloaded from
            root: Directory holding cached files
            max_bytes: Capacity in bytes
            max_entries: Maximum number of resident objects
            max_file_bytes: Largest object accepted into the cache
            max_concurrent_downloads: Default concurrency window for batch fills
        """
        self.object_store = object_store
        self.root = Path(root)
        self.max_bytes = max_bytes
        self.max_entries = max_entries
        self.max_file_bytes = min(max_file_bytes, max_bytes)
        self.max_concurrent_downloads = max_concurrent_downloads

        self._entries = _BoundedLRUCache(max_bytes, max_entries, self._on_evict)
        self._resident_bytes = 0
        self._in_flight: Dict[str, 'asyncio.Task[Path]'] = {}
        self._background_tasks: Set['asyncio.Task[BatchCacheResult]'] = set()

        self.root.mkdir(parents=True, exist_ok=True)
        logger.info(f'Content cache initialized at {self.root}')

    @staticmethod
    def cache_key(identifier: ObjectIdentifier) -> str:
        """Hash of the identifier URI (not of the content)."""
        return hashlib.sha256(identifier.uri.encode('utf-8')).hexdigest()

    def local_path_for(self, identifier: ObjectIdentifier) -> Path:
        """Deterministic local path of an identifier's cached copy."""
        cache_key = self.cache_key(identifier)
        return self.root / cache_key[:2] / cache_key

    async def ensure_cached(self, identifier: ObjectIdentifier) -> Path:
        """Make an object resident and return its local path.

        A resident object is returned without downloading it again. Concurrent
        calls for the same object share a single download.

        Raises:
            NotFoundError: If the object does not exist
            UpstreamError: If the download fails
            InvalidArgumentError: If the object is larger than max_file_bytes
        """
        cache_key = self.cache_key(identifier)
        entry = self._entries.get(cache_key)
        if entry is not None:
            entry.last_accessed = time.time()
            logger.debug(f'Cache hit for {identifier.uri}')
            return entry.local_path

        task = self._in_flight.get(cache_key)
        if task is None:
            task = asyncio.ensure_future(self._download(identifier, cache_key))
            self._in_flight[cache_key] = task
            task.add_done_callback(lambda t: self._download_done(cache_key, t))

        # One caller giving up must not cancel the download for the others
        return await asyncio.shield(task)

    async def ensure_cached_batch(
        self,
        identifiers: Sequence[ObjectIdentifier],
        max_concurrent: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BatchCacheResult:
        """Make many objects resident using fixed-size concurrency windows.

        A failed download only fails its own identifier. When the cancel event
        is set, no further window is started and the objects cached so far are
        reported.

        Args:
            identifiers: Objects to cache
            max_concurrent: Window size, defaults to max_concurrent_downloads
            cancel_event: Cooperative cancellation signal

        Returns:
            BatchCacheResult with per-identifier paths and failure messages
        """
        window_size = max(1, max_concurrent or self.max_concurrent_downloads)
        result = BatchCacheResult()

        for start in range(0, len(identifiers), window_size):
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                logger.info(
                    f'Batch caching cancelled after {result.success_count} of '
                    f'{len(identifiers)} files'
                )
                break

            window = identifiers[start : start + window_size]
            outcomes = await asyncio.gather(
                *(self.ensure_cached(identifier) for identifier in window),
                return_exceptions=True,
            )

            for identifier, outcome in zip(window, outcomes):
                if isinstance(outcome, BaseException):
                    message = str(outcome) or type(outcome).__name__
                    result.failed[identifier.uri] = message
                    logger.warning(f'Failed to cache {identifier.uri}: {message}')
                else:
                    result.cached[identifier.uri] = outcome

        logger.debug(
            f'Batch caching finished: {result.success_count} cached, '
            f'{result.failure_count} failed, cancelled={result.cancelled}'
        )
        return result

    def warm_in_background(
        self,
        identifiers: Sequence[ObjectIdentifier],
        max_concurrent: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> 'asyncio.Task[BatchCacheResult]':
        """Start a batch fill as a supervised task.

        The task is returned so the caller may await it; unawaited tasks are
        cancelled by aclose().
        """
        task = asyncio.ensure_future(
            self.ensure_cached_batch(identifiers, max_concurrent, cancel_event)
        )
        self._background_tasks.add(task)
        task.add_done_callback(self._background_done)
        return task

    def get_cached_path(self, identifier: ObjectIdentifier) -> Optional[Path]:
        """Get the local path of a resident object without downloading, refreshing its recency."""
        entry = self._entries.get(self.cache_key(identifier))
        if entry is None:
            return None
        entry.last_accessed = time.time()
        return entry.local_path

    def identifier_for_path(self, local_path: str) -> Optional[ObjectIdentifier]:
        """Map a cached file path back to the object it holds, or None if it is not resident."""
        entry = self._entries.peek(Path(local_path).name)
        return entry.identifier if entry is not None else None

    def resident_entries(self, key_prefix: str = '') -> List[CacheEntry]:
        """List resident entries whose key starts with key_prefix."""
        return [
            entry
            for entry in self._entries.peek_values()
            if entry.identifier.key.startswith(key_prefix)
        ]

    def stats(self) -> CacheStats:
        """Get current usage figures."""
        utilization = (self._resident_bytes / self.max_bytes * 100) if self.max_bytes else 0.0
        return CacheStats(
            entries=len(self._entries),
            resident_bytes=self._resident_bytes,
            capacity_bytes=self.max_bytes,
            utilization_percent=round(utilization, 2),
        )

    async def clear(self) -> None:
        """Evict every entry, then remove and recreate the cache root."""
        logger.info(f'Clearing content cache ({len(self._entries)} entries)')
        while len(self._entries):
            self._entries.popitem()

        loop = asyncio.get_event_loop()
        try:
            await loop.run_in_executor(None, self._reset_root)
        except OSError as e:
            logger.error(f'Failed to reset cache directory {self.root}: {e}')

    async def aclose(self) -> None:
        """Cancel background fills and wait for them to finish."""
        tasks = list(self._background_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.debug(f'Cancelled {len(tasks)} background cache tasks')

    async def _download(self, identifier: ObjectIdentifier, cache_key: str) -> Path:
        metadata = await self.object_store.head_object(identifier)
        if metadata.size is not None and metadata.size > self.max_file_bytes:
            raise InvalidArgumentError(
                f'{identifier.uri} is {metadata.size} bytes, larger than the '
                f'{self.max_file_bytes} byte cache file limit'
            )

        content = await self.object_store.get_object_content(identifier)
        if len(content) > self.max_file_bytes:
            raise InvalidArgumentError(
                f'{identifier.uri} is {len(content)} bytes after decompression, larger than '
                f'the {self.max_file_bytes} byte cache file limit'
            )

        local_path = self.local_path_for(identifier)
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, self._write_file, local_path, content)

        # Map insertion and size accounting happen together with no suspension
        entry = CacheEntry(
            local_path=local_path,
            size=len(content),
            identifier=identifier,
            last_accessed=time.time(),
        )
        self._entries[cache_key] = entry
        self._resident_bytes += entry.size

        logger.debug(f'Cached {identifier.uri} ({entry.size} bytes) at {local_path}')
        return local_path

    def _download_done(self, cache_key: str, task: 'asyncio.Task[Path]') -> None:
        self._in_flight.pop(cache_key, None)
        # Mark the exception retrieved; awaiting callers re-raise it themselves
        if not task.cancelled():
            task.exception()

    def _background_done(self, task: 'asyncio.Task[BatchCacheResult]') -> None:
        self._background_tasks.discard(task)
        if task.cancelled():
            logger.debug('Background cache warm-up cancelled')
            return
        error = task.exception()
        if error is not None:
            logger.error(f'Background cache warm-up failed: {error}')
            return
        result = task.result()
        logger.info(
            f'Background cache warm-up finished: {result.success_count} cached, '
            f'{result.failure_count} failed'
        )

    def _on_evict(self, entry: CacheEntry) -> None:
        self._resident_bytes -= entry.size
        try:
            entry.local_path.unlink()
        except OSError as e:
            logger.warning(f'Failed to remove cached file {entry.local_path}: {e}')
        logger.debug(f'Evicted {entry.identifier.uri} ({entry.size} bytes)')

    @staticmethod
    def _write_file(local_path: Path, content: bytes) -> None:
        local_path.parent.mkdir(parents=True, exist_ok=True)
        local_path.write_bytes(content)

    def _reset_root(self) -> None:
        shutil.rmtree(self.root, ignore_errors=True)
        self.root.mkdir(parents=True, exist_ok=True)
