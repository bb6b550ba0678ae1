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

"""Manifest loading with a TTL, and the virtual directory index built from it."""

import asyncio
import time
from awslabs.s3_filesystem_mcp_server.consts import (
    DEFAULT_MANIFEST_DIR,
    DEFAULT_MANIFEST_KEY,
    DEFAULT_MANIFEST_TTL_SECONDS,
    PATH_SEPARATOR,
)
from awslabs.s3_filesystem_mcp_server.errors import NotFoundError, UpstreamError
from awslabs.s3_filesystem_mcp_server.models import Manifest, ObjectIdentifier, ObjectMetadata
from awslabs.s3_filesystem_mcp_server.storage.s3_object_store import S3ObjectStore
from awslabs.s3_filesystem_mcp_server.utils.s3_utils import manifest_filename_for_bucket
from dataclasses import dataclass
from loguru import logger
from pathlib import Path
from pydantic import ValidationError
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple


class DirectoryIndex:
    """Parent directory to child names map derived from flat object keys.

    Directory paths are ``''`` for the root and otherwise end with ``/``. Files
    are listed by name, subdirectories by name plus ``/``. Children are sorted
    once at build time so every listing is deterministic.
    """

    def __init__(self, directories: Dict[str, Tuple[str, ...]]):
        """Initialize the index from already-sorted child tuples."""
        self._directories = directories

    @classmethod
    def from_keys(cls, keys: Iterable[str]) -> 'DirectoryIndex':
        """Build the index by inserting every prefix to child edge of every key.

        Empty segments are dropped, so ``a//b`` is indexed as ``a/b``. A key
        ending in ``/`` is a directory marker and contributes a directory entry.
        """
        directories: Dict[str, Set[str]] = {}

        for key in keys:
            segments = [segment for segment in key.split(PATH_SEPARATOR) if segment]
            if not segments:
                continue
            is_marker = key.endswith(PATH_SEPARATOR)

            parent = ''
            for position, segment in enumerate(segments):
                is_last = position == len(segments) - 1
                child = segment if is_last and not is_marker else segment + PATH_SEPARATOR
                directories.setdefault(parent, set()).add(child)
                parent = f'{parent}{segment}{PATH_SEPARATOR}'

        return cls({path: tuple(sorted(children)) for path, children in directories.items()})

    @staticmethod
    def normalize_path(path: str) -> str:
        """Normalize a directory path: no leading ``/``, one trailing ``/``, root is ``''``."""
        path = path.lstrip(PATH_SEPARATOR)
        if path and not path.endswith(PATH_SEPARATOR):
            path += PATH_SEPARATOR
        return path

    def list_directory(self, path: str) -> List[str]:
        """List the sorted children of a directory, or an empty list if it is unknown."""
        return list(self._directories.get(self.normalize_path(path), ()))

    def is_directory(self, path: str) -> bool:
        """Check whether a path is a directory with at least one child."""
        return self.normalize_path(path) in self._directories

    def __len__(self) -> int:
        """Number of indexed directories."""
        return len(self._directories)


@dataclass(frozen=True)
class ManifestSnapshot:
    """One load attempt: the manifest (or None if absent) and its directory index."""

    manifest: Optional[Manifest]
    index: Optional[DirectoryIndex]
    fetched_at: float


class ManifestStore:
    """Loads and caches the bucket manifest.

    A manifest is read from a local JSON file, falling back to a manifest object
    stored in the bucket. Each load, successful or not, is kept for the TTL and
    published as a single immutable snapshot, so readers see either the old or
    the new manifest and index, never a mix.
    """

    def __init__(
        self,
        bucket: str,
        object_store: Optional[S3ObjectStore] = None,
        manifest_dir: str = DEFAULT_MANIFEST_DIR,
        manifest_path: Optional[str] = None,
        manifest_key: Optional[str] = DEFAULT_MANIFEST_KEY,
        ttl_seconds: float = DEFAULT_MANIFEST_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the manifest store.

        Args:
            bucket: Bucket the manifest describes
            object_store: Store used for the remote manifest fallback
            manifest_dir: Directory holding ``<bucket>-manifest.json`` files
            manifest_path: Explicit local manifest file, overrides manifest_dir
            manifest_key: Remote manifest key, None disables the remote fallback
            ttl_seconds: How long a load result is reused
            clock: Monotonic time source
        """
        self.bucket = bucket
        self.object_store = object_store
        self.manifest_key = manifest_key
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._manifest_file = (
            Path(manifest_path)
            if manifest_path
            else Path(manifest_dir) / manifest_filename_for_bucket(bucket)
        )
        self._snapshot: Optional[ManifestSnapshot] = None
        self._load_lock = asyncio.Lock()

    @property
    def manifest_file(self) -> Path:
        """Local manifest file location."""
        return self._manifest_file

    @property
    def manifest(self) -> Optional[Manifest]:
        """Most recently loaded manifest regardless of age, without triggering a load."""
        snapshot = self._snapshot
        return snapshot.manifest if snapshot else None

    @property
    def records(self) -> Optional[Tuple[ObjectMetadata, ...]]:
        """Entries of the loaded manifest, or None when no manifest is loaded."""
        manifest = self.manifest
        return manifest.files if manifest is not None else None

    async def fetch(self) -> Optional[Manifest]:
        """Get the manifest, reloading it once the cached copy is older than the TTL.

        Returns:
            The manifest, or None when none exists or it could not be loaded
        """
        snapshot = self._snapshot
        if snapshot is not None and self._is_fresh(snapshot):
            return snapshot.manifest

        async with self._load_lock:
            # Another caller may have reloaded while we waited
            snapshot = self._snapshot
            if snapshot is not None and self._is_fresh(snapshot):
                return snapshot.manifest

            manifest = await self._load()
            index = None
            if manifest is not None:
                index = DirectoryIndex.from_keys(entry.key for entry in manifest.files)
            self._snapshot = ManifestSnapshot(
                manifest=manifest, index=index, fetched_at=self._clock()
            )

            if manifest is not None:
                logger.info(
                    f'Loaded manifest for bucket {self.bucket}: {len(manifest.files)} files, '
                    f'{len(index) if index else 0} directories, '
                    f'last updated {manifest.last_updated}'
                )
            return manifest

    def list_directory(self, path: str) -> Optional[List[str]]:
        """List a directory from the loaded manifest.

        Args:
            path: Directory key path, with or without a trailing ``/``

        Returns:
            Sorted child names, an empty list for unknown paths, or None when
            no manifest is loaded
        """
        snapshot = self._snapshot
        if snapshot is None or snapshot.index is None:
            return None
        return snapshot.index.list_directory(path)

    def is_directory(self, path: str) -> Optional[bool]:
        """Check whether a key path is a directory, or None when no manifest is loaded."""
        snapshot = self._snapshot
        if snapshot is None or snapshot.index is None:
            return None
        return snapshot.index.is_directory(path)

    def invalidate(self) -> None:
        """Force the next fetch to reload."""
        self._snapshot = None

    def _is_fresh(self, snapshot: ManifestSnapshot) -> bool:
        return self._clock() - snapshot.fetched_at < self.ttl_seconds

    async def _load(self) -> Optional[Manifest]:
        loop = asyncio.get_event_loop()
        try:
            content = await loop.run_in_executor(None, self._manifest_file.read_bytes)
        except FileNotFoundError:
            logger.debug(f'No local manifest at {self._manifest_file}')
            return await self._load_remote()
        except OSError as e:
            logger.warning(f'Failed to read local manifest {self._manifest_file}: {e}')
            return None

        return self._parse(content, str(self._manifest_file))

    async def _load_remote(self) -> Optional[Manifest]:
        if self.object_store is None or not self.manifest_key:
            return None

        identifier = ObjectIdentifier(bucket=self.bucket, key=self.manifest_key)
        try:
            content = await self.object_store.get_object_content(identifier)
        except NotFoundError:
            logger.debug(f'No remote manifest at {identifier.uri}')
            return None
        except UpstreamError as e:
            logger.warning(f'Failed to fetch remote manifest {identifier.uri}: {e.message}')
            return None

        return self._parse(content, identifier.uri)

    @staticmethod
    def _parse(content: bytes, source: str) -> Optional[Manifest]:
        try:
            return Manifest.model_validate_json(content)
        except ValidationError as e:
            logger.warning(
                f'Failed to parse manifest {source}: {e.error_count()} validation errors'
            )
            logger.debug(f'Manifest validation errors for {source}: {e}')
            return None
