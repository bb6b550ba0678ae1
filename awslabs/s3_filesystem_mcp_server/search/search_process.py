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

"""Lifecycle of one external search process run."""

import asyncio
from awslabs.s3_filesystem_mcp_server.errors import SearchExecutionError
from awslabs.s3_filesystem_mcp_server.models import SearchStatus
from dataclasses import dataclass
from loguru import logger
from typing import List, Optional


@dataclass
class ProcessResult:
    """How a search process ended and what it wrote."""

    status: SearchStatus
    exit_code: Optional[int] = None
    stdout: str = ''
    stderr: str = ''


class SearchProcess:
    """Spawns a search executable and races its exit against a timeout and an abort signal.

    Exactly one of natural exit, timeout or abort decides the outcome; whichever
    is observed first resolves the run and later events are ignored. On timeout
    or abort the process is killed and reaped before ``run`` returns.
    """

    def __init__(
        self,
        executable: str,
        args: List[str],
        timeout_seconds: float,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        """Initialize the process wrapper.

        Args:
            executable: Path of the search executable
            args: Command line arguments
            timeout_seconds: Wall-clock limit for the whole run
            cancel_event: Abort signal
        """
        self.executable = executable
        self.args = args
        self.timeout_seconds = timeout_seconds
        self.cancel_event = cancel_event
        self.status = SearchStatus.IDLE
        self._process: Optional[asyncio.subprocess.Process] = None

    @property
    def pid(self) -> Optional[int]:
        """Process id once spawned."""
        return self._process.pid if self._process else None

    async def run(self) -> ProcessResult:
        """Run the process to one terminal outcome.

        Returns:
            ProcessResult with COMPLETED (any exit code), TIMED_OUT or ABORTED

        Raises:
            SearchExecutionError: If the executable cannot be started
        """
        if self.cancel_event is not None and self.cancel_event.is_set():
            self._resolve(SearchStatus.ABORTED)
            return ProcessResult(status=self.status)

        try:
            self._process = await asyncio.create_subprocess_exec(
                self.executable,
                *self.args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            self._resolve(SearchStatus.FAILED)
            raise SearchExecutionError(f'Failed to start {self.executable}: {e}') from e

        self.status = SearchStatus.SEARCHING
        logger.debug(f'Started {self.executable} (pid {self._process.pid})')

        communicate = asyncio.ensure_future(self._process.communicate())
        abort_wait = (
            asyncio.ensure_future(self.cancel_event.wait()) if self.cancel_event else None
        )
        waiters = {communicate} if abort_wait is None else {communicate, abort_wait}

        try:
            done, _ = await asyncio.wait(
                waiters, timeout=self.timeout_seconds, return_when=asyncio.FIRST_COMPLETED
            )

            if communicate in done:
                self._resolve(SearchStatus.COMPLETED)
            elif abort_wait is not None and abort_wait in done:
                self._resolve(SearchStatus.ABORTED)
            else:
                self._resolve(SearchStatus.TIMED_OUT)

            if self.status != SearchStatus.COMPLETED:
                await self._kill()

            stdout, stderr = await communicate
        finally:
            if abort_wait is not None:
                abort_wait.cancel()
            if not communicate.done():
                # The caller was cancelled while waiting
                await self._kill()
                communicate.cancel()

        exit_code = self._process.returncode
        logger.debug(
            f'{self.executable} finished as {self.status.value} with exit code {exit_code}'
        )
        return ProcessResult(
            status=self.status,
            exit_code=exit_code,
            stdout=stdout.decode('utf-8', errors='replace'),
            stderr=stderr.decode('utf-8', errors='replace'),
        )

    def _resolve(self, status: SearchStatus) -> bool:
        """Move to a terminal status unless one was already reached."""
        if self.status.is_terminal:
            return False
        self.status = status
        return True

    async def _kill(self) -> None:
        if self._process is None or self._process.returncode is not None:
            return
        try:
            self._process.kill()
        except ProcessLookupError:
            # Exited between the check and the kill
            return
        await self._process.wait()
