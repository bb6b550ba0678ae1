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

"""Error types raised by the S3 filesystem core.

Every failure surfaced to a tool caller is one of these types. The tool layer
catches them and formats them into an error payload, so none of them should
ever terminate the server process.
"""

from typing import Optional


class S3FilesystemError(Exception):
    """Base class for all S3 filesystem errors."""

    error_type = 'S3FilesystemError'

    def __init__(self, message: str):
        """Initialize the error with a human-readable message."""
        super().__init__(message)
        self.message = message


class NotFoundError(S3FilesystemError):
    """The requested object or key does not exist."""

    error_type = 'NotFound'


class NoManifestError(S3FilesystemError):
    """The operation needs a manifest and none has been loaded."""

    error_type = 'NoManifest'


class InvalidIdentifierError(S3FilesystemError):
    """A locator, pattern or regex could not be parsed."""

    error_type = 'InvalidIdentifier'


class InvalidArgumentError(InvalidIdentifierError):
    """A tool argument is malformed or out of range."""

    error_type = 'InvalidArgument'


class UpstreamError(S3FilesystemError):
    """The remote store call failed for a reason other than not-found."""

    error_type = 'UpstreamError'


class SearchTimeoutError(S3FilesystemError):
    """The external search process exceeded its wall-clock limit."""

    error_type = 'SearchTimeout'


class SearchAbortedError(S3FilesystemError):
    """The search was cancelled by the caller."""

    error_type = 'SearchAborted'


class SearchExecutionError(S3FilesystemError):
    """The external search process exited with an error status."""

    error_type = 'SearchExecutionError'

    def __init__(self, message: str, exit_code: Optional[int] = None, stderr: str = ''):
        """Initialize the error with the process exit code and diagnostic output."""
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr
