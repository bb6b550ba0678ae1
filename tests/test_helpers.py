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

"""Test helpers for calling S3 filesystem tools outside an MCP server."""

import inspect
from awslabs.s3_filesystem_mcp_server.context import (
    FilesystemContext,
    create_filesystem_context,
)
from awslabs.s3_filesystem_mcp_server.models import FilesystemConfig
from pathlib import Path
from typing import Any, Dict, Optional
from unittest.mock import AsyncMock, MagicMock


def resolve_field_defaults(tool_func) -> Dict[str, Any]:
    """Map each tool parameter to its plain default, unwrapping pydantic Field objects."""
    defaults = {}
    for param_name, param in inspect.signature(tool_func).parameters.items():
        if param_name == 'ctx' or param.default is inspect.Parameter.empty:
            continue
        default = param.default
        if hasattr(default, 'default'):
            # A FieldInfo; required fields have no usable default
            if callable(default.default_factory):
                defaults[param_name] = default.default_factory()
            elif default.is_required():
                continue
            else:
                defaults[param_name] = default.default
        else:
            defaults[param_name] = default
    return defaults


async def call_tool(tool_func, ctx, **kwargs) -> Any:
    """Call a tool function directly, filling unspecified parameters with their defaults."""
    params = resolve_field_defaults(tool_func)
    params.update(kwargs)
    return await tool_func(ctx, **params)


def mock_tool_context(filesystem: FilesystemContext) -> MagicMock:
    """Build an MCP context whose lifespan context is the given filesystem."""
    ctx = MagicMock()
    ctx.request_context.lifespan_context = filesystem
    ctx.error = AsyncMock()
    return ctx


def build_test_filesystem(
    tmp_path: Path,
    s3_client,
    prefix: str = '',
    manifest_json: Optional[str] = None,
) -> FilesystemContext:
    """Wire real components over an in-memory S3 client.

    ripgrep is disabled so searches run in-process, and the manifest directory
    lives under tmp_path so no real manifest is picked up.

    Args:
        tmp_path: Scratch directory
        s3_client: In-memory S3 client
        prefix: Key prefix the filesystem is rooted at
        manifest_json: Local manifest document, none when omitted
    """
    manifest_dir = tmp_path / 'manifests'
    manifest_dir.mkdir(exist_ok=True)
    if manifest_json is not None:
        (manifest_dir / f'{s3_client.bucket}-manifest.json').write_text(manifest_json)

    config = FilesystemConfig(
        bucket=s3_client.bucket,
        prefix=prefix,
        manifest_dir=str(manifest_dir),
        cache_dir=str(tmp_path / 'cache'),
        ripgrep_path=str(tmp_path / 'no-ripgrep'),
    )
    return create_filesystem_context(config, s3_client=s3_client)
