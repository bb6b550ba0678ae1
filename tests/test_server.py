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

"""Tests for the MCP server wiring."""

import os
import pytest
from awslabs.s3_filesystem_mcp_server import server
from tests.fixtures.s3_test_data import InMemoryS3Client
from unittest.mock import MagicMock, patch


@pytest.mark.asyncio
async def test_tools_registered():
    """Test every filesystem tool is registered under its agent-facing name."""
    tools = await server.mcp.list_tools()
    tool_names = sorted(tool.name for tool in tools)

    assert tool_names == ['FilterMetadata', 'Glob', 'Grep', 'List', 'Read']


@pytest.mark.asyncio
async def test_tool_schemas_hide_context():
    """Test that the MCP context parameter is not part of any tool schema."""
    tools = {tool.name: tool for tool in await server.mcp.list_tools()}

    assert 'ctx' not in tools['Read'].inputSchema['properties']
    assert tools['Read'].inputSchema['required'] == ['path']
    assert 'file_pattern' in tools['Glob'].inputSchema['properties']


@pytest.mark.asyncio
async def test_lifespan_builds_and_closes_filesystem(tmp_path):
    """Test that the lifespan loads the manifest and closes the filesystem on exit."""
    client = InMemoryS3Client()
    env = {
        'S3_BUCKET': 'test-bucket',
        'S3_FS_MANIFEST_DIR': str(tmp_path / 'manifests'),
        'S3_FS_CACHE_DIR': str(tmp_path / 'cache'),
        'S3_FS_RIPGREP_PATH': str(tmp_path / 'no-rg'),
    }

    with (
        patch.dict(os.environ, env),
        patch(
            'awslabs.s3_filesystem_mcp_server.context.get_s3_client', return_value=client
        ) as mock_get_client,
    ):
        async with server.server_lifespan(server.mcp) as filesystem:
            assert filesystem.bucket == 'test-bucket'
            assert filesystem.manifest_store.manifest is None
            # The manifest lookup ran once at startup
            assert client.get_object_calls == ['.amp-manifest.json']
            filesystem.content_cache.aclose = MagicMock(wraps=filesystem.content_cache.aclose)

    mock_get_client.assert_called_once()
    filesystem.content_cache.aclose.assert_called_once()


@patch('awslabs.s3_filesystem_mcp_server.server.mcp')
@patch('awslabs.s3_filesystem_mcp_server.server.logger')
def test_main_sets_environment_from_arguments(mock_logger, mock_mcp):
    """Test that command line arguments override the environment."""
    argv = ['server', '--bucket', 'cli-bucket', '--prefix', 'data/', '--region', 'eu-west-1']

    with patch.dict(os.environ, {}, clear=True), patch('sys.argv', argv):
        server.main()

        assert os.environ['S3_BUCKET'] == 'cli-bucket'
        assert os.environ['S3_PREFIX'] == 'data/'
        assert os.environ['S3_REGION'] == 'eu-west-1'

    mock_mcp.run.assert_called_once()
    mock_logger.remove.assert_called_once()
