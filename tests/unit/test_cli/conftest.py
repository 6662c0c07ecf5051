"""Shared fixtures for CLI command tests."""

import os
from unittest.mock import patch

import pytest
from click.testing import CliRunner


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture
def config_file(tmp_path):
    """Write a TOML config and run with an otherwise empty environment."""

    def _write(content):
        path = tmp_path / "atlassian-mcp.toml"
        path.write_text(content)
        return str(path)

    with patch.dict(os.environ, {}, clear=True):
        yield _write
