"""Tests for layered configuration loading and validation."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from atlassian_mcp.config import ServerConfig, ServiceConfig, normalize_base_url
from atlassian_mcp.core.errors import ConfigurationError

JIRA_ENV = {
    "JIRA_URL": "https://example.atlassian.net/",
    "JIRA_EMAIL": "me@example.com",
    "JIRA_API_TOKEN": "secret",
}


@pytest.fixture
def isolated(tmp_path):
    """Run with an empty environment, no home config and cwd in tmp_path."""
    original_cwd = os.getcwd()
    os.chdir(tmp_path)
    try:
        with patch.object(Path, "home", return_value=tmp_path):
            yield tmp_path
    finally:
        os.chdir(original_cwd)


def _load(env=None, config_file=None):
    with patch.dict(os.environ, env or {}, clear=True):
        return ServerConfig.from_env(config_file)


class TestDefaults:
    """Tests for defaults with nothing configured."""

    def test_nothing_enabled(self, isolated):
        config = _load()

        assert config.enabled_services() == {}
        assert config.log_level == "INFO"
        assert config.default_result_limit == 25
        assert config.max_result_limit == 100
        assert config.jira.api_version == "3"
        assert config.confluence.api_version == "auto"
        assert config.startup_warnings == []

    def test_service_enabled_from_env(self, isolated):
        config = _load(JIRA_ENV)

        assert list(config.enabled_services()) == ["jira"]
        assert config.jira.url == "https://example.atlassian.net"
        assert config.jira.timeout_ms == 30000
        assert config.jira.max_retries == 3
        assert config.jira.cache_ttl_ms == 300000

    def test_partial_service_warns(self, isolated):
        config = _load({"CONFLUENCE_URL": "https://example.atlassian.net/wiki"})

        assert config.enabled_services() == {}
        assert any("CONFLUENCE_EMAIL" in w and "CONFLUENCE_API_TOKEN" in w for w in config.startup_warnings)


class TestEnvOverrides:
    """Tests for environment variable parsing."""

    def test_request_layer_settings(self, isolated):
        env = {
            **JIRA_ENV,
            "JIRA_API_TIMEOUT": "5000",
            "JIRA_API_RETRIES": "5",
            "JIRA_API_RETRY_DELAY": "250",
            "JIRA_API_RATE_LIMIT": "100",
            "JIRA_ENABLE_CACHE": "false",
            "JIRA_CACHE_TIMEOUT": "60000",
            "JIRA_API_VERSION": "2",
        }
        jira = _load(env).jira

        assert jira.timeout_ms == 5000
        assert jira.max_retries == 5
        assert jira.base_delay_ms == 250
        assert jira.rate_limit_ms == 100
        assert jira.cache_enabled is False
        assert jira.cache_ttl_ms == 60000
        assert jira.api_version == "2"

    def test_invalid_integer_is_ignored(self, isolated):
        config = _load({**JIRA_ENV, "JIRA_API_RETRIES": "many"})
        assert config.jira.max_retries == 3

    def test_server_settings(self, isolated):
        env = {
            "LOG_LEVEL": "debug",
            "ATLASSIAN_MCP_SERVER_NAME": "my-atlassian",
            "ATLASSIAN_MCP_DISABLED_TOOLS": "create_page, update_page",
            "DEFAULT_RESULT_LIMIT": "10",
            "MAX_TASKS_PER_PAGE": "3",
        }
        config = _load(env)

        assert config.log_level == "DEBUG"
        assert config.server_name == "my-atlassian"
        assert config.disabled_tools == ["create_page", "update_page"]
        assert config.default_result_limit == 10
        assert config.max_tasks_per_page == 3

    def test_unknown_log_level_falls_back(self, isolated):
        config = _load({"LOG_LEVEL": "LOUD"})
        assert config.log_level == "INFO"
        assert any("LOUD" in w for w in config.startup_warnings)


class TestValidation:
    """Tests for range and format validation."""

    @pytest.mark.parametrize(
        "key,value",
        [
            ("JIRA_API_TIMEOUT", "500"),
            ("JIRA_API_TIMEOUT", "300001"),
            ("JIRA_API_RETRIES", "11"),
            ("JIRA_API_RATE_LIMIT", "-1"),
        ],
    )
    def test_out_of_range(self, isolated, key, value):
        with pytest.raises(ConfigurationError) as exc_info:
            _load({**JIRA_ENV, key: value})
        assert exc_info.value.setting == key

    def test_bad_url(self, isolated):
        with pytest.raises(ConfigurationError, match="Invalid URL"):
            _load({**JIRA_ENV, "JIRA_URL": "example.atlassian.net"})

    def test_bad_email(self, isolated):
        with pytest.raises(ConfigurationError, match="Invalid email"):
            _load({**JIRA_ENV, "JIRA_EMAIL": "not-an-email"})

    def test_bad_api_version(self, isolated):
        with pytest.raises(ConfigurationError, match="CONFLUENCE_API_VERSION"):
            _load({"CONFLUENCE_API_VERSION": "v3"})

    def test_default_limit_clamped_to_max(self, isolated):
        config = _load({"DEFAULT_RESULT_LIMIT": "500", "MAX_RESULT_LIMIT": "50"})
        assert config.default_result_limit == 50
        assert config.startup_warnings

    def test_clamp_limit(self):
        config = ServerConfig(default_result_limit=20, max_result_limit=50)
        assert config.clamp_limit(None) == 20
        assert config.clamp_limit(None, default=15) == 15
        assert config.clamp_limit(500) == 50
        assert config.clamp_limit(0) == 1


class TestTomlLayers:
    """Tests for TOML config files and their precedence."""

    def test_explicit_file(self, isolated):
        path = isolated / "custom.toml"
        path.write_text(
            """
[server]
name = "from-toml"

[limits]
max_result_limit = 40

[tasks]
max_per_page = 2

[jira]
url = "https://toml.atlassian.net/rest/api/3"
email = "toml@example.com"
api_token = "tok"
max_retries = 6
cache_enabled = false
"""
        )
        config = _load(config_file=str(path))

        assert config.server_name == "from-toml"
        assert config.max_result_limit == 40
        assert config.max_tasks_per_page == 2
        assert config.jira.url == "https://toml.atlassian.net"
        assert config.jira.max_retries == 6
        assert config.jira.cache_enabled is False
        assert "jira" in config.enabled_services()

    def test_env_beats_toml(self, isolated):
        path = isolated / "custom.toml"
        path.write_text('[jira]\nmax_retries = 6\n')

        config = _load({**JIRA_ENV, "JIRA_API_RETRIES": "2"}, config_file=str(path))
        assert config.jira.max_retries == 2

    def test_project_overrides_home(self, isolated):
        (isolated / ".atlassian-mcp.toml").write_text('[server]\nname = "home"\n[logging]\nlevel = "DEBUG"\n')
        (isolated / "atlassian-mcp.toml").write_text('[server]\nname = "project"\n')

        config = _load()

        assert config.server_name == "project"
        assert config.log_level == "DEBUG"

    def test_env_var_selects_file(self, isolated):
        path = isolated / "elsewhere.toml"
        path.write_text('[tools]\ndisabled_tools = ["get_spaces"]\n')

        config = _load({"ATLASSIAN_MCP_CONFIG_FILE": str(path)})
        assert config.disabled_tools == ["get_spaces"]

    def test_broken_toml_is_ignored(self, isolated):
        path = isolated / "broken.toml"
        path.write_text("[server\nname = ")

        config = _load(config_file=str(path))
        assert config.server_name == "atlassian-mcp"


class TestServiceConfig:
    """Tests for ServiceConfig helpers."""

    def test_normalize_base_url(self):
        assert normalize_base_url("jira", "https://x.atlassian.net/rest/api/2/") == "https://x.atlassian.net"
        assert normalize_base_url("confluence", "https://x.atlassian.net/wiki/") == "https://x.atlassian.net"

    def test_describe_hides_token(self):
        service = ServiceConfig("jira", url="https://x.atlassian.net", email="a@b.co", api_token="secret")
        described = service.describe()
        assert described["enabled"] is True
        assert "secret" not in described.values()
        assert "api_token" not in described

    def test_missing_settings(self):
        service = ServiceConfig("confluence", url="https://x.atlassian.net")
        assert service.missing_settings() == ["CONFLUENCE_EMAIL", "CONFLUENCE_API_TOKEN"]
        assert service.partially_configured is True
