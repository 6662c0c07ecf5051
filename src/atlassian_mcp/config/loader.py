"""ServerConfig loading and validation logic.

Provides ``_ServerConfigLoader``, a mixin class whose methods are inherited by
``ServerConfig`` (defined in ``server.py``). Splitting loading/validation
logic into its own module keeps ``server.py`` focused on field definitions.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, List, Optional, cast

if TYPE_CHECKING:
    from atlassian_mcp.config.server import ServerConfig

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # Python < 3.11 fallback

from atlassian_mcp.config.parsing import _check_range, _parse_bool, _split_list, _try_parse_int
from atlassian_mcp.config.services import ServiceConfig

logger = logging.getLogger(__name__)

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

# (attribute, env var, [limits] / [tasks] TOML key)
_LIMIT_SETTINGS = (
    ("default_result_limit", "DEFAULT_RESULT_LIMIT", "default_result_limit"),
    ("max_result_limit", "MAX_RESULT_LIMIT", "max_result_limit"),
    ("max_text_length", "MAX_TEXT_LENGTH", "max_text_length"),
)
_TASK_SETTINGS = (
    ("task_min_length", "TASK_MIN_LENGTH", "min_length"),
    ("task_max_length", "TASK_MAX_LENGTH", "max_length"),
    ("max_tasks_per_page", "MAX_TASKS_PER_PAGE", "max_per_page"),
)


class _ServerConfigLoader:
    """Mixin providing config-loading methods for ``ServerConfig``.

    At runtime ``self`` is always a ``ServerConfig`` instance.
    """

    if TYPE_CHECKING:
        log_level: str
        structured_logging: bool
        server_name: str
        disabled_tools: List[str]
        default_result_limit: int
        max_result_limit: int
        max_text_length: int
        task_min_length: int
        task_max_length: int
        max_tasks_per_page: int
        jira: ServiceConfig
        confluence: ServiceConfig
        startup_warnings: List[str]

        def _add_startup_warning(self, message: str) -> None: ...

    @classmethod
    def from_env(cls, config_file: Optional[str] = None) -> "ServerConfig":
        """
        Create configuration from environment variables and optional TOML file.

        Priority (highest to lowest):
        1. Environment variables
        2. Project TOML config (./atlassian-mcp.toml)
        3. User TOML config (~/.atlassian-mcp.toml)
        4. XDG config (~/.config/atlassian-mcp/config.toml)
        5. Default values

        Raises:
            ConfigurationError: A setting is malformed or out of range.
        """
        config = cls()

        toml_path = config_file or os.environ.get("ATLASSIAN_MCP_CONFIG_FILE")
        if toml_path:
            config._load_toml(Path(toml_path))
        else:
            xdg_config_home = os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")
            xdg_config = Path(xdg_config_home) / "atlassian-mcp" / "config.toml"
            if xdg_config.exists():
                config._load_toml(xdg_config)
                logger.debug(f"Loaded XDG config from {xdg_config}")

            home_config = Path.home() / ".atlassian-mcp.toml"
            if home_config.exists():
                config._load_toml(home_config)
                logger.debug(f"Loaded user config from {home_config}")

            project_config = Path("atlassian-mcp.toml")
            if project_config.exists():
                config._load_toml(project_config)
                logger.debug(f"Loaded project config from {project_config}")

        config._load_env()
        config._validate()

        return cast("ServerConfig", config)

    def _load_toml(self, path: Path) -> None:
        """Load configuration from TOML file."""
        if not path.exists():
            logger.warning(f"Config file not found: {path}")
            return

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.error(f"Error loading config file {path}: {e}")
            return

        if "logging" in data:
            log = data["logging"]
            if "level" in log:
                self.log_level = str(log["level"]).upper()
            if "structured" in log:
                self.structured_logging = _parse_bool(log["structured"])

        if "server" in data:
            srv = data["server"]
            if "name" in srv:
                self.server_name = str(srv["name"])

        if "tools" in data:
            tools_cfg = data["tools"]
            if "disabled_tools" in tools_cfg:
                self.disabled_tools = list(tools_cfg["disabled_tools"])

        self._apply_int_table(data.get("limits", {}), _LIMIT_SETTINGS, "limits")
        self._apply_int_table(data.get("tasks", {}), _TASK_SETTINGS, "tasks")

        if "jira" in data:
            self.jira.apply_toml(data["jira"])
        if "confluence" in data:
            self.confluence.apply_toml(data["confluence"])

    def _apply_int_table(self, table: Any, settings: tuple, section: str) -> None:
        for attr, _, key in settings:
            if key in table:
                parsed = _try_parse_int(table[key], f"[{section}] {key}")
                if parsed is not None:
                    setattr(self, attr, parsed)

    def _load_env(self) -> None:
        """Load configuration from environment variables."""
        if level := os.environ.get("LOG_LEVEL"):
            self.log_level = level.upper()

        if structured := os.environ.get("ATLASSIAN_MCP_STRUCTURED_LOGGING"):
            self.structured_logging = _parse_bool(structured)

        if name := os.environ.get("ATLASSIAN_MCP_SERVER_NAME"):
            self.server_name = name

        if disabled := os.environ.get("ATLASSIAN_MCP_DISABLED_TOOLS"):
            self.disabled_tools = _split_list(disabled)

        for attr, env_var, _ in _LIMIT_SETTINGS + _TASK_SETTINGS:
            if raw := os.environ.get(env_var):
                parsed = _try_parse_int(raw, env_var)
                if parsed is not None:
                    setattr(self, attr, parsed)

        self.jira.apply_env(os.environ)
        self.confluence.apply_env(os.environ)

    def _validate(self) -> None:
        """Validate settings. Raises ``ConfigurationError`` on bad values."""
        if self.log_level not in _VALID_LOG_LEVELS:
            self._add_startup_warning(f"Unknown log level {self.log_level!r}; using INFO")
            self.log_level = "INFO"

        _check_range("DEFAULT_RESULT_LIMIT", self.default_result_limit, 1, 1000)
        _check_range("MAX_RESULT_LIMIT", self.max_result_limit, 1, 1000)
        _check_range("MAX_TEXT_LENGTH", self.max_text_length, 1)
        _check_range("TASK_MIN_LENGTH", self.task_min_length, 0)
        _check_range("TASK_MAX_LENGTH", self.task_max_length, self.task_min_length + 1)
        _check_range("MAX_TASKS_PER_PAGE", self.max_tasks_per_page, 1)

        if self.default_result_limit > self.max_result_limit:
            self._add_startup_warning(
                f"DEFAULT_RESULT_LIMIT ({self.default_result_limit}) exceeds MAX_RESULT_LIMIT "
                f"({self.max_result_limit}); clamping"
            )
            self.default_result_limit = self.max_result_limit

        for service in (self.jira, self.confluence):
            service.validate()
            if service.partially_configured:
                self._add_startup_warning(
                    f"{service.service} is disabled; missing {', '.join(service.missing_settings())}"
                )
