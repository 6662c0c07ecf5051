"""ServerConfig dataclass and global configuration state.

Loading and validation logic lives in the ``_ServerConfigLoader`` mixin
(``loader.py``) which ``ServerConfig`` inherits from.
"""

import logging
import sys
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from atlassian_mcp.config.loader import _ServerConfigLoader
from atlassian_mcp.config.services import ServiceConfig


@dataclass
class ServerConfig(_ServerConfigLoader):
    """Server configuration with support for env vars and TOML overrides."""

    # Logging configuration
    log_level: str = "INFO"
    structured_logging: bool = True

    # Server configuration
    server_name: str = "atlassian-mcp"

    # Tool registration control
    disabled_tools: List[str] = field(default_factory=list)

    # Result shaping
    default_result_limit: int = 25
    max_result_limit: int = 100
    max_text_length: int = 100000

    # Confluence task extraction
    task_min_length: int = 3
    task_max_length: int = 500
    max_tasks_per_page: int = 5

    # Services
    jira: ServiceConfig = field(default_factory=lambda: ServiceConfig("jira"))
    confluence: ServiceConfig = field(default_factory=lambda: ServiceConfig("confluence"))

    startup_warnings: List[str] = field(default_factory=list, repr=False)

    def _add_startup_warning(self, message: str) -> None:
        if message and message not in self.startup_warnings:
            self.startup_warnings.append(message)

    def enabled_services(self) -> Dict[str, ServiceConfig]:
        return {svc.service: svc for svc in (self.jira, self.confluence) if svc.enabled}

    def clamp_limit(self, requested: Optional[int], default: Optional[int] = None) -> int:
        """Apply the default and the ``max_result_limit`` ceiling to a page size."""
        value = requested if requested is not None else (default or self.default_result_limit)
        return max(1, min(value, self.max_result_limit))

    def setup_logging(self) -> None:
        """Configure logging based on settings.

        The handler writes to stderr; stdout carries the MCP stdio protocol.
        """
        level = getattr(logging, self.log_level, logging.INFO)

        if self.structured_logging:
            formatter = logging.Formatter(
                '{"timestamp":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}'
            )
        else:
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(formatter)

        root_logger = logging.getLogger("atlassian_mcp")
        root_logger.setLevel(level)
        root_logger.addHandler(handler)


# Global configuration instance
_config: Optional[ServerConfig] = None


def get_config() -> ServerConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = ServerConfig.from_env()
    return _config


def set_config(config: ServerConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
