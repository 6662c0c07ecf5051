"""Configuration package for atlassian-mcp.

Sub-modules:
    parsing    - boolean/integer parsing and range checks
    services   - ServiceConfig (per-service connection and request settings)
    loader     - ServerConfig loading/validation mixin (_ServerConfigLoader)
    server     - ServerConfig dataclass, get_config/set_config globals
"""

from atlassian_mcp.config.parsing import _parse_bool  # noqa: F401
from atlassian_mcp.config.server import ServerConfig, get_config, set_config  # noqa: F401
from atlassian_mcp.config.services import ServiceConfig, normalize_base_url  # noqa: F401

__all__ = [
    "ServerConfig",
    "ServiceConfig",
    "get_config",
    "normalize_base_url",
    "set_config",
]
