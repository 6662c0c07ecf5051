"""Parsing helpers for configuration values."""

import logging
from typing import Any, Optional

from atlassian_mcp.core.errors import ConfigurationError

logger = logging.getLogger(__name__)


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"true", "1", "yes", "on"}


def _try_parse_int(value: Any, setting: str) -> Optional[int]:
    """Parse an integer setting; invalid values are logged and ignored."""
    if isinstance(value, bool):
        logger.warning("Ignoring non-integer value for %s: %r", setting, value)
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        logger.warning("Ignoring non-integer value for %s: %r", setting, value)
        return None


def _check_range(setting: str, value: int, minimum: int, maximum: Optional[int] = None) -> None:
    if value < minimum or (maximum is not None and value > maximum):
        bound = f"between {minimum} and {maximum}" if maximum is not None else f">= {minimum}"
        raise ConfigurationError(
            f"Configuration value {setting} must be {bound}, got {value}",
            setting=setting,
        )


def _split_list(value: str) -> list:
    return [item.strip() for item in value.split(",") if item.strip()]
