"""Configuration error classes."""

from typing import Optional


class ConfigurationError(Exception):
    """A required setting is missing or a value is out of range.

    Attributes:
        setting: Name of the offending setting (env var or TOML key).
    """

    def __init__(self, message: str, setting: Optional[str] = None):
        super().__init__(message)
        self.setting = setting
