"""Unified error hierarchy for atlassian-mcp.

All custom exception classes are defined in domain-specific modules within
this package. This __init__.py re-exports everything for convenient access.

Usage:
    from atlassian_mcp.core.errors import ClassifiedError, ErrorKind
    from atlassian_mcp.core.errors import error_to_response
"""

from atlassian_mcp.core.errors.api import (
    RECOVERABLE_KINDS,
    ClassifiedError,
    ErrorKind,
)
from atlassian_mcp.core.errors.base import ERROR_MAPPINGS, KIND_MAPPINGS, error_to_response
from atlassian_mcp.core.errors.configuration import ConfigurationError

__all__ = [
    "ERROR_MAPPINGS",
    "KIND_MAPPINGS",
    "RECOVERABLE_KINDS",
    "ClassifiedError",
    "ConfigurationError",
    "ErrorKind",
    "error_to_response",
]
