"""JSON envelope output for CLI commands."""

import json
import sys
from dataclasses import asdict
from typing import Any, Mapping, NoReturn, Optional, Sequence

import click

from atlassian_mcp.core.responses import error_response, success_response


def emit(response: Mapping[str, Any]) -> None:
    click.echo(json.dumps(response, indent=2, default=str))


def emit_success(data: Mapping[str, Any], *, warnings: Optional[Sequence[str]] = None) -> None:
    emit(asdict(success_response(data=data, warnings=warnings)))


def emit_error(
    message: str,
    *,
    code: str,
    error_type: str,
    remediation: Optional[str] = None,
    details: Optional[Mapping[str, Any]] = None,
) -> NoReturn:
    emit(
        asdict(
            error_response(
                message,
                error_code=code,
                error_type=error_type,
                remediation=remediation,
                details=details,
            )
        )
    )
    sys.exit(1)


def emit_response(response: Mapping[str, Any]) -> None:
    """Print a prebuilt envelope; exit non-zero when it reports failure."""
    emit(response)
    if not response.get("success"):
        sys.exit(1)
