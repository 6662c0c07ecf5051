"""``atlassian-mcp-cli``: configuration checks and version probes."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

import click

from atlassian_mcp.config import ServerConfig
from atlassian_mcp.core.api import Client
from atlassian_mcp.core.errors import ClassifiedError, ConfigurationError, error_to_response
from atlassian_mcp.cli.output import emit_error, emit_response, emit_success

JIRA_PROBE_PATH = "/rest/api/{version}/serverInfo"


def _load_config(config_file: Optional[str]) -> ServerConfig:
    try:
        return ServerConfig.from_env(config_file)
    except ConfigurationError as exc:
        emit_response(error_to_response(exc))
        raise


@click.group()
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False),
    default=None,
    help="TOML config file (overrides the layered lookup).",
)
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[str]) -> None:
    """Inspect atlassian-mcp configuration and remote API versions."""
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file


@cli.command("check")
@click.pass_context
def check_cmd(ctx: click.Context) -> None:
    """Validate configuration and report which services are enabled."""
    config = _load_config(ctx.obj.get("config_file"))
    enabled = config.enabled_services()
    if not enabled:
        emit_error(
            "No Atlassian service is configured",
            code="CONFIGURATION_ERROR",
            error_type="validation",
            remediation="Set JIRA_URL/JIRA_EMAIL/JIRA_API_TOKEN or the CONFLUENCE_* equivalents",
            details={"warnings": config.startup_warnings},
        )

    emit_success(
        {
            "server_name": config.server_name,
            "enabled_services": sorted(enabled),
            "services": {
                "jira": config.jira.describe(),
                "confluence": config.confluence.describe(),
            },
        },
        warnings=config.startup_warnings,
    )


async def _probe(client: Client) -> Dict[str, Any]:
    async with client:
        if client.negotiator.versions(client.service).probe_path:
            available = await client.probe()
        else:
            await client.get(JIRA_PROBE_PATH)
            available = True
        return {
            "service": client.service,
            "available": available,
            "state": client.negotiator.snapshot()[client.service],
        }


@cli.command("probe")
@click.argument("service", type=click.Choice(["jira", "confluence"]))
@click.pass_context
def probe_cmd(ctx: click.Context, service: str) -> None:
    """Probe SERVICE's API version and print the negotiated state."""
    config = _load_config(ctx.obj.get("config_file"))
    service_config = getattr(config, service)
    if not service_config.enabled:
        emit_error(
            f"{service} is not configured",
            code="CONFIGURATION_ERROR",
            error_type="validation",
            remediation=f"Set {', '.join(service_config.missing_settings())}",
        )

    client = Client.from_config(service, service_config)
    try:
        result = asyncio.run(_probe(client))
    except ClassifiedError as exc:
        emit_response(error_to_response(exc))
        return
    emit_success(result)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
