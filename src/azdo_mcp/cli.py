"""CLI for azdo-mcp.

Usage:
    azdo-mcp stdio                       # MCP over stdio (credentials from env)
    azdo-mcp serve --port 9832           # Multi-client HTTP service
    azdo-mcp tools                       # Show the tool catalog
    azdo-mcp tools --json                # Catalog as JSON descriptors
"""

from __future__ import annotations

import json as json_mod
import sys
from pathlib import Path

import click

from azdo_mcp import __version__
from azdo_mcp.config import ENV_ORG_URL, ENV_PAT, credential_from_env, read_server_config
from azdo_mcp.logging import setup_logging
from azdo_mcp.registry import default_registry


@click.group()
@click.version_option(version=__version__, prog_name="azdo-mcp")
@click.option("--log-file", type=click.Path(dir_okay=False, path_type=Path), default=None, help="Write JSON logs here instead of stderr")
@click.pass_context
def cli(ctx: click.Context, log_file: Path | None) -> None:
    """azdo-mcp: Azure DevOps operations as MCP tools."""
    ctx.ensure_object(dict)
    ctx.obj["log_file"] = log_file or read_server_config().log_file


@cli.command()
@click.pass_context
def stdio(ctx: click.Context) -> None:
    """Serve MCP over stdin/stdout for a single client."""
    import asyncio

    from azdo_mcp.mcp_server import _run

    credential = credential_from_env()
    if credential is None:
        click.echo(f"Error: missing required environment variables {ENV_ORG_URL} and {ENV_PAT}.", err=True)
        sys.exit(1)
    setup_logging(ctx.obj["log_file"])
    asyncio.run(_run(credential))


@cli.command()
@click.option("--host", default=None, help="Bind address (default: AZDO_MCP_HOST or 127.0.0.1)")
@click.option("--port", default=None, type=int, help="Port (default: AZDO_MCP_PORT or 9832)")
@click.option("--no-auto-connect", is_flag=True, help="Do not connect at startup with environment credentials")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, no_auto_connect: bool) -> None:
    """Run the multi-client HTTP service (REST endpoints + MCP at /mcp)."""
    from azdo_mcp.http_server import main as http_main

    config = read_server_config()
    setup_logging(ctx.obj["log_file"])
    http_main(host or config.host, port or config.port, auto_connect=not no_auto_connect)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output tool descriptors as JSON")
def tools(as_json: bool) -> None:
    """List the available tools in catalog order."""
    catalog = default_registry().list()
    if as_json:
        click.echo(json_mod.dumps([d.to_dict() for d in catalog], indent=2))
        return
    width = max(len(d.name) for d in catalog)
    for d in catalog:
        required = ", ".join(d.required_keys)
        suffix = f"  (requires: {required})" if required else ""
        click.echo(f"{d.name:<{width}}  {d.summary}{suffix}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
