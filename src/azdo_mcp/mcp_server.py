"""MCP server for Azure DevOps.

Single-peer adapter: one process-lifetime session, MCP over stdio.  Tool
calls are answered strictly one at a time in arrival order.  Also provides
:func:`create_mcp_app`, the streamable-HTTP binding mounted by the HTTP
service.

Usage:
    azdo-mcp-stdio                          # credentials from AZURE_DEVOPS_* env vars
    azdo-mcp-stdio --log-file /tmp/azdo.log
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from azdo_mcp.backend import AzureDevOpsConnector
from azdo_mcp.config import ENV_ORG_URL, ENV_PAT, SessionCredential, credential_from_env, read_server_config
from azdo_mcp.dispatch import Dispatcher, Envelope
from azdo_mcp.registry import ToolRegistry, default_registry
from azdo_mcp.session import SessionManager

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Server setup
# ---------------------------------------------------------------------------

server = Server("azdo-mcp")
_dispatcher: Dispatcher | None = None
_request_dispatcher: ContextVar[Dispatcher | None] = ContextVar("azdo_request_dispatcher", default=None)

# Set in stdio mode only: serializes tool calls so each request is answered
# before the next one starts.
_request_lock: asyncio.Lock | None = None


class ToolCallError(Exception):
    """Carries an error envelope out of ``call_tool``.

    The MCP SDK turns any exception raised by a tool handler into a result
    with ``isError: true`` whose text is ``str(exc)``.
    """

    def __init__(self, envelope: Envelope) -> None:
        super().__init__(envelope.text)
        self.envelope = envelope


def _get_dispatcher() -> Dispatcher:
    active = _request_dispatcher.get() or _dispatcher
    if active is None:
        msg = "Dispatcher not initialized"
        raise RuntimeError(msg)
    return active


def _get_registry() -> ToolRegistry:
    active = _request_dispatcher.get() or _dispatcher
    return active.registry if active is not None else default_registry()


# ---------------------------------------------------------------------------
# Tool catalog and dispatch
# ---------------------------------------------------------------------------


@server.list_tools()  # type: ignore[untyped-decorator,no-untyped-call]
async def list_tools() -> list[Tool]:
    return [Tool(name=d.name, description=d.summary, inputSchema=d.input_schema()) for d in _get_registry().list()]


# Presence-only validation happens in the dispatcher; the SDK's JSON-schema
# check would also reject mistyped values.
@server.call_tool(validate_input=False)  # type: ignore[untyped-decorator]
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    dispatcher = _get_dispatcher()
    if _request_lock is not None:
        async with _request_lock:
            envelope = await dispatcher.invoke(name, arguments)
    else:
        envelope = await dispatcher.invoke(name, arguments)
    if not envelope.ok:
        raise ToolCallError(envelope)
    return [TextContent(type="text", text=envelope.text)]


# ---------------------------------------------------------------------------
# HTTP transport factory (for the multi-client service)
# ---------------------------------------------------------------------------


def create_mcp_app(dispatcher: Dispatcher) -> Any:
    """Create an ASGI app + lifespan hook for MCP streamable-HTTP.

    Returns ``(asgi_app, lifespan_context_manager)`` where:

    * **asgi_app** is an ASGI callable to mount at ``/mcp``.
    * **lifespan_context_manager** must be entered during the parent
      application's lifespan so the underlying
      ``StreamableHTTPSessionManager`` task-group is running before the
      first request arrives.

    Every request handled by *asgi_app* dispatches through *dispatcher*, so
    all MCP clients share its session.
    """
    from mcp.server.streamable_http_manager import StreamableHTTPSessionManager

    session_manager = StreamableHTTPSessionManager(
        app=server,
        json_response=False,
        stateless=True,
    )

    async def _handle_mcp(scope: Any, receive: Any, send: Any) -> None:
        token = _request_dispatcher.set(dispatcher)
        try:
            await session_manager.handle_request(scope, receive, send)
        except RuntimeError:
            # Session manager not started (lifespan not entered).  Return 503
            # so the route is visible but clearly not ready.
            from starlette.responses import JSONResponse

            resp = JSONResponse(
                {"error": {"message": "MCP session manager not initialized", "code": "MCP_UNAVAILABLE"}},
                status_code=503,
            )
            await resp(scope, receive, send)
        finally:
            _request_dispatcher.reset(token)

    return _handle_mcp, session_manager.run


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


async def _run(credential: SessionCredential) -> None:
    global _dispatcher, _request_lock

    sessions = SessionManager(AzureDevOpsConnector(), credential)
    _dispatcher = Dispatcher(sessions)
    _request_lock = asyncio.Lock()
    logger.info(
        "mcp_server_start",
        extra={"tool": "server", "args_data": {"transport": "stdio", **credential.summary()}},
    )

    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
    finally:
        await sessions.aclose()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Azure DevOps MCP server (stdio)")
    parser.add_argument("--log-file", type=Path, default=None, help="Write JSON logs here instead of stderr")
    args = parser.parse_args(argv)

    credential = credential_from_env()
    if credential is None:
        print(f"Error: missing required environment variables {ENV_ORG_URL} and {ENV_PAT}.", file=sys.stderr)
        sys.exit(1)

    from azdo_mcp.logging import setup_logging

    setup_logging(args.log_file or read_server_config().log_file)
    asyncio.run(_run(credential))


if __name__ == "__main__":
    main()
