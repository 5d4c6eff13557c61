"""Multi-client HTTP service for azdo-mcp.

Endpoints:

* ``GET  /health``        ``{status, connected, endpointSummary}``
* ``POST /auth``          replace the backend credential for every client
* ``GET  /tools``         tool catalog, in catalog order
* ``POST /tools/{name}``  invoke one tool with a JSON arguments object
* ``/mcp``                MCP streamable-HTTP (protocol-native catalog + calls)

There is one session per process: a credential posted to ``/auth`` (or
passed to ``connect_azure_devops``) replaces the session of *all* connected
clients.  There is no per-client isolation.

Usage:
    azdo-mcp serve                        # 127.0.0.1:9832
    azdo-mcp serve --port 9000 --no-auto-connect
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.routing import Mount

from azdo_mcp.config import SessionCredential, credential_from_env
from azdo_mcp.dispatch import Dispatcher, ErrorKind
from azdo_mcp.errors import AuthenticationError, AzdoError
from azdo_mcp.types.api import AuthResponse, HealthResponse

logger = logging.getLogger(__name__)

_STATUS_FOR_KIND: dict[ErrorKind, int] = {
    ErrorKind.UNKNOWN_TOOL: 404,
    ErrorKind.INVALID_ARGUMENTS: 400,
    ErrorKind.NOT_CONNECTED: 503,
    ErrorKind.AUTH_FAILURE: 401,
    ErrorKind.BACKEND_ERROR: 502,
}


def _error_response(message: str, code: str, status_code: int) -> JSONResponse:
    """Return a structured error response and log the error."""
    logger.warning("API error [%s] %s: %s", status_code, code, message)
    return JSONResponse({"error": {"message": message, "code": code}}, status_code=status_code)


async def _parse_json_body(request: Request, *, allow_empty: bool = False) -> Any:
    """Parse a JSON body, returning a 400 response on malformed input."""
    raw = await request.body()
    if not raw.strip() and allow_empty:
        return {}
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, ValueError, UnicodeDecodeError):
        return _error_response("Invalid JSON body", "VALIDATION_ERROR", 400)


async def _auto_connect(dispatcher: Dispatcher) -> None:
    try:
        await dispatcher.sessions.ensure_connected()
    except AzdoError as exc:
        logger.warning("Auto-connect failed; serving without a backend session: %s", exc)
    else:
        logger.info("Auto-connect succeeded")


def create_app(dispatcher: Dispatcher, *, auto_connect: bool = False) -> FastAPI:
    """Create the FastAPI application bound to *dispatcher*.

    When *auto_connect* is true and the session manager already holds a
    credential, a connection attempt starts in the background at startup.
    Failure is logged and non-fatal: catalog and health keep working.
    """
    from azdo_mcp.mcp_server import create_mcp_app

    sessions = dispatcher.sessions
    mcp_handler, mcp_lifespan = create_mcp_app(dispatcher)

    @contextlib.asynccontextmanager
    async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
        task: asyncio.Task[None] | None = None
        if auto_connect and sessions.current_credential_summary() is not None:
            task = asyncio.create_task(_auto_connect(dispatcher))
        try:
            async with mcp_lifespan():
                yield
        finally:
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
            await sessions.aclose()

    app = FastAPI(title="azdo-mcp", docs_url=None, redoc_url=None, lifespan=_lifespan)

    # Browser and IDE clients on any origin, with credentials: the request origin is echoed back.
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=".*",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["mcp-session-id"],
    )

    @app.get("/health")
    async def health() -> JSONResponse:
        body = HealthResponse(
            status="ok",
            connected=sessions.is_connected(),
            endpointSummary=sessions.current_credential_summary(),
        )
        return JSONResponse(body)

    @app.post("/auth")
    async def auth(request: Request) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        if not isinstance(body, dict):
            return _error_response("Request body must be a JSON object", "VALIDATION_ERROR", 400)
        endpoint_url = body.get("endpointUrl")
        secret_token = body.get("secretToken")
        if not isinstance(endpoint_url, str) or not endpoint_url.strip() or not isinstance(secret_token, str) or not secret_token:
            return _error_response("endpointUrl and secretToken are required", "VALIDATION_ERROR", 400)

        default_scope = body.get("defaultScope")
        credential = SessionCredential(
            endpoint_url=endpoint_url,
            secret_token=secret_token,
            default_scope=default_scope if isinstance(default_scope, str) else sessions.default_scope,
        )
        logger.info("Credential update requested for %s", credential.endpoint_url)
        try:
            await sessions.ensure_connected(credential)
        except AuthenticationError as exc:
            return _error_response(str(exc), "AUTH_FAILURE", 401)
        except AzdoError as exc:
            return _error_response(f"Failed to connect to Azure DevOps: {exc}", "BACKEND_ERROR", 502)
        return JSONResponse(
            AuthResponse(
                status="ok",
                connected=sessions.is_connected(),
                endpointSummary=sessions.current_credential_summary(),
            )
        )

    @app.get("/tools")
    async def list_tools() -> JSONResponse:
        return JSONResponse([d.to_dict() for d in dispatcher.registry.list()])

    @app.post("/tools/{tool_name}")
    async def invoke_tool(tool_name: str, request: Request) -> JSONResponse:
        arguments = await _parse_json_body(request, allow_empty=True)
        if isinstance(arguments, JSONResponse):
            return arguments
        envelope = await dispatcher.invoke(tool_name, arguments)
        status = 200 if envelope.ok else _STATUS_FOR_KIND.get(envelope.error_kind, 500)  # type: ignore[arg-type]
        return JSONResponse(envelope.to_dict(), status_code=status)

    app.routes.append(Mount("/mcp", app=mcp_handler))

    return app


def main(host: str, port: int, *, auto_connect: bool = True) -> None:
    """Start the HTTP service with credentials (if any) from the environment."""
    import uvicorn

    from azdo_mcp.backend import AzureDevOpsConnector
    from azdo_mcp.session import SessionManager

    credential = credential_from_env()
    if credential is None:
        logger.info("No credentials in environment; waiting for POST /auth or connect_azure_devops")
    dispatcher = Dispatcher(SessionManager(AzureDevOpsConnector(), credential))
    app = create_app(dispatcher, auto_connect=auto_connect)

    print(f"azdo-mcp HTTP service: http://{host}:{port} (MCP endpoint: /mcp)")
    uvicorn.run(app, host=host, port=port, log_level="warning")
