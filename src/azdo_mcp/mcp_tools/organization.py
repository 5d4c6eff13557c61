"""Tools for connecting to an organization and listing its projects."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from azdo_mcp.config import SessionCredential
from azdo_mcp.mcp_tools.common import Handler, bullet_list
from azdo_mcp.types.core import ParameterSpec, ToolDescriptor

if TYPE_CHECKING:
    from azdo_mcp.backend import SessionHandle
    from azdo_mcp.session import SessionManager


def register() -> tuple[list[ToolDescriptor], dict[str, Handler]]:
    """Return (tool_definitions, handler_map) for organization-level tools."""
    tools = [
        ToolDescriptor(
            name="connect_azure_devops",
            summary="Connect to an Azure DevOps organization using a personal access token",
            input_contract=(
                ParameterSpec(
                    "orgUrl",
                    "string",
                    True,
                    "Azure DevOps organization URL (e.g., https://dev.azure.com/yourorgname)",
                ),
                ParameterSpec("token", "string", True, "Personal Access Token"),
                ParameterSpec("project", "string", False, "Default project used when a tool call omits one"),
            ),
            requires_session=False,
        ),
        ToolDescriptor(
            name="list_projects",
            summary="List all projects in the Azure DevOps organization",
        ),
    ]

    handlers: dict[str, Handler] = {
        "connect_azure_devops": _handle_connect,
        "list_projects": _handle_list_projects,
    }

    return tools, handlers


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_connect(arguments: dict[str, Any], sessions: SessionManager) -> str:
    credential = SessionCredential(
        endpoint_url=str(arguments["orgUrl"]),
        secret_token=str(arguments["token"]),
        # Keep the previous default project unless a new one is given.
        default_scope=arguments.get("project") or sessions.default_scope,
    )
    await sessions.ensure_connected(credential)
    return f"Successfully connected to Azure DevOps organization: {credential.endpoint_url}"


async def _handle_list_projects(arguments: dict[str, Any], session: SessionHandle) -> str:
    projects = await session.core.list_projects()
    return bullet_list(
        "Projects:",
        (f"{p.get('name')} ({p.get('id')})" for p in projects),
        "No projects found in this organization.",
    )
