"""MCP tools for Git repositories."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from azdo_mcp.mcp_tools.common import PROJECT, Handler, bullet_list
from azdo_mcp.types.core import ParameterSpec, ToolDescriptor

if TYPE_CHECKING:
    from azdo_mcp.backend import SessionHandle


def register() -> tuple[list[ToolDescriptor], dict[str, Handler]]:
    """Return (tool_definitions, handler_map) for repository tools."""
    tools = [
        ToolDescriptor(
            name="list_repositories",
            summary="List Git repositories in a project",
            input_contract=(PROJECT,),
        ),
        ToolDescriptor(
            name="get_repository",
            summary="Get repository details by ID",
            input_contract=(PROJECT, ParameterSpec("repositoryId", "string", True, "Repository ID or name")),
        ),
    ]

    handlers: dict[str, Handler] = {
        "list_repositories": _handle_list_repositories,
        "get_repository": _handle_get_repository,
    }

    return tools, handlers


async def _handle_list_repositories(arguments: dict[str, Any], session: SessionHandle) -> str:
    project = arguments["project"]
    repos = await session.git.list_repositories(project)
    return bullet_list(
        f"Repositories for project {project}:",
        (f"{r.get('name')} ({r.get('id')})" for r in repos),
        f"No repositories found for project {project}.",
    )


async def _handle_get_repository(arguments: dict[str, Any], session: SessionHandle) -> str:
    repo = await session.git.get_repository(arguments["project"], arguments["repositoryId"])
    return (
        "Repository Details:\n"
        f"Name: {repo.get('name')}\n"
        f"ID: {repo.get('id')}\n"
        f"Default Branch: {repo.get('defaultBranch')}\n"
        f"Size: {repo.get('size')} bytes\n"
        f"Remote URL: {repo.get('remoteUrl')}"
    )
