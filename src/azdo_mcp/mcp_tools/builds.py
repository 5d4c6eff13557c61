"""MCP tools for builds and build definitions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from azdo_mcp.mcp_tools.common import PROJECT, Handler, bullet_list
from azdo_mcp.types.core import ParameterSpec, ToolDescriptor

if TYPE_CHECKING:
    from azdo_mcp.backend import SessionHandle


def register() -> tuple[list[ToolDescriptor], dict[str, Handler]]:
    """Return (tool_definitions, handler_map) for build tools."""
    tools = [
        ToolDescriptor(
            name="list_builds",
            summary="List builds in a project",
            input_contract=(PROJECT,),
        ),
        ToolDescriptor(
            name="get_build",
            summary="Get build details by ID",
            input_contract=(PROJECT, ParameterSpec("buildId", "number", True, "Build ID")),
        ),
        ToolDescriptor(
            name="list_build_definitions",
            summary="List build definitions for a specific project",
            input_contract=(PROJECT,),
        ),
    ]

    handlers: dict[str, Handler] = {
        "list_builds": _handle_list_builds,
        "get_build": _handle_get_build,
        "list_build_definitions": _handle_list_build_definitions,
    }

    return tools, handlers


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_list_builds(arguments: dict[str, Any], session: SessionHandle) -> str:
    project = arguments["project"]
    builds = await session.builds.list_builds(project)
    return bullet_list(
        f"Builds for project {project}:",
        (f"{b.get('buildNumber')} ({b.get('id')}): status={b.get('status')}, result={b.get('result')}" for b in builds),
        f"No builds found for project {project}.",
    )


async def _handle_get_build(arguments: dict[str, Any], session: SessionHandle) -> str:
    build = await session.builds.get_build(arguments["project"], arguments["buildId"])
    return (
        "Build Details:\n"
        f"ID: {build.get('id')}\n"
        f"Name: {build.get('buildNumber')}\n"
        f"Status: {build.get('status')}\n"
        f"Result: {build.get('result')}\n"
        f"Start Time: {build.get('startTime')}\n"
        f"Finish Time: {build.get('finishTime')}"
    )


async def _handle_list_build_definitions(arguments: dict[str, Any], session: SessionHandle) -> str:
    project = arguments["project"]
    definitions = await session.builds.list_definitions(project)
    return bullet_list(
        f"Build Definitions for project {project}:",
        (f"{d.get('name')} ({d.get('id')})" for d in definitions),
        f"No build definitions found for project {project}.",
    )
