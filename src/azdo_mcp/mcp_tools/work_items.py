"""MCP tools for querying, reading, and creating work items."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from azdo_mcp.mcp_tools.common import PROJECT, Handler, bullet_list, field
from azdo_mcp.types.core import ParameterSpec, ToolDescriptor

if TYPE_CHECKING:
    from azdo_mcp.backend import SessionHandle

NO_WORK_ITEMS = "No work items found matching the query."


def default_wiql(project: str) -> str:
    """WIQL for every work item in *project*, most recently changed first."""
    escaped = str(project).replace("'", "''")
    return (
        "SELECT [System.Id], [System.Title], [System.State] FROM WorkItems "
        f"WHERE [System.TeamProject] = '{escaped}' ORDER BY [System.ChangedDate] DESC"
    )


def register() -> tuple[list[ToolDescriptor], dict[str, Handler]]:
    """Return (tool_definitions, handler_map) for work-item tools."""
    tools = [
        ToolDescriptor(
            name="list_work_items",
            summary=(
                "List work items in a project. Pass a WIQL query to filter; "
                "without one, returns the project's work items, most recently changed first."
            ),
            input_contract=(
                PROJECT,
                ParameterSpec("query", "string", False, "Optional WIQL query string"),
            ),
        ),
        ToolDescriptor(
            name="get_work_item",
            summary="Get work item details by ID",
            input_contract=(ParameterSpec("workItemId", "number", True, "Work Item ID"),),
        ),
        ToolDescriptor(
            name="create_work_item",
            summary="Create a new work item",
            input_contract=(
                PROJECT,
                ParameterSpec("type", "string", True, "Work item type (e.g., Task, Bug, User Story)"),
                ParameterSpec("title", "string", True, "Work item title"),
                ParameterSpec("description", "string", False, "Work item description"),
            ),
        ),
    ]

    handlers: dict[str, Handler] = {
        "list_work_items": _handle_list_work_items,
        "get_work_item": _handle_get_work_item,
        "create_work_item": _handle_create_work_item,
    }

    return tools, handlers


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_list_work_items(arguments: dict[str, Any], session: SessionHandle) -> str:
    project = arguments["project"]
    wiql = arguments.get("query") or default_wiql(project)
    items = await session.work_items.query(project, wiql)
    return bullet_list(
        "Work Items:",
        (
            f"{field(wi, 'System.Title') or 'No Title'} ({wi.get('id')})"
            f" [{field(wi, 'System.WorkItemType', 'Unknown')}, {field(wi, 'System.State', 'Unknown')}]"
            for wi in items
        ),
        NO_WORK_ITEMS,
    )


async def _handle_get_work_item(arguments: dict[str, Any], session: SessionHandle) -> str:
    wi = await session.work_items.get(arguments["workItemId"])
    assigned = field(wi, "System.AssignedTo")
    assignee = assigned.get("displayName") if isinstance(assigned, dict) else assigned
    return (
        "Work Item Details:\n"
        f"ID: {wi.get('id')}\n"
        f"Type: {field(wi, 'System.WorkItemType')}\n"
        f"Title: {field(wi, 'System.Title')}\n"
        f"State: {field(wi, 'System.State')}\n"
        f"Assigned To: {assignee or 'Unassigned'}"
    )


async def _handle_create_work_item(arguments: dict[str, Any], session: SessionHandle) -> str:
    created = await session.work_items.create(
        arguments["project"],
        arguments["type"],
        arguments["title"],
        arguments.get("description"),
    )
    lines = [
        "Successfully created work item:",
        f"ID: {created.get('id')}",
        f"Type: {field(created, 'System.WorkItemType') or arguments['type']}",
        f"Title: {field(created, 'System.Title') or arguments['title']}",
    ]
    if created.get("url"):
        lines.append(f"URL: {created['url']}")
    return "\n".join(lines)
