"""Tool definitions and handlers, one module per backend area."""

from __future__ import annotations

from azdo_mcp.mcp_tools import builds, organization, repositories, work_items

# Catalog order is part of the external contract.
TOOL_MODULES = (organization, work_items, builds, repositories)

__all__ = ["TOOL_MODULES"]
