"""Pure helpers and type aliases shared across tool modules.

No dependency on the dispatcher or transports, so it can be imported freely
without triggering circular-import issues.
"""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from azdo_mcp.types.core import ParameterSpec

# (validated_arguments, session) -> result.  ``session`` is a SessionHandle for
# session-bound tools and the SessionManager for the credential-setting tool.
Handler = Callable[[dict[str, Any], Any], Awaitable[Any]]

PROJECT = ParameterSpec("project", "string", True, "Project name or ID")


def render(content: object) -> str:
    """Render a handler result as the text placed in the envelope."""
    if isinstance(content, str):
        return content
    return json.dumps(content, indent=2, default=str)


def field(item: dict[str, Any], name: str, default: Any = None) -> Any:
    """Read ``System.*``-style work item fields without KeyErrors."""
    return (item.get("fields") or {}).get(name, default)


def bullet_list(heading: str, lines: Iterable[str], empty: str) -> str:
    """Join *lines* under *heading*, or return the *empty* sentence when there are none."""
    rows = list(lines)
    if not rows:
        return empty
    return heading + "\n" + "\n".join(f"- {row}" for row in rows)
