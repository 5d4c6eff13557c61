"""Static tool catalog.

Built once from the ``register()`` functions of the tool modules.  The
listing order is fixed and part of the external contract: transports must
present it unchanged.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from types import ModuleType

from azdo_mcp.mcp_tools import TOOL_MODULES
from azdo_mcp.mcp_tools.common import Handler
from azdo_mcp.types.core import ToolDescriptor

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Immutable name → (descriptor, handler) mapping with a stable order."""

    def __init__(self, entries: Iterable[tuple[ToolDescriptor, Handler]]) -> None:
        self._descriptors: dict[str, ToolDescriptor] = {}
        self._handlers: dict[str, Handler] = {}
        for descriptor, handler in entries:
            if descriptor.name in self._descriptors:
                msg = f"Duplicate tool name: {descriptor.name}"
                raise ValueError(msg)
            self._descriptors[descriptor.name] = descriptor
            self._handlers[descriptor.name] = handler
        self._ordered = tuple(self._descriptors.values())

    @classmethod
    def from_modules(cls, modules: Iterable[ModuleType] = TOOL_MODULES) -> ToolRegistry:
        entries: list[tuple[ToolDescriptor, Handler]] = []
        for module in modules:
            tools, handlers = module.register()
            for descriptor in tools:
                if descriptor.name not in handlers:
                    msg = f"Tool {descriptor.name} in {module.__name__} has no handler"
                    raise ValueError(msg)
                entries.append((descriptor, handlers[descriptor.name]))
        registry = cls(entries)
        logger.debug("Registered %d tools: %s", len(registry), registry.names())
        return registry

    def __len__(self) -> int:
        return len(self._ordered)

    def __contains__(self, name: object) -> bool:
        return name in self._descriptors

    def list(self) -> tuple[ToolDescriptor, ...]:
        return self._ordered

    def names(self) -> list[str]:
        return [d.name for d in self._ordered]

    def lookup(self, name: str) -> ToolDescriptor | None:
        return self._descriptors.get(name)

    def handler(self, name: str) -> Handler:
        return self._handlers[name]


_default: ToolRegistry | None = None


def default_registry() -> ToolRegistry:
    """Return the process-wide catalog built from :data:`TOOL_MODULES`."""
    global _default
    if _default is None:
        _default = ToolRegistry.from_modules()
    return _default
