"""Tool descriptor dataclasses.

IMPORT CONSTRAINT: types/ modules import only from typing, stdlib, and each other.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

ParameterKind = Literal["string", "number", "boolean"]


@dataclass(frozen=True)
class ParameterSpec:
    key: str
    kind: ParameterKind
    required: bool
    description: str


@dataclass(frozen=True)
class ToolDescriptor:
    """Immutable catalog entry for one tool.

    ``requires_session`` is ``False`` only for tools that establish the
    session themselves (the credential-setting tool).
    """

    name: str
    summary: str
    input_contract: tuple[ParameterSpec, ...] = ()
    requires_session: bool = True

    @property
    def required_keys(self) -> list[str]:
        return [p.key for p in self.input_contract if p.required]

    def has_parameter(self, key: str) -> bool:
        return any(p.key == key for p in self.input_contract)

    def input_schema(self) -> dict[str, Any]:
        """Render the contract as a JSON-schema object for the MCP catalog."""
        return {
            "type": "object",
            "properties": {p.key: {"type": p.kind, "description": p.description} for p in self.input_contract},
            "required": self.required_keys,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.summary,
            "inputSchema": self.input_schema(),
        }
