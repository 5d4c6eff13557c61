"""Argument validation against tool descriptors.

Pure functions with no MCP, FastAPI or Click dependencies.

Validation is strict on presence and lenient on shape: every missing
required key is reported, unknown keys pass through, and values are never
type-checked or coerced.  A wrongly-typed value surfaces later as a backend
error.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from azdo_mcp.types.core import ToolDescriptor


class ValidationError(ValueError):
    """Raised when invocation arguments do not satisfy a tool's contract."""

    def __init__(self, message: str, missing: list[str] | None = None) -> None:
        super().__init__(message)
        self.missing = missing or []


def validate_arguments(descriptor: ToolDescriptor, raw: Any) -> dict[str, Any]:
    """Return a plain dict copy of *raw* or raise :class:`ValidationError`."""
    if raw is None or not isinstance(raw, Mapping):
        msg = f"Arguments for {descriptor.name} must be an object"
        raise ValidationError(msg)

    # None counts as absent: JSON clients send null for unset optionals.
    missing = [key for key in descriptor.required_keys if raw.get(key) is None]
    if missing:
        msg = f"Missing required argument(s): {', '.join(missing)}"
        raise ValidationError(msg, missing)
    return dict(raw)
