"""Tool dispatch: name → validated handler call → uniform envelope.

Every failure is caught here and converted to an :class:`Envelope`; nothing
raised by a handler or the session manager reaches a transport adapter.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from azdo_mcp.errors import AuthenticationError, NotConnectedError
from azdo_mcp.mcp_tools.common import render
from azdo_mcp.registry import ToolRegistry, default_registry
from azdo_mcp.session import SessionManager
from azdo_mcp.types.api import EnvelopeDict
from azdo_mcp.validation import ValidationError, validate_arguments

logger = logging.getLogger(__name__)

# Parameter filled from the credential's default scope when omitted.
_SCOPE_KEY = "project"


class ErrorKind(StrEnum):
    UNKNOWN_TOOL = "UnknownTool"
    INVALID_ARGUMENTS = "InvalidArguments"
    NOT_CONNECTED = "NotConnected"
    AUTH_FAILURE = "AuthFailure"
    BACKEND_ERROR = "BackendError"


@dataclass(frozen=True)
class Envelope:
    ok: bool
    content: Any
    error_kind: ErrorKind | None = None

    @classmethod
    def success(cls, content: Any) -> Envelope:
        return cls(ok=True, content=content)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> Envelope:
        return cls(ok=False, content=message, error_kind=kind)

    @property
    def text(self) -> str:
        return render(self.content)

    def to_dict(self) -> EnvelopeDict:
        """Wire form: ``{content: [{type: "text", text}], isError?, errorKind?}``."""
        data = EnvelopeDict(content=[{"type": "text", "text": self.text}])
        if not self.ok:
            data["isError"] = True
            if self.error_kind is not None:
                data["errorKind"] = self.error_kind.value
        return data


class Dispatcher:
    """Resolve, validate, and run tools against the shared session."""

    def __init__(self, sessions: SessionManager, registry: ToolRegistry | None = None) -> None:
        self.sessions = sessions
        self.registry = registry if registry is not None else default_registry()

    async def invoke(self, tool_name: str, raw_arguments: Any) -> Envelope:
        t0 = time.monotonic()
        envelope = await self._invoke(tool_name, raw_arguments)
        duration_ms = round((time.monotonic() - t0) * 1000, 1)
        if envelope.ok:
            logger.info("tool_call", extra={"tool": tool_name, "args_data": raw_arguments, "duration_ms": duration_ms})
        else:
            logger.warning(
                "tool_error",
                extra={
                    "tool": tool_name,
                    "args_data": raw_arguments,
                    "duration_ms": duration_ms,
                    "error_kind": str(envelope.error_kind),
                    "error": envelope.text,
                },
            )
        return envelope

    async def _invoke(self, tool_name: str, raw_arguments: Any) -> Envelope:
        descriptor = self.registry.lookup(tool_name)
        if descriptor is None:
            return Envelope.failure(
                ErrorKind.UNKNOWN_TOOL,
                f"Unknown tool: '{tool_name}'. Available: {', '.join(self.registry.names())}",
            )

        scope = self.sessions.default_scope
        if scope and isinstance(raw_arguments, dict) and descriptor.has_parameter(_SCOPE_KEY):
            if raw_arguments.get(_SCOPE_KEY) is None:
                raw_arguments = {**raw_arguments, _SCOPE_KEY: scope}

        try:
            arguments = validate_arguments(descriptor, raw_arguments)
        except ValidationError as e:
            return Envelope.failure(ErrorKind.INVALID_ARGUMENTS, str(e))

        handler = self.registry.handler(tool_name)
        try:
            if not descriptor.requires_session:
                result = await handler(arguments, self.sessions)
            else:
                async with self.sessions.session() as handle:
                    result = await handler(arguments, handle)
        except NotConnectedError as e:
            return Envelope.failure(ErrorKind.NOT_CONNECTED, str(e))
        except AuthenticationError as e:
            return Envelope.failure(ErrorKind.AUTH_FAILURE, str(e))
        except Exception as e:
            logger.debug("Handler %s failed", tool_name, exc_info=True)
            return Envelope.failure(ErrorKind.BACKEND_ERROR, f"Error executing tool {tool_name}: {e}")
        return Envelope.success(result)
