"""TypedDicts for MCP envelopes and HTTP route responses."""

from __future__ import annotations

from typing import Literal, NotRequired, TypedDict


class TextBlock(TypedDict):
    type: Literal["text"]
    text: str


class EnvelopeDict(TypedDict):
    """Wire form of an invocation result, shared by both transports."""

    content: list[TextBlock]
    isError: NotRequired[bool]
    errorKind: NotRequired[str]


class CredentialSummary(TypedDict):
    """Non-secret view of the active credential."""

    endpointUrl: str
    defaultScope: str | None


class HealthResponse(TypedDict):
    status: Literal["ok"]
    connected: bool
    endpointSummary: CredentialSummary | None


class AuthResponse(TypedDict):
    status: Literal["ok"]
    connected: bool
    endpointSummary: CredentialSummary | None


class ErrorDetail(TypedDict):
    message: str
    code: str


class ErrorResponse(TypedDict):
    """Standard error body returned by HTTP error paths."""

    error: ErrorDetail
