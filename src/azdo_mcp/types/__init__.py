# IMPORT CONSTRAINT: types/ modules must only import from typing, stdlib, and each other.
"""Typed contracts for azdo-mcp descriptors, envelopes, and HTTP responses."""

from __future__ import annotations

from azdo_mcp.types.api import (
    AuthResponse,
    CredentialSummary,
    EnvelopeDict,
    ErrorResponse,
    HealthResponse,
    TextBlock,
)
from azdo_mcp.types.core import ParameterKind, ParameterSpec, ToolDescriptor

__all__ = [
    "AuthResponse",
    "CredentialSummary",
    "EnvelopeDict",
    "ErrorResponse",
    "HealthResponse",
    "ParameterKind",
    "ParameterSpec",
    "TextBlock",
    "ToolDescriptor",
]
