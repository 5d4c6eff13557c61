"""Fixtures for MCP server tests."""

from __future__ import annotations

from collections.abc import Generator

import pytest

from azdo_mcp.dispatch import Dispatcher


@pytest.fixture
def mcp_dispatcher(dispatcher: Dispatcher) -> Generator[Dispatcher, None, None]:
    """Patch the MCP module globals with a dispatcher over the fake organization."""
    import azdo_mcp.mcp_server as mcp_mod

    original_dispatcher = mcp_mod._dispatcher
    original_lock = mcp_mod._request_lock
    mcp_mod._dispatcher = dispatcher
    mcp_mod._request_lock = None

    yield dispatcher

    mcp_mod._dispatcher = original_dispatcher
    mcp_mod._request_lock = original_lock
