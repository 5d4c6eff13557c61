"""Shared pytest fixtures for azdo-mcp tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator

import httpx
import pytest
from click.testing import CliRunner

from azdo_mcp.backend import AzureDevOpsConnector
from azdo_mcp.config import SessionCredential
from azdo_mcp.dispatch import Dispatcher
from azdo_mcp.session import SessionManager
from tests._fakes import GOOD_PAT, ORG_URL, FakeAzureDevOps


@pytest.fixture
def azure() -> FakeAzureDevOps:
    return FakeAzureDevOps()


@pytest.fixture
def transport(azure: FakeAzureDevOps) -> httpx.MockTransport:
    return httpx.MockTransport(azure)


@pytest.fixture
def credential() -> SessionCredential:
    return SessionCredential(endpoint_url=ORG_URL, secret_token=GOOD_PAT)


@pytest.fixture
def connector(transport: httpx.MockTransport) -> AzureDevOpsConnector:
    return AzureDevOpsConnector(transport=transport)


@pytest.fixture
async def sessions(connector: AzureDevOpsConnector, credential: SessionCredential) -> AsyncGenerator[SessionManager, None]:
    """Session manager pre-loaded with a valid credential, not yet connected."""
    manager = SessionManager(connector, credential)
    yield manager
    await manager.aclose()


@pytest.fixture
async def bare_sessions(connector: AzureDevOpsConnector) -> AsyncGenerator[SessionManager, None]:
    """Session manager with no credential at all."""
    manager = SessionManager(connector)
    yield manager
    await manager.aclose()


@pytest.fixture
def dispatcher(sessions: SessionManager) -> Dispatcher:
    return Dispatcher(sessions)


@pytest.fixture
def cli_runner() -> CliRunner:
    """Click CLI test runner."""
    return CliRunner()
