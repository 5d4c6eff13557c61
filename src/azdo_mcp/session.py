"""Lazily-established backend session shared by every caller in the process.

State machine::

    UNINITIALIZED ──> CONNECTING ──> CONNECTED
                         │  ^            │
                         v  │            │ new credential accepted
                       FAILED            v
                                     CONNECTING

Connection attempts are single-flight: all callers that arrive while an
attempt is running await that same attempt and see the same outcome.  The
current :class:`SessionHandle` is swapped wholesale when an attempt
succeeds; the handle it replaces is retired and closes once its last
borrower releases it.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from enum import StrEnum

from azdo_mcp.backend import SessionHandle
from azdo_mcp.config import SessionCredential
from azdo_mcp.errors import NotConnectedError
from azdo_mcp.types.api import CredentialSummary

logger = logging.getLogger(__name__)

Connector = Callable[[SessionCredential], Awaitable[SessionHandle]]

_NOT_CONNECTED = "Not connected to Azure DevOps. Use connect_azure_devops (or POST /auth) to supply credentials first."


class SessionState(StrEnum):
    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"


class SessionManager:
    """Owns the current backend handle and every transition between handles.

    Consumers never read the handle directly: they go through
    :meth:`ensure_connected` or borrow it for one call with :meth:`session`.
    """

    def __init__(self, connector: Connector, credential: SessionCredential | None = None) -> None:
        self._connector = connector
        self._credential = credential
        self._handle: SessionHandle | None = None
        self._state = SessionState.UNINITIALIZED
        self._attempt: asyncio.Future[SessionHandle] | None = None
        self._attempt_credential: SessionCredential | None = None
        # Bumped on every new attempt; a finishing attempt only installs its
        # handle if no newer attempt has started since.
        self._generation = 0
        self.last_error: BaseException | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    def is_connected(self) -> bool:
        return self._state is SessionState.CONNECTED

    def current_credential_summary(self) -> CredentialSummary | None:
        if self._credential is None:
            return None
        return self._credential.summary()

    @property
    def default_scope(self) -> str | None:
        return self._credential.default_scope if self._credential is not None else None

    async def ensure_connected(self, credential: SessionCredential | None = None) -> SessionHandle:
        """Return the current handle, connecting first if needed.

        Supplying a *credential* that differs from the current one replaces
        the session.  Raises :class:`NotConnectedError` when there is no
        credential at all, or the connector's error when the handshake fails.
        """
        if credential is None:
            if self._state is SessionState.CONNECTED and self._handle is not None:
                return self._handle
            if self._attempt is not None:
                return await asyncio.shield(self._attempt)
            if self._credential is None:
                raise NotConnectedError(_NOT_CONNECTED)
            return await self._start_attempt(self._credential)

        if self._attempt is not None and self._attempt_credential == credential:
            return await asyncio.shield(self._attempt)
        if (
            self._attempt is None
            and self._state is SessionState.CONNECTED
            and self._handle is not None
            and credential == self._credential
        ):
            return self._handle
        return await self._start_attempt(credential)

    @contextlib.asynccontextmanager
    async def session(self) -> AsyncIterator[SessionHandle]:
        """Borrow the current handle for the duration of one call."""
        while True:
            handle = await self.ensure_connected()
            # A replacement may have completed between the attempt finishing
            # and this caller resuming.
            if not handle.retired:
                break
        handle.acquire()
        try:
            yield handle
        finally:
            await handle.release()

    async def aclose(self) -> None:
        """Cancel any running attempt and close the current handle."""
        self._generation += 1
        if self._attempt is not None:
            self._attempt.cancel()
            self._attempt = None
            self._attempt_credential = None
        handle, self._handle = self._handle, None
        self._state = SessionState.UNINITIALIZED
        if handle is not None:
            await handle.retire()

    # ------------------------------------------------------------------

    async def _start_attempt(self, credential: SessionCredential) -> SessionHandle:
        self._generation += 1
        # Accepted credentials replace the previous ones outright.
        self._credential = credential
        self._state = SessionState.CONNECTING
        attempt = asyncio.ensure_future(self._connect(credential, self._generation))
        self._attempt = attempt
        self._attempt_credential = credential
        return await asyncio.shield(attempt)

    async def _connect(self, credential: SessionCredential, generation: int) -> SessionHandle:
        logger.info("Connecting to %s", credential.endpoint_url)
        try:
            handle = await self._connector(credential)
        except BaseException as exc:
            logger.warning("Connection to %s failed: %s", credential.endpoint_url, exc)
            if generation != self._generation:
                # Superseded: waiters take the outcome of the newest attempt.
                if isinstance(exc, Exception):
                    return await self._follow_current()
                raise
            self._state = SessionState.FAILED
            self.last_error = exc
            self._attempt = None
            self._attempt_credential = None
            stale, self._handle = self._handle, None
            if stale is not None:
                await stale.retire()
            raise

        if generation != self._generation:
            # Superseded by a newer credential while connecting.
            await handle.aclose()
            return await self._follow_current()

        stale = self._handle
        self._handle = handle
        self._state = SessionState.CONNECTED
        self._attempt = None
        self._attempt_credential = None
        self.last_error = None
        if stale is not None and stale is not handle:
            await stale.retire()
        logger.info("Session established for %s", credential.endpoint_url)
        return handle

    async def _follow_current(self) -> SessionHandle:
        if self._attempt is not None:
            return await asyncio.shield(self._attempt)
        if self._state is SessionState.CONNECTED and self._handle is not None:
            return self._handle
        raise NotConnectedError(_NOT_CONNECTED) from self.last_error
