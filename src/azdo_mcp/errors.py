"""Exception hierarchy shared by the backend, session manager, and dispatcher."""

from __future__ import annotations


class AzdoError(Exception):
    """Base class for every failure raised by azdo-mcp."""


class NotConnectedError(AzdoError):
    """No backend session exists and no credential is available to create one."""


class AuthenticationError(AzdoError):
    """The backend rejected the supplied credential."""


class BackendError(AzdoError):
    """Any other failure reported by a backend operation.

    ``status_code`` is the HTTP status when the failure came from a response,
    ``None`` for transport-level failures.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
