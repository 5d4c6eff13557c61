"""Azure DevOps REST session: connect primitive, handle, and sub-clients.

The connector performs the authentication handshake and returns a
:class:`SessionHandle` wrapping one ``httpx.AsyncClient`` plus the derived
sub-clients (``core``, ``work_items``, ``builds``, ``git``).  Pagination is
resolved here so callers always receive complete listings.
"""

from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import quote

import httpx

from azdo_mcp.config import SessionCredential
from azdo_mcp.errors import AuthenticationError, BackendError

logger = logging.getLogger(__name__)

API_VERSION = "7.1"
DEFAULT_TIMEOUT = 30.0

# GET workitems accepts at most 200 ids per call.
_WORK_ITEM_BATCH = 200
_CONTINUATION_HEADER = "x-ms-continuationtoken"
_HANDSHAKE_PATH = "_apis/projects"
_JSON_PATCH = "application/json-patch+json"


def _seg(value: Any) -> str:
    """Quote a value for use as a single URL path segment."""
    return quote(str(value), safe="")


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except (json.JSONDecodeError, ValueError, UnicodeDecodeError):
        return resp.text[:200].strip() or resp.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return resp.reason_phrase


def _check_response(resp: httpx.Response) -> None:
    status = resp.status_code
    if status in (401, 403):
        msg = f"Authentication rejected by {resp.request.url.host} (HTTP {status}): {_error_message(resp)}"
        raise AuthenticationError(msg)
    # Azure DevOps answers an invalid PAT with a 203 sign-in page instead of a 401.
    if status == 203 and "json" not in resp.headers.get("content-type", ""):
        msg = f"Authentication rejected by {resp.request.url.host}: received sign-in page (HTTP 203)"
        raise AuthenticationError(msg)
    if status >= 400:
        raise BackendError(_error_message(resp), status_code=status)


def _json(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except (json.JSONDecodeError, ValueError, UnicodeDecodeError) as exc:
        msg = f"Unexpected non-JSON response from {resp.request.url} (HTTP {resp.status_code})"
        raise BackendError(msg, status_code=resp.status_code) from exc


class _Api:
    """Thin request helper: api-version, error mapping, JSON decoding."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        body: Any = None,
        content_type: str | None = None,
    ) -> httpx.Response:
        query = {"api-version": API_VERSION, **(params or {})}
        headers = {"Content-Type": content_type} if content_type else None
        try:
            resp = await self._client.request(method, path, params=query, json=body, headers=headers)
        except httpx.RequestError as exc:
            msg = f"Request to {exc.request.url} failed: {exc}"
            raise BackendError(msg) from exc
        _check_response(resp)
        return resp

    async def get(self, path: str, **params: Any) -> Any:
        return _json(await self.send("GET", path, params=params or None))

    async def get_values(self, path: str) -> list[dict[str, Any]]:
        """GET a collection endpoint, following continuation tokens to the end."""
        values: list[dict[str, Any]] = []
        token: str | None = None
        while True:
            params = {"continuationToken": token} if token else None
            resp = await self.send("GET", path, params=params)
            values.extend(_json(resp).get("value", []))
            token = resp.headers.get(_CONTINUATION_HEADER)
            if not token:
                return values


class CoreClient:
    def __init__(self, api: _Api) -> None:
        self._api = api

    async def list_projects(self) -> list[dict[str, Any]]:
        return await self._api.get_values("_apis/projects")


class WorkItemClient:
    def __init__(self, api: _Api) -> None:
        self._api = api

    async def query(self, project: str, wiql: str) -> list[dict[str, Any]]:
        """Run a WIQL query and return the full work items it matched, in query order."""
        resp = await self._api.send("POST", f"{_seg(project)}/_apis/wit/wiql", body={"query": wiql})
        refs = _json(resp).get("workItems") or []
        ids = [ref["id"] for ref in refs if ref.get("id") is not None]
        items: list[dict[str, Any]] = []
        for start in range(0, len(ids), _WORK_ITEM_BATCH):
            batch = ids[start : start + _WORK_ITEM_BATCH]
            data = await self._api.get("_apis/wit/workitems", ids=",".join(str(i) for i in batch))
            items.extend(data.get("value", []))
        return items

    async def get(self, work_item_id: Any) -> dict[str, Any]:
        return await self._api.get(f"_apis/wit/workitems/{_seg(work_item_id)}")

    async def create(
        self,
        project: str,
        work_item_type: str,
        title: str,
        description: str | None = None,
    ) -> dict[str, Any]:
        ops: list[dict[str, Any]] = [{"op": "add", "path": "/fields/System.Title", "value": title}]
        if description:
            ops.append({"op": "add", "path": "/fields/System.Description", "value": description})
        resp = await self._api.send(
            "POST",
            f"{_seg(project)}/_apis/wit/workitems/${_seg(work_item_type)}",
            body=ops,
            content_type=_JSON_PATCH,
        )
        return _json(resp)


class BuildClient:
    def __init__(self, api: _Api) -> None:
        self._api = api

    async def list_builds(self, project: str) -> list[dict[str, Any]]:
        return await self._api.get_values(f"{_seg(project)}/_apis/build/builds")

    async def get_build(self, project: str, build_id: Any) -> dict[str, Any]:
        return await self._api.get(f"{_seg(project)}/_apis/build/builds/{_seg(build_id)}")

    async def list_definitions(self, project: str) -> list[dict[str, Any]]:
        return await self._api.get_values(f"{_seg(project)}/_apis/build/definitions")


class GitClient:
    def __init__(self, api: _Api) -> None:
        self._api = api

    async def list_repositories(self, project: str) -> list[dict[str, Any]]:
        return await self._api.get_values(f"{_seg(project)}/_apis/git/repositories")

    async def get_repository(self, project: str, repository_id: Any) -> dict[str, Any]:
        return await self._api.get(f"{_seg(project)}/_apis/git/repositories/{_seg(repository_id)}")


class SessionHandle:
    """A live authenticated connection and its sub-clients.

    Borrowers bracket each use with :meth:`acquire` / :meth:`release`.  Once
    :meth:`retire` is called the handle closes as soon as the last borrower
    releases it.
    """

    def __init__(self, credential: SessionCredential, client: httpx.AsyncClient) -> None:
        self.credential = credential
        self._client = client
        api = _Api(client)
        self.core = CoreClient(api)
        self.work_items = WorkItemClient(api)
        self.builds = BuildClient(api)
        self.git = GitClient(api)
        self._leases = 0
        self._retired = False
        self._closed = False

    def __repr__(self) -> str:
        state = "closed" if self._closed else ("retired" if self._retired else "live")
        return f"<SessionHandle {self.credential.endpoint_url} {state} leases={self._leases}>"

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def retired(self) -> bool:
        return self._retired

    def acquire(self) -> None:
        self._leases += 1

    async def release(self) -> None:
        self._leases -= 1
        if self._retired and self._leases <= 0:
            await self.aclose()

    async def retire(self) -> None:
        self._retired = True
        if self._leases <= 0:
            await self.aclose()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._client.aclose()


class AzureDevOpsConnector:
    """Connect primitive: handshake against the organization and build a handle.

    *transport* lets tests substitute ``httpx.MockTransport``.
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport

    async def __call__(self, credential: SessionCredential) -> SessionHandle:
        try:
            client = httpx.AsyncClient(
                base_url=credential.endpoint_url + "/",
                auth=httpx.BasicAuth("", credential.secret_token),
                headers={"Accept": "application/json"},
                timeout=self._timeout,
                transport=self._transport,
            )
        except httpx.InvalidURL as exc:
            msg = f"Invalid organization URL {credential.endpoint_url!r}: {exc}"
            raise BackendError(msg) from exc
        try:
            resp = await _Api(client).send("GET", _HANDSHAKE_PATH, params={"$top": 1})
            _json(resp)
        except BaseException:
            await client.aclose()
            raise
        logger.info("Connected to %s", credential.endpoint_url)
        return SessionHandle(credential, client)
