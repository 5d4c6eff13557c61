"""In-memory Azure DevOps for tests.

``FakeAzureDevOps`` is a stand-in for the REST API served through
``httpx.MockTransport``, so the real connector and sub-clients are exercised
end to end.
"""

from __future__ import annotations

import asyncio
import base64
import json
from typing import Any

import httpx

from azdo_mcp.backend import SessionHandle
from azdo_mcp.config import SessionCredential

ORG_URL = "https://dev.azure.com/contoso"
GOOD_PAT = "good-pat"


def _basic(token: str) -> str:
    return "Basic " + base64.b64encode(f":{token}".encode()).decode()


class FakeAzureDevOps:
    """Route table over an in-memory organization.

    ``requests`` records every request seen; ``handshakes`` counts the
    connect handshakes (``GET _apis/projects?$top=1``).
    """

    def __init__(self, *, org: str = "contoso", valid_tokens: tuple[str, ...] = (GOOD_PAT,)) -> None:
        self.org = org
        self.valid_tokens = set(valid_tokens)
        self.requests: list[httpx.Request] = []
        self.handshakes = 0
        self.projects: list[dict[str, Any]] = [
            {"id": "p-1", "name": "Alpha", "description": "", "url": f"{ORG_URL}/_apis/projects/p-1"},
        ]
        self.work_items: dict[int, dict[str, Any]] = {}
        self.builds: dict[str, list[dict[str, Any]]] = {}
        self.definitions: dict[str, list[dict[str, Any]]] = {}
        self.repositories: dict[str, list[dict[str, Any]]] = {}
        self._next_id = 1

    # -- seeding ---------------------------------------------------------

    def add_work_item(self, project: str, title: str, *, type: str = "Task", state: str = "New") -> dict[str, Any]:
        item = {
            "id": self._next_id,
            "url": f"{ORG_URL}/_apis/wit/workItems/{self._next_id}",
            "fields": {
                "System.TeamProject": project,
                "System.Title": title,
                "System.WorkItemType": type,
                "System.State": state,
            },
        }
        self.work_items[self._next_id] = item
        self._next_id += 1
        return item

    # -- transport -------------------------------------------------------

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        auth = request.headers.get("authorization", "")
        if auth not in {_basic(t) for t in self.valid_tokens}:
            return httpx.Response(203, text="<html>Sign in</html>", headers={"content-type": "text/html"})

        parts = request.url.path.strip("/").split("/")
        if not parts or parts[0] != self.org:
            return httpx.Response(404, json={"message": "Organization not found"})
        parts = parts[1:]

        if parts == ["_apis", "projects"]:
            if "$top" in request.url.params:
                self.handshakes += 1
            return httpx.Response(200, json={"count": len(self.projects), "value": self.projects})
        if parts == ["_apis", "wit", "workitems"]:
            ids = [int(i) for i in request.url.params["ids"].split(",")]
            return httpx.Response(200, json={"value": [self.work_items[i] for i in ids if i in self.work_items]})
        if len(parts) == 4 and parts[:3] == ["_apis", "wit", "workitems"]:
            return self._get_work_item(parts[3])

        project, rest = parts[0], parts[1:]
        if rest == ["_apis", "wit", "wiql"] and request.method == "POST":
            return self._wiql(project, json.loads(request.content))
        if len(rest) == 4 and rest[:3] == ["_apis", "wit", "workitems"] and request.method == "POST":
            return self._create_work_item(project, rest[3], request)
        if rest == ["_apis", "build", "builds"]:
            return httpx.Response(200, json={"value": self.builds.get(project, [])})
        if len(rest) == 4 and rest[:3] == ["_apis", "build", "builds"]:
            for build in self.builds.get(project, []):
                if str(build["id"]) == rest[3]:
                    return httpx.Response(200, json=build)
            return httpx.Response(404, json={"message": f"The requested build {rest[3]} could not be found."})
        if rest == ["_apis", "build", "definitions"]:
            return httpx.Response(200, json={"value": self.definitions.get(project, [])})
        if rest == ["_apis", "git", "repositories"]:
            return httpx.Response(200, json={"value": self.repositories.get(project, [])})
        if len(rest) == 4 and rest[:3] == ["_apis", "git", "repositories"]:
            for repo in self.repositories.get(project, []):
                if rest[3] in (repo["id"], repo["name"]):
                    return httpx.Response(200, json=repo)
            return httpx.Response(404, json={"message": f"TF401019: The Git repository {rest[3]} does not exist."})
        return httpx.Response(404, json={"message": f"No route for {request.method} {request.url.path}"})

    def _get_work_item(self, raw_id: str) -> httpx.Response:
        if not raw_id.isdigit():
            return httpx.Response(400, json={"message": f"Invalid work item id: {raw_id}"})
        item = self.work_items.get(int(raw_id))
        if item is None:
            return httpx.Response(404, json={"message": f"TF401232: Work item {raw_id} does not exist."})
        return httpx.Response(200, json=item)

    def _wiql(self, project: str, body: dict[str, Any]) -> httpx.Response:
        query = body.get("query", "")
        if "NOMATCH" in query:
            refs: list[dict[str, Any]] = []
        else:
            refs = [
                {"id": wid, "url": item["url"]}
                for wid, item in sorted(self.work_items.items(), reverse=True)
                if item["fields"]["System.TeamProject"] == project
            ]
        return httpx.Response(200, json={"queryType": "flat", "workItems": refs})

    def _create_work_item(self, project: str, raw_type: str, request: httpx.Request) -> httpx.Response:
        assert raw_type.startswith("$")
        assert request.headers["content-type"] == "application/json-patch+json"
        ops = json.loads(request.content)
        values = {op["path"].removeprefix("/fields/"): op["value"] for op in ops}
        item = self.add_work_item(project, values["System.Title"], type=raw_type[1:])
        if "System.Description" in values:
            item["fields"]["System.Description"] = values["System.Description"]
        return httpx.Response(200, json=item)


class GatedConnector:
    """Connector whose handshake blocks until ``gate`` is set.

    Returns real :class:`SessionHandle` objects backed by *transport*, or
    raises *fail_with* (or the per-credential error in *fail_for*).
    """

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport,
        *,
        fail_with: Exception | None = None,
        fail_for: dict[SessionCredential, Exception] | None = None,
    ) -> None:
        self.transport = transport
        self.fail_with = fail_with
        self.fail_for = fail_for or {}
        self.calls: list[SessionCredential] = []
        self.handles: list[SessionHandle] = []
        self.gate = asyncio.Event()
        self.gate.set()

    def hold(self) -> None:
        self.gate.clear()

    def release(self) -> None:
        self.gate.set()

    async def __call__(self, credential: SessionCredential) -> SessionHandle:
        self.calls.append(credential)
        await self.gate.wait()
        error = self.fail_for.get(credential, self.fail_with)
        if error is not None:
            raise error
        handle = make_handle(credential, self.transport)
        self.handles.append(handle)
        return handle


def make_handle(credential: SessionCredential, transport: httpx.AsyncBaseTransport) -> SessionHandle:
    client = httpx.AsyncClient(
        base_url=credential.endpoint_url + "/",
        auth=httpx.BasicAuth("", credential.secret_token),
        transport=transport,
    )
    return SessionHandle(credential, client)

