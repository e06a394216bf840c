"""Fake metadata service served through httpx.MockTransport."""

from __future__ import annotations

import json
from typing import Any, Optional

import httpx

from lectern.library.models import LibrarySnapshot
from lectern.sync.client import HEARTBEAT_ENDPOINT, METADATA_ENDPOINT, RemoteClient
from lectern.sync.hydrate import snapshot_to_wire

REMOTE_URL = "http://remote.test"
COLLECTIONS = ("books", "tags", "annotations", "readingSessions")


class FakeServer:
    """In-memory metadata service that upserts pushed records by id."""

    def __init__(self) -> None:
        self.data: dict[str, Any] = {key: [] for key in COLLECTIONS}
        self.data["lastSync"] = None
        self.requests: list[httpx.Request] = []
        self.pushes: list[dict[str, Any]] = []
        self.heartbeats: list[dict[str, Any]] = []
        self.fail_push_at: Optional[int] = None
        self.fail_response = httpx.Response(
            500, json={"error": "Failed to save metadata"}
        )

    def seed(self, snapshot: LibrarySnapshot) -> None:
        wire = snapshot_to_wire(snapshot)
        for key in COLLECTIONS:
            self.data[key] = wire[key]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == METADATA_ENDPOINT:
            if request.method == "GET":
                return httpx.Response(200, json=self.data)
            payload = json.loads(request.content)
            self.pushes.append(payload)
            if self.fail_push_at == len(self.pushes):
                return self.fail_response
            for key in COLLECTIONS:
                index = {r["id"]: i for i, r in enumerate(self.data[key])}
                for record in payload.get(key, []):
                    if record["id"] in index:
                        self.data[key][index[record["id"]]] = record
                    else:
                        self.data[key].append(record)
            self.data["lastSync"] = payload["lastSync"]
            return httpx.Response(200, json={"success": True})
        if request.url.path == HEARTBEAT_ENDPOINT:
            self.heartbeats.append(json.loads(request.content))
            return httpx.Response(200, json={"success": True})
        return httpx.Response(404, json={"error": "Not found"})

    def client(self, **kwargs: Any) -> RemoteClient:
        return RemoteClient(
            REMOTE_URL, transport=httpx.MockTransport(self.handler), **kwargs
        )

    def ids(self, key: str) -> set[str]:
        return {r["id"] for r in self.data[key]}
