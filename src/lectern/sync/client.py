from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Optional

import httpx

from lectern.sync.errors import MalformedResponseError, TransportError

log = logging.getLogger(__name__)

METADATA_ENDPOINT = "/api/library/metadata"
HEARTBEAT_ENDPOINT = "/api/sync/heartbeat"
LIBRARY_PATH_HEADER = "x-library-path"

_TITLE_RE = re.compile(r"<title>(.*?)</title>", re.IGNORECASE | re.DOTALL)


def describe_error(body: str) -> str:
    """Best-effort one-line diagnostic from an error response body."""
    try:
        data = json.loads(body)
    except ValueError:
        match = _TITLE_RE.search(body)
        if match:
            return match.group(1).strip()
        return body.strip()[:200] or "Unknown error"
    if isinstance(data, dict):
        detail = data.get("details") or data.get("error") or data.get("detail")
        if detail:
            return str(detail)
    return json.dumps(data)[:200]


class RemoteClient:
    """HTTP client for the remote metadata service."""

    def __init__(
        self,
        base_url: str,
        library_path: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.library_path = library_path
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.library_path:
            headers[LIBRARY_PATH_HEADER] = self.library_path
        return headers

    async def fetch_snapshot(self) -> dict[str, Any]:
        """GET the full remote snapshot as a raw wire dict."""
        data = await self._request("GET", METADATA_ENDPOINT, action="Fetch server data")
        if not isinstance(data, dict):
            raise MalformedResponseError(
                f"Server snapshot is not an object: {type(data).__name__}"
            )
        return data

    async def post_state(self, payload: dict[str, Any]) -> Any:
        """POST one state delta (a push batch)."""
        return await self._request(
            "POST", METADATA_ENDPOINT, payload=payload, action="Push"
        )

    async def send_heartbeat(
        self,
        book_id: str,
        cfi: str,
        progress: Optional[float] = None,
        total_pages: Optional[int] = None,
        current_page: Optional[int] = None,
    ) -> Any:
        payload = {
            "bookId": book_id,
            "cfi": cfi,
            "progress": progress,
            "totalPages": total_pages,
            "currentPage": current_page,
        }
        return await self._request(
            "POST", HEARTBEAT_ENDPOINT, payload=payload, action="Heartbeat"
        )

    async def _request(
        self,
        method: str,
        endpoint: str,
        action: str,
        payload: Optional[dict[str, Any]] = None,
    ) -> Any:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            )

        url = f"{self.base_url}{endpoint}"
        try:
            # httpx limits each phase separately; cap the whole call as well.
            resp = await asyncio.wait_for(
                self._client.request(method, url, json=payload, headers=self._headers()),
                timeout=self.timeout,
            )
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            log.error("%s timed out after %ss: %s %s", action, self.timeout, method, url)
            raise TransportError(
                f"{action} failed: timed out after {self.timeout}s ({url})"
            ) from e
        except httpx.RequestError as e:
            log.error("%s request error: %s %s -> %s", action, type(e).__name__, url, e)
            raise TransportError(f"{action} failed: {type(e).__name__} ({url})") from e

        if not resp.is_success:
            details = describe_error(resp.text)
            log.error(
                "%s error: %s %s", action, resp.status_code, resp.text[:200]
            )
            raise TransportError(
                f"{action} failed: HTTP {resp.status_code} {resp.reason_phrase} - {details}",
                status_code=resp.status_code,
                details=details,
            )

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            log.error("%s returned non-JSON body: %s", action, resp.text[:200])
            raise MalformedResponseError(
                f"{action} failed: server returned non-JSON response "
                f"({describe_error(resp.text)})"
            ) from e

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> RemoteClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
