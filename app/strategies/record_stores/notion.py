"""Notion-backed record store.

Talks to the Notion REST API with an async httpx client. Pages are
records, databases are collections and blocks are content blocks.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from typing import Any

import httpx

from app.interfaces.record_store import BaseRecordStore, Record, RecordStoreError

logger = logging.getLogger(__name__)

# Notion error codes -> coarse kinds the engine switches on
_ERROR_KINDS: dict[str, str] = {
    "unauthorized": "unauthorized",
    "restricted_resource": "unauthorized",
    "object_not_found": "not_found",
    "validation_error": "validation_error",
    "invalid_json": "validation_error",
    "invalid_request": "validation_error",
    "rate_limited": "rate_limited",
}

PAGE_SIZE = 100


class NotionRecordStore(BaseRecordStore):
    """Record store implementation using the Notion API.

    Supports:
    - Cursor pagination for database queries and block children
    - Retry of rate-limited requests honouring Retry-After
    - Translation of Notion error bodies into RecordStoreError kinds

    Attributes:
        base_url: The API base URL.
        max_retries: How many times a rate-limited call is retried.
    """

    def __init__(
        self,
        api_token: str,
        base_url: str = "https://api.notion.com/v1",
        notion_version: str = "2022-06-28",
        timeout: float = 30.0,
        max_retries: int = 3,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the Notion store.

        Args:
            api_token: Notion integration token.
            base_url: API base URL.
            notion_version: Value for the Notion-Version header.
            timeout: Request timeout in seconds.
            max_retries: Retries for HTTP 429 responses.
            http_client: Optional pre-configured client, mainly for tests.
                If None, the store owns and closes its own client.
        """
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self._headers = {
            "Authorization": f"Bearer {api_token}",
            "Notion-Version": notion_version,
            "Content-Type": "application/json",
        }
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def retrieve(self, record_id: str) -> Record:
        data = await self._request("GET", f"/pages/{record_id}")
        return self._to_record(data)

    async def query(
        self,
        collection_id: str,
        filter: dict[str, Any] | None = None,
        sorts: list[dict[str, Any]] | None = None,
    ) -> list[Record]:
        body: dict[str, Any] = {"page_size": PAGE_SIZE}
        if filter:
            body["filter"] = filter
        if sorts:
            body["sorts"] = sorts

        records: list[Record] = []
        async for page in self._paginate("POST", f"/databases/{collection_id}/query", body=body):
            records.append(self._to_record(page))

        logger.debug(f"Query on database {collection_id} returned {len(records)} page(s)")
        return records

    async def create(
        self,
        collection_id: str,
        properties: dict[str, Any],
        icon: dict[str, Any] | None = None,
    ) -> Record:
        body: dict[str, Any] = {
            "parent": {"database_id": collection_id},
            "properties": properties,
        }
        if icon:
            body["icon"] = icon

        data = await self._request("POST", "/pages", json=body)
        return self._to_record(data)

    async def update(self, record_id: str, properties: dict[str, Any]) -> Record:
        data = await self._request("PATCH", f"/pages/{record_id}", json={"properties": properties})
        return self._to_record(data)

    async def list_child_blocks(self, block_id: str) -> list[dict[str, Any]]:
        blocks: list[dict[str, Any]] = []
        async for block in self._paginate("GET", f"/blocks/{block_id}/children"):
            blocks.append(block)
        return blocks

    async def append_child_blocks(self, block_id: str, children: list[dict[str, Any]]) -> None:
        # Notion accepts at most 100 children per append call
        for start in range(0, len(children), PAGE_SIZE):
            chunk = children[start : start + PAGE_SIZE]
            await self._request("PATCH", f"/blocks/{block_id}/children", json={"children": chunk})

    async def get_schema(self, collection_id: str) -> set[str]:
        data = await self._request("GET", f"/databases/{collection_id}")
        return set(data.get("properties", {}).keys())

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _paginate(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
    ) -> AsyncGenerator[dict[str, Any], None]:
        """Yield every result of a cursor-paginated endpoint."""
        cursor: str | None = None
        while True:
            if method == "GET":
                params: dict[str, Any] = {"page_size": PAGE_SIZE}
                if cursor:
                    params["start_cursor"] = cursor
                data = await self._request(method, path, params=params)
            else:
                payload = dict(body or {})
                if cursor:
                    payload["start_cursor"] = cursor
                data = await self._request(method, path, json=payload)

            for item in data.get("results", []):
                yield item

            if not data.get("has_more") or not data.get("next_cursor"):
                return
            cursor = data["next_cursor"]

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Issue one API call, retrying while rate limited.

        Raises:
            RecordStoreError: If the call fails or keeps being rate limited.
        """
        url = f"{self.base_url}{path}"
        attempt = 0

        while True:
            try:
                response = await self._client.request(
                    method,
                    url,
                    headers=self._headers,
                    json=json,
                    params=params,
                )
            except httpx.HTTPError as e:
                logger.error(f"Notion request {method} {path} failed: {e}")
                raise RecordStoreError("other", f"Request to Notion failed: {e}") from e

            if response.status_code == 429 and attempt < self.max_retries:
                attempt += 1
                delay = self._retry_after(response)
                logger.warning(
                    f"Rate limited on {method} {path}, retrying in {delay}s "
                    f"(attempt {attempt}/{self.max_retries})"
                )
                await asyncio.sleep(delay)
                continue

            if response.is_success:
                return response.json()

            raise self._to_error(response)

    def _retry_after(self, response: httpx.Response) -> float:
        try:
            return max(float(response.headers.get("Retry-After", "1")), 0.0)
        except ValueError:
            return 1.0

    def _to_error(self, response: httpx.Response) -> RecordStoreError:
        """Build a RecordStoreError from a Notion error response."""
        try:
            body = response.json()
        except ValueError:
            body = {}

        code = body.get("code", "")
        message = body.get("message") or response.reason_phrase or "Unknown Notion error"

        kind = _ERROR_KINDS.get(code)
        if kind is None:
            if response.status_code == 401:
                kind = "unauthorized"
            elif response.status_code == 404:
                kind = "not_found"
            else:
                kind = "other"

        return RecordStoreError(kind, message, status_code=response.status_code)

    def _to_record(self, data: dict[str, Any]) -> Record:
        return Record(
            id=data["id"],
            properties=data.get("properties") or {},
            icon=data.get("icon"),
        )
