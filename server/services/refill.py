"""Remote table API boundary: schema and full-table record fetches.

The cache never talks to the remote API directly; on a miss the record
service asks a RefillProvider for the table's structure and records and hands
them to CacheStore.refresh(). Remote calls are not retried here.
"""

from typing import Any, Dict, List, Optional, Protocol

import httpx

from core.config import Settings
from core.logging import get_logger
from models.filters import TableSchema

logger = get_logger(__name__)


class RefillError(Exception):
    """Remote API request failed."""

    def __init__(self, table_id: str, message: str):
        self.table_id = table_id
        super().__init__(f"[{table_id}] {message}")


class RefillProvider(Protocol):
    """Source of table structure and records."""

    async def fetch_schema(self, table_id: str) -> TableSchema:
        ...

    async def fetch_records(self, table_id: str) -> List[Dict[str, Any]]:
        ...


class HttpRefillProvider:
    """RefillProvider over the remote REST API.

    Endpoints:
        GET  {base}/applications/{table_id}/                 -> {"structure": [...]}
        POST {base}/applications/{table_id}/records/list/    -> {"items": [...]}
             ?limit=&offset=&hydrated=true
    """

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = settings.remote_api_url.rstrip("/")
        self.token = settings.remote_api_token
        self.account_id = settings.remote_account_id
        self.timeout = settings.remote_timeout
        self.page_size = settings.remote_page_size
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Token {self.token}"
        if self.account_id:
            headers["Account-Id"] = self.account_id
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, headers=self._headers(),
                                 timeout=self.timeout, transport=self._transport)

    async def fetch_schema(self, table_id: str) -> TableSchema:
        try:
            async with self._client() as client:
                response = await client.get(f"/applications/{table_id}/")
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            logger.error("Failed to fetch table structure", table_id=table_id, error=str(e))
            raise RefillError(table_id, f"structure request failed: {e}") from e

        schema = TableSchema.from_structure(table_id, data.get("structure") or [])
        logger.debug("Fetched table structure", table_id=table_id, fields=len(schema.fields))
        return schema

    async def fetch_records(self, table_id: str) -> List[Dict[str, Any]]:
        """Fetch every record of a table, page by page."""
        records: List[Dict[str, Any]] = []
        offset = 0

        try:
            async with self._client() as client:
                while True:
                    response = await client.post(
                        f"/applications/{table_id}/records/list/",
                        params={"limit": self.page_size, "offset": offset, "hydrated": "true"},
                        json={},
                    )
                    response.raise_for_status()
                    items = response.json().get("items") or []
                    records.extend(items)

                    # Short page means last page
                    if len(items) < self.page_size:
                        break
                    offset += self.page_size
        except httpx.HTTPError as e:
            logger.error("Failed to fetch records", table_id=table_id, error=str(e))
            raise RefillError(table_id, f"records request failed: {e}") from e

        logger.info("Fetched records from remote API", table_id=table_id, records=len(records))
        return records
