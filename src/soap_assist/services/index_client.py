"""
Suggestion Index Client

Thin async wrapper over the Elasticsearch REST API for the ``soap_notes``
index: bootstrap, single and bulk inserts, search, completion, cluster
health and index statistics.

Design:
    - Async HTTP calls via httpx (non-blocking), one pooled client per
      instance, created lazily inside the running event loop.
    - Bounded timeout: connection errors, timeouts and 5xx responses are
      raised as ``IndexUnavailableError`` so callers can fall back.
    - Other 4xx responses are raised as ``IndexRequestError``.
    - The mapped index is created before the first write when startup
      could not create it, never by a dynamic-mapping insert.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Final

import httpx

from soap_assist.core.config import settings
from soap_assist.core.exceptions import IndexRequestError, IndexUnavailableError

logger = logging.getLogger(__name__)

COMPLETION_FIELD: Final[str] = "text_suggest"

# Mapping for the suggestion index. The completion field carries tenant and
# section contexts so that prefix completion is scoped like regular search.
INDEX_DEFINITION: Final[dict[str, Any]] = {
    "mappings": {
        "properties": {
            "field": {"type": "keyword"},
            "text": {
                "type": "text",
                "analyzer": "standard",
                "fields": {"keyword": {"type": "keyword", "ignore_above": 1024}},
            },
            COMPLETION_FIELD: {
                "type": "completion",
                "analyzer": "simple",
                "preserve_separators": True,
                "preserve_position_increments": True,
                "max_input_length": 50,
                "contexts": [
                    {"name": "tenant_id", "type": "category", "path": "tenant_id"},
                    {"name": "field", "type": "category", "path": "field"},
                ],
            },
            "species": {"type": "keyword"},
            "breed": {"type": "keyword"},
            "age_bucket": {"type": "keyword"},
            "pet_id": {"type": "keyword"},
            "veterinarian_id": {"type": "keyword"},
            "tenant_id": {"type": "keyword"},
            "created_date": {"type": "date"},
            "updated_date": {"type": "date"},
        }
    }
}


@dataclass
class BulkResult:
    """
    Outcome of a ``_bulk`` write.

    Attributes:
        submitted: Documents sent in the request.
        failed: Items the engine reported as failed.
    """

    submitted: int
    failed: int


class SuggestionIndexClient:
    """
    Async client for the suggestion index.

    Usage::

        client = SuggestionIndexClient()
        await client.ensure_index()
        await client.index_document(document.to_source())
        hits = await client.search({"query": {"match_all": {}}})
        await client.aclose()

    A custom ``transport`` can be injected (e.g. ``httpx.MockTransport``)
    to run against an in-process fake.
    """

    def __init__(
        self,
        base_url: str | None = None,
        index: str | None = None,
        timeout: float | None = None,
        auth: tuple[str, str] | None = None,
        refresh: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or settings.ELASTICSEARCH_URL).rstrip("/")
        self.index = index or settings.ELASTICSEARCH_INDEX
        self._timeout = timeout or settings.ELASTICSEARCH_TIMEOUT
        self._auth = auth or settings.ELASTICSEARCH_AUTH
        self._refresh = refresh or settings.ELASTICSEARCH_REFRESH
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._index_ready = False

    # ------------------------------------------------------------------
    # Index lifecycle
    # ------------------------------------------------------------------

    async def ensure_index(self) -> bool:
        """
        Create the index with its mapping if it does not exist.

        Returns:
            True if the index was created, False if it already existed.
        """
        response = await self._send("HEAD", f"/{self.index}")
        if response.status_code == 200:
            logger.info("Elasticsearch index already exists: %s", self.index)
            self._index_ready = True
            return False
        if response.status_code >= 500:
            raise IndexUnavailableError(
                f"Elasticsearch returned {response.status_code} for HEAD /{self.index}"
            )
        if response.status_code != 404:
            raise IndexRequestError(response.status_code, f"HEAD /{self.index}")

        try:
            await self._request("PUT", f"/{self.index}", json=INDEX_DEFINITION)
        except IndexRequestError as e:
            # Another writer created it between our HEAD and PUT
            if e.status_code != 400 or "resource_already_exists" not in str(e):
                raise
            logger.info("Elasticsearch index already exists: %s", self.index)
            self._index_ready = True
            return False

        logger.info("Elasticsearch index created: %s", self.index)
        self._index_ready = True
        return True

    async def delete_index(self) -> bool:
        """Drop the index. Returns False if it did not exist."""
        self._index_ready = False
        data = await self._request("DELETE", f"/{self.index}", allow_missing=True)
        if data is None:
            return False
        logger.info("Elasticsearch index deleted: %s", self.index)
        return True

    async def _ensure_ready(self) -> None:
        """
        Make sure the mapped index exists before a write.

        Writing to a missing index would let Elasticsearch create it with
        dynamic mappings (``tenant_id`` as analyzed text), which breaks the
        term filters and the completion suggester. Runs ``ensure_index``
        once per client; a failed attempt is retried on the next write.
        """
        if not self._index_ready:
            await self.ensure_index()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def index_document(self, source: dict[str, Any]) -> str:
        """Insert one document (engine-assigned id) and return its id."""
        await self._ensure_ready()
        data = await self._request(
            "POST",
            f"/{self.index}/_doc",
            json=source,
            params={"refresh": self._refresh},
        )
        return str((data or {}).get("_id", ""))

    async def bulk(self, sources: list[dict[str, Any]]) -> BulkResult:
        """
        Insert many documents in a single ``_bulk`` request.

        Item-level failures do not raise; they are counted and logged.
        """
        if not sources:
            return BulkResult(submitted=0, failed=0)

        await self._ensure_ready()
        lines: list[str] = []
        for source in sources:
            lines.append(json.dumps({"index": {"_index": self.index}}))
            lines.append(json.dumps(source))
        payload = "\n".join(lines) + "\n"  # NDJSON must end with a newline

        data = await self._request(
            "POST",
            "/_bulk",
            content=payload.encode("utf-8"),
            headers={"Content-Type": "application/x-ndjson"},
            params={"refresh": self._refresh},
        )
        failed = 0
        if data and data.get("errors"):
            failed = sum(
                1
                for item in data.get("items", [])
                if item.get("index", {}).get("error") is not None
            )
            logger.error(
                "Bulk write to '%s' had %d failed items out of %d",
                self.index,
                failed,
                len(sources),
            )
        return BulkResult(submitted=len(sources), failed=failed)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def search(self, body: dict[str, Any]) -> dict[str, Any]:
        """
        Run a search request. A missing index yields an empty result.
        """
        data = await self._request(
            "POST", f"/{self.index}/_search", json=body, allow_missing=True
        )
        if data is None:
            logger.warning("Search against missing index '%s'", self.index)
            return {"hits": {"hits": []}}
        return data

    async def cluster_health(self) -> dict[str, Any]:
        """Return ``GET /_cluster/health`` as-is."""
        return await self._request("GET", "/_cluster/health") or {}

    async def index_stats(self) -> dict[str, Any] | None:
        """Return ``GET /{index}/_stats``, or None if the index is missing."""
        return await self._request("GET", f"/{self.index}/_stats", allow_missing=True)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                auth=self._auth,
                transport=self._transport,
            )
        return self._client

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """
        Issue a raw request and classify transport failures.

        Raises:
            IndexUnavailableError: On connection errors and timeouts.
        """
        try:
            return await self._get_client().request(method, path, **kwargs)
        except httpx.TransportError as e:
            # ConnectError, timeouts and protocol errors all mean "unreachable"
            raise IndexUnavailableError(
                f"Elasticsearch unreachable ({type(e).__name__}): {e}"
            ) from e

    async def _request(
        self,
        method: str,
        path: str,
        *,
        allow_missing: bool = False,
        **kwargs: Any,
    ) -> dict[str, Any] | None:
        """
        Issue a request and decode the JSON body.

        Returns:
            Decoded body, or None for a 404 when ``allow_missing`` is set.

        Raises:
            IndexUnavailableError: Transport failure or 5xx status.
            IndexRequestError: Any other 4xx status.
        """
        response = await self._send(method, path, **kwargs)

        if response.status_code == 404 and allow_missing:
            return None
        if response.status_code >= 500:
            raise IndexUnavailableError(
                f"Elasticsearch returned {response.status_code}: {response.text[:200]}"
            )
        if response.status_code >= 400:
            raise IndexRequestError(response.status_code, response.text[:200])

        if not response.content:
            return {}
        return response.json()

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


# ---------------------------------------------------------------------------
# Process-wide instance (lazy)
# ---------------------------------------------------------------------------

_index_client: SuggestionIndexClient | None = None


def get_index_client() -> SuggestionIndexClient:
    """Get or create the shared index client (singleton)."""
    global _index_client  # noqa: PLW0603
    if _index_client is None:
        _index_client = SuggestionIndexClient()
    return _index_client


async def close_index_client() -> None:
    """Close the shared index client at application shutdown."""
    global _index_client  # noqa: PLW0603
    if _index_client is not None:
        await _index_client.aclose()
        _index_client = None
