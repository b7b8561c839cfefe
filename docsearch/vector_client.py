"""Vector index client (Pinecone data plane, integrated embedding).

The index embeds the ``text`` field of each record itself, so this module
never handles vectors: it upserts text records, searches by query text,
and manages records by metadata and ID prefix.
"""
import json
from typing import Any, Dict, List, Optional

import httpx
import structlog

from docsearch import config
from docsearch.errors import upstream_errors

logger = structlog.get_logger()

FETCH_BATCH_SIZE = 100


class PineconeIndexClient:
    """Async client for one namespace of a Pinecone index."""

    def __init__(
        self,
        host: str = None,
        api_key: str = None,
        namespace: str = None,
        api_version: str = None,
        batch_size: int = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the index client.

        Args:
            host: Index data-plane URL (defaults to config.PINECONE_INDEX_HOST)
            api_key: API key (defaults to config.PINECONE_API_KEY)
            namespace: Namespace for all operations (defaults to config)
            api_version: Value of the API version header
            batch_size: Records per upsert request
            timeout: Request timeout in seconds
            transport: Optional httpx transport, mainly for tests
        """
        self.host = host or config.PINECONE_INDEX_HOST
        if self.host and not self.host.startswith("http"):
            self.host = f"https://{self.host}"
        self.api_key = api_key or config.PINECONE_API_KEY
        self.namespace = namespace or config.PINECONE_NAMESPACE
        self.api_version = api_version or config.PINECONE_API_VERSION
        self.batch_size = batch_size or config.UPSERT_BATCH_SIZE
        self.timeout = timeout or config.UPSTREAM_TIMEOUT
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.host,
            timeout=self.timeout,
            transport=self.transport,
            headers={
                "Api-Key": self.api_key,
                "X-Pinecone-API-Version": self.api_version,
            },
        )

    async def upsert_records(self, records: List[Dict[str, Any]]) -> int:
        """Upsert text records in batches.

        Args:
            records: Dicts with ``_id``, ``text`` and metadata fields

        Returns:
            Number of records sent
        """
        if not records:
            return 0

        with upstream_errors("vector_index"):
            async with self._client() as client:
                for i in range(0, len(records), self.batch_size):
                    batch = records[i : i + self.batch_size]
                    body = "\n".join(json.dumps(record) for record in batch)
                    response = await client.post(
                        f"/records/namespaces/{self.namespace}/upsert",
                        content=body.encode("utf-8"),
                        headers={"Content-Type": "application/x-ndjson"},
                    )
                    response.raise_for_status()

                    logger.debug(
                        "vector_upsert_batch_sent",
                        batch_size=len(batch),
                        total_so_far=i + len(batch),
                    )

        logger.info("vector_upsert_completed", record_count=len(records))
        return len(records)

    async def search(
        self, text: str, top_k: int, fields: List[str]
    ) -> List[Dict[str, Any]]:
        """Similarity search by query text.

        Returns:
            Hits as ``{"id", "score", "fields"}`` in the order the index
            returned them (descending score)
        """
        payload = {
            "query": {"inputs": {"text": text}, "top_k": top_k},
            "fields": fields,
        }

        with upstream_errors("vector_index"):
            async with self._client() as client:
                response = await client.post(
                    f"/records/namespaces/{self.namespace}/search",
                    json=payload,
                )
                response.raise_for_status()
                data = response.json()

        hits = [
            {
                "id": hit.get("_id"),
                "score": hit.get("_score", 0.0),
                "fields": hit.get("fields") or {},
            }
            for hit in (data.get("result") or {}).get("hits", [])
        ]

        logger.info("vector_search_completed", top_k=top_k, results_found=len(hits))
        return hits

    async def delete_by_filter(self, field: str, value: Any) -> None:
        """Delete every record whose metadata ``field`` equals ``value``."""
        with upstream_errors("vector_index"):
            async with self._client() as client:
                response = await client.post(
                    "/vectors/delete",
                    json={
                        "namespace": self.namespace,
                        "filter": {field: {"$eq": value}},
                    },
                )
                response.raise_for_status()

        logger.info("vector_delete_completed", field=field, value=value)

    async def list_ids(self, prefix: str) -> List[str]:
        """List record IDs starting with ``prefix``, following pagination."""
        ids: List[str] = []
        params: Dict[str, Any] = {"namespace": self.namespace, "prefix": prefix}

        with upstream_errors("vector_index"):
            async with self._client() as client:
                while True:
                    response = await client.get("/vectors/list", params=params)
                    response.raise_for_status()
                    data = response.json()
                    ids.extend(v["id"] for v in data.get("vectors", []))

                    next_token = (data.get("pagination") or {}).get("next")
                    if not next_token:
                        break
                    params["paginationToken"] = next_token

        logger.debug("vector_ids_listed", prefix=prefix, count=len(ids))
        return ids

    async def fetch(self, ids: List[str]) -> Dict[str, Dict[str, Any]]:
        """Fetch stored metadata for records by ID.

        Returns:
            Mapping of record ID to its metadata; unknown IDs are absent
        """
        records: Dict[str, Dict[str, Any]] = {}
        if not ids:
            return records

        with upstream_errors("vector_index"):
            async with self._client() as client:
                for i in range(0, len(ids), FETCH_BATCH_SIZE):
                    batch = ids[i : i + FETCH_BATCH_SIZE]
                    response = await client.get(
                        "/vectors/fetch",
                        params={"ids": batch, "namespace": self.namespace},
                    )
                    response.raise_for_status()
                    for record_id, vector in (response.json().get("vectors") or {}).items():
                        records[record_id] = vector.get("metadata") or {}

        logger.debug("vector_records_fetched", requested=len(ids), found=len(records))
        return records
