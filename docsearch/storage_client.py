"""Object store client for uploaded files (Supabase Storage REST API).

Handles:
- Uploading file bytes without overwriting
- Downloading stored files
- Public URL construction
- Listing and removing objects in the document bucket
"""
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
import structlog

from docsearch import config
from docsearch.errors import FileNotFound, StorageConflict, upstream_errors

logger = structlog.get_logger()


def _error_code(response: httpx.Response) -> Optional[str]:
    """Return the storage error code carried in a JSON error body, if any.

    Older storage deployments answer every failure with HTTP 400 and put the
    real status in ``statusCode``.
    """
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    code = body.get("statusCode")
    if code is None and body.get("error") == "Duplicate":
        code = "409"
    return str(code) if code is not None else None


class SupabaseStorageClient:
    """Async client for one storage bucket."""

    def __init__(
        self,
        base_url: str = None,
        api_key: str = None,
        bucket: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the storage client.

        Args:
            base_url: Project URL (defaults to config.SUPABASE_URL)
            api_key: Service role or anon key (defaults to config)
            bucket: Bucket holding the documents (defaults to config.STORAGE_BUCKET)
            timeout: Request timeout in seconds
            transport: Optional httpx transport, mainly for tests
        """
        self.base_url = base_url or config.SUPABASE_URL
        self.api_key = api_key or config.SUPABASE_SERVICE_ROLE_KEY
        self.bucket = bucket or config.STORAGE_BUCKET
        self.timeout = timeout or config.UPSTREAM_TIMEOUT
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self.transport,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "apikey": self.api_key,
            },
        )

    def _object_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/{self.bucket}/{quote(path)}"

    async def upload(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        upsert: bool = False,
    ) -> None:
        """Store ``data`` under ``path``.

        Raises:
            StorageConflict: If ``upsert`` is False and the path already exists
            UpstreamError: On any other storage failure
        """
        with upstream_errors("storage"):
            async with self._client() as client:
                response = await client.post(
                    self._object_url(path),
                    content=data,
                    headers={
                        "Content-Type": content_type,
                        "x-upsert": "true" if upsert else "false",
                    },
                )
                if response.status_code == 409 or (
                    response.status_code == 400 and _error_code(response) == "409"
                ):
                    logger.error("storage_upload_conflict", path=path)
                    raise StorageConflict(
                        f"Storage path already exists: {path}", {"path": path}
                    )
                response.raise_for_status()

        logger.info("storage_upload_completed", path=path, size=len(data))

    async def download(self, path: str) -> bytes:
        """Fetch the raw bytes stored under ``path``.

        Raises:
            FileNotFound: If nothing is stored under ``path``
        """
        with upstream_errors("storage"):
            async with self._client() as client:
                response = await client.get(self._object_url(path))
                if response.status_code == 404 or (
                    response.status_code == 400 and _error_code(response) == "404"
                ):
                    raise FileNotFound(f"File not stored: {path}", {"path": path})
                response.raise_for_status()
                content = response.content

        logger.debug("storage_download_completed", path=path, size=len(content))
        return content

    def get_public_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{quote(path)}"

    async def list(self, page_size: int = None) -> List[Dict[str, Any]]:
        """List every object in the bucket, in the store's own order.

        Returns:
            Raw object entries with ``name``, ``metadata`` and timestamps
        """
        page_size = page_size or config.STORAGE_LIST_PAGE_SIZE
        objects: List[Dict[str, Any]] = []
        offset = 0

        with upstream_errors("storage"):
            async with self._client() as client:
                while True:
                    response = await client.post(
                        f"{self.base_url}/storage/v1/object/list/{self.bucket}",
                        json={
                            "prefix": "",
                            "limit": page_size,
                            "offset": offset,
                            "sortBy": {"column": "name", "order": "asc"},
                        },
                    )
                    response.raise_for_status()
                    page = response.json() or []
                    objects.extend(o for o in page if not o.get("name", "").startswith("."))
                    if len(page) < page_size:
                        break
                    offset += page_size

        logger.debug("storage_list_completed", object_count=len(objects))
        return objects

    async def remove(self, paths: List[str]) -> List[str]:
        """Remove objects; returns the names the store reports as removed."""
        with upstream_errors("storage"):
            async with self._client() as client:
                response = await client.request(
                    "DELETE",
                    f"{self.base_url}/storage/v1/object/{self.bucket}",
                    json={"prefixes": paths},
                )
                response.raise_for_status()
                removed = [o.get("name") for o in (response.json() or [])]

        logger.info("storage_remove_completed", requested=len(paths), removed=len(removed))
        return removed
