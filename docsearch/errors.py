"""Error taxonomy shared by the pipelines, the clients and the HTTP layer.

Every failure the service reports is a ``DocSearchError`` subclass carrying
an HTTP status code. External-service failures are translated at the
client boundary with ``upstream_errors`` so callers only ever see these
kinds, with the underlying message kept for diagnostics.
"""
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

import httpx


class DocSearchError(Exception):
    """Base class for all reported failures."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "kind": self.kind, **self.details}


class UnsupportedFileType(DocSearchError):
    status_code = 415


class EmptyContent(DocSearchError):
    status_code = 400


class UnreadableFile(DocSearchError):
    status_code = 400


class MissingParameter(DocSearchError):
    status_code = 400


class InvalidQuery(DocSearchError):
    status_code = 400


class DocumentNotFound(DocSearchError):
    status_code = 404


class FileNotFound(DocSearchError):
    status_code = 404


class StorageConflict(DocSearchError):
    status_code = 409


class UpstreamError(DocSearchError):
    status_code = 502


class PartialDeleteFailure(DocSearchError):
    """One of the blob / embedding removals failed; details say which."""

    status_code = 502


class UpstreamTimeout(DocSearchError):
    status_code = 504


@contextmanager
def upstream_errors(service: str) -> Iterator[None]:
    """Translate httpx failures and unparseable replies inside the block into service errors."""
    try:
        yield
    except httpx.TimeoutException as e:
        raise UpstreamTimeout(
            f"{service} did not respond in time: {e}", {"service": service}
        ) from e
    except httpx.HTTPStatusError as e:
        raise UpstreamError(
            f"{service} returned HTTP {e.response.status_code}: {e.response.text[:200]}",
            {"service": service, "upstream_status": e.response.status_code},
        ) from e
    except httpx.HTTPError as e:
        raise UpstreamError(
            f"{service} request failed: {e}", {"service": service}
        ) from e
    except ValueError as e:
        # Undecodable response body
        raise UpstreamError(
            f"{service} returned an invalid body: {e}", {"service": service}
        ) from e
