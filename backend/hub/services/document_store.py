"""Client for the document store that holds posts and externally sourced events.

This core only reads from it: existence checks before an engagement row is
written, and summaries for display.
"""
import logging
from functools import lru_cache
from typing import Any, Optional, Protocol
from urllib.parse import quote

import httpx

from hub.config import settings
from hub.core.errors import ExternalCheckTimeout, ExternalDependencyError

logger = logging.getLogger(__name__)


class DocumentStoreClient(Protocol):
    def exists(self, document_id: str) -> bool: ...

    def get_summary(self, document_id: str) -> Optional[dict[str, Any]]: ...


class HttpDocumentStoreClient:
    """HTTP client: GET /documents/{id} and /documents/{id}/summary, 404 meaning absent."""

    def __init__(self, base_url: str, timeout: float = 2.0, transport: Optional[httpx.BaseTransport] = None):
        self.timeout = timeout
        self._client = httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)

    def _get(self, path: str) -> Optional[httpx.Response]:
        try:
            resp = self._client.get(path)
        except httpx.TimeoutException as exc:
            logger.warning("Document store timed out on %s after %.1fs", path, self.timeout)
            raise ExternalCheckTimeout(
                "Document store did not answer in time; retry the request",
                retry_after_seconds=self.timeout,
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("Document store unreachable on %s: %s", path, exc)
            raise ExternalDependencyError("Document store is unavailable; retry later") from exc

        if resp.status_code == 404:
            return None
        if resp.status_code >= 400:
            logger.warning("Document store answered %d on %s", resp.status_code, path)
            raise ExternalDependencyError(
                f"Document store returned HTTP {resp.status_code}", status_code=resp.status_code,
            )
        return resp

    def exists(self, document_id: str) -> bool:
        return self._get(f"/documents/{quote(document_id, safe='')}") is not None

    def get_summary(self, document_id: str) -> Optional[dict[str, Any]]:
        resp = self._get(f"/documents/{quote(document_id, safe='')}/summary")
        if resp is None:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise ExternalDependencyError("Document store returned a malformed summary") from exc

    def close(self) -> None:
        self._client.close()


@lru_cache(maxsize=1)
def get_document_store() -> DocumentStoreClient:
    """FastAPI dependency: process-wide client built from settings."""
    return HttpDocumentStoreClient(settings.DOCUMENT_STORE_URL, settings.DOCUMENT_STORE_TIMEOUT_SECONDS)
