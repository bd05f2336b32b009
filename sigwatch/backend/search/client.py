"""
search/client.py

Async HTTP client for the search backend's _search endpoint.

Responsibilities:
  - POST a query body to /{index}/_search
  - Return the decoded JSON response
  - Raise SearchError on any transport, HTTP or decoding failure

No retries: the rule executor decides what a failed search means for the run.

Usage:
    client = SearchClient(base_url="http://localhost:9200")
    resp = await client.search("logs-*", {"query": {"match_all": {}}}, operation="rule:abc")
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import httpx

from ..metrics import METRICS

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_SECONDS = 10.0


class SearchError(RuntimeError):
    """The search backend could not answer a query."""

    def __init__(self, operation: str, detail: str, status_code: int | None = None) -> None:
        self.operation = operation
        self.status_code = status_code
        super().__init__(f"search {operation or 'request'} failed: {detail}")


class SearchClient:
    """
    Args:
        base_url:  search backend URL, e.g. "http://localhost:9200"
        api_key:   sent as "Authorization: ApiKey <key>" when set
        timeout:   per-request timeout in seconds
        transport: optional httpx transport (tests pass httpx.MockTransport)
    """

    def __init__(
        self,
        base_url: str = "http://localhost:9200",
        api_key: str | None = None,
        timeout: float = _DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._headers: dict[str, str] = {"Content-Type": "application/json"}
        if api_key:
            self._headers["Authorization"] = f"ApiKey {api_key}"
        self.stats: dict[str, int] = {
            "searches": 0,
            "errors": 0,
        }

    async def search(
        self,
        index: str | Sequence[str],
        body: dict[str, Any],
        operation: str = "",
    ) -> dict[str, Any]:
        """Run one search and return the raw response body."""
        target = index if isinstance(index, str) else ",".join(index)
        self.stats["searches"] += 1
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._headers,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                resp = await client.post(f"/{target}/_search", json=body)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as exc:
            self._record_error()
            logger.warning("Search %r returned HTTP %d", operation, exc.response.status_code)
            raise SearchError(
                operation,
                f"HTTP {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            self._record_error()
            logger.warning("Search %r transport error: %s", operation, exc)
            raise SearchError(operation, str(exc) or type(exc).__name__) from exc
        except ValueError as exc:
            self._record_error()
            raise SearchError(operation, "response is not valid JSON") from exc

        if not isinstance(data, dict):
            self._record_error()
            raise SearchError(operation, "response is not a JSON object")
        logger.debug("Search %r on %s took %sms", operation, target, data.get("took"))
        return data

    def _record_error(self) -> None:
        self.stats["errors"] += 1
        METRICS.search_errors.inc()

    def __repr__(self) -> str:
        return f"SearchClient({self.base_url!r})"
