"""HTTP API client for the remote search service (httpx)."""

import logging
from typing import Any

import httpx

from graphsearch.core.config import config
from graphsearch.orchestrators.search.errors import (
    ApiError,
    AuthRequiredError,
    MalformedResponseError,
    TransportError,
)
from graphsearch.orchestrators.search.interface import ApiClient

logger = logging.getLogger(__name__)

_BODY_METHODS = frozenset({"POST", "PATCH", "PUT"})


def _error_details(response: httpx.Response) -> tuple[str, str | None]:
    """Backend error message and code from a `{"error": {...}}` body, else the raw text."""
    try:
        data = response.json()
    except ValueError:
        return response.text or response.reason_phrase, None
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        return str(error.get("message") or response.text), error.get("code")
    return response.text, None


class GraphApiClient(ApiClient):
    """Performs one call per invoke. No retries, no token handling."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url or config.graph_api_endpoint,
            timeout=timeout if timeout is not None else config.http_timeout_seconds,
            transport=transport,
        )

    async def invoke(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        query: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any] | list[Any] | str:
        method = method.upper()
        url = path.lstrip("/")
        request_headers = {"Accept": "application/json", **(headers or {})}
        json_body = body if body is not None and method in _BODY_METHODS else None
        logger.debug("%s %s params=%s", method, url, list((query or {}).keys()))
        try:
            response = await self._client.request(
                method,
                url,
                params=query,
                json=json_body,
                headers=request_headers,
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"Timeout during API call to {url}: {e}") from e
        except httpx.TransportError as e:
            raise TransportError(f"Network error during API call to {url}: {e}") from e

        if response.status_code == 401:
            raise AuthRequiredError("Access token was rejected (401). Re-authenticate and retry.")
        if not response.is_success:
            message, code = _error_details(response)
            raise ApiError(response.status_code, message, code=code)

        if response.status_code == 204 or not response.content:
            return {}
        if "json" not in response.headers.get("content-type", ""):
            return response.text
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Error parsing API response: {e}") from e

    async def aclose(self) -> None:
        await self._client.aclose()
