"""Interfaces of the collaborators the search pipeline consumes.

The pipeline never manages credentials, connection pooling, retries or TLS.
It asks an AuthSessionProvider for a token once per search and hands fully
constructed requests to an ApiClient.
"""

from abc import ABC, abstractmethod
from typing import Any


class AuthSessionProvider(ABC):
    """Source of access tokens."""

    @abstractmethod
    async def get_valid_access_token(self) -> str:
        """Return a usable token or raise AuthRequiredError."""


class ApiClient(ABC):
    """Transport to the remote backend."""

    @abstractmethod
    async def invoke(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        query: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any] | list[Any] | str:
        """Perform one call.

        Returns parsed JSON, or raw text for non-JSON replies. Raises ApiError
        for non-success statuses, AuthRequiredError for 401 and TransportError
        for network failures.
        """
