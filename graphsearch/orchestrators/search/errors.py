"""Error taxonomy for the search pipeline."""

# Status codes the backend uses to reject a request shape it cannot serve
# (unsupported aggregation/collapse/sort, malformed entity-type combination).
CAPABILITY_REJECTION_STATUSES = frozenset({400, 405, 422, 501})


class SearchError(Exception):
    """Base class for every error the search pipeline raises."""


class CallerInputError(SearchError):
    """The caller's request is invalid; rejected before any backend call."""


class AuthRequiredError(SearchError):
    """No valid access token is available. The user must (re-)authenticate."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class TransportError(SearchError):
    """Network or timeout failure reported by the API client."""


class ApiError(SearchError):
    """Non-success reply from the remote backend."""

    def __init__(self, status: int, message: str, code: str | None = None):
        self.status = status
        self.code = code
        self.message = message
        super().__init__(f"API call failed with status {status}: {message}")

    @property
    def is_capability_rejection(self) -> bool:
        return self.status in CAPABILITY_REJECTION_STATUSES


class MalformedResponseError(SearchError):
    """A success reply whose body does not have the shape the tier expects."""


class CapabilityRejection(SearchError):
    """A tier's request shape was rejected; the engine degrades to the next tier."""

    def __init__(self, tier: str, cause: Exception):
        self.tier = tier
        self.cause = cause
        super().__init__(f"{tier} tier rejected: {cause}")


class SearchCancelledError(SearchError):
    """The cancellation signal fired before any execution tier completed."""

    def __init__(self, message: str = "Search cancelled before any tier completed"):
        super().__init__(message)
