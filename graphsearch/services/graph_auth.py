"""Access tokens from the local token store. Never refreshes."""

import json
import time
from datetime import datetime
from pathlib import Path

from graphsearch.core.config import config
from graphsearch.core.logger import logger
from graphsearch.orchestrators.search.errors import AuthRequiredError
from graphsearch.orchestrators.search.interface import AuthSessionProvider

# Tokens this close to expiry are treated as expired.
EXPIRY_SKEW_SECONDS = 5 * 60


def _expiry_epoch(data: dict) -> float | None:
    """Expiry as epoch seconds from `expires_at` (epoch millis) or ISO `expiry`."""
    expires_at = data.get("expires_at")
    if isinstance(expires_at, int | float) and not isinstance(expires_at, bool):
        return expires_at / 1000.0
    expiry = data.get("expiry")
    if isinstance(expiry, str) and expiry.strip():
        try:
            return datetime.fromisoformat(expiry.replace("Z", "+00:00")).timestamp()
        except ValueError:
            return None
    return None


class TokenStoreAuthProvider(AuthSessionProvider):
    def __init__(self, path: Path | None = None, skew_seconds: float = EXPIRY_SKEW_SECONDS):
        self._path = Path(path) if path is not None else config.token_store_path
        self._skew = skew_seconds

    async def get_valid_access_token(self) -> str:
        if not self._path.exists():
            raise AuthRequiredError(
                f"No token store at {self._path}. Authenticate first, then retry."
            )
        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Could not read token store {self._path}: {e}")
            raise AuthRequiredError(f"Token store {self._path} is unreadable. Re-authenticate.") from e

        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise AuthRequiredError("Token store has no access token. Authenticate first.")
        expiry = _expiry_epoch(data)
        if expiry is not None and time.time() >= expiry - self._skew:
            raise AuthRequiredError("Access token has expired. Re-authenticate and retry.")
        return str(token)
