import asyncio
import json
import time

import pytest

from graphsearch.orchestrators.search.errors import AuthRequiredError
from graphsearch.services.graph_auth import TokenStoreAuthProvider


def _token(path, **data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return asyncio.run(TokenStoreAuthProvider(path).get_valid_access_token())


def test_unexpired_token_is_returned(tmp_path):
    expires_at = int((time.time() + 3600) * 1000)
    assert _token(tmp_path / "t.json", access_token="abc", expires_at=expires_at) == "abc"


def test_token_inside_skew_window_is_expired(tmp_path):
    expires_at = int((time.time() + 60) * 1000)
    with pytest.raises(AuthRequiredError):
        _token(tmp_path / "t.json", access_token="abc", expires_at=expires_at)


def test_iso_expiry_is_understood(tmp_path):
    with pytest.raises(AuthRequiredError):
        _token(tmp_path / "t.json", access_token="abc", expiry="2000-01-01T00:00:00Z")


def test_missing_store_requires_auth(tmp_path):
    provider = TokenStoreAuthProvider(tmp_path / "absent.json")
    with pytest.raises(AuthRequiredError):
        asyncio.run(provider.get_valid_access_token())


def test_store_without_token_requires_auth(tmp_path):
    with pytest.raises(AuthRequiredError):
        _token(tmp_path / "t.json", refresh_token="r")


def test_corrupt_store_requires_auth(tmp_path):
    path = tmp_path / "t.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(AuthRequiredError):
        asyncio.run(TokenStoreAuthProvider(path).get_valid_access_token())
