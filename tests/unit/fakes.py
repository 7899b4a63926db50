"""Test doubles shared by the unit tests."""

import asyncio
from datetime import UTC, datetime
from typing import Any

from graphsearch.orchestrators.search.interface import ApiClient, AuthSessionProvider

FIXED_NOW = datetime(2024, 3, 15, 9, 30, tzinfo=UTC)


class FakeApiClient(ApiClient):
    """Replays canned replies in order; an Exception reply is raised instead of returned.

    A callable reply is invoked with the call record, so routing by path is possible.
    """

    def __init__(self, replies: list[Any] | None = None, delay: float = 0.0):
        self.replies = list(replies or [])
        self.calls: list[dict[str, Any]] = []
        self.delay = delay

    async def invoke(self, method, path, body=None, query=None, headers=None):
        call = {"method": method, "path": path, "body": body, "query": query, "headers": headers}
        self.calls.append(call)
        if self.delay:
            await asyncio.sleep(self.delay)
        reply = self.replies.pop(0) if self.replies else {"value": []}
        if callable(reply):
            reply = reply(call)
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeAuth(AuthSessionProvider):
    def __init__(self, token: str = "test-token", error: Exception | None = None):
        self.token = token
        self.error = error
        self.calls = 0

    async def get_valid_access_token(self) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.token


def search_reply(*containers: dict[str, Any], aggregations=None, alteration=None) -> dict:
    value: dict[str, Any] = {"hitsContainers": list(containers)}
    if aggregations is not None:
        value["aggregations"] = aggregations
    if alteration is not None:
        value["queryAlterationResponse"] = alteration
    return {"value": [value]}


def container(entity_type: str, *names: str, total: int | None = None) -> dict[str, Any]:
    hits = [
        {
            "hitId": f"{entity_type}-{i}",
            "rank": i,
            "summary": f"summary {name}",
            "resource": {"id": f"{entity_type}-{i}", "name": name},
        }
        for i, name in enumerate(names, 1)
    ]
    return {
        "entityType": entity_type,
        "hits": hits,
        "total": len(hits) if total is None else total,
    }
