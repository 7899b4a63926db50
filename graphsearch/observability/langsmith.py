"""LangSmith tracing integration for search pipeline stages."""

from __future__ import annotations

import atexit
import os
from collections.abc import Callable
from typing import Any

_ENABLED = os.getenv("LANGSMITH_TRACING", "").strip().lower() == "true"


def _noop_traceable(
    name: str | None = None,
    run_type: str = "chain",
    **kwargs: Any,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        return fn

    return decorator


def _noop_flush() -> None:
    pass


traceable = _noop_traceable
flush = _noop_flush

if _ENABLED:
    from langsmith import Client as LangSmithClient
    from langsmith import traceable as _ls_traceable

    _project = os.getenv("LANGSMITH_PROJECT", "graphsearch")
    _client: LangSmithClient | None = None

    def _get_client() -> LangSmithClient:
        global _client
        if _client is None:
            _client = LangSmithClient()
        return _client

    def traceable(
        name: str | None = None,
        run_type: str = "chain",
        **kwargs: Any,
    ):
        return _ls_traceable(  # type: ignore[call-overload]
            name=name,
            run_type=run_type,
            project_name=kwargs.pop("project_name", _project),
            **kwargs,
        )

    def flush() -> None:
        _get_client().flush()

    atexit.register(flush)
