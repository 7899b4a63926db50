"""Race an awaitable against a caller-supplied cancellation signal."""

import asyncio
import contextlib
from collections.abc import Awaitable
from typing import TypeVar

from graphsearch.orchestrators.search.errors import SearchCancelledError

T = TypeVar("T")


async def run_cancellable(aw: Awaitable[T], cancel: asyncio.Event | None) -> T:
    """Await ``aw`` unless ``cancel`` fires first.

    When the signal wins, the in-flight work is cancelled and
    SearchCancelledError is raised. A result that is already available wins
    over a simultaneous signal.
    """
    if cancel is None:
        return await aw
    task = asyncio.ensure_future(aw)
    if cancel.is_set():
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        raise SearchCancelledError()
    waiter = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        waiter.cancel()
    if task.done():
        return task.result()
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
    raise SearchCancelledError()
