from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import Any


async def gather_settled(*aws: Awaitable[Any]) -> list[Any]:
    """
    Run ``aws`` concurrently and wait for every one of them to finish.

    The first failure (in argument order) is re-raised only after all
    siblings have settled, so no store write is still in flight when the
    caller sees the error. Cancelling the caller cancels every child.
    """

    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results
