"""
Async helpers.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Hashable, Iterable, TypeVar

log = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


async def gather_best_effort(
    keys: Iterable[K],
    fetch: Callable[[K], Awaitable[V]],
    *,
    label: str = "item",
) -> dict[K, V]:
    """
    Run ``fetch(key)`` concurrently for every distinct key and keep the successes.

    A key whose fetch raises is logged and left out of the result; it never
    fails the batch. Keys keep their first-seen order.
    """
    unique = list(dict.fromkeys(keys))
    if not unique:
        return {}

    results = await asyncio.gather(*(fetch(k) for k in unique), return_exceptions=True)

    collected: dict[K, V] = {}
    for key, result in zip(unique, results):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result  # cancellation and the like
            log.debug("Skipping %s %s: %s", label, key, result)
            continue
        collected[key] = result
    return collected
