"""Run a per-document worker over a batch, keeping input order."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Sequence, TypeVar

S = TypeVar("S")
R = TypeVar("R")

ErrorHandler = Callable[[S, Exception], R]

logger = logging.getLogger(__name__)

_BACKEND_ALIASES: Dict[str, str] = {
    "sync": "sync",
    "sequential": "sync",
    "none": "sync",
    "thread": "threadpool",
    "threads": "threadpool",
    "threadpool": "threadpool",
    "async": "asyncio",
    "asyncio": "asyncio",
}


def resolve_backend(name: Optional[str], workers: int) -> str:
    """Map a backend name or alias to ``sync``, ``threadpool`` or ``asyncio``.

    ``auto`` picks the thread pool when more than one worker is requested.
    """

    chosen = (name or "auto").strip().lower()
    if chosen == "auto":
        return "threadpool" if workers > 1 else "sync"
    try:
        return _BACKEND_ALIASES[chosen]
    except KeyError:
        raise ValueError(f"Unknown batch backend '{name}'") from None


def _isolated(func: Callable[[S], R], on_error: ErrorHandler) -> Callable[[S], R]:
    def _call(item: S) -> R:
        try:
            return func(item)
        except Exception as exc:
            logger.exception("worker failed on %r", item)
            return on_error(item, exc)

    return _call


def run_sequential(
    func: Callable[[S], R], items: Sequence[S], *, on_error: ErrorHandler
) -> List[R]:
    call = _isolated(func, on_error)
    return [call(item) for item in items]


def run_threadpool(
    func: Callable[[S], R],
    items: Sequence[S],
    *,
    workers: int,
    on_error: ErrorHandler,
) -> List[R]:
    """Submit every item to a pool and collect results in submission order."""

    call = _isolated(func, on_error)
    with ThreadPoolExecutor(max_workers=max(1, workers), thread_name_prefix="mdx-kb") as pool:
        futures = [pool.submit(call, item) for item in items]
        return [future.result() for future in futures]


async def _gather_in_order(
    call: Callable[[S], R], items: Sequence[S], limit: int
) -> List[R]:
    semaphore = asyncio.Semaphore(limit)

    async def _one(item: S) -> R:
        async with semaphore:
            return await asyncio.to_thread(call, item)

    return list(await asyncio.gather(*(_one(item) for item in items)))


def run_asyncio(
    func: Callable[[S], R],
    items: Sequence[S],
    *,
    workers: Optional[int],
    on_error: ErrorHandler,
) -> List[R]:
    """Drive blocking workers from an event loop; at most *workers* at a time."""

    if not items:
        return []
    limit = workers if workers and workers > 0 else len(items)
    return asyncio.run(_gather_in_order(_isolated(func, on_error), items, limit))


def run_ordered(
    func: Callable[[S], R],
    items: Sequence[S],
    *,
    backend: Optional[str],
    workers: int,
    on_error: ErrorHandler,
) -> List[R]:
    """Run *func* over *items* on *backend*; one result per item, in order.

    An exception raised for one item is turned into a result by *on_error*
    and never stops the others.
    """

    resolved = resolve_backend(backend, workers)
    logger.debug("running %d item(s) on %s (workers=%d)", len(items), resolved, workers)
    if resolved == "threadpool":
        return run_threadpool(func, items, workers=workers or 4, on_error=on_error)
    if resolved == "asyncio":
        return run_asyncio(func, items, workers=workers or None, on_error=on_error)
    return run_sequential(func, items, on_error=on_error)


__all__ = [
    "resolve_backend",
    "run_asyncio",
    "run_ordered",
    "run_sequential",
    "run_threadpool",
]
