# src/eventgear/callbacks/execution.py
"""Failure-isolated execution of user-supplied callbacks.

User code (tracker checks/actions, alarm callbacks, response hooks) runs
through invoke_callback(), which turns any exception into a
CallbackExecutionError naming the callback. Call sites catch it, log it
and carry on with the next callback; user errors never stop the engine.

Callbacks may be coroutine functions. The returned awaitable is scheduled
rather than awaited, so the synchronous update pipeline never blocks on
user I/O:

- on ``loop`` when one is given (thread-safe submission),
- otherwise on the running event loop of the calling thread,
- otherwise it is run to completion with asyncio.run().

Failures of scheduled awaitables surface as AsyncCallbackError in the log.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import inspect
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from eventgear.contracts.errors import AsyncCallbackError, CallbackExecutionError

logger = structlog.get_logger(__name__)

# Strong references so scheduled tasks are not garbage collected mid-flight
_pending: set[asyncio.Future[Any] | concurrent.futures.Future[Any]] = set()


async def _await(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


def invoke_callback(
    name: str,
    fn: Callable[..., Any],
    *args: Any,
    loop: asyncio.AbstractEventLoop | None = None,
) -> Any:
    """Call ``fn(*args)`` and return its result.

    Args:
        name: Callback name used in errors and logs (registration id, alarm)
        fn: User callback
        *args: Positional arguments for ``fn``
        loop: Event loop that receives awaitables returned by ``fn``

    Returns:
        The callback's return value, or None when it returned an awaitable
        that was scheduled in the background.

    Raises:
        CallbackExecutionError: ``fn`` raised.
        AsyncCallbackError: ``fn`` returned an awaitable that failed while
            being run to completion (no event loop available).
    """
    try:
        result = fn(*args)
    except Exception as e:
        raise CallbackExecutionError(name, e) from e

    if not inspect.isawaitable(result):
        return result

    if loop is not None and not loop.is_closed():
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is not loop:
            future = asyncio.run_coroutine_threadsafe(_await(result), loop)
            _track(name, future)
            return None

    try:
        running_loop = asyncio.get_running_loop()
    except RuntimeError:
        running_loop = None

    if running_loop is not None:
        task = running_loop.create_task(_await(result))
        _track(name, task)
        return None

    try:
        asyncio.run(_await(result))
    except Exception as e:
        raise AsyncCallbackError(name, e) from e
    return None


def _track(name: str, future: asyncio.Future[Any] | concurrent.futures.Future[Any]) -> None:
    _pending.add(future)

    def _done(completed: asyncio.Future[Any] | concurrent.futures.Future[Any]) -> None:
        _pending.discard(completed)
        if completed.cancelled():
            return
        exc = completed.exception()
        if exc is not None:
            error = AsyncCallbackError(name, exc)
            logger.error(
                "Async callback failed",
                callback=name,
                error_type=type(exc).__name__,
                error=str(error),
            )

    future.add_done_callback(_done)


def call_isolated(
    name: str,
    fn: Callable[..., Any],
    *args: Any,
    loop: asyncio.AbstractEventLoop | None = None,
) -> bool:
    """Invoke a callback, logging instead of raising on failure.

    Returns:
        True if the callback completed (or was scheduled), False if it raised.
    """
    try:
        invoke_callback(name, fn, *args, loop=loop)
    except CallbackExecutionError as e:
        logger.warning(
            "Callback failed",
            callback=e.callback_name,
            error_type=type(e.original).__name__,
            error=str(e.original),
            is_async=isinstance(e, AsyncCallbackError),
        )
        return False
    return True


def pending_callbacks() -> int:
    """Number of scheduled async callbacks that have not completed."""
    return len(_pending)


def fit_arguments(fn: Callable[..., Any], args: tuple[Any, ...]) -> tuple[Any, ...]:
    """Longest prefix of ``args`` that ``fn`` accepts positionally.

    Lets response and alarm callbacks be written with fewer parameters
    than the engine offers: ``lambda: ...`` and ``lambda metadata: ...``
    are both valid alarm callbacks.
    """
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        # builtins without introspectable signatures get everything
        return args
    for count in range(len(args), -1, -1):
        try:
            signature.bind(*args[:count])
        except TypeError:
            continue
        return args[:count]
    return args
