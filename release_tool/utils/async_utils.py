# release_tool/utils/async_utils.py
"""Asynchronous operation utilities"""

import asyncio
import functools
from typing import Any, Callable, Coroutine, TypeVar

T = TypeVar('T')


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """
    Run async coroutine in sync context

    Args:
        coro: Coroutine to run

    Returns:
        Coroutine result
    """
    loop = None
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        # No running loop
        pass

    if loop and loop.is_running():
        # Already in async context, run on a fresh loop in a new thread
        import threading

        result = None
        exception = None

        def run_in_thread():
            nonlocal result, exception
            try:
                result = asyncio.run(coro)
            except BaseException as e:
                exception = e

        thread = threading.Thread(target=run_in_thread)
        thread.start()
        thread.join()

        if exception:
            raise exception
        return result
    else:
        return asyncio.run(coro)


async def run_blocking(func: Callable[..., T], *args, **kwargs) -> T:
    """
    Run a blocking callable in the default executor

    If the awaiting task is cancelled (e.g. on Ctrl-C) the cancellation is
    re-raised only after the worker thread has returned, so cleanup in the
    caller never races a thread still writing to disk.

    Args:
        func: Callable to run
        *args: Positional arguments
        **kwargs: Keyword arguments

    Returns:
        Callable result
    """
    loop = asyncio.get_running_loop()
    future = loop.run_in_executor(None, functools.partial(func, *args, **kwargs))
    try:
        return await asyncio.shield(future)
    except asyncio.CancelledError:
        # Threads cannot be interrupted
        await asyncio.wait({future})
        raise
