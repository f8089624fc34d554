"""Adapters that turn ordinary functions into continuation-style workers.

    @coroutine_worker
    async def fetch(url, index):
        ...

    results = await AsyncArray(urls).map(fetch).run()
"""
import asyncio
import functools
import inspect
import logging
from typing import Any, Awaitable, Callable, Set
from asyncarray.chain.core import Worker

logger = logging.getLogger(__name__)

# The event loop only keeps weak references to tasks.
_pending_tasks: Set[asyncio.Task] = set()


def function_worker(fn: Callable[[Any, int], Any]) -> Worker:
    """Wrap a synchronous ``fn(element, index)`` as a worker.

    The return value is reported as the element's result and an exception
    raised by ``fn`` is reported as the element's error.  The continuation is
    called before the worker returns.
    """
    @functools.wraps(fn)
    def worker(item, index, done):
        try:
            value = fn(item, index)
        except Exception as e:
            logger.debug(f"{fn.__name__} failed on element {index}: {e!r}")
            done(e)
            return
        done(None, value)
    return worker


def coroutine_worker(fn: Callable[[Any, int], Awaitable[Any]]) -> Worker:
    """Wrap ``async def fn(element, index)`` as a worker.

    Each call schedules ``fn`` as a task on the running event loop and
    reports the task's outcome through the continuation when it finishes.
    A cancelled task is reported as a CancelledError.  The chain must be
    executed from inside a running loop, e.g. through Operation.run().
    """
    if not inspect.iscoroutinefunction(fn):
        raise TypeError(f"coroutine_worker expects an async function, got {fn!r}")

    @functools.wraps(fn)
    def worker(item, index, done):
        task = asyncio.get_running_loop().create_task(fn(item, index))
        _pending_tasks.add(task)

        def report(finished: asyncio.Task):
            _pending_tasks.discard(finished)
            if finished.cancelled():
                done(asyncio.CancelledError())
                return
            error = finished.exception()
            if error is not None:
                done(error)
            else:
                done(None, finished.result())

        task.add_done_callback(report)
    return worker
