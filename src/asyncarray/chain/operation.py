"""Operations: ordered chains of steps over an AsyncArray.

An Operation is built by appending steps (for_each, map, filter and their
serial variants), attaching completion callbacks to the most recent step
and finally calling execute().  Each step's output array is the next step's
input; the first failing step ends the chain.
"""
import asyncio
import threading
import logging
from typing import Any, Iterable, List, Optional
from asyncarray.array import AsyncArray
from asyncarray.chain.core import ChainError, CompletionCallback, Step, StepReport, Worker
from asyncarray.chain.registry import step_registry

logger = logging.getLogger(__name__)


class RunState:
    """Tracks a single execution of an Operation.

    Attributes:
        operation: The Operation being executed.
        index: Index of the step currently running.
        reports: One StepReport per step that has finished, in chain order.
        finished: True once the chain has ended, successfully or not.
        error: The error that ended the chain, if any.
        result: The output of the last step that ran.
    """

    def __init__(self, operation: 'Operation', callback: Optional[CompletionCallback] = None):
        self.operation = operation
        self.index = 0
        self.callback = callback
        self.reports: List[StepReport] = []
        self.finished = False
        self.error = None
        self.result = None
        # Set while a step's run() is on the stack; steps that finish inside
        # it leave their output in _queued for the loop in _drive().
        self._driving = False
        self._queued = None
        self._lock = threading.RLock()

    def add_report(self, report: StepReport):
        self.reports.append(report)

    def start(self, array: AsyncArray):
        with self._lock:
            self._driving = True
        self._drive(array)

    def advance(self, error: Any, result: AsyncArray):
        """Run the next step on ``result``, or end the chain."""
        if error is not None:
            self._end(error, result)
            return

        self.index += 1
        if self.index >= len(self.operation.steps):
            self._end(None, result)
            return

        logger.debug(f"Advancing to step {self.index} of {len(self.operation.steps)}")
        with self._lock:
            if self._driving:
                self._queued = result
                return
            self._driving = True
        self._drive(result)

    def _drive(self, array: AsyncArray):
        while True:
            self.operation.steps[self.index].run(self, array)
            with self._lock:
                if self._queued is None:
                    self._driving = False
                    return
                array, self._queued = self._queued, None

    def _end(self, error: Any, result: AsyncArray):
        self.finished = True
        self.error = error
        self.result = result
        if error is not None:
            logger.debug(f"Chain stopped at step {self.index}: {error!r}")
        else:
            logger.debug(f"Chain finished after {len(self.operation.steps)} steps")
        if self.callback is not None:
            self.callback(error, result)


class Operation:
    """An ordered list of steps bound to a source array.

    Examples:
        (Operation([1, 2, "three", 4])
            .filter(lambda item, i, done: done(None, not isinstance(item, str)))
            .map(lambda item, i, done: done(None, str(item)))
            .on_step_complete(lambda error, results: print(error, list(results)))
            .execute())
    """

    def __init__(self, array: Iterable[Any]):
        self.array = array if isinstance(array, AsyncArray) else AsyncArray(array)
        self.steps: List[Step] = []

    def last_step(self) -> Step:
        if not self.steps:
            raise ChainError("Cannot register a completion callback before any step has been added")
        return self.steps[-1]

    def add_step(self, kind: str, worker: Worker, serial: bool = False) -> 'Operation':
        """Append a step of a registered kind ('forEach', 'map', 'filter', ...)."""
        step_cls = step_registry.get(kind)
        self.steps.append(step_cls(worker, serial=serial))
        return self

    def on_step_complete(self, callback: CompletionCallback) -> 'Operation':
        """Call ``callback(error, result)`` when the most recently added step finishes."""
        self.last_step().add_callback(callback)
        return self

    def for_each(self, worker: Worker) -> 'Operation':
        return self.add_step("forEach", worker)

    def for_each_serial(self, worker: Worker) -> 'Operation':
        return self.add_step("forEach", worker, serial=True)

    def map(self, worker: Worker) -> 'Operation':
        return self.add_step("map", worker)

    def map_serial(self, worker: Worker) -> 'Operation':
        return self.add_step("map", worker, serial=True)

    def filter(self, worker: Worker) -> 'Operation':
        return self.add_step("filter", worker)

    def filter_serial(self, worker: Worker) -> 'Operation':
        return self.add_step("filter", worker, serial=True)

    def execute(self, callback: Optional[CompletionCallback] = None) -> RunState:
        """Start the chain and return its RunState without waiting for it.

        Every call runs the whole chain again with fresh state.  If given,
        ``callback(error, result)`` is called once when the chain ends, with
        the output of the last step or the error that stopped the chain.

        Raises:
            ChainError: If no step has been added.
        """
        if not self.steps:
            raise ChainError("Cannot execute an operation without steps")
        state = RunState(self, callback)
        logger.debug(f"Executing chain of {len(self.steps)} steps over {len(self.array)} elements")
        state.start(self.array)
        return state

    async def run(self) -> AsyncArray:
        """Execute the chain on the running event loop and wait for it to end.

        Returns:
            The output of the last step.

        Raises:
            The error that stopped the chain if it is an exception, otherwise
            a ChainError carrying the reported value on ``error``.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        def settle(error, result):
            if future.done():
                return
            if error is None:
                future.set_result(result)
            elif isinstance(error, BaseException):
                future.set_exception(error)
            else:
                future.set_exception(ChainError(f"Chain failed: {error!r}", error=error))

        # Workers may complete from other threads.
        self.execute(lambda error, result: loop.call_soon_threadsafe(settle, error, result))
        return await future

    done = on_step_complete
    exec = execute
    addStep = add_step
    onStepComplete = on_step_complete
    forEach = for_each
    forEachSerial = for_each_serial
    mapSerial = map_serial
    filterSerial = filter_serial
