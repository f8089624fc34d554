"""Core definitions for asynchronous chain steps

A step applies a caller supplied worker to every element of an input
AsyncArray.  Workers do not return their outcome; they are handed a
continuation and call it later as ``continuation(error, value)``.  A step
either dispatches every worker up front (parallel) or one element at a time
(serial), latches done on the first error or once every element has
completed, builds its result and hands control back to the RunState of the
chain.

Three step kinds are provided:

- Step: for-each, the result is the input array.
- MapStep: the result holds each worker's value at the element's index.
- FilterStep: the result holds the elements whose worker reported a truthy
  value, in input order.
"""
import logging
import threading
from typing import Any, Annotated, Callable, List, Optional
from pydantic import BaseModel, ConfigDict
from asyncarray.array import AsyncArray
from asyncarray.chain.registry import register_step

logger = logging.getLogger(__name__)

Worker = Callable[[Any, int, Callable[..., None]], None]
CompletionCallback = Callable[[Any, AsyncArray], None]


class ChainError(Exception):
    """Raised for misuse of an Operation and for failed runs awaited through Operation.run().

    Attributes:
        error: The value a worker reported, when the failure came from a worker.
    """

    def __init__(self, message: str, error: Any = None):
        super().__init__(message)
        self.error = error


class StepReport(BaseModel):
    """Summary of one finished step, collected on the RunState of a chain execution."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    index: int
    kind: str
    serial: bool
    completed: int
    total: int
    error: Any = None
    result_length: int = 0

    @property
    def succeeded(self) -> bool:
        return self.error is None


class StepRunState:
    """Bookkeeping for one execution of one step.

    Continuations may race to update the same state when workers complete
    from other threads, so every read-modify-write of count, done and result
    happens while holding ``lock``.
    """

    def __init__(self, step: 'Step', run_state, array: AsyncArray, result: Optional[List[Any]] = None):
        self.step = step
        self.run_state = run_state
        self.array = array
        self.result = result if result is not None else array
        self.count = 0
        self.done = False
        self.serial_continuation = None
        # Serial mode: a worker call is on the stack, and whether its
        # continuation already fired so the dispatch loop should continue.
        self.dispatching = False
        self.resume = False
        self.lock = threading.RLock()


@register_step("forEach", "for_each")
class Step:
    """A for-each step, and the base of every other step kind.

    Subclasses customize two hooks: ``record`` stores one successful
    per-element completion and ``finish`` turns the accumulated result into
    the step's output before the completion callbacks run.

    Attributes:
        worker: Called as ``worker(element, index, continuation)`` for each element.
        serial: If True, elements are processed one at a time in index order.
        callbacks: Completion callbacks, called as ``callback(error, result)``.
    """

    kind = "forEach"

    def __init__(self,
                 worker: Annotated[Worker, "Per-element worker; must call its continuation exactly once"],
                 serial: Annotated[bool, "If True, wait for each element before starting the next"] = False):
        if not callable(worker):
            raise TypeError(f"Worker for a {self.kind} step must be callable, got {type(worker).__name__}")
        self.worker = worker
        self.serial = serial
        self.callbacks: List[CompletionCallback] = []

    def add_callback(self, callback: CompletionCallback):
        self.callbacks.append(callback)

    def create_state(self, run_state, array: AsyncArray) -> StepRunState:
        return StepRunState(self, run_state, array)

    def record(self, state: StepRunState, index: int, value: Any):
        """Store a successful completion.  The for-each step keeps nothing."""

    def run(self, run_state, array: AsyncArray) -> StepRunState:
        """Start the step over ``array``.

        Returns as soon as the workers have been dispatched (all of them in
        parallel mode, the first one in serial mode).  The outcome is delivered
        through the completion callbacks and the run state.
        """
        state = self.create_state(run_state, array)
        logger.debug(f"Running {self.kind} step {run_state.index} over {len(array)} elements"
                     f"{' serially' if self.serial else ''}")

        if len(array) == 0:
            with state.lock:
                state.done = True
            self.finish(None, state)
            return state

        if self.serial:
            def continuation(error=None, value=None):
                self.next(state, state.count, error, value)

            state.serial_continuation = continuation
            with state.lock:
                state.dispatching = True
            self._dispatch_serial(state, 0)
            return state

        for i, item in enumerate(list(array)):
            self.worker(item, i, self._continuation(state, i))
        return state

    def _continuation(self, state: StepRunState, index: int):
        def continuation(error=None, value=None):
            self.next(state, index, error, value)
        return continuation

    def next(self, state: StepRunState, index: int, error: Any = None, value: Any = None):
        """Handle one per-element completion."""
        with state.lock:
            if state.done:
                logger.debug(f"Ignoring completion of element {index} after {self.kind} step latched done")
                return

            if error is not None:
                state.done = True
                logger.debug(f"Element {index} of {self.kind} step failed: {error!r}")
            else:
                self.record(state, index, value)
                state.count += 1
                if state.count >= len(state.array):
                    state.done = True
                elif not self.serial:
                    return
                elif state.dispatching:
                    # Completed before the worker returned; the dispatch loop moves on.
                    state.resume = True
                    return
                else:
                    state.dispatching = True

        if state.done:
            self.finish(error, state)
        else:
            self._dispatch_serial(state, state.count)

    def _dispatch_serial(self, state: StepRunState, index: int):
        """Invoke the worker for ``index`` and for every later element whose
        predecessor completed synchronously, without growing the stack."""
        while True:
            self.worker(state.array[index], index, state.serial_continuation)
            with state.lock:
                if not state.resume:
                    state.dispatching = False
                    return
                state.resume = False
                index = state.count

    def finish(self, error: Any, state: StepRunState):
        """Publish the result to the completion callbacks and advance the chain."""
        state.result = AsyncArray(state.result)
        run_state = state.run_state
        run_state.add_report(StepReport(
            index=run_state.index,
            kind=self.kind,
            serial=self.serial,
            completed=state.count,
            total=len(state.array),
            error=error,
            result_length=len(state.result),
        ))
        logger.debug(f"{self.kind} step {run_state.index} done "
                     f"({'failed' if error is not None else 'ok'}, {state.count}/{len(state.array)} completed)")

        for callback in list(self.callbacks):
            callback(error, state.result)

        run_state.advance(error, state.result)


@register_step("map")
class MapStep(Step):
    """A step whose result holds the value each worker reported, at the element's index."""

    kind = "map"

    def create_state(self, run_state, array: AsyncArray) -> StepRunState:
        return StepRunState(self, run_state, array, [None] * len(array))

    def record(self, state: StepRunState, index: int, value: Any):
        state.result[index] = value


@register_step("filter")
class FilterStep(Step):
    """A step that keeps the elements whose worker reported a truthy value.

    While running, the result holds the indices of kept elements.  They are
    mapped back to elements when the step succeeds; parallel completions can
    arrive in any order, so the indices are sorted first.
    """

    kind = "filter"

    def create_state(self, run_state, array: AsyncArray) -> StepRunState:
        return StepRunState(self, run_state, array, [])

    def record(self, state: StepRunState, index: int, value: Any):
        if value:
            state.result.append(index)

    def finish(self, error: Any, state: StepRunState):
        if error is None:
            indices = state.result if self.serial else sorted(state.result)
            state.result = [state.array[i] for i in indices]
        super().finish(error, state)
