"""Ordered container used as the input and output of every chain step."""

from collections import UserList
from typing import Any, Callable, Iterable, Optional
import logging

logger = logging.getLogger(__name__)


class AsyncArray(UserList):
    """An ordered sequence with entry points for building asynchronous chains.

    The array is a plain value container: it supports len(), index access and
    append like a list.  The chain methods (for_each, map, filter and their
    serial variants) each start a new Operation over a snapshot of the
    current elements and return it, so further steps can be chained before
    calling execute().

    Examples:
        items = AsyncArray([1, 2, "three", 4])

        items.map(lambda item, i, done: done(None, str(item))) \\
             .on_step_complete(lambda error, results: print(results)) \\
             .execute()
    """

    def __init__(self, initial: Optional[Iterable[Any]] = None):
        super().__init__(initial if initial is not None else [])

    def _operation(self):
        from asyncarray.chain.operation import Operation
        return Operation(AsyncArray(self.data))

    def for_each(self, worker: Callable):
        """Start a chain with a parallel for-each step."""
        return self._operation().for_each(worker)

    def for_each_serial(self, worker: Callable):
        """Start a chain with a serial for-each step."""
        return self._operation().for_each_serial(worker)

    def map(self, worker: Callable):
        """Start a chain with a parallel map step."""
        return self._operation().map(worker)

    def map_serial(self, worker: Callable):
        """Start a chain with a serial map step."""
        return self._operation().map_serial(worker)

    def filter(self, worker: Callable):
        """Start a chain with a parallel filter step."""
        return self._operation().filter(worker)

    def filter_serial(self, worker: Callable):
        """Start a chain with a serial filter step."""
        return self._operation().filter_serial(worker)

    forEach = for_each
    forEachSerial = for_each_serial
    mapSerial = map_serial
    filterSerial = filter_serial
