import asyncio
import pytest
from asyncarray.array import AsyncArray
from asyncarray.chain.adapters import coroutine_worker, function_worker
from asyncarray.chain.core import ChainError
from asyncarray.chain.operation import Operation
from testutils import Completions, completions

ITEMS = [1, 2, "three", 4]


def test_function_worker_reports_return_value(completions):
    Operation(ITEMS).map(function_worker(lambda item, i: f"{item}:{i}")) \
        .on_step_complete(completions).execute()

    assert completions.calls == [(None, ["1:0", "2:1", "three:2", "4:3"])]


def test_function_worker_reports_exceptions(completions):
    def upper(item, i):
        return item.upper()

    Operation(ITEMS).map(function_worker(upper)).on_step_complete(completions).execute()

    assert completions.count == 1
    assert isinstance(completions.error, AttributeError)


def test_coroutine_worker_requires_async_function():
    with pytest.raises(TypeError):
        coroutine_worker(lambda item, i: item)


def test_parallel_map_with_reversed_delays():
    @coroutine_worker
    async def slow_label(item, i):
        await asyncio.sleep(0.01 * (len(ITEMS) - i))
        return f"did {i}"

    results = asyncio.run(AsyncArray(ITEMS).map(slow_label).run())

    assert isinstance(results, AsyncArray)
    assert list(results) == ["did 0", "did 1", "did 2", "did 3"]


def test_parallel_steps_start_every_worker_before_any_finishes():
    in_flight = 0
    peak = 0

    @coroutine_worker
    async def track(item, i):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1

    asyncio.run(AsyncArray(ITEMS).for_each(track).run())
    assert peak == len(ITEMS)


def test_serial_steps_run_one_worker_at_a_time():
    in_flight = 0
    peak = 0
    visited = []

    @coroutine_worker
    async def keep_numbers(item, i):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        visited.append(item)
        await asyncio.sleep(0.001)
        in_flight -= 1
        return not isinstance(item, str)

    results = asyncio.run(AsyncArray(ITEMS).filter_serial(keep_numbers).run())

    assert peak == 1
    assert visited == ITEMS
    assert list(results) == [1, 2, 4]


def test_chained_coroutine_steps():
    @coroutine_worker
    async def keep_numbers(item, i):
        await asyncio.sleep(0.001 * (4 - i))
        return not isinstance(item, str)

    @coroutine_worker
    async def stringify(item, i):
        return str(item)

    results = asyncio.run(AsyncArray(ITEMS).filter(keep_numbers).map(stringify).run())
    assert list(results) == ["1", "2", "4"]


def test_run_raises_worker_exception():
    @coroutine_worker
    async def reject_strings(item, i):
        if isinstance(item, str):
            raise ValueError(f"cannot handle {item!r}")
        return item

    later = Completions()

    async def main():
        op = AsyncArray(ITEMS).map(reject_strings).for_each(function_worker(lambda item, i: None))
        op.on_step_complete(later)
        await op.run()

    with pytest.raises(ValueError, match="three"):
        asyncio.run(main())
    assert later.count == 0


def test_run_wraps_non_exception_errors():
    async def main():
        op = Operation(ITEMS).for_each(lambda item, i, done: done("nope" if i == 1 else None))
        await op.run()

    with pytest.raises(ChainError) as excinfo:
        asyncio.run(main())
    assert excinfo.value.error == "nope"


def test_run_accepts_completions_from_threads():
    async def main():
        loop = asyncio.get_running_loop()

        def worker(item, i, done):
            loop.run_in_executor(None, lambda: done(None, i * 2))

        return await Operation(range(6)).map(worker).run()

    assert list(asyncio.run(main())) == [0, 2, 4, 6, 8, 10]


def test_run_can_be_repeated():
    @coroutine_worker
    async def double(item, i):
        await asyncio.sleep(0)
        return item * 2

    op = AsyncArray([1, 2, 3]).map(double)

    async def main():
        return await asyncio.gather(op.run(), op.run())

    first, second = asyncio.run(main())
    assert list(first) == list(second) == [2, 4, 6]
