import pytest
from unittest.mock import Mock
from asyncarray import AsyncArray, Operation
from asyncarray.chain.core import Step, MapStep, FilterStep
from testutils import Completions, completions


def test_behaves_like_a_list():
    items = AsyncArray([1, 2, "three"])
    items.append(4)

    assert len(items) == 4
    assert items[2] == "three"
    assert list(items) == [1, 2, "three", 4]
    assert isinstance(items[1:], AsyncArray)


def test_empty_by_default():
    assert len(AsyncArray()) == 0


def test_copies_its_base_elements():
    base = [1, 2]
    items = AsyncArray(base)
    base.append(3)
    assert list(items) == [1, 2]


@pytest.mark.parametrize("method,step_cls,serial", [
    ("for_each", Step, False),
    ("for_each_serial", Step, True),
    ("map", MapStep, False),
    ("map_serial", MapStep, True),
    ("filter", FilterStep, False),
    ("filter_serial", FilterStep, True),
    ("forEach", Step, False),
    ("forEachSerial", Step, True),
    ("mapSerial", MapStep, True),
    ("filterSerial", FilterStep, True),
])
def test_entry_points_start_an_operation(method, step_cls, serial):
    worker = Mock()
    op = getattr(AsyncArray([1, 2]), method)(worker)

    assert isinstance(op, Operation)
    assert len(op.steps) == 1
    assert type(op.steps[0]) is step_cls
    assert op.steps[0].serial is serial
    assert op.steps[0].worker is worker


def test_operation_works_on_a_snapshot(completions):
    items = AsyncArray([1, 2])
    op = items.map(lambda item, i, done: done(None, item * 10)).on_step_complete(completions)
    items.append(3)

    op.execute()
    assert completions.calls == [(None, [10, 20])]


def test_each_entry_call_builds_a_new_operation():
    items = AsyncArray([1])
    assert items.map(Mock()) is not items.map(Mock())
