import logging

from asyncarray.array import AsyncArray
from asyncarray.chain.core import ChainError, Step, MapStep, FilterStep, StepRunState, StepReport
from asyncarray.chain.operation import Operation, RunState
from asyncarray.chain.registry import register_step, step_registry
from asyncarray.chain.adapters import function_worker, coroutine_worker

logger = logging.getLogger(__name__)
