"""
Cooperative scheduling

The scene walk is a generator that yields after every fully processed node.
``budgeted`` wraps it so control only returns to the caller once the current
quantum's time budget is spent, which lets a real-time host spread a large
export over several frames:

    steps = export.iter_add_scene(roots)
    try:
        while True:
            next(steps)          # one quantum of work, then back to the frame loop
    except StopIteration as done:
        ok = done.value
"""

import asyncio
import logging
import time
from typing import Callable, Generator, Optional, TypeVar

from .errors import ExportCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")
Steps = Generator[None, None, T]


class CancellationToken:
    """Advisory cancellation flag checked at yield points and before I/O"""

    def __init__(self):
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self):
        if self._cancelled:
            raise ExportCancelledError()


class DeferAgent:
    """Decides whether the current quantum is spent"""

    def begin_quantum(self):
        pass

    def should_defer(self) -> bool:
        return False


class UninterruptedDeferAgent(DeferAgent):
    """Never defers: the walk runs in one go"""


class TimeBudgetDeferAgent(DeferAgent):
    """Defers once more than ``budget`` seconds elapsed since the quantum began"""

    def __init__(self, budget: float, clock: Callable[[], float] = time.perf_counter):
        if budget < 0:
            raise ValueError("Time budget must be >= 0")
        self.budget = budget
        self.clock = clock
        self._started = clock()

    def begin_quantum(self):
        self._started = self.clock()

    def should_defer(self) -> bool:
        return self.clock() - self._started > self.budget


def defer_agent_for(time_budget: Optional[float]) -> DeferAgent:
    if time_budget is None:
        return UninterruptedDeferAgent()
    return TimeBudgetDeferAgent(time_budget)


def budgeted(steps: Steps, agent: DeferAgent,
             token: Optional[CancellationToken] = None) -> Steps:
    """Re-yield ``steps`` only at quantum boundaries, checking cancellation per step"""
    agent.begin_quantum()
    quanta = 1
    while True:
        if token is not None:
            token.raise_if_cancelled()
        try:
            next(steps)
        except StopIteration as done:
            logger.debug("Walk finished in %d quanta", quanta)
            return done.value
        if agent.should_defer():
            yield
            quanta += 1
            agent.begin_quantum()


def run_to_completion(steps: Steps) -> T:
    """Drive a step generator synchronously, ignoring suspension points"""
    while True:
        try:
            next(steps)
        except StopIteration as done:
            return done.value


async def run_async(steps: Steps) -> T:
    """Drive a step generator, handing control to the event loop at each suspension"""
    while True:
        try:
            next(steps)
        except StopIteration as done:
            return done.value
        await asyncio.sleep(0)
