"""
Cooperative task scheduling on a virtual clock.

Tasks are generators that suspend by yielding a wait instruction:

    def intro():
        chat.post("Hello?")
        yield WaitSeconds(1.0)
        choice = yield WaitForSignal(signal)
        ...

    scheduler.start(intro())
    scheduler.update(dt)   # called once per frame by the game loop

Everything runs on the caller's thread. The clock only moves inside
update(), so tests can drive time deterministically.
"""

from __future__ import annotations

import heapq
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Generator, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WaitSeconds:
    """Suspend the yielding task for a duration on the scheduler clock."""
    duration: float


@dataclass(frozen=True)
class WaitForSignal:
    """Suspend the yielding task until the signal fires.

    The value passed to Signal.fire() becomes the result of the yield.
    """
    signal: Signal


TaskGenerator = Generator[Any, Any, None]


class Signal:
    """
    One-shot wake-up for a suspended task.

    The first fire() wins; later calls return False and change nothing.
    """

    def __init__(self):
        self._fired = False
        self._value: Any = None
        self._waiter: Optional[Task] = None

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def value(self) -> Any:
        return self._value

    def fire(self, value: Any = None) -> bool:
        """Fire the signal, resuming the waiting task immediately."""
        if self._fired:
            return False

        self._fired = True
        self._value = value

        waiter = self._waiter
        self._waiter = None
        if waiter is not None and waiter.alive:
            waiter._step(value)
        return True

    def _attach(self, task: Task) -> None:
        self._waiter = task

    def _detach(self, task: Task) -> None:
        if self._waiter is task:
            self._waiter = None


class TimerHandle:
    """Handle for a callback scheduled with TaskScheduler.call_later()."""

    def __init__(self, due: float, callback: Callable[..., Any], args: tuple):
        self.due = due
        self._callback = callback
        self._args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def _run(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        try:
            self._callback(*self._args)
        except Exception:
            logger.exception(f"Error in scheduled callback {self._callback!r}")


class Task:
    """
    A generator driven by the scheduler.

    A task is alive until its generator returns, raises, or the task is
    cancelled. Exceptions raised by the generator are logged and end the
    task; they never propagate into the scheduler or the caller that
    resumed it.
    """

    def __init__(self, scheduler: TaskScheduler, generator: TaskGenerator, name: str = ""):
        self.name = name or getattr(generator, "__name__", "task")
        self._scheduler = scheduler
        self._gen = generator
        self._running = False
        self._timer: Optional[TimerHandle] = None
        self._signal: Optional[Signal] = None
        self.cancelled = False
        self.finished = False

    @property
    def alive(self) -> bool:
        return not (self.cancelled or self.finished)

    @property
    def waiting_on(self) -> Optional[Signal]:
        """Signal the task is suspended on, if any."""
        return self._signal

    def cancel(self) -> None:
        """
        Stop the task.

        If called from inside the task itself the generator is closed at
        its next suspension point instead.
        """
        if not self.alive:
            return

        self.cancelled = True
        self._clear_wait()
        if not self._running:
            self._gen.close()
        logger.debug(f"Task {self.name} cancelled")

    def _clear_wait(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._signal is not None:
            self._signal._detach(self)
            self._signal = None

    def _step(self, value: Any = None) -> None:
        """Resume the generator until its next suspension."""
        if not self.alive:
            return

        self._timer = None
        self._signal = None
        self._running = True
        try:
            instruction = self._gen.send(value)
        except StopIteration:
            self.finished = True
            return
        except Exception:
            logger.exception(f"Task {self.name} crashed")
            self.finished = True
            return
        finally:
            self._running = False

        if self.cancelled:
            self._gen.close()
            return

        self._suspend(instruction)

    def _suspend(self, instruction: Any) -> None:
        if isinstance(instruction, WaitSeconds):
            self._timer = self._scheduler.call_later(instruction.duration, self._step)
        elif isinstance(instruction, WaitForSignal):
            signal = instruction.signal
            if signal.fired:
                self._step(signal.value)
            else:
                self._signal = signal
                signal._attach(self)
        else:
            # Bare yield: resume on the next update
            self._timer = self._scheduler.call_later(0.0, self._step)


class TaskScheduler:
    """
    Discrete-event clock that drives tasks and delayed callbacks.

    update(dt) advances the clock, firing everything due within the step
    in time order. Work scheduled while processing a step runs in the same
    step if it falls due before the step's end time.
    """

    def __init__(self):
        self._now = 0.0
        self._queue: list[tuple[float, int, TimerHandle]] = []
        self._counter = itertools.count()
        self._tasks: list[Task] = []

    @property
    def now(self) -> float:
        """Current scheduler time in seconds."""
        return self._now

    @property
    def pending(self) -> int:
        """Number of scheduled callbacks not yet fired or cancelled."""
        return sum(1 for _, _, handle in self._queue if not handle.cancelled)

    @property
    def tasks(self) -> list[Task]:
        """Live tasks."""
        self._tasks = [t for t in self._tasks if t.alive]
        return list(self._tasks)

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        """Run callback(*args) once `delay` seconds from now."""
        due = self._now + max(0.0, delay)
        handle = TimerHandle(due, callback, args)
        heapq.heappush(self._queue, (due, next(self._counter), handle))
        return handle

    def start(self, generator: TaskGenerator, name: str = "") -> Task:
        """
        Start a task.

        The generator runs synchronously up to its first suspension
        before start() returns.
        """
        task = Task(self, generator, name)
        self._tasks.append(task)
        task._step()
        return task

    def update(self, dt: float) -> None:
        """Advance the clock by dt seconds."""
        end = self._now + max(0.0, dt)

        while self._queue and self._queue[0][0] <= end:
            due, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = max(self._now, due)
            handle._run()

        self._now = end

    def cancel_all(self) -> None:
        """Cancel every task and scheduled callback."""
        for task in list(self._tasks):
            task.cancel()
        for _, _, handle in self._queue:
            handle.cancel()
        self._queue.clear()
        self._tasks.clear()
