import asyncio
import inspect
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

Callback = Callable[[], Awaitable[None] | None]


class PeriodicTask:
    """Cancellable handle for a callback run every ``interval_seconds``."""

    def __init__(self, name: str, interval_seconds: float, callback: Callback, run_immediately: bool = False):
        self.name = name
        self.interval_seconds = max(interval_seconds, 0.01)
        self.callback = callback
        self.run_immediately = run_immediately
        self._task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        logger.info("Starting periodic task %s every %s seconds", self.name, self.interval_seconds)
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run(), name=self.name)

    async def stop(self) -> None:
        if not self._task:
            return
        self._stop_event.set()
        await self._task
        self._task = None
        logger.info("Stopped periodic task %s", self.name)

    async def _run(self) -> None:
        if self.run_immediately:
            await self._tick()
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                await self._tick()

    async def _tick(self) -> None:
        try:
            result = self.callback()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Periodic task %s failed", self.name)


class Scheduler:
    """Owns a set of periodic tasks and stops them as a unit."""

    def __init__(self):
        self._tasks: dict[str, PeriodicTask] = {}

    def every(self, name: str, interval_seconds: float, callback: Callback, run_immediately: bool = False) -> PeriodicTask:
        if name in self._tasks and self._tasks[name].running:
            raise ValueError(f"Periodic task {name!r} is already running")
        task = PeriodicTask(name, interval_seconds, callback, run_immediately=run_immediately)
        self._tasks[name] = task
        task.start()
        return task

    def get(self, name: str) -> PeriodicTask | None:
        return self._tasks.get(name)

    @property
    def active(self) -> list[str]:
        return [name for name, task in self._tasks.items() if task.running]

    async def stop_all(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            await task.stop()
