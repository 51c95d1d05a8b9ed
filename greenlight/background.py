"""
Tracking for fire-and-forget work launched by request handlers.

Handlers hand a callable to ``BackgroundTaskManager.run`` and return
immediately. The manager counts every task from the moment it is submitted
until it finishes, so the application lifespan can wait for outstanding work
before the process exits.
"""

from __future__ import annotations

import asyncio
import enum
import inspect
import logging
import threading
from typing import Any, Callable, Optional, Set

from greenlight.metrics import MetricsRecorder, default_metrics

logger = logging.getLogger(__name__)


class ManagerState(str, enum.Enum):
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


class ManagerStoppedError(RuntimeError):
    """Raised when work is submitted after shutdown has completed."""


class BackgroundTaskManager:
    def __init__(self, *, metrics: MetricsRecorder = default_metrics) -> None:
        self._metrics = metrics
        self._lock = threading.Lock()
        self._outstanding = 0
        self._state = ManagerState.RUNNING
        self._tasks: Set[asyncio.Task] = set()
        self._idle: Optional[asyncio.Event] = None

    @property
    def outstanding(self) -> int:
        with self._lock:
            return self._outstanding

    @property
    def state(self) -> ManagerState:
        return self._state

    @property
    def accepting(self) -> bool:
        return self._state is ManagerState.RUNNING

    def run(self, task: Callable[[], Any], *, name: Optional[str] = None) -> asyncio.Task:
        """
        Schedule ``task`` on the running event loop without waiting for it.

        Coroutine functions are awaited directly; plain callables run in a
        daemon thread. Must be called from inside the event loop.

        Raises:
            ManagerStoppedError: if ``shutdown`` has already finished.
        """
        label = name or getattr(task, "__name__", None) or repr(task)
        with self._lock:
            if self._state is ManagerState.STOPPED:
                raise ManagerStoppedError(f"background task {label!r} submitted after shutdown")
            self._outstanding += 1
        try:
            scheduled = asyncio.get_running_loop().create_task(self._execute(task, label), name=label)
        except BaseException:
            self._done()
            raise
        self._metrics.incr_task_launched()
        self._tasks.add(scheduled)
        scheduled.add_done_callback(self._tasks.discard)
        return scheduled

    async def _execute(self, task: Callable[[], Any], label: str) -> None:
        try:
            if inspect.iscoroutinefunction(task):
                await task()
            else:
                result = await self._run_in_daemon_thread(task, label)
                if inspect.isawaitable(result):
                    await result
        except Exception as exc:
            self._metrics.incr_task_failed()
            logger.exception(
                "background task=%s outcome=error error=%s",
                label,
                exc,
                extra={"task": label, "error": str(exc)},
            )
        finally:
            self._done()

    async def _run_in_daemon_thread(self, task: Callable[[], Any], label: str) -> Any:
        # Daemon threads do not hold up interpreter exit after a drain timeout.
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        def _resolve(result: Any, exc: Optional[BaseException]) -> None:
            if future.done():
                return
            if exc is not None:
                future.set_exception(exc)
            else:
                future.set_result(result)

        def _target() -> None:
            try:
                outcome: Any = task()
                error: Optional[BaseException] = None
            except BaseException as exc:
                outcome, error = None, exc
            try:
                loop.call_soon_threadsafe(_resolve, outcome, error)
            except RuntimeError:
                # Event loop already closed; nobody is waiting any more.
                logger.debug("background task=%s finished after loop shutdown", label)

        threading.Thread(target=_target, name=f"background:{label}", daemon=True).start()
        return await future

    def _done(self) -> None:
        with self._lock:
            self._outstanding -= 1
            idle = self._outstanding == 0
        if idle and self._idle is not None:
            self._idle.set()

    async def shutdown(self, deadline: float) -> bool:
        """
        Wait up to ``deadline`` seconds for outstanding tasks.

        Returns True when every task finished, False when the deadline passed
        first. Tasks still running at the deadline are left alone.
        """
        with self._lock:
            if self._state is ManagerState.RUNNING:
                self._state = ManagerState.DRAINING
            pending = self._outstanding
        logger.info("background drain started outstanding=%d deadline=%.1fs", pending, deadline)

        drained = True
        try:
            if self.outstanding > 0:
                self._idle = asyncio.Event()
                await asyncio.wait_for(self._idle.wait(), timeout=deadline)
        except asyncio.TimeoutError:
            drained = False
        finally:
            with self._lock:
                self._state = ManagerState.STOPPED

        if drained:
            logger.info("background drain completed")
        else:
            logger.warning(
                "background drain timed out outstanding=%d deadline=%.1fs",
                self.outstanding,
                deadline,
            )
        return drained
