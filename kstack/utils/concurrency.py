"""Unbounded bulk task execution on top of asyncio.

:class:`TaskExecutor` runs arbitrarily many units of work concurrently
(no pool bound, no queueing) and offers three ways to collect them:

1. **run_all_and_wait / run_all_with_deadline** -- fan out, then wait for
   every task, or for as many as finish before a deadline (the rest are
   cancelled).
2. **run_any_and_wait / run_any_with_deadline** -- fan out, return the
   first successful result and cancel the losers.
3. **submit** -- fire-and-forget; the returned task can be awaited later.

A unit of work is a zero-argument callable returning an awaitable, so the
coroutine is only created once the executor accepts the work.

Lifecycle mirrors a classic executor service: :meth:`shutdown` stops
accepting work and lets in-flight tasks finish, :meth:`shutdown_now` also
cancels them, and :meth:`await_termination` waits for tracked tasks.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Iterable, TypeVar

import structlog

from kstack.utils.errors import KstackError, RejectedSubmissionError, TaskTimeoutError
from kstack.utils.logging import get_logger

_T = TypeVar("_T")

TaskFactory = Callable[[], Awaitable[_T]]

_logger: structlog.BoundLogger = get_logger(__name__)

# Upper bound on waiting for cancelled tasks to unwind.
_DRAIN_TIMEOUT = 5.0


class TaskExecutor:
    """Spawns an unbounded number of asyncio tasks and tracks them.

    Parameters
    ----------
    logger:
        Optional structured logger; defaults to the module logger.
    drain_timeout:
        Seconds to wait for cancelled tasks to finish their cleanup.
    """

    def __init__(
        self,
        logger: structlog.BoundLogger | None = None,
        drain_timeout: float = _DRAIN_TIMEOUT,
    ) -> None:
        self._logger = logger or _logger
        self._drain_timeout = drain_timeout
        self._closing = False
        self._closed = False
        # Pending tasks; each removes itself once complete.
        self._tasks: set[asyncio.Task[Any]] = set()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_shutdown(self) -> bool:
        return self._closing

    @property
    def is_terminated(self) -> bool:
        return self._closed

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    def _check_open(self) -> None:
        if self._closing:
            raise RejectedSubmissionError()

    def _spawn(self, factory: TaskFactory[_T]) -> asyncio.Task[_T]:
        task: asyncio.Task[_T] = asyncio.ensure_future(factory())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _spawn_all(self, factories: Iterable[TaskFactory[_T]]) -> list[asyncio.Task[_T]]:
        """Start every factory; a factory raising cancels the tasks already started."""
        tasks: list[asyncio.Task[_T]] = []
        try:
            for factory in factories:
                tasks.append(self._spawn(factory))
        except BaseException:
            _cancel_pending(tasks)
            raise
        return tasks

    async def _drain(self, tasks: list[asyncio.Task[Any]]) -> None:
        """Let cancelled tasks run their cleanup, for at most the drain timeout."""
        unfinished = {t for t in tasks if not t.done()}
        if not unfinished:
            return
        _, still_running = await asyncio.wait(unfinished, timeout=self._drain_timeout)
        if still_running:
            self._logger.warning("executor_drain_timeout", still_running=len(still_running))

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(self, factory: TaskFactory[_T]) -> asyncio.Task[_T]:
        """Start *factory* immediately and return its task.

        Must be called from inside a running event loop.
        """
        self._check_open()
        return self._spawn(factory)

    async def run_all_and_wait(
        self, factories: Iterable[TaskFactory[_T]]
    ) -> list[_T | BaseException]:
        """Run every task and wait for all of them.

        Results come back in submission order; a task that raised is
        represented by its exception instance, mirroring
        ``asyncio.gather(..., return_exceptions=True)``.
        """
        self._check_open()
        tasks = self._spawn_all(factories)
        try:
            return await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            _cancel_pending(tasks)

    async def run_all_with_deadline(
        self, factories: Iterable[TaskFactory[_T]], timeout: float
    ) -> list[_T]:
        """Run every task for at most *timeout* seconds.

        Tasks still running at the deadline are cancelled.  Returns the
        results of the tasks that completed successfully, in submission
        order.
        """
        self._check_open()
        tasks = self._spawn_all(factories)
        if not tasks:
            return []
        try:
            done, pending = await asyncio.wait(tasks, timeout=timeout)
        finally:
            _cancel_pending(tasks)
        await self._drain(tasks)

        if pending:
            self._logger.info(
                "executor_deadline_cancelled",
                cancelled=len(pending),
                completed=len(done),
                timeout=timeout,
            )
        return [t.result() for t in tasks if t in done and _succeeded(t)]

    async def run_any_and_wait(self, factories: Iterable[TaskFactory[_T]]) -> _T:
        """Return the first successful result and cancel the other tasks.

        If every task fails, the first failure observed is re-raised.
        """
        return await self._run_any(factories, timeout=None)

    async def run_any_with_deadline(
        self, factories: Iterable[TaskFactory[_T]], timeout: float
    ) -> _T:
        """Like :meth:`run_any_and_wait` but give up after *timeout* seconds.

        Raises
        ------
        TaskTimeoutError
            If no task succeeded before the deadline.
        """
        return await self._run_any(factories, timeout=timeout)

    async def _run_any(
        self, factories: Iterable[TaskFactory[_T]], timeout: float | None
    ) -> _T:
        self._check_open()
        tasks = self._spawn_all(factories)
        if not tasks:
            raise ValueError("run_any requires at least one task")

        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        pending: set[asyncio.Task[_T]] = set(tasks)
        first_error: BaseException | None = None

        try:
            while pending:
                remaining = None if deadline is None else max(0.0, deadline - loop.time())
                done, pending = await asyncio.wait(
                    pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
                )
                if not done:
                    raise TaskTimeoutError(timeout or 0.0)
                # Submission order decides between tasks finishing together.
                for task in sorted(done, key=tasks.index):
                    if _succeeded(task):
                        return task.result()
                    if first_error is None and not task.cancelled():
                        first_error = task.exception()
        finally:
            _cancel_pending(tasks)
            await self._drain(tasks)

        if first_error is None:
            raise KstackError("Every task was cancelled before finishing", source="executor")
        raise first_error

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def shutdown(self) -> None:
        """Stop accepting new work; in-flight tasks keep running."""
        self._closing = True

    def shutdown_now(self) -> list[asyncio.Task[Any]]:
        """Stop accepting work and cancel every in-flight task.

        Returns the tasks that were cancelled.
        """
        self._closing = True
        cancelled = [t for t in list(self._tasks) if not t.done()]
        for task in cancelled:
            task.cancel()
        if cancelled:
            self._logger.info("executor_shutdown_now", cancelled=len(cancelled))
        return cancelled

    async def await_termination(self, timeout: float) -> bool:
        """Wait up to *timeout* seconds for tracked tasks to finish.

        Returns ``True`` when nothing is left running.
        """
        pending = set(self._tasks)
        if pending:
            _, still_running = await asyncio.wait(pending, timeout=timeout)
            if still_running:
                return False
        if self._closing:
            self._closed = True
        return True

    async def close(self) -> None:
        """Graceful shutdown: refuse new work and wait for everything."""
        self.shutdown()
        pending = list(self._tasks)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._closed = True


def _succeeded(task: asyncio.Task[Any]) -> bool:
    return task.done() and not task.cancelled() and task.exception() is None


def _cancel_pending(tasks: Iterable[asyncio.Task[Any]]) -> None:
    for task in tasks:
        if not task.done():
            task.cancel()
