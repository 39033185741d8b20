"""Run storage calls off the rendering path.

Every call gets its own short-lived `asyncio.Task`. Its outcome is handed to
``on_succeeded`` or ``on_failed`` from the task's done callback, which the
event loop runs on its own thread, the same one that renders the pages.
"""

import asyncio
import logging
import typing
from typing import Awaitable, Callable, Generic, TypeVar


logger = logging.getLogger(__name__)


T = TypeVar("T")


class AsyncJolt:
    """Give the loop a turn before and after the wrapped block."""

    async def __aenter__(self) -> None:
        await asyncio.sleep(0)

    async def __aexit__(self, *args: typing.Any, **kwargs: typing.Any) -> None:
        await asyncio.sleep(0)


class WorkerTimeout(Exception):
    pass


def _ignore(_: typing.Any) -> None:
    pass


class Worker(Generic[T]):
    def __init__(
        self,
        call: Callable[[], Awaitable[T]],
        *,
        name: str,
        on_succeeded: Callable[[T], None] = _ignore,
        on_failed: Callable[[BaseException], None] = _ignore,
    ) -> None:
        self.call = call
        self.name = name
        self.on_succeeded = on_succeeded
        self.on_failed = on_failed
        self.abandoned = False
        self.task: asyncio.Task[T] | None = None

    def __repr__(self) -> str:
        return f"<Worker(name={self.name}, abandoned={self.abandoned})>"

    def start(self) -> "Worker[T]":
        if self.task is not None:
            raise RuntimeError(f"Worker {self.name} was already started.")
        self.task = asyncio.get_running_loop().create_task(self._run(), name=self.name)
        self.task.add_done_callback(self._done)
        return self

    @property
    def done(self) -> bool:
        return self.task is not None and self.task.done()

    async def _run(self) -> T:
        async with AsyncJolt():
            return await self.call()

    def _done(self, task: "asyncio.Task[T]") -> None:
        if task.cancelled():
            return
        error = task.exception()
        if self.abandoned:
            logger.debug("Dropping the result of %s.", self.name)
            return
        if error is not None:
            logger.error("Worker %s failed.", self.name, exc_info=error)
            self.on_failed(error)
        else:
            self.on_succeeded(task.result())

    async def wait(self, timeout: float | None = None) -> bool:
        """Wait until the callbacks have run. ``False`` if the wait timed out.

        On timeout the worker is abandoned: ``on_failed`` gets a
        `WorkerTimeout` and the call keeps running, but its result is dropped.
        """
        if self.task is None:
            raise RuntimeError(f"Worker {self.name} was never started.")
        done, _ = await asyncio.wait({self.task}, timeout=timeout)
        if done:
            # done callbacks are scheduled before asyncio.wait wakes us up
            return True
        self.abandoned = True
        logger.warning("Worker %s timed out after %ss.", self.name, timeout)
        self.on_failed(WorkerTimeout(f"{self.name} did not finish within {timeout}s."))
        return False

    def abandon(self) -> None:
        """Drop the result when it arrives. The call itself runs to completion."""
        self.abandoned = True


def spawn(
    call: Callable[[], Awaitable[T]],
    *,
    name: str,
    on_succeeded: Callable[[T], None] = _ignore,
    on_failed: Callable[[BaseException], None] = _ignore,
) -> Worker[T]:
    return Worker(
        call, name=name, on_succeeded=on_succeeded, on_failed=on_failed
    ).start()
