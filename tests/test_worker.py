import asyncio

import pytest

from recipebox.worker import Worker, WorkerTimeout, spawn


class Outcome:
    def __init__(self) -> None:
        self.results: list[object] = []
        self.errors: list[BaseException] = []

    def succeeded(self, result: object) -> None:
        self.results.append(result)

    def failed(self, error: BaseException) -> None:
        self.errors.append(error)


@pytest.mark.asyncio
async def test_success_runs_callback() -> None:
    outcome = Outcome()

    async def call() -> int:
        return 42

    worker = spawn(call, name="answer", on_succeeded=outcome.succeeded, on_failed=outcome.failed)
    assert await worker.wait()
    assert worker.done
    assert outcome.results == [42]
    assert outcome.errors == []


@pytest.mark.asyncio
async def test_failure_runs_callback() -> None:
    outcome = Outcome()

    async def call() -> int:
        raise RuntimeError("kaputt")

    worker = spawn(call, name="broken", on_succeeded=outcome.succeeded, on_failed=outcome.failed)
    assert await worker.wait()
    assert outcome.results == []
    assert [str(e) for e in outcome.errors] == ["kaputt"]


@pytest.mark.asyncio
async def test_callbacks_run_on_the_loop_thread() -> None:
    seen: list[asyncio.AbstractEventLoop] = []
    loop = asyncio.get_running_loop()

    async def call() -> None:
        return None

    worker = spawn(call, name="thread", on_succeeded=lambda _: seen.append(asyncio.get_running_loop()))
    await worker.wait()
    assert seen == [loop]


@pytest.mark.asyncio
async def test_timeout_abandons_the_result() -> None:
    outcome = Outcome()
    release = asyncio.Event()
    finished = asyncio.Event()

    async def call() -> str:
        await release.wait()
        finished.set()
        return "late"

    worker = spawn(call, name="slow", on_succeeded=outcome.succeeded, on_failed=outcome.failed)
    assert not await worker.wait(timeout=0.01)
    assert worker.abandoned
    assert len(outcome.errors) == 1
    assert isinstance(outcome.errors[0], WorkerTimeout)

    # the call itself keeps running until it is done
    release.set()
    await finished.wait()
    assert worker.task is not None
    await asyncio.wait({worker.task})
    assert outcome.results == []
    assert len(outcome.errors) == 1


@pytest.mark.asyncio
async def test_abandon_drops_the_result() -> None:
    outcome = Outcome()

    async def call() -> str:
        return "ignored"

    worker = spawn(call, name="dropped", on_succeeded=outcome.succeeded)
    worker.abandon()
    assert await worker.wait()
    assert outcome.results == []


@pytest.mark.asyncio
async def test_start_twice() -> None:
    async def call() -> None:
        return None

    worker = Worker(call, name="once").start()
    with pytest.raises(RuntimeError):
        worker.start()
    await worker.wait()


@pytest.mark.asyncio
async def test_wait_before_start() -> None:
    async def call() -> None:
        return None

    with pytest.raises(RuntimeError):
        await Worker(call, name="idle").wait()
