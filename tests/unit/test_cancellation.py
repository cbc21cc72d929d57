# pylint: disable=missing-module-docstring,missing-function-docstring
import asyncio

from orchestrator.cancellation import CancellationContext
from orchestrator.generation import PublishGeneration


def test_generation_is_monotonic():
    counter = PublishGeneration()
    assert counter.value == 0
    assert counter.advance() == 1
    assert counter.advance() == 2
    assert counter.is_current(2)
    assert not counter.is_current(1)


def test_superseded_context_is_not_current():
    async def scenario() -> tuple[bool, bool]:
        counter = PublishGeneration()
        ctx = CancellationContext(generation=counter.advance(), counter=counter)
        before = ctx.is_current()
        counter.advance()
        return before, ctx.is_current()

    before, after = asyncio.run(scenario())

    assert before
    assert not after


def test_cancel_runs_callbacks_once():
    calls: list[str] = []

    async def scenario() -> None:
        counter = PublishGeneration()
        ctx = CancellationContext(generation=counter.advance(), counter=counter)
        ctx.add_callback(lambda: calls.append("a"))
        removed = lambda: calls.append("removed")  # noqa: E731
        ctx.add_callback(removed)
        ctx.remove_callback(removed)
        ctx.cancel()
        ctx.cancel()
        ctx.add_callback(lambda: calls.append("late"))

    asyncio.run(scenario())

    assert calls == ["a", "late"]


def test_failing_callback_does_not_block_others():
    calls: list[str] = []

    def boom() -> None:
        raise RuntimeError("boom")

    async def scenario() -> None:
        counter = PublishGeneration()
        ctx = CancellationContext(generation=counter.advance(), counter=counter)
        ctx.add_callback(boom)
        ctx.add_callback(lambda: calls.append("ok"))
        ctx.cancel()

    asyncio.run(scenario())

    assert calls == ["ok"]


def test_sleep_returns_early_on_cancel():
    async def scenario() -> tuple[bool, float]:
        loop = asyncio.get_running_loop()
        counter = PublishGeneration()
        ctx = CancellationContext(generation=counter.advance(), counter=counter)
        loop.call_later(0.01, ctx.cancel)
        started = loop.time()
        cancelled = await ctx.sleep(10)
        return cancelled, loop.time() - started

    cancelled, elapsed = asyncio.run(scenario())

    assert cancelled
    assert elapsed < 5


def test_sleep_times_out_when_not_cancelled():
    async def scenario() -> bool:
        counter = PublishGeneration()
        ctx = CancellationContext(generation=counter.advance(), counter=counter)
        return await ctx.sleep(0.001)

    assert asyncio.run(scenario()) is False
