import pytest

from closet.core.errors import SagaFailed
from closet.core.saga import Saga


@pytest.mark.asyncio
async def test_runs_steps_in_order_and_collects_results():
    seen = []

    async def one(ctx):
        seen.append("one")
        return 1

    async def two(ctx):
        seen.append("two")
        return ctx["one"] + 1

    ctx = await Saga("ok").step("one", one).step("two", two).run()
    assert seen == ["one", "two"]
    assert ctx == {"one": 1, "two": 2}


@pytest.mark.asyncio
async def test_compensates_completed_steps_in_reverse():
    log = []

    def action(name):
        async def run(ctx):
            log.append(f"do {name}")
        return run

    def undo(name):
        async def run(ctx):
            log.append(f"undo {name}")
        return run

    async def boom(ctx):
        raise RuntimeError("insert failed")

    saga = (
        Saga("save")
        .step("a", action("a"), undo("a"))
        .step("b", action("b"), undo("b"))
        .step("c", boom, undo("c"))
    )
    with pytest.raises(SagaFailed) as ei:
        await saga.run()
    assert ei.value.step == "c"
    assert isinstance(ei.value.cause, RuntimeError)
    assert log == ["do a", "do b", "undo b", "undo a"]


@pytest.mark.asyncio
async def test_compensation_errors_are_reported_and_do_not_stop_rollback():
    log = []

    async def ok(ctx):
        return None

    async def bad_undo(ctx):
        raise OSError("storage down")

    async def good_undo(ctx):
        log.append("undo first")

    async def boom(ctx):
        raise ValueError("nope")

    saga = Saga("x").step("first", ok, good_undo).step("second", ok, bad_undo).step("third", boom)
    with pytest.raises(SagaFailed) as ei:
        await saga.run()
    assert [name for name, _ in ei.value.compensation_errors] == ["second"]
    assert log == ["undo first"]
