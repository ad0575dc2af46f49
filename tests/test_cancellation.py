import asyncio

import pytest

from harvester.cancellation import CancelToken
from harvester.errors import HarvestCancelled


def test_guard_returns_result_when_not_cancelled():
    async def scenario():
        token = CancelToken()

        async def work():
            await asyncio.sleep(0)
            return "done"

        return await token.guard(work())

    assert asyncio.run(scenario()) == "done"


def test_guard_propagates_errors_from_the_work():
    async def scenario():
        async def work():
            raise ValueError("boom")

        await CancelToken().guard(work())

    with pytest.raises(ValueError):
        asyncio.run(scenario())


def test_guard_aborts_pending_work_on_cancel():
    async def scenario():
        token = CancelToken()
        never = asyncio.Event()
        asyncio.get_running_loop().call_later(0.01, token.cancel)
        await asyncio.wait_for(token.guard(never.wait()), timeout=1)

    with pytest.raises(HarvestCancelled):
        asyncio.run(scenario())


def test_sleep_returns_early_on_cancel():
    async def scenario():
        token = CancelToken()
        asyncio.get_running_loop().call_later(0.01, token.cancel)
        return await asyncio.wait_for(token.sleep(30), timeout=1)

    assert asyncio.run(scenario()) is True


def test_sleep_runs_out_when_not_cancelled():
    async def scenario():
        return await CancelToken().sleep(0.01)

    assert asyncio.run(scenario()) is False
