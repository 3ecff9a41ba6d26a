"""Tests for in-flight call coalescing."""

import anyio
import pytest

from newsrelay.application.single_flight import SingleFlight
from newsrelay.domain.exceptions import UpstreamUnavailableError


class TestSingleFlight:
    @pytest.mark.anyio
    async def test_concurrent_callers_share_one_call(self):
        flight = SingleFlight()
        calls = 0
        release = anyio.Event()
        results = []

        async def fetch() -> str:
            nonlocal calls
            calls += 1
            await release.wait()
            return "payload"

        async def caller() -> None:
            results.append(await flight.run("key", fetch))

        async with anyio.create_task_group() as tg:
            for _ in range(5):
                tg.start_soon(caller)
            await anyio.wait_all_tasks_blocked()
            assert flight.in_flight("key")
            release.set()

        assert calls == 1
        assert results == ["payload"] * 5
        assert not flight.in_flight("key")

    @pytest.mark.anyio
    async def test_followers_receive_leader_error(self):
        flight = SingleFlight()
        release = anyio.Event()
        errors = []

        async def fetch() -> str:
            await release.wait()
            raise UpstreamUnavailableError("down", provider_name="guardian")

        async def caller() -> None:
            try:
                await flight.run("key", fetch)
            except UpstreamUnavailableError as exc:
                errors.append(exc)

        async with anyio.create_task_group() as tg:
            for _ in range(3):
                tg.start_soon(caller)
            await anyio.wait_all_tasks_blocked()
            release.set()

        assert len(errors) == 3
        assert all(e.provider_name == "guardian" for e in errors)

    @pytest.mark.anyio
    async def test_distinct_keys_run_independently(self):
        flight = SingleFlight()
        seen = []

        async def fetch(key: str) -> str:
            seen.append(key)
            return key

        assert await flight.run("a", lambda: fetch("a")) == "a"
        assert await flight.run("b", lambda: fetch("b")) == "b"
        assert seen == ["a", "b"]

    @pytest.mark.anyio
    async def test_key_released_after_completion(self):
        flight = SingleFlight()
        calls = 0

        async def fetch() -> int:
            nonlocal calls
            calls += 1
            return calls

        assert await flight.run("key", fetch) == 1
        assert await flight.run("key", fetch) == 2

    @pytest.mark.anyio
    async def test_cancelled_leader_fails_followers(self):
        flight = SingleFlight()
        errors = []

        async def fetch() -> str:
            await anyio.sleep_forever()
            return "never"

        async def follower() -> None:
            try:
                await flight.run("key", fetch)
            except UpstreamUnavailableError as exc:
                errors.append(exc)

        async with anyio.create_task_group() as outer:
            async with anyio.create_task_group() as leader_group:
                leader_group.start_soon(flight.run, "key", fetch)
                await anyio.wait_all_tasks_blocked()
                outer.start_soon(follower)
                await anyio.wait_all_tasks_blocked()
                leader_group.cancel_scope.cancel()

        assert len(errors) == 1
        assert not flight.in_flight("key")
