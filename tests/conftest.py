"""Shared pytest fixtures for all test modules."""

import asyncio
from typing import Callable
from unittest.mock import Mock

import pytest

from src.monitor import ReconnectOptions

# 2023-11-14T22:13:20Z, any realistic non-zero wall clock works
START_MS = 1_700_000_000_000


class FakeClock:
    """Wall clock in milliseconds that only moves when told to."""

    def __init__(self, now: int = START_MS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def connection() -> Mock:
    """Owning connection, only reopen() is consumed."""
    return Mock(spec=["reopen"])


@pytest.fixture
def options() -> ReconnectOptions:
    # Long delays so the background poll never fires during a unit test
    return ReconnectOptions(
        reconnection=True,
        reconnection_delay=60.0,
        reconnection_delay_max=120.0,
        reconnection_max_attempts=5,
    )


@pytest.fixture
def fast_options() -> ReconnectOptions:
    return ReconnectOptions(
        reconnection=True,
        reconnection_delay=0.01,
        reconnection_delay_max=0.02,
        reconnection_max_attempts=3,
    )


async def _wait_until(
    predicate: Callable[[], bool], timeout: float = 2.0, step: float = 0.005
) -> None:
    """Yield to the loop until predicate() holds, failing after timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout

    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met before timeout")
        await asyncio.sleep(step)


@pytest.fixture
def wait_until() -> Callable:
    return _wait_until
