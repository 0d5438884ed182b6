"""
CancellationToken - Unit Tests
"""

import asyncio
import threading

import pytest

from getframe.errors import ErrorCode, OperationCancelledError
from getframe.execution.cancellation import CancellationToken

from conftest import run


class TestCancellationToken:

    def test_initial_state(self):
        token = CancellationToken()
        assert token.cancelled is False
        token.raise_if_cancelled()

    def test_cancel_is_idempotent(self):
        token = CancellationToken()
        token.cancel()
        token.cancel()
        assert token.cancelled is True

    def test_raise_if_cancelled(self):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelledError) as exc_info:
            token.raise_if_cancelled()

        assert exc_info.value.code == ErrorCode.OPERATION_CANCELLED

    def test_wait_returns_immediately_when_already_cancelled(self):
        token = CancellationToken()
        token.cancel()

        run(asyncio.wait_for(token.wait(), timeout=1))

    def test_wait_wakes_on_cancel_from_task(self):
        token = CancellationToken()

        async def scenario():
            waiter = asyncio.ensure_future(token.wait())
            await asyncio.sleep(0.01)
            assert not waiter.done()
            token.cancel()
            await asyncio.wait_for(waiter, timeout=1)

        run(scenario())

    def test_wait_wakes_on_cancel_from_other_thread(self):
        """
        GIVEN: A task awaiting the token
        WHEN: Another thread cancels it
        THEN: The waiting task resumes
        """
        token = CancellationToken()

        async def scenario():
            timer = threading.Timer(0.05, token.cancel)
            timer.start()
            try:
                await asyncio.wait_for(token.wait(), timeout=2)
            finally:
                timer.join()

        run(scenario())

    def test_abandoned_waiter_is_released(self):
        token = CancellationToken()

        async def scenario():
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(token.wait(), timeout=0.01)

        run(scenario())
        assert token._waiters == []
