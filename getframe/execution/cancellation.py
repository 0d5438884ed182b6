"""
Cooperative cancellation.

A CancellationToken is handed to every long-running operation. It can be
cancelled from any thread (signal handler, GUI thread, another task) while
the operation awaits it on an event loop.
"""

import asyncio
import threading
from typing import List, Tuple

from ..errors import OperationCancelledError


def _resolve(future: asyncio.Future) -> None:
    if not future.done():
        future.set_result(None)


class CancellationToken:
    """
    Thread-safe, awaitable cancellation flag.

    Usage:
        token = CancellationToken()
        task = asyncio.create_task(extractor.extract(path, probe, cancel_token=token))
        ...
        token.cancel()  # from any thread
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._cancelled = False
        self._waiters: List[Tuple[asyncio.AbstractEventLoop, asyncio.Future]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Request cancellation. Idempotent."""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            waiters, self._waiters = self._waiters, []

        for loop, future in waiters:
            if not loop.is_closed():
                loop.call_soon_threadsafe(_resolve, future)

    async def wait(self) -> None:
        """Suspend until cancel() is called."""
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        entry = (loop, future)

        with self._lock:
            if self._cancelled:
                return
            self._waiters.append(entry)

        try:
            await future
        finally:
            with self._lock:
                if entry in self._waiters:
                    self._waiters.remove(entry)

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelledError if cancellation was requested."""
        if self._cancelled:
            raise OperationCancelledError()
