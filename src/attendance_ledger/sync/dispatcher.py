from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Coroutine, Optional

logger = logging.getLogger(__name__)


class LoopDispatcher:
    """Fire-and-forget runner for remote I/O.

    ``submit`` schedules a coroutine on the event loop and hands back the
    detached future; callers are not expected to wait on it. Failures are
    logged from a done-callback and never re-raised into the caller.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self._loop = loop
        self._pending: set[concurrent.futures.Future] = set()
        self._lock = threading.Lock()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def submit(self, coro: Coroutine[Any, Any, Any], *, label: str = "remote task") -> concurrent.futures.Future:
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        with self._lock:
            self._pending.add(future)

        def _done(f: concurrent.futures.Future) -> None:
            with self._lock:
                self._pending.discard(f)
            if f.cancelled():
                logger.warning("%s was cancelled", label)
                return
            error = f.exception()
            if error is not None:
                logger.warning("%s failed: %s", label, error)

        future.add_done_callback(_done)
        return future

    async def drain(self) -> None:
        """Wait for everything submitted so far; used on shutdown and in tests."""
        while True:
            with self._lock:
                batch = list(self._pending)
            if not batch:
                return
            await asyncio.gather(*(asyncio.wrap_future(f) for f in batch), return_exceptions=True)
            # Done-callbacks run via the loop; give them a tick to deregister.
            await asyncio.sleep(0)


class BackgroundLoop:
    """Event loop running in a daemon thread, for synchronous hosts like Flask."""

    def __init__(self, *, name: str = "attendance-ledger-io"):
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._started = False

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def _run(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def start(self) -> "BackgroundLoop":
        if not self._started:
            self._thread.start()
            self._started = True
        return self

    def stop(self, *, timeout: Optional[float] = 5.0) -> None:
        if not self._started:
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=timeout)
        self._started = False
