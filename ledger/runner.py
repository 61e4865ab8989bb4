"""
Shared Event Loop Runner

Streamlit runs every browser session in its own thread. LedgerFlow keeps
per-account asyncio locks, and an asyncio lock only works for coroutines
on the loop it was first used on. So instead of a fresh loop per call,
every coroutine from every session is submitted to one long-lived loop
running on a daemon thread.
"""

import asyncio
import threading
from typing import Any, Awaitable, Optional


class LoopRunner:
    """Runs coroutines on one background event loop, from any thread."""

    def __init__(self, name: str = "ledger-loop"):
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._loop.run_forever,
            name=name,
            daemon=True,
        )
        self._thread.start()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def run(self, coro: Awaitable[Any], timeout: Optional[float] = None) -> Any:
        """
        Run a coroutine on the shared loop and block until it finishes.

        Exceptions raised by the coroutine are re-raised in the caller.
        """
        if self._loop.is_closed():
            raise RuntimeError("LoopRunner is closed")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result(timeout)

    def close(self) -> None:
        """Stop the loop and wait for its thread."""
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join()
        self._loop.close()
