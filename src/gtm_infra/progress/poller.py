"""Cancellable polling of provisioning progress.

The poller is tied to the lifetime of whatever observes it: start it when the
progress view opens, stop it (or leave the ``async with`` block) when the view
goes away. It also stops on its own once nothing is provisioning.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

SUPPORT_MESSAGE = "Something went wrong while checking your setup. Please contact support."


class StatusPoller:
    """Re-fetches a progress snapshot on a fixed interval while provisioning.

    ``fetch`` returns an object exposing ``any_provisioning``; ``on_update``
    receives every snapshot (sync or async callable).
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[Any]],
        interval: float,
        on_update: Optional[Callable[[Any], Any]] = None,
        max_errors: int = 5,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        if interval <= 0:
            raise ValueError("Polling interval must be positive")
        self.fetch = fetch
        self.interval = interval
        self.on_update = on_update
        self.max_errors = max_errors
        self._sleep = sleep or asyncio.sleep
        self._task: Optional[asyncio.Task] = None
        self.latest: Any = None
        self.last_error: Optional[str] = None
        self.fetch_count = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run(self) -> Any:
        """Poll until the snapshot leaves provisioning; returns the final snapshot."""
        consecutive_errors = 0
        while True:
            try:
                snapshot = await self.fetch()
            except asyncio.CancelledError:
                raise
            except Exception:
                consecutive_errors += 1
                self.last_error = SUPPORT_MESSAGE
                logger.exception("Progress fetch failed (%d in a row)", consecutive_errors)
                if consecutive_errors >= self.max_errors:
                    logger.error("Giving up on progress polling after %d errors", consecutive_errors)
                    return self.latest
            else:
                consecutive_errors = 0
                self.last_error = None
                self.fetch_count += 1
                self.latest = snapshot
                if self.on_update is not None:
                    result = self.on_update(snapshot)
                    if asyncio.iscoroutine(result):
                        await result
                if not snapshot.any_provisioning:
                    return snapshot
            await self._sleep(self.interval)

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task
        self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        """Cancel the polling task; no further reads happen after this returns."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def wait(self) -> Any:
        if self._task is None:
            return self.latest
        return await self._task

    async def __aenter__(self) -> "StatusPoller":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
