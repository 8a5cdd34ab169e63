"""Background task that periodically evicts expired blobs."""

import asyncio
import logging
from datetime import timedelta

from tmpstore.storage.blob_store import BlobStore

logger = logging.getLogger(__name__)


class EvictionScheduler:
    """Runs ``BlobStore.sweep`` on a fixed interval.

    The scheduler keeps no state besides its task. A blob that fails to be
    evicted on one tick is still expired on the next and is picked up again.
    """

    def __init__(self, store: BlobStore, interval: timedelta | None = None) -> None:
        """Initialize the scheduler.

        Args:
            store: The store to sweep.
            interval: Time between sweeps. Defaults to the store's
                ``sweep_interval``.

        Raises:
            ValueError: If the interval is not positive.
        """
        interval = store.sweep_interval if interval is None else interval
        if interval <= timedelta(0):
            raise ValueError(f"Sweep interval must be positive, got {interval}")
        self._store = store
        self._interval = interval
        self._task: asyncio.Task | None = None

    @property
    def interval(self) -> timedelta:
        return self._interval

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background sweep task."""
        if self._task is None:
            self._task = asyncio.create_task(self._sweep_loop())
            logger.info(
                f"Started eviction task (every {self._interval.total_seconds():g}s)"
            )

    async def stop(self) -> None:
        """Stop the background sweep task."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Stopped eviction task")

    async def run_once(self) -> int:
        """Run one sweep off the event loop.

        Returns:
            The number of blobs evicted.
        """
        return await asyncio.to_thread(self._store.sweep)

    async def _sweep_loop(self) -> None:
        """Background loop that evicts expired blobs."""
        while True:
            try:
                await asyncio.sleep(self._interval.total_seconds())
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.exception(f"Error in eviction task: {e}")
