import asyncio
import logging
from contextlib import suppress
from typing import Optional

from socialdl.services.storage import StagedFileStore

logger = logging.getLogger(__name__)


class SweepScheduler:
    """Periodic sweep of the staging directory, owned by the application lifecycle"""

    def __init__(self, store: StagedFileStore, interval: float, initial_delay: float = 5.0):
        self.store = store
        self.interval = interval
        self.initial_delay = initial_delay
        self.runs = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info(f"Sweep scheduled every {self.interval:.0f}s")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def run_once(self) -> None:
        try:
            report = await self.store.sweep()
        except Exception:
            logger.exception("Sweep run failed")
            return
        finally:
            self.runs += 1
        if report.deleted or report.errors:
            logger.info(
                f"Sweep: {report.deleted} deleted, {report.errors} errors, "
                f"{report.processed} files checked"
            )

    async def _run(self) -> None:
        await asyncio.sleep(self.initial_delay)
        while True:
            await self.run_once()
            await asyncio.sleep(self.interval)
