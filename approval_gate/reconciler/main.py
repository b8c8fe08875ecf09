"""
Reconciler process for repairing approval state.

The reconciler runs periodically to put pending jobs that fell out of their
queues back in, and to drop approval keys whose queues are empty.
"""

import asyncio
import logging
import signal

from approval_gate.approve.context import ApproveContext, create_context
from approval_gate.approve.job_types import registry_from_settings
from approval_gate.config import get_settings
from approval_gate.observability.logging import setup_logging
from approval_gate.observability.tracing import setup_tracing
from approval_gate.reconciler.cleaner import Cleaner
from approval_gate.store import close_store, init_store

logger = logging.getLogger(__name__)


class Reconciler:
    """
    Periodic reconciliation of approval state.

    Each pass:
    1. Re-links stored pending jobs missing from their queue
    2. Drops registered approval keys with empty queues
    """

    def __init__(self, context: ApproveContext, interval_seconds: int | None = None):
        """
        Initialize the reconciler.

        Args:
            context: The approve context to reconcile.
            interval_seconds: Seconds between passes.
        """
        settings = get_settings()
        self.interval = interval_seconds or settings.reconciler_interval_seconds
        self._cleaner = Cleaner(context)
        self._running = False

    async def start(self) -> None:
        """Start the reconciler loop."""
        logger.info(f"Reconciler starting with interval {self.interval}s")
        self._running = True

        while self._running:
            try:
                await self.run_once()
            except Exception as e:
                logger.exception(f"Error in reconciler loop: {e}")

            await asyncio.sleep(self.interval)

        logger.info("Reconciler stopped")

    async def stop(self) -> None:
        """Stop the reconciler."""
        logger.info("Reconciler stopping")
        self._running = False

    async def run_once(self) -> tuple[int, int]:
        """
        Run a single reconciliation pass (for testing or cron-style execution).

        Returns:
            Tuple of (jobs restored, queues dropped).
        """
        restored = await self._cleaner.cleanup_jobs()
        dropped = await self._cleaner.cleanup_queues()
        return restored, dropped


async def run_async() -> None:
    """Run the reconciler asynchronously."""
    setup_logging()
    setup_tracing()
    redis = await init_store()

    reconciler = Reconciler(create_context(redis, registry_from_settings()))

    # Handle shutdown signals
    loop = asyncio.get_running_loop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: asyncio.create_task(reconciler.stop())
        )

    try:
        await reconciler.start()
    finally:
        await close_store()


def run() -> None:
    """Run the reconciler."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
