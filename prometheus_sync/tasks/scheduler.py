"""Scheduled subscription renewal for Prometheus.

The scheduler runs ``RenewalService.run_renewal_pass`` every
``renewal_interval_minutes`` (default 30). It is the only timer in the
process; run a single instance per deployment.

Usage:
    # Started from the FastAPI lifespan when ENABLE_SCHEDULER=true
    scheduler = RenewalScheduler(renewal_service)
    await scheduler.start()
    ...
    await scheduler.stop()

Manual execution:
    # Run one renewal pass from the command line
    python -m prometheus_sync.tasks.scheduler --task renew
"""

import asyncio
import logging
from typing import Optional

from prometheus_sync.core.config import settings
from prometheus_sync.services.renewal_service import RenewalService

logger = logging.getLogger(__name__)


class RenewalScheduler:
    """Background task that renews subscriptions on a fixed interval."""

    def __init__(
        self,
        renewal_service: RenewalService,
        interval_seconds: Optional[float] = None,
    ):
        self.renewal_service = renewal_service
        if interval_seconds is None:
            interval_seconds = settings.renewal_interval_minutes * 60
        if interval_seconds <= 0:
            raise ValueError("Renewal interval must be positive")
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def _loop(self) -> None:
        """Run a pass, then sleep until the next interval."""
        while self._running:
            try:
                await self.renewal_service.run_renewal_pass()
            except Exception as e:
                # Pass-level failures (no credential, no database) wait for the next tick
                logger.error(f"Subscription renewal pass failed: {e}")

            await asyncio.sleep(self.interval_seconds)

    async def start(self) -> None:
        """Start the background renewal loop.

        This should be called on application startup.
        """
        if self._running:
            logger.warning("Scheduler is already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(f"Subscription renewal scheduled every {self.interval_seconds / 60:g} minutes")

    async def stop(self) -> None:
        """Stop the background renewal loop.

        This should be called on application shutdown.
        """
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Subscription renewal scheduler stopped")


# CLI entry point for manual task execution
if __name__ == "__main__":
    import argparse

    from prometheus_sync.services.container import build_services

    parser = argparse.ArgumentParser(description="Run scheduled tasks manually")
    parser.add_argument(
        "--task",
        choices=["renew"],
        required=True,
        help="Task to run: renew (one subscription renewal pass)",
    )

    args = parser.parse_args()
    logging.basicConfig(level=settings.log_level)

    async def main():
        services = build_services()
        try:
            await services.db.create_all()
            report = await services.renewal_service.run_renewal_pass()
            print(report.model_dump_json(indent=2))
        finally:
            await services.close()

    asyncio.run(main())
