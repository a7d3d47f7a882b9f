"""Unit tests for RenewalScheduler."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from prometheus_sync.core.config import settings
from prometheus_sync.services.registry import RegistryError
from prometheus_sync.services.renewal_service import RenewalService
from prometheus_sync.tasks.scheduler import RenewalScheduler


async def wait_for_calls(mock: AsyncMock, count: int) -> None:
    for _ in range(200):
        if mock.await_count >= count:
            return
        await asyncio.sleep(0.005)
    raise AssertionError(f"expected {count} call(s), got {mock.await_count}")


class TestRenewalScheduler:

    def test_default_interval_from_settings(self) -> None:
        scheduler = RenewalScheduler(AsyncMock(spec=RenewalService))

        assert scheduler.interval_seconds == settings.renewal_interval_minutes * 60

    @pytest.mark.asyncio
    async def test_runs_pass_on_interval(self) -> None:
        service = AsyncMock(spec=RenewalService)
        scheduler = RenewalScheduler(service, interval_seconds=0.01)

        await scheduler.start()
        try:
            await wait_for_calls(service.run_renewal_pass, 3)
        finally:
            await scheduler.stop()

        assert not scheduler.running

    @pytest.mark.asyncio
    async def test_failed_pass_does_not_stop_loop(self) -> None:
        service = AsyncMock(spec=RenewalService)
        service.run_renewal_pass.side_effect = [RegistryError("database unavailable"), None, None]
        scheduler = RenewalScheduler(service, interval_seconds=0.01)

        await scheduler.start()
        try:
            await wait_for_calls(service.run_renewal_pass, 2)
        finally:
            await scheduler.stop()

    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_loop(self) -> None:
        service = AsyncMock(spec=RenewalService)
        scheduler = RenewalScheduler(service, interval_seconds=60)

        await scheduler.start()
        first_task = scheduler._task
        await scheduler.start()

        assert scheduler._task is first_task
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_stop_without_start(self) -> None:
        scheduler = RenewalScheduler(AsyncMock(spec=RenewalService), interval_seconds=60)

        await scheduler.stop()

        assert not scheduler.running

    @pytest.mark.parametrize("interval", [0, -1])
    def test_explicit_non_positive_interval_is_rejected(self, interval) -> None:
        with pytest.raises(ValueError):
            RenewalScheduler(AsyncMock(spec=RenewalService), interval_seconds=interval)
