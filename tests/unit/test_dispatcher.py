"""Tests for the background send pool."""

import asyncio

import pytest

from wa2fa.services.messaging import BackgroundDispatcher


class TestBackgroundDispatcher:
    """Tests for BackgroundDispatcher."""

    @pytest.mark.asyncio
    async def test_submit_before_start_is_dropped(self):
        dispatcher = BackgroundDispatcher(pool_size=1, max_queue_size=1)

        async def job():
            pass

        assert dispatcher.submit(job, "test") is False
        assert dispatcher.dropped == 1

    @pytest.mark.asyncio
    async def test_jobs_run_in_background(self):
        dispatcher = BackgroundDispatcher(pool_size=2, max_queue_size=10)
        await dispatcher.start()
        ran = []

        async def job():
            ran.append(True)

        try:
            for _ in range(5):
                assert dispatcher.submit(job) is True
            await dispatcher.join()
            assert len(ran) == 5
            assert dispatcher.processed == 5
            assert dispatcher.queue_depth == 0
        finally:
            await dispatcher.stop()

    @pytest.mark.asyncio
    async def test_failed_job_is_counted_not_raised(self):
        dispatcher = BackgroundDispatcher(pool_size=1, max_queue_size=10)
        await dispatcher.start()

        async def boom():
            raise RuntimeError("delivery failed")

        async def ok():
            pass

        try:
            dispatcher.submit(boom, "boom")
            dispatcher.submit(ok, "ok")
            await dispatcher.join()
            assert dispatcher.failed == 1
            assert dispatcher.processed == 1
            assert dispatcher.running is True
        finally:
            await dispatcher.stop()

    @pytest.mark.asyncio
    async def test_full_queue_drops_without_blocking(self):
        dispatcher = BackgroundDispatcher(pool_size=1, max_queue_size=1)
        await dispatcher.start()
        release = asyncio.Event()
        started = asyncio.Event()

        async def slow():
            started.set()
            await release.wait()

        try:
            dispatcher.submit(slow, "slow")
            await asyncio.wait_for(started.wait(), timeout=1)
            assert dispatcher.submit(slow, "queued") is True
            assert dispatcher.submit(slow, "overflow") is False
            assert dispatcher.dropped == 1
        finally:
            release.set()
            await dispatcher.stop()

    @pytest.mark.asyncio
    async def test_start_is_idempotent_and_stop_resets(self):
        dispatcher = BackgroundDispatcher(pool_size=3, max_queue_size=5)
        await dispatcher.start()
        await dispatcher.start()
        assert dispatcher.running is True
        await dispatcher.stop()
        assert dispatcher.running is False
        assert dispatcher.queue_depth == 0
        await dispatcher.stop()
