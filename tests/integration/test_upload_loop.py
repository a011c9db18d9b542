"""
Integration tests for the Uploader scheduling loop.

Tests cover:
- Tick-driven upload / skip sequences
- Enablement gate handling
- Failure accounting across ticks
- Shutdown via stop() and task cancellation
"""

import asyncio
import tempfile

import pytest

from svc.snapship.upload.memory import InMemoryStorageClient
from svc.snapship.upload.uploader import Uploader, UploadSwitch
from tests.fakes import ScriptedGate, SequenceProvider, wait_until

INTERVAL = 0.02


class TestUploadLoop:
    """Tests for Uploader.start / stop."""

    @pytest.fixture
    def staging_dir(self):
        """Create temporary staging directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield tmpdir

    @pytest.fixture
    def client(self):
        return InMemoryStorageClient()

    async def run_until(self, uploader, gate, predicate, timeout=5.0):
        """Start the loop, wait for predicate, then stop and join."""
        task = asyncio.create_task(uploader.start(gate))
        try:
            reached = await wait_until(predicate, timeout=timeout)
        finally:
            await uploader.stop()
            await asyncio.wait_for(task, timeout=2)
        return reached

    @pytest.mark.asyncio
    async def test_upload_skip_upload(self, client, staging_dir):
        """v1, v1, v2 over three ticks: success, skip, success."""
        provider = SequenceProvider(b"v1", b"v1", b"v2")
        uploader = Uploader(client, provider, INTERVAL, compress=False, staging_dir=staging_dir)
        gate = ScriptedGate([True, True, True])

        assert await self.run_until(
            uploader, gate, lambda: uploader.counters.ok == 2 and uploader.counters.skipped == 1
        )

        assert client.uploads == [b"v1", b"v2"]
        assert uploader.counters.ok == 2
        assert uploader.counters.skipped == 1
        assert uploader.counters.failed == 0

    @pytest.mark.asyncio
    async def test_always_failing_storage(self, client, staging_dir):
        """Three failing ticks: three failures, baseline never set."""
        client.fail_with = RuntimeError("backend down")
        uploader = Uploader(
            client, SequenceProvider(b"v1"), INTERVAL, compress=True, staging_dir=staging_dir
        )
        gate = ScriptedGate([True, True, True])

        assert await self.run_until(uploader, gate, lambda: uploader.counters.failed == 3)

        assert uploader.counters.failed == 3
        assert uploader.counters.ok == 0
        assert uploader.counters.skipped == 0
        assert uploader.last_digest is None

    @pytest.mark.asyncio
    async def test_disabled_ticks_run_nothing(self, client, staging_dir):
        """Disabled ticks never call the provider; first enabled tick uploads."""
        provider = SequenceProvider(b"v1")
        uploader = Uploader(client, provider, INTERVAL, compress=False, staging_dir=staging_dir)
        gate = ScriptedGate([False, False, True])

        assert await self.run_until(uploader, gate, lambda: uploader.counters.ok == 1)

        # Only the single enabled tick reached the provider.
        assert gate.calls >= 3
        assert provider.calls == 1
        assert client.uploads == [b"v1"]
        assert uploader.counters.ok == 1

    @pytest.mark.asyncio
    async def test_reenable_forces_upload_of_same_content(self, client, staging_dir):
        """Disable then re-enable re-uploads identical content exactly once."""
        provider = SequenceProvider(b"v1")
        uploader = Uploader(client, provider, INTERVAL, compress=True, staging_dir=staging_dir)
        gate = ScriptedGate([True, False, False, True, True])

        assert await self.run_until(
            uploader, gate, lambda: uploader.counters.ok == 2 and uploader.counters.skipped == 1
        )

        assert client.attempts == 2
        assert uploader.counters.ok == 2
        assert uploader.counters.skipped == 1
        assert client.uploads[0] == client.uploads[1]

    @pytest.mark.asyncio
    async def test_disable_clears_baseline(self, client, staging_dir):
        switch = UploadSwitch()
        uploader = Uploader(
            client, SequenceProvider(b"v1"), INTERVAL, compress=False, staging_dir=staging_dir
        )
        task = asyncio.create_task(uploader.start(switch))
        try:
            assert await wait_until(lambda: uploader.last_digest is not None)
            switch.disable()
            assert await wait_until(lambda: uploader.last_digest is None)
        finally:
            await uploader.stop()
            await asyncio.wait_for(task, timeout=2)

    @pytest.mark.asyncio
    async def test_default_gate_always_enabled(self, client, staging_dir):
        uploader = Uploader(
            client, SequenceProvider(b"v1"), INTERVAL, compress=False, staging_dir=staging_dir
        )

        assert await self.run_until(uploader, None, lambda: uploader.counters.skipped >= 1)
        assert client.uploads == [b"v1"]

    @pytest.mark.asyncio
    async def test_provider_errors_do_not_stop_loop(self, client, staging_dir):
        provider = SequenceProvider(b"v1")
        provider.fail_with = OSError("locked")
        uploader = Uploader(client, provider, INTERVAL, compress=False, staging_dir=staging_dir)

        task = asyncio.create_task(uploader.start())
        try:
            assert await wait_until(lambda: provider.calls >= 2)
            assert uploader.is_running
            provider.fail_with = None
            assert await client.wait_for_uploads(1, timeout=2)
        finally:
            await uploader.stop()
            await asyncio.wait_for(task, timeout=2)

        assert uploader.counters.failed == 0

    @pytest.mark.asyncio
    async def test_stop_before_first_tick(self, client, staging_dir):
        uploader = Uploader(
            client, SequenceProvider(b"v1"), 60, compress=False, staging_dir=staging_dir
        )
        task = asyncio.create_task(uploader.start())
        await wait_until(lambda: uploader.is_running)

        await uploader.stop()
        await asyncio.wait_for(task, timeout=2)

        assert not uploader.is_running
        assert client.attempts == 0

    @pytest.mark.asyncio
    async def test_stop_right_after_create_task(self, client, staging_dir):
        """A stop() issued before the loop task first runs is honoured."""
        uploader = Uploader(
            client, SequenceProvider(b"v1"), INTERVAL, compress=False, staging_dir=staging_dir
        )
        task = asyncio.create_task(uploader.start())
        await uploader.stop()

        await asyncio.wait_for(task, timeout=2)

        assert task.done()
        assert not uploader.is_running
        assert client.attempts == 0

    @pytest.mark.asyncio
    async def test_stop_before_start(self, client, staging_dir):
        uploader = Uploader(
            client, SequenceProvider(b"v1"), INTERVAL, compress=False, staging_dir=staging_dir
        )
        await uploader.stop()

        await asyncio.wait_for(uploader.start(), timeout=2)

        assert not uploader.is_running
        assert client.attempts == 0

    @pytest.mark.asyncio
    async def test_task_cancellation_ends_loop(self, client, staging_dir):
        uploader = Uploader(
            client, SequenceProvider(b"v1"), INTERVAL, compress=False, staging_dir=staging_dir
        )
        task = asyncio.create_task(uploader.start())
        await client.wait_for_uploads(1, timeout=2)

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

        assert not uploader.is_running

    @pytest.mark.asyncio
    async def test_second_start_is_noop(self, client, staging_dir):
        uploader = Uploader(
            client, SequenceProvider(b"v1"), 60, compress=False, staging_dir=staging_dir
        )
        task = asyncio.create_task(uploader.start())
        await wait_until(lambda: uploader.is_running)

        await asyncio.wait_for(uploader.start(), timeout=1)

        await uploader.stop()
        await asyncio.wait_for(task, timeout=2)
