"""Tests for the periodic credential sweep."""

import asyncio
import threading

import pytest

from src.jobwatch.providers.reaper import SWEEP_JOB_ID, CredentialReaper
from src.jobwatch.providers.vault import CredentialVault


@pytest.fixture
def vault(vault_config, clock):
    """Fixture providing an empty vault on the fake clock."""
    return CredentialVault(vault_config, clock=clock)


@pytest.mark.unit
class TestCredentialReaper:
    """Tests for CredentialReaper lifecycle and sweeping."""

    def test_interval_defaults_to_vault_config(self, vault):
        """Test the sweep interval comes from the vault settings."""
        reaper = CredentialReaper(vault)
        assert reaper.interval == 60

    def test_status_when_stopped(self, vault):
        """Test status before start."""
        reaper = CredentialReaper(vault, interval=5)

        assert reaper.is_running() is False
        assert reaper.get_status() == {"status": "stopped", "interval_seconds": 5}

    @pytest.mark.asyncio
    async def test_start_registers_sweep_job(self, vault):
        """Test starting adds one interval job."""
        reaper = CredentialReaper(vault, interval=5)

        await reaper.start()
        try:
            assert reaper.is_running() is True
            assert reaper.scheduler.get_job(SWEEP_JOB_ID) is not None
            status = reaper.get_status()
            assert status["status"] == "running"
            assert status["next_sweep"] is not None
        finally:
            await reaper.shutdown()

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self, vault):
        """Test a second start does not add another job."""
        reaper = CredentialReaper(vault, interval=5)

        await reaper.start()
        await reaper.start()
        try:
            assert len(reaper.scheduler.get_jobs()) == 1
        finally:
            await reaper.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_clears_vault(self, vault):
        """Test ending the session drops every credential."""
        vault.set("openai", "sk-test")
        reaper = CredentialReaper(vault, interval=5)
        await reaper.start()

        await reaper.shutdown()

        assert reaper.is_running() is False
        assert len(vault) == 0

    @pytest.mark.asyncio
    async def test_shutdown_can_keep_vault(self, vault):
        """Test shutdown without clearing keeps credentials."""
        vault.set("openai", "sk-test")
        reaper = CredentialReaper(vault, interval=5)

        await reaper.shutdown(clear_vault=False)

        assert vault.has_valid("openai")

    @pytest.mark.asyncio
    async def test_sweep_evicts_expired(self, vault, clock):
        """Test the sweep job evicts expired credentials."""
        vault.set("a", "sk-1", ttl=1)
        vault.set("b", "sk-2", ttl=100)
        clock.tick(2)

        assert await CredentialReaper(vault)._sweep() == 1
        assert vault.provider_ids() == ["b"]

    @pytest.mark.asyncio
    async def test_scheduled_sweep_runs_on_event_loop_thread(self, vault, clock, monkeypatch):
        """Test the interval job sweeps on the loop thread, not in an executor."""
        vault.set("a", "sk-1", ttl=1)
        clock.tick(2)

        sweep_threads = []
        original_sweep = vault.sweep

        def recording_sweep():
            sweep_threads.append(threading.get_ident())
            return original_sweep()

        monkeypatch.setattr(vault, "sweep", recording_sweep)

        reaper = CredentialReaper(vault, interval=0.05)
        await reaper.start()
        try:
            for _ in range(100):
                if sweep_threads:
                    break
                await asyncio.sleep(0.02)
        finally:
            await reaper.shutdown(clear_vault=False)

        assert sweep_threads
        assert set(sweep_threads) == {threading.get_ident()}
        assert vault.provider_ids() == []
