"""Periodic sweep of expired credentials.

Wraps APScheduler so the vault is swept on a fixed interval independent of
get() calls, and cleared when the session ends.
"""

import logging
from typing import Any

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .vault import CredentialVault

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "credential-sweep"


class CredentialReaper:
    """Runs CredentialVault.sweep() on an interval.

    Attributes:
        vault: The vault being swept.
        interval: Seconds between sweeps.
    """

    def __init__(self, vault: CredentialVault, interval: float | None = None) -> None:
        """Initialize the reaper.

        Args:
            vault: Vault to sweep.
            interval: Seconds between sweeps (defaults to the vault's
                ``sweep_interval_seconds``).
        """
        self.vault = vault
        self.interval = interval if interval is not None else vault.config.sweep_interval_seconds
        self._started = False
        self._scheduler = AsyncIOScheduler(
            jobstores={"default": MemoryJobStore()},
            executors={"default": AsyncIOExecutor()},
            job_defaults={"coalesce": True, "max_instances": 1},
            timezone="UTC",
        )

    @property
    def scheduler(self) -> AsyncIOScheduler:
        return self._scheduler

    def is_running(self) -> bool:
        return self._started and self._scheduler.running

    async def _sweep(self) -> int:
        # Coroutine jobs run on the event loop; plain functions would go to a thread pool
        try:
            return self.vault.sweep()
        except Exception:
            logger.exception("Credential sweep failed")
            return 0

    async def start(self) -> None:
        """Start sweeping. Must be called from a running event loop."""
        if self._started:
            logger.warning("Credential reaper already started")
            return

        self._scheduler.add_job(
            self._sweep,
            trigger=IntervalTrigger(seconds=self.interval),
            id=SWEEP_JOB_ID,
            replace_existing=True,
        )
        self._scheduler.start()
        self._started = True
        logger.info(f"Credential reaper started (interval={self.interval:.0f}s)")

    async def shutdown(self, clear_vault: bool = True) -> None:
        """Stop sweeping and, by default, drop every credential."""
        if self._started:
            self._scheduler.shutdown(wait=False)
            self._started = False
            logger.info("Credential reaper stopped")

        if clear_vault:
            self.vault.clear()

    def get_status(self) -> dict[str, Any]:
        if not self._started:
            return {"status": "stopped", "interval_seconds": self.interval}

        job = self._scheduler.get_job(SWEEP_JOB_ID)
        next_run = job.next_run_time if job else None
        return {
            "status": "running",
            "interval_seconds": self.interval,
            "next_sweep": next_run.isoformat() if next_run else None,
        }
