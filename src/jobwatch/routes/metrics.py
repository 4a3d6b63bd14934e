"""Metrics and monitoring endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Response

from ..dependencies import SchedulerDep, VaultDep
from ..metrics import get_metrics_collector

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/metrics")
async def get_metrics():
    """Get Prometheus-formatted metrics for monitoring."""
    collector = get_metrics_collector()
    return Response(
        content=collector.get_prometheus_metrics(),
        media_type="text/plain; version=0.0.4; charset=utf-8"
    )


@router.get("/metrics/summary")
async def get_metrics_summary(scheduler: SchedulerDep, vault: VaultDep):
    """Operation timings plus current polling and vault state in JSON format."""
    collector = get_metrics_collector()
    stats = scheduler.get_stats()
    vault_summary = vault.get_summary()

    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "operations": collector.get_summary(),
        "polling": stats.model_dump(),
        "credentials": vault_summary.model_dump(),
    }
