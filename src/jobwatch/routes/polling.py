"""Polling control and observability endpoints.

The fixed paths (stats, batch, pause, resume, environment) are matched before
`/{job_id}`, so those names are rejected as job ids.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Path
from pydantic import BaseModel, Field

from ..auth import get_api_key
from ..dependencies import GateDep, SchedulerDep
from ..models.polling import PollingStats, PollingStatus
from ..models.responses import (
    RESERVED_JOB_IDS,
    BatchPollingRequest,
    PollingActionResponse,
    StartPollingRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/polling")


class EnvironmentUpdate(BaseModel):
    """Host environment signals forwarded to the gate."""
    foreground: bool | None = Field(None, description="Whether the host is in the foreground")
    online: bool | None = Field(None, description="Whether the host has network connectivity")


class EnvironmentState(BaseModel):
    """Current gate view of the host environment."""
    foreground: bool
    online: bool
    should_schedule: bool
    is_paused: bool


@router.get("", response_model=PollingStatus)
async def get_polling_status(
    scheduler: SchedulerDep,
    api_key: str | None = Depends(get_api_key),
) -> PollingStatus:
    """Snapshot of every polled job, the pause flag and next-poll estimates."""
    return scheduler.get_polling_status()


@router.get("/stats", response_model=PollingStats)
async def get_polling_stats(
    scheduler: SchedulerDep,
    api_key: str | None = Depends(get_api_key),
) -> PollingStats:
    """Aggregate interval, retry and error statistics."""
    return scheduler.get_stats()


@router.post("/batch", response_model=PollingActionResponse)
async def start_batch_polling(
    request: BatchPollingRequest,
    scheduler: SchedulerDep,
    api_key: str | None = Depends(get_api_key),
) -> PollingActionResponse:
    """Start polling several jobs at once."""
    started = scheduler.start_batch_polling(request.job_ids)
    return PollingActionResponse(
        changed=bool(started), job_ids=started, is_paused=scheduler.is_paused
    )


@router.post("/pause", response_model=PollingActionResponse)
async def pause_polling(
    scheduler: SchedulerDep,
    api_key: str | None = Depends(get_api_key),
) -> PollingActionResponse:
    """Add one pause; polling stays paused until every pause is released."""
    scheduler.pause_all()
    return PollingActionResponse(changed=True, is_paused=scheduler.is_paused)


@router.post("/resume", response_model=PollingActionResponse)
async def resume_polling(
    scheduler: SchedulerDep,
    api_key: str | None = Depends(get_api_key),
) -> PollingActionResponse:
    """Release one pause."""
    was_paused = scheduler.is_paused
    scheduler.resume_all()
    return PollingActionResponse(changed=was_paused, is_paused=scheduler.is_paused)


@router.get("/environment", response_model=EnvironmentState)
async def get_environment(
    gate: GateDep,
    api_key: str | None = Depends(get_api_key),
) -> EnvironmentState:
    """Current foreground/online view of the gate."""
    return EnvironmentState(
        foreground=gate.is_foreground,
        online=gate.is_online,
        should_schedule=gate.should_schedule,
        is_paused=gate.scheduler.is_paused,
    )


@router.put("/environment", response_model=EnvironmentState)
async def update_environment(
    update: EnvironmentUpdate,
    gate: GateDep,
    api_key: str | None = Depends(get_api_key),
) -> EnvironmentState:
    """Forward foreground/online transitions reported by the client."""
    if update.foreground is not None:
        gate.on_visibility_change(update.foreground)
    if update.online is not None:
        gate.on_network_change(update.online)

    return EnvironmentState(
        foreground=gate.is_foreground,
        online=gate.is_online,
        should_schedule=gate.should_schedule,
        is_paused=gate.scheduler.is_paused,
    )


@router.post("/{job_id}", response_model=PollingActionResponse)
async def start_job_polling(
    scheduler: SchedulerDep,
    job_id: str = Path(..., min_length=1, max_length=200, description="Job to poll"),
    request: StartPollingRequest | None = None,
    api_key: str | None = Depends(get_api_key),
) -> PollingActionResponse:
    """Start polling a job. Starting an already polled job changes nothing."""
    if job_id in RESERVED_JOB_IDS:
        raise HTTPException(
            status_code=400,
            detail={
                "success": False,
                "error": f"'{job_id}' is a reserved path and cannot be used as a job id",
                "error_type": "validation_error",
            },
        )

    initial = request.initial_interval_ms if request else None
    started = scheduler.start_job_polling(job_id, initial)
    return PollingActionResponse(
        changed=started, job_ids=[job_id], is_paused=scheduler.is_paused
    )


@router.get("/{job_id}")
async def get_job_polling_state(
    scheduler: SchedulerDep,
    job_id: str = Path(..., description="Polled job"),
    api_key: str | None = Depends(get_api_key),
):
    """Polling state for a single job."""
    state = scheduler.get_polling_status().jobs.get(job_id)
    if state is None:
        raise HTTPException(
            status_code=404,
            detail={
                "success": False,
                "error": f"Job {job_id} is not being polled",
                "error_type": "not_found",
            },
        )
    return state


@router.delete("/{job_id}", response_model=PollingActionResponse)
async def stop_job_polling(
    scheduler: SchedulerDep,
    job_id: str = Path(..., description="Job to stop polling"),
    api_key: str | None = Depends(get_api_key),
) -> PollingActionResponse:
    """Stop polling a job. Unknown jobs are not an error."""
    stopped = scheduler.stop_job_polling(job_id)
    return PollingActionResponse(
        changed=stopped, job_ids=[job_id], is_paused=scheduler.is_paused
    )
