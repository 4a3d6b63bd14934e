"""Pydantic models for job polling state and status reports."""

from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class JobStatus(str, Enum):
    """Status values reported by the analysis API."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED})


class PollPhase(str, Enum):
    """Per-job scheduler phase."""

    IDLE = "idle"
    SCHEDULED = "scheduled"
    IN_FLIGHT = "in_flight"
    TERMINAL = "terminal"


class JobStatusReport(BaseModel):
    """Result of one status fetch."""

    model_config = ConfigDict(extra="allow")

    job_id: str | None = Field(
        None,
        validation_alias=AliasChoices("job_id", "jobId", "id"),
        description="Job identifier echoed by the API",
    )
    status: JobStatus = Field(JobStatus.PROCESSING, description="Current job status")
    progress: float = Field(
        0.0,
        validation_alias=AliasChoices("progress", "progress_percent", "progressPercent"),
        description="Progress percentage (0-100)",
    )
    is_completed: bool = Field(
        False,
        validation_alias=AliasChoices("is_completed", "isCompleted"),
        description="Whether the job has finished",
    )
    phase: str | None = Field(None, description="Processing phase (queued, decompiling, ...)")
    error: str | None = Field(None, description="Error message reported by the job")

    @field_validator("progress", mode="before")
    @classmethod
    def clamp_progress(cls, v):
        """Clamp progress into 0-100; servers occasionally overshoot."""
        if v is None:
            return 0.0
        return min(100.0, max(0.0, float(v)))

    @property
    def is_terminal(self) -> bool:
        """Whether no further status transitions will occur."""
        return self.is_completed or self.status in TERMINAL_STATUSES

    @property
    def is_failure(self) -> bool:
        """Whether the job ended in failure or cancellation."""
        return self.status in (JobStatus.FAILED, JobStatus.CANCELLED)


class PollingState(BaseModel):
    """Mutable polling state for a single job."""

    job_id: str = Field(..., min_length=1, description="Job identifier")
    current_interval_ms: float = Field(..., gt=0, description="Delay before the next poll")
    retry_count: int = Field(0, ge=0, description="Consecutive failed fetches")
    last_poll_at: float = Field(..., description="Clock time of the last poll attempt (seconds)")
    next_poll_at: float | None = Field(None, description="Clock time of the pending poll")
    is_active: bool = Field(True, description="False once the job stops being polled")
    phase: PollPhase = Field(PollPhase.IDLE, description="Scheduler phase")
    last_error: str | None = Field(None, description="Error from the last failed fetch")
    last_status: JobStatus | None = Field(None, description="Last reported job status")
    last_progress: float | None = Field(None, description="Last reported progress")


class PollingSnapshot(BaseModel):
    """Persistable subset of PollingState.

    Only scheduling facts are kept; nothing secret lives on a polling state.
    """

    job_id: str
    current_interval_ms: float
    retry_count: int = 0
    last_poll_at: float
    last_status: JobStatus | None = None
    last_progress: float | None = None

    @classmethod
    def from_state(cls, state: PollingState) -> "PollingSnapshot":
        return cls(
            job_id=state.job_id,
            current_interval_ms=state.current_interval_ms,
            retry_count=state.retry_count,
            last_poll_at=state.last_poll_at,
            last_status=state.last_status,
            last_progress=state.last_progress,
        )


class PollingStatus(BaseModel):
    """Read-only view of the scheduler."""

    model_config = ConfigDict(frozen=True)

    active_jobs: list[str] = Field(default_factory=list, description="Jobs currently polled")
    total_jobs: int = Field(0, description="Number of jobs with polling state")
    is_paused: bool = Field(False, description="Whether scheduling is globally paused")
    pause_count: int = Field(0, description="Outstanding pause_all() calls")
    next_poll_times: dict[str, float] = Field(
        default_factory=dict, description="Estimated next poll time per job (clock seconds)"
    )
    jobs: dict[str, PollingState] = Field(default_factory=dict, description="Per-job state copies")


class PollingStats(BaseModel):
    """Aggregate polling statistics for debugging."""

    active_polls: int = 0
    average_interval_ms: float = 0.0
    total_retries: int = 0
    errors: dict[str, str] = Field(default_factory=dict)
