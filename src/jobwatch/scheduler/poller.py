"""Adaptive polling scheduler for remote job status.

Each job gets its own timer. When the timer fires the injected status fetcher is
called exactly once; the result decides the next interval or ends polling:

- non-terminal status: retry counter reset, interval shrinks for fast-moving
  jobs and grows for slow ones
- terminal status (completed, failed, cancelled): polling stops
- fetch error: interval backs off harder; after ``max_retries`` consecutive
  failures polling is abandoned and listeners receive RetryBudgetExhausted

All state lives on the event loop thread, so no locking is needed. Stopping a
job cancels its timer immediately; a fetch already in flight is left to finish
and its result is discarded; a restarted job waits for that fetch before
polling again, so one job id never has two fetches outstanding.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any

from ..clock import Clock, LoopClock, TimerHandle
from ..config import PollingConfig
from ..errors import RetryBudgetExhausted, TerminalJobError, TransientFetchError
from ..logging_config import log_with_context
from ..metrics import MetricsCollector, get_metrics_collector
from ..models.polling import (
    JobStatus,
    JobStatusReport,
    PollingSnapshot,
    PollingState,
    PollingStats,
    PollingStatus,
    PollPhase,
)
from .backoff import BackoffPolicy

logger = logging.getLogger(__name__)

StatusFetcher = Callable[[str], Awaitable["JobStatusReport | Mapping[str, Any]"]]


class PollingListener:
    """Receives scheduler events. Subclass and override the hooks you need."""

    def on_status(self, job_id: str, report: JobStatusReport) -> None:
        """Called after every successful, non-terminal fetch."""

    def on_terminal(
        self, job_id: str, report: JobStatusReport, error: TerminalJobError | None
    ) -> None:
        """Called once when a job reaches a terminal status.

        ``error`` is set when the job failed or was cancelled.
        """

    def on_abandoned(self, job_id: str, error: RetryBudgetExhausted) -> None:
        """Called once when polling gives up after repeated fetch failures."""


class PollScheduler:
    """Owns per-job polling state and the timers that drive it.

    Attributes:
        config: Active polling configuration.
        policy: Interval adjustment policy derived from the configuration.
    """

    def __init__(
        self,
        fetcher: StatusFetcher,
        config: PollingConfig | None = None,
        clock: Clock | None = None,
        metrics: MetricsCollector | None = None,
        listeners: Iterable[PollingListener] | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            fetcher: Async callable returning the status of a job.
            config: Polling configuration (defaults from environment).
            clock: Time source and timer factory (defaults to the asyncio loop).
            metrics: Metrics collector (defaults to the global collector).
            listeners: Initial event listeners.
        """
        self._fetcher = fetcher
        self.config = config if config is not None else PollingConfig()
        self.policy = BackoffPolicy.from_config(self.config)
        self._clock = clock if clock is not None else LoopClock()
        self._metrics = metrics if metrics is not None else get_metrics_collector()
        self._listeners: list[PollingListener] = list(listeners or [])

        self._states: dict[str, PollingState] = {}
        self._timers: dict[str, TimerHandle] = {}
        self._tasks: set[asyncio.Task] = set()
        self._inflight: dict[str, asyncio.Task] = {}
        self._pause_count = 0
        self._closed = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def is_paused(self) -> bool:
        return self._pause_count > 0

    def add_listener(self, listener: PollingListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: PollingListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def start_job_polling(self, job_id: str, initial_interval_ms: float | None = None) -> bool:
        """Begin polling a job.

        Calling this for a job that is already polled does nothing.

        Args:
            job_id: Job identifier.
            initial_interval_ms: Delay before the first poll, clamped to the
                configured bounds. Defaults to the minimum interval.

        Returns:
            True if polling was started by this call.
        """
        if self._closed:
            logger.warning(f"Scheduler is shut down, not polling job {job_id}")
            return False

        if not job_id:
            logger.warning("Ignoring request to poll an empty job id")
            return False

        if job_id in self._states:
            logger.debug(f"Job {job_id} is already being polled")
            return False

        interval = self.policy.clamp(
            initial_interval_ms if initial_interval_ms is not None else self.policy.min_interval_ms
        )
        state = PollingState(
            job_id=job_id,
            current_interval_ms=interval,
            last_poll_at=self._clock.time(),
        )
        self._states[job_id] = state
        self._update_gauges()

        logger.info(f"Started polling job {job_id} (interval={interval:.0f}ms)")
        self._schedule_next(state)
        return True

    def stop_job_polling(self, job_id: str) -> bool:
        """Stop polling a job and drop its state.

        Unknown job ids are ignored.

        Returns:
            True if the job was being polled.
        """
        self._cancel_timer(job_id)
        state = self._states.pop(job_id, None)
        if state is None:
            return False

        state.is_active = False
        state.phase = PollPhase.IDLE
        state.next_poll_at = None
        self._update_gauges()

        logger.info(f"Stopped polling job {job_id}")
        return True

    def start_batch_polling(self, job_ids: Iterable[str]) -> list[str]:
        """Start polling several jobs.

        Returns:
            The job ids that were newly started.
        """
        started = [job_id for job_id in job_ids if self.start_job_polling(job_id)]
        logger.info(f"Batch polling started for {len(started)} jobs")
        return started

    def stop_all(self) -> int:
        """Stop polling every job.

        Returns:
            Number of jobs that were stopped.
        """
        job_ids = list(self._states)
        for job_id in job_ids:
            self.stop_job_polling(job_id)
        return len(job_ids)

    def pause_all(self) -> None:
        """Suspend scheduling for every job.

        Pauses nest: scheduling resumes only after a matching number of
        resume_all() calls. Polling state is kept; pending timers are cancelled.
        """
        self._pause_count += 1
        for job_id in list(self._timers):
            self._cancel_timer(job_id)
            state = self._states.get(job_id)
            if state is not None:
                state.phase = PollPhase.IDLE
                state.next_poll_at = None

        self._update_gauges()
        logger.info(f"Polling paused (pause_count={self._pause_count})")

    def resume_all(self) -> None:
        """Release one pause; reschedules every job once no pause remains."""
        if self._pause_count == 0:
            logger.debug("resume_all() called while not paused")
            return

        self._pause_count -= 1
        self._update_gauges()
        if self._pause_count > 0:
            logger.info(f"Polling still paused (pause_count={self._pause_count})")
            return

        for state in list(self._states.values()):
            self._schedule_next(state)
        logger.info(f"Polling resumed for {len(self._states)} jobs")

    def reset_intervals(self) -> None:
        """Put every job back on the minimum interval with a clean retry count.

        Pending timers are rescheduled with the new interval.
        """
        for state in list(self._states.values()):
            state.current_interval_ms = self.policy.min_interval_ms
            state.retry_count = 0
            if state.job_id in self._timers:
                self._cancel_timer(state.job_id)
                state.phase = PollPhase.IDLE
                self._schedule_next(state)

    def update_config(self, **changes: Any) -> PollingConfig:
        """Apply configuration changes and re-clamp live intervals.

        Raises:
            pydantic.ValidationError: If the resulting configuration is invalid.
        """
        self.config = PollingConfig(**{**self.config.model_dump(), **changes})
        self.policy = BackoffPolicy.from_config(self.config)
        for state in self._states.values():
            state.current_interval_ms = self.policy.clamp(state.current_interval_ms)

        logger.info(f"Polling configuration updated: {sorted(changes)}")
        return self.config

    def is_polling(self, job_id: str) -> bool:
        state = self._states.get(job_id)
        return state is not None and state.is_active

    def get_polling_status(self) -> PollingStatus:
        """Return a read-only snapshot of the scheduler."""
        next_poll_times: dict[str, float] = {}
        for job_id, state in self._states.items():
            if state.next_poll_at is not None:
                next_poll_times[job_id] = state.next_poll_at
            else:
                next_poll_times[job_id] = state.last_poll_at + state.current_interval_ms / 1000

        return PollingStatus(
            active_jobs=[job_id for job_id, state in self._states.items() if state.is_active],
            total_jobs=len(self._states),
            is_paused=self.is_paused,
            pause_count=self._pause_count,
            next_poll_times=next_poll_times,
            jobs={job_id: state.model_copy() for job_id, state in self._states.items()},
        )

    def get_stats(self) -> PollingStats:
        """Return aggregate statistics across polled jobs."""
        states = list(self._states.values())
        average = (
            sum(state.current_interval_ms for state in states) / len(states) if states else 0.0
        )
        return PollingStats(
            active_polls=len(states),
            average_interval_ms=round(average, 1),
            total_retries=sum(state.retry_count for state in states),
            errors={state.job_id: state.last_error for state in states if state.last_error},
        )

    def export_state(self) -> list[PollingSnapshot]:
        """Return persistable snapshots of every polled job."""
        return [PollingSnapshot.from_state(state) for state in self._states.values()]

    async def shutdown(self) -> None:
        """Stop all polling and cancel fetches that are still running."""
        self._closed = True
        stopped = self.stop_all()

        tasks = [task for task in self._tasks if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        logger.info(f"Poll scheduler shut down ({stopped} jobs stopped, {len(tasks)} fetches cancelled)")

    # ------------------------------------------------------------------
    # Timer handling
    # ------------------------------------------------------------------

    def _is_live(self, state: PollingState) -> bool:
        return state.is_active and self._states.get(state.job_id) is state

    def _schedule_next(self, state: PollingState) -> None:
        if not self._is_live(state) or self.is_paused:
            return
        if state.phase == PollPhase.IN_FLIGHT or state.job_id in self._timers:
            return

        delay = state.current_interval_ms / 1000
        try:
            handle = self._clock.call_later(delay, self._on_timer, state.job_id)
        except RuntimeError as e:
            logger.error(f"Cannot schedule poll for job {state.job_id}: {e}")
            return

        self._timers[state.job_id] = handle
        state.phase = PollPhase.SCHEDULED
        state.next_poll_at = self._clock.time() + delay

    def _cancel_timer(self, job_id: str) -> None:
        handle = self._timers.pop(job_id, None)
        if handle is not None:
            handle.cancel()

    def _on_timer(self, job_id: str) -> None:
        self._timers.pop(job_id, None)
        state = self._states.get(job_id)
        if state is None or not state.is_active or self.is_paused:
            return

        previous = self._inflight.get(job_id)
        if previous is not None and not previous.done():
            # A fetch from a stopped run of this job id is still outstanding
            logger.debug(f"Deferring poll for job {job_id} until the previous fetch finishes")
            state.next_poll_at = None
            previous.add_done_callback(lambda _task: self._run_deferred(state))
            return

        state.phase = PollPhase.IN_FLIGHT
        state.last_poll_at = self._clock.time()
        state.next_poll_at = None

        task = asyncio.get_running_loop().create_task(self._poll(state))
        self._tasks.add(task)
        self._inflight[job_id] = task
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(lambda done: self._clear_inflight(job_id, done))

    def _run_deferred(self, state: PollingState) -> None:
        if not self._is_live(state) or state.phase != PollPhase.SCHEDULED:
            return
        if state.job_id in self._timers:
            return
        self._on_timer(state.job_id)

    def _clear_inflight(self, job_id: str, task: asyncio.Task) -> None:
        if self._inflight.get(job_id) is task:
            del self._inflight[job_id]

    # ------------------------------------------------------------------
    # Poll handling
    # ------------------------------------------------------------------

    async def _poll(self, state: PollingState) -> None:
        job_id = state.job_id
        started = time.perf_counter()

        try:
            result = await self._fetcher(job_id)
            report = (
                result
                if isinstance(result, JobStatusReport)
                else JobStatusReport.model_validate(result)
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._metrics.record_poll(time.perf_counter() - started, success=False)
            if isinstance(e, TransientFetchError):
                error = e
            else:
                error = TransientFetchError(f"{type(e).__name__}: {e}")
                error.__cause__ = e

            if self._is_live(state):
                self._handle_failure(state, error)
            else:
                logger.debug(f"Discarding late fetch error for stopped job {job_id}")
            return

        self._metrics.record_poll(time.perf_counter() - started, success=True)
        if not self._is_live(state):
            logger.debug(f"Discarding late status for stopped job {job_id}")
            return

        self._handle_success(state, report)

    def _handle_success(self, state: PollingState, report: JobStatusReport) -> None:
        state.retry_count = 0
        state.last_error = None
        state.last_status = report.status
        state.last_progress = report.progress

        if report.is_terminal:
            self._finish(state, report)
            return

        previous = state.current_interval_ms
        state.current_interval_ms = self.policy.after_success(previous, report.progress)
        state.phase = PollPhase.IDLE

        logger.debug(
            f"Job {state.job_id} at {report.progress:.0f}% ({report.status.value}), "
            f"interval {previous:.0f}ms -> {state.current_interval_ms:.0f}ms"
        )

        self._notify("on_status", state.job_id, report)
        self._schedule_next(state)

    def _handle_failure(self, state: PollingState, error: TransientFetchError) -> None:
        state.retry_count += 1
        state.last_error = str(error)

        if state.retry_count >= self.config.max_retries:
            self._retire(state)
            exhausted = RetryBudgetExhausted(state.job_id, state.retry_count, state.last_error)
            exhausted.__cause__ = error

            self._metrics.increment_counter("jobs_abandoned_total")
            log_with_context(
                logger,
                logging.WARNING,
                f"Polling abandoned for job {state.job_id} after {state.retry_count} failures",
                job_id=state.job_id,
                attempts=state.retry_count,
                last_error=state.last_error,
            )
            self._notify("on_abandoned", state.job_id, exhausted)
            return

        state.current_interval_ms = self.policy.after_failure(state.current_interval_ms)
        state.phase = PollPhase.IDLE

        logger.info(
            f"Poll failed for job {state.job_id} "
            f"(attempt {state.retry_count}/{self.config.max_retries}), "
            f"retrying in {state.current_interval_ms:.0f}ms: {error}"
        )
        self._schedule_next(state)

    def _finish(self, state: PollingState, report: JobStatusReport) -> None:
        self._retire(state)
        if report.is_completed and report.status not in (JobStatus.FAILED, JobStatus.CANCELLED):
            state.last_status = JobStatus.COMPLETED

        error = None
        if report.is_failure:
            error = TerminalJobError(state.job_id, report.status.value, report.error)
            self._metrics.increment_counter("jobs_failed_total")
        else:
            self._metrics.increment_counter("jobs_completed_total")

        logger.info(f"Job {state.job_id} reached terminal status {state.last_status.value}")
        self._notify("on_terminal", state.job_id, report, error)

    def _retire(self, state: PollingState) -> None:
        self._cancel_timer(state.job_id)
        self._states.pop(state.job_id, None)
        state.is_active = False
        state.phase = PollPhase.TERMINAL
        state.next_poll_at = None
        self._update_gauges()

    def _notify(self, hook: str, *args: Any) -> None:
        for listener in list(self._listeners):
            callback = getattr(listener, hook, None)
            if callback is None:
                continue
            try:
                callback(*args)
            except Exception:
                logger.exception(f"Polling listener {hook} failed for job {args[0]}")

    def _update_gauges(self) -> None:
        self._metrics.set_gauge("polling_active_jobs", float(len(self._states)))
        self._metrics.set_gauge("polling_paused", 1.0 if self.is_paused else 0.0)
