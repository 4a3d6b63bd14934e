"""Adaptive job status polling.

This package provides the poll scheduler, its backoff policy, the environment
gate that pauses polling while the host is hidden or offline, and optional
Redis persistence of polling snapshots.
"""

from .backoff import BackoffPolicy
from .gate import EnvironmentGate, ManualSignal, SignalSource
from .poller import PollingListener, PollScheduler, StatusFetcher
from .storage import SnapshotStorage

__all__ = [
    "BackoffPolicy",
    "EnvironmentGate",
    "ManualSignal",
    "PollScheduler",
    "PollingListener",
    "SignalSource",
    "SnapshotStorage",
    "StatusFetcher",
]
