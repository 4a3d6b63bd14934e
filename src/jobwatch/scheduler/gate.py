"""Environment gate that pauses polling while the host is hidden or offline.

The host exposes two binary signals: foreground/background and online/offline.
Each is a SignalSource; the gate folds both into pause_all()/resume_all() calls
on the scheduler. Because the scheduler's pauses are reference-counted, the two
signals never resume each other early.
"""

from __future__ import annotations

import logging
from typing import Callable, Protocol

from .poller import PollScheduler

logger = logging.getLogger(__name__)

SignalCallback = Callable[[bool], None]


class SignalSource(Protocol):
    """Subscribable binary environment signal."""

    def subscribe(self, callback: SignalCallback) -> None: ...

    def unsubscribe(self, callback: SignalCallback) -> None: ...


class ManualSignal:
    """In-memory signal source the host drives by calling set().

    Useful for wiring platform notifications (a window focus hook, a network
    monitor) into the gate, and for tests.
    """

    def __init__(self, name: str, initial: bool = True) -> None:
        self.name = name
        self._value = initial
        self._subscribers: list[SignalCallback] = []

    @property
    def value(self) -> bool:
        return self._value

    def subscribe(self, callback: SignalCallback) -> None:
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: SignalCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def set(self, value: bool) -> None:
        """Publish a new value to every subscriber."""
        self._value = value
        for callback in list(self._subscribers):
            try:
                callback(value)
            except Exception:
                logger.exception(f"Subscriber of signal '{self.name}' failed")


class EnvironmentGate:
    """Pauses and resumes a PollScheduler from visibility and network signals."""

    def __init__(
        self,
        scheduler: PollScheduler,
        visibility: SignalSource | None = None,
        network: SignalSource | None = None,
        pause_on_background: bool | None = None,
    ) -> None:
        """Initialize the gate.

        Args:
            scheduler: Scheduler to pause and resume.
            visibility: Foreground (True) / background (False) signal.
            network: Online (True) / offline (False) signal.
            pause_on_background: Whether going to the background pauses polling.
                Defaults to the scheduler's ``pause_on_background`` setting.
        """
        self.scheduler = scheduler
        self.visibility = visibility
        self.network = network
        self.pause_on_background = (
            scheduler.config.pause_on_background
            if pause_on_background is None
            else pause_on_background
        )
        self._foreground = True
        self._online = True
        self._visibility_paused = False
        self._network_paused = False
        self._attached = False

    @property
    def is_foreground(self) -> bool:
        return self._foreground

    @property
    def is_online(self) -> bool:
        return self._online

    @property
    def should_schedule(self) -> bool:
        """Whether the environment currently allows polling."""
        if not self._online:
            return False
        return self._foreground or not self.pause_on_background

    def attach(self) -> None:
        """Subscribe to both signals."""
        if self._attached:
            return
        if self.visibility is not None:
            self.visibility.subscribe(self.on_visibility_change)
        if self.network is not None:
            self.network.subscribe(self.on_network_change)
        self._attached = True
        logger.debug("Environment gate attached")

    def detach(self) -> None:
        """Unsubscribe and release any pause this gate still holds."""
        if self.visibility is not None:
            self.visibility.unsubscribe(self.on_visibility_change)
        if self.network is not None:
            self.network.unsubscribe(self.on_network_change)
        self._attached = False

        if self._visibility_paused:
            self._visibility_paused = False
            self.scheduler.resume_all()
        if self._network_paused:
            self._network_paused = False
            self.scheduler.resume_all()
        logger.debug("Environment gate detached")

    def on_visibility_change(self, foreground: bool) -> None:
        """Handle a foreground/background transition."""
        if foreground == self._foreground:
            return
        self._foreground = foreground

        if not foreground:
            if self.pause_on_background and not self._visibility_paused:
                logger.info("Host moved to background, pausing polling")
                self._visibility_paused = True
                self.scheduler.pause_all()
            return

        if self._visibility_paused:
            logger.info("Host returned to foreground, resuming polling")
            self._visibility_paused = False
            self._catch_up()

    def on_network_change(self, online: bool) -> None:
        """Handle an online/offline transition."""
        if online == self._online:
            return
        self._online = online

        if not online:
            if not self._network_paused:
                logger.info("Network offline, pausing polling")
                self._network_paused = True
                self.scheduler.pause_all()
            return

        if self._network_paused:
            logger.info("Network back online, resuming polling")
            self._network_paused = False
            self._catch_up()

    def _catch_up(self) -> None:
        self.scheduler.reset_intervals()
        self.scheduler.resume_all()
