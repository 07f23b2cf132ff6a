"""Turn raw key-down / key-up events into debounced hold edges.

A hold starts only after the target key has stayed down for the grace period
with no other key pressed in between. Pressing another key first (a chord such
as Alt+Tab) taints the press and suppresses the hold entirely.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Hashable, Optional, Protocol

from models import HoldEdge, HoldPhase

logger = logging.getLogger(__name__)

HoldCallback = Callable[[HoldEdge], None]


class TimerHandle(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]


def thread_timer(interval_s: float, fn: Callable[[], None]) -> TimerHandle:
    timer = threading.Timer(interval_s, fn)
    timer.daemon = True
    return timer


class HoldDetector:
    def __init__(
        self,
        target_key: Hashable,
        callback: HoldCallback,
        grace_ms: int = 150,
        timer_factory: TimerFactory = thread_timer,
    ) -> None:
        self._target_key = target_key
        self._callback = callback
        self._grace_s = grace_ms / 1000.0
        self._timer_factory = timer_factory

        self._lock = threading.Lock()
        self._phase = HoldPhase.IDLE
        self._timer: Optional[TimerHandle] = None
        # Bumped whenever a pending timer is superseded, so a late fire is ignored.
        self._generation = 0
        self._closed = False

    @property
    def target_key(self) -> Hashable:
        return self._target_key

    @property
    def phase(self) -> HoldPhase:
        return self._phase

    @property
    def is_target_key_down(self) -> bool:
        return self._phase is not HoldPhase.IDLE

    @property
    def tainted(self) -> bool:
        return self._phase is HoldPhase.TAINTED

    @property
    def is_holding(self) -> bool:
        return self._phase is HoldPhase.HOLDING

    @property
    def pending_timer_active(self) -> bool:
        return self._timer is not None

    def set_target_key(self, key: Hashable) -> None:
        with self._lock:
            self._target_key = key
            self._cancel_timer()
            self._phase = HoldPhase.IDLE

    def on_key_down(self, key: Hashable) -> None:
        with self._lock:
            if self._closed:
                return
            phase = self._phase
            if key == self._target_key:
                if phase is HoldPhase.IDLE:
                    self._phase = HoldPhase.ARMED
                    self._arm_timer()
                # ARMED / TAINTED / HOLDING: OS key repeat, ignore
                return
            if phase is HoldPhase.ARMED:
                self._phase = HoldPhase.TAINTED
                self._cancel_timer()

    def on_key_up(self, key: Hashable) -> None:
        emit = False
        with self._lock:
            if self._closed or key != self._target_key:
                return
            self._cancel_timer()
            emit = self._phase is HoldPhase.HOLDING
            self._phase = HoldPhase.IDLE
        if emit:
            self._callback(HoldEdge.END)

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._cancel_timer()
            self._phase = HoldPhase.IDLE

    def _arm_timer(self) -> None:
        generation = self._generation
        self._timer = self._timer_factory(self._grace_s, lambda: self._on_grace_elapsed(generation))
        self._timer.start()

    def _cancel_timer(self) -> None:
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_grace_elapsed(self, generation: int) -> None:
        with self._lock:
            if self._closed or generation != self._generation:
                return
            self._timer = None
            if self._phase is not HoldPhase.ARMED:
                return
            self._phase = HoldPhase.HOLDING
        logger.debug("Hold detected on %s", self._target_key)
        self._callback(HoldEdge.START)
