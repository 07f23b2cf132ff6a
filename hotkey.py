"""Global key hook based on pynput, feeding a HoldDetector."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Set

from hold_detector import HoldDetector
from models import HoldEdge

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore

logger = logging.getLogger(__name__)

# Logged once each so users can discover the name of their preferred key.
MODIFIER_NAMES = frozenset(
    {
        "Key.alt", "Key.alt_l", "Key.alt_r", "Key.alt_gr",
        "Key.ctrl", "Key.ctrl_l", "Key.ctrl_r",
        "Key.shift", "Key.shift_l", "Key.shift_r",
        "Key.cmd", "Key.cmd_l", "Key.cmd_r",
        "Key.caps_lock", "Key.f13", "Key.f14", "Key.f15",
    }
)


def key_name(key: object) -> str:
    return str(key)


class GlobalHotkeyAdapter:
    def __init__(
        self,
        hotkey_name: str,
        on_edge: Callable[[HoldEdge], None],
        grace_ms: int = 150,
        detector: Optional[HoldDetector] = None,
    ) -> None:
        self._detector = detector or HoldDetector(hotkey_name, on_edge, grace_ms=grace_ms)
        self._listener: Optional[object] = None
        self._logged: Set[str] = set()
        self._lock = threading.Lock()
        logger.info("Trigger key: %s (hold to record, release to transcribe)", hotkey_name)

    @property
    def detector(self) -> HoldDetector:
        return self._detector

    def set_hotkey(self, hotkey_name: str) -> None:
        self._detector.set_target_key(hotkey_name)
        logger.info("Trigger key changed: %s", hotkey_name)

    def start(self) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")
        with self._lock:
            if self._listener is not None:
                return
            self._listener = keyboard.Listener(on_press=self._on_press, on_release=self._on_release)
            self._listener.start()
        logger.info("Keyboard hook started")

    def stop(self) -> None:
        with self._lock:
            listener = self._listener
            self._listener = None
        if listener is not None:
            listener.stop()
            logger.info("Keyboard hook stopped")
        self._detector.close()

    def _on_press(self, key: object) -> None:
        name = key_name(key)
        if name in MODIFIER_NAMES and name not in self._logged:
            self._logged.add(name)
            logger.info("Key discovered: %s", name)
        self._detector.on_key_down(name)

    def _on_release(self, key: object) -> None:
        self._detector.on_key_up(key_name(key))
