"""Per-session accumulation of captured audio blocks."""

from __future__ import annotations

import threading
import time
from typing import List, Optional, Tuple

import numpy as np


class AudioSessionBuffer:
    """Holds the float32 blocks of at most one live recording session."""

    def __init__(self, sample_rate: int = 16000) -> None:
        self.sample_rate = sample_rate
        self._lock = threading.Lock()
        self._frames: List[np.ndarray] = []
        self._active = False
        self._started_at: Optional[float] = None

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def started_at(self) -> Optional[float]:
        return self._started_at

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    def start(self) -> bool:
        """Open a fresh session. Returns False if one is already live."""
        with self._lock:
            if self._active:
                return False
            self._frames = []
            self._started_at = time.monotonic()
            self._active = True
            return True

    def push_frame(self, samples: np.ndarray) -> None:
        with self._lock:
            if not self._active:
                return
            block = np.asarray(samples, dtype=np.float32).reshape(-1)
            self._frames.append(block.copy())

    def finish(self) -> Tuple[np.ndarray, float]:
        """Close the session and return (samples, duration in seconds)."""
        with self._lock:
            frames = self._frames
            self._frames = []
            self._active = False
            self._started_at = None
        if frames:
            merged = np.concatenate(frames)
        else:
            merged = np.zeros(0, dtype=np.float32)
        return merged, len(merged) / float(self.sample_rate)

    def discard(self) -> None:
        with self._lock:
            self._frames = []
            self._active = False
            self._started_at = None


def min_samples(min_recording_ms: int, sample_rate: int) -> int:
    return int(sample_rate * (min_recording_ms / 1000.0))
