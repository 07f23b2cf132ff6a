"""Microphone recorder adapter."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, List, Optional

from errors import InputFault
from models import AudioFrame

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)

FrameCallback = Callable[[AudioFrame], None]


class SoundDeviceRecorder:
    """Streams float32 mono blocks to a callback while started."""

    def __init__(
        self,
        sample_rate: int = 16000,
        block_size: int = 4096,
        device: Optional[str] = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.block_size = block_size
        self.device = device
        self._stream: Any = None
        self._running = False
        self._lock = threading.Lock()
        self._on_frame: Optional[FrameCallback] = None
        self.frames_delivered = 0

    def start(self, on_frame: FrameCallback) -> None:
        with self._lock:
            if self._running:
                return
            if sd is None:
                raise InputFault("sounddevice is not installed")
            self._on_frame = on_frame
            self.frames_delivered = 0
            try:
                self._stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    channels=1,
                    dtype="float32",
                    blocksize=self.block_size,
                    device=self.device,
                    callback=self._on_audio,
                )
                self._stream.start()
            except Exception as exc:
                self._stream = None
                raise InputFault(f"microphone unavailable: {exc}") from exc
            self._running = True
            logger.info("Recording stream opened (device=%s)", self.device or "default")

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
            stream = self._stream
            self._stream = None
        if stream is not None:
            stream.stop()
            stream.close()
        logger.info("Recording stream closed (%d blocks)", self.frames_delivered)

    def set_device(self, device: Optional[str]) -> None:
        self.device = device

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if status:
            logger.debug("Audio status: %s", status)
        on_frame = self._on_frame
        if not self._running or on_frame is None or np is None:
            return
        samples = np.asarray(indata, dtype=np.float32).reshape(-1).copy()
        self.frames_delivered += 1
        on_frame(
            AudioFrame(
                samples=samples,
                sample_rate=self.sample_rate,
                timestamp_ms=int(time.time() * 1000),
            )
        )


def list_input_devices() -> List[str]:
    if sd is None:
        return []
    try:
        devices = sd.query_devices()
    except Exception:
        return []
    return [str(d["name"]) for d in devices if int(d.get("max_input_channels", 0)) > 0]


def probe_default_input() -> str:
    """Return "ok", "unavailable" or "unknown" for the default input device."""
    if sd is None:
        return "unknown"
    try:
        info = sd.query_devices(kind="input")
    except Exception:
        return "unavailable"
    if not info or int(info.get("max_input_channels", 0)) < 1:
        return "unavailable"
    return "ok"
