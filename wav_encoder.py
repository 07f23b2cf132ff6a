"""16-bit mono PCM WAV encoding for the speech engine."""

from __future__ import annotations

import contextlib
import io
import logging
import os
import struct
import tempfile
import wave
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Union

import numpy as np

logger = logging.getLogger(__name__)

HEADER_SIZE = 44
INT16_MAX = 0x7FFF
INT16_MIN_MAGNITUDE = 0x8000


@dataclass(frozen=True)
class WavHeader:
    riff_size: int
    audio_format: int
    channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_size: int

    @property
    def file_size(self) -> int:
        return self.riff_size + 8


def float_to_int16(samples: np.ndarray) -> np.ndarray:
    """Map [-1.0, 1.0] floats to int16, clamping out-of-range input.

    Positive values scale by 0x7FFF and negative values by 0x8000 so both ends
    of the asymmetric int16 range are reachable.
    """
    # NaN maps to silence and +-inf to full scale.
    s = np.nan_to_num(np.asarray(samples, dtype=np.float64), nan=0.0, posinf=1.0, neginf=-1.0)
    s = np.clip(s, -1.0, 1.0)
    scaled = np.where(s < 0, s * INT16_MIN_MAGNITUDE, s * INT16_MAX)
    return scaled.astype(np.int16)


def encode_wav(samples: np.ndarray, sample_rate: int = 16000) -> bytes:
    pcm = np.asarray(samples, dtype=np.int16).astype("<i2", copy=False).tobytes()
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return buf.getvalue()


def write_wav(path: Union[str, Path], samples: np.ndarray, sample_rate: int = 16000) -> None:
    Path(path).write_bytes(encode_wav(samples, sample_rate))


def read_wav_header(data: bytes) -> WavHeader:
    if len(data) < HEADER_SIZE or data[0:4] != b"RIFF" or data[8:12] != b"WAVE":
        raise ValueError("not a RIFF/WAVE container")
    if data[12:16] != b"fmt " or data[36:40] != b"data":
        raise ValueError("unexpected chunk layout")
    (riff_size,) = struct.unpack_from("<I", data, 4)
    audio_format, channels, sample_rate, byte_rate, block_align, bits = struct.unpack_from(
        "<HHIIHH", data, 20
    )
    (data_size,) = struct.unpack_from("<I", data, 40)
    return WavHeader(
        riff_size=riff_size,
        audio_format=audio_format,
        channels=channels,
        sample_rate=sample_rate,
        byte_rate=byte_rate,
        block_align=block_align,
        bits_per_sample=bits,
        data_size=data_size,
    )


@contextlib.contextmanager
def temporary_wav(
    samples: np.ndarray,
    sample_rate: int = 16000,
    directory: Optional[Union[str, Path]] = None,
) -> Iterator[Path]:
    """Write float samples to a temp WAV file that is removed on exit."""
    fd, name = tempfile.mkstemp(prefix="holdtalk-", suffix=".wav", dir=directory)
    path = Path(name)
    try:
        with os.fdopen(fd, "wb") as fh:
            pcm = float_to_int16(samples)
            fh.write(encode_wav(pcm, sample_rate))
        logger.debug("WAV written: %s (%d samples)", path, len(pcm))
        yield path
    finally:
        with contextlib.suppress(FileNotFoundError):
            path.unlink()
