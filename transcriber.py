"""Speech-to-text via the whisper.cpp command line tool.

The engine runs as a child process over a 16 kHz mono WAV file. Output is read
from stdout; stderr is kept separately and only surfaced on failure.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
import sys
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional, Union

from errors import ResourceMissing, TranscriptionCancelled, TranscriptionFault

logger = logging.getLogger(__name__)

BLANK_AUDIO_MARKER = re.compile(r"\[BLANK_AUDIO\]")
STDERR_EXCERPT_CHARS = 200
POLL_INTERVAL_S = 0.1


def clean_transcript(stdout: str) -> str:
    return BLANK_AUDIO_MARKER.sub("", stdout.strip()).strip()


class WhisperCliTranscriber:
    def __init__(
        self,
        binary: str,
        model_path: str,
        language: str = "en",
        prompt: str = "",
        lib_dir: Optional[str] = None,
        timeout_s: Optional[float] = None,
    ) -> None:
        self._binary = binary
        self._model_path = model_path
        self._language = language
        self._prompt = prompt
        self._lib_dir = lib_dir
        self._timeout_s = timeout_s

    def binary_path(self) -> Optional[str]:
        if os.path.sep in self._binary or (os.altsep and os.altsep in self._binary):
            return self._binary if Path(self._binary).is_file() else None
        return shutil.which(self._binary)

    def check_resources(self) -> Dict[str, bool]:
        return {
            "whisper": self.binary_path() is not None,
            "model": Path(self._model_path).is_file(),
        }

    def ensure_resources(self) -> None:
        status = self.check_resources()
        missing = []
        if not status["whisper"]:
            missing.append(f"whisper binary ({self._binary})")
        if not status["model"]:
            missing.append(f"speech model ({self._model_path})")
        if missing:
            raise ResourceMissing("missing " + ", ".join(missing))

    def build_args(self, wav_path: Union[str, Path]) -> List[str]:
        args = [
            self.binary_path() or self._binary,
            "-m", self._model_path,
            "-f", str(wav_path),
            "-nt",
            "-l", self._language,
            "-np",
        ]
        if self._prompt:
            args += ["--prompt", self._prompt]
        return args

    def transcribe(
        self,
        wav_path: Union[str, Path],
        cancel: Optional[threading.Event] = None,
    ) -> str:
        args = self.build_args(wav_path)
        logger.info("Whisper: %s", " ".join(args))
        try:
            proc = subprocess.Popen(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                env=self._child_env(),
            )
        except OSError as exc:
            raise ResourceMissing(f"failed to start whisper: {exc}") from exc

        started = time.monotonic()
        while True:
            if cancel is not None and cancel.is_set():
                proc.kill()
                proc.communicate()
                raise TranscriptionCancelled("transcription cancelled")
            try:
                stdout, stderr = proc.communicate(timeout=POLL_INTERVAL_S)
                break
            except subprocess.TimeoutExpired:
                if self._timeout_s is not None and time.monotonic() - started >= self._timeout_s:
                    proc.kill()
                    proc.communicate()
                    raise TranscriptionFault(f"whisper timed out after {self._timeout_s:.0f}s")

        if proc.returncode != 0:
            excerpt = (stderr or "")[:STDERR_EXCERPT_CHARS]
            logger.error("Whisper exited with code %s: %s", proc.returncode, excerpt)
            raise TranscriptionFault(f"whisper exited with code {proc.returncode}: {excerpt}")

        text = clean_transcript(stdout or "")
        logger.info("Whisper result (%d chars): %r", len(text), text[:80])
        return text

    def _child_env(self) -> Dict[str, str]:
        env = dict(os.environ)
        if self._lib_dir:
            var = "DYLD_LIBRARY_PATH" if sys.platform == "darwin" else "LD_LIBRARY_PATH"
            existing = env.get(var)
            env[var] = self._lib_dir + (os.pathsep + existing if existing else "")
        return env
