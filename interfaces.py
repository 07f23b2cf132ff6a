"""Protocol interfaces used by PipelineCoordinator."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable, Optional, Protocol, Union

from models import AudioFrame, PasteResult, ProofreadOutcome


class Recorder(Protocol):
    def start(self, on_frame: Callable[[AudioFrame], None]) -> None: ...

    def stop(self) -> None: ...


class Transcriber(Protocol):
    def ensure_resources(self) -> None: ...

    def transcribe(
        self,
        wav_path: Union[str, Path],
        cancel: Optional[threading.Event] = None,
    ) -> str: ...


class Proofreader(Protocol):
    def proofread(
        self,
        raw_text: str,
        cancel: Optional[threading.Event] = None,
    ) -> ProofreadOutcome: ...


class PasteService(Protocol):
    def paste_text(self, text: str) -> PasteResult: ...


class Notifier(Protocol):
    def notify(self, title: str, body: str) -> None: ...

