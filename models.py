"""Core data models for the app."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional


class PipelineStage(str, Enum):
    IDLE = "IDLE"
    RECORDING = "RECORDING"
    TRANSCRIBING = "TRANSCRIBING"
    CLEANING = "CLEANING"
    PASTING = "PASTING"
    DONE = "DONE"
    ERROR = "ERROR"

    @property
    def is_busy(self) -> bool:
        return self in _BUSY_STAGES


_BUSY_STAGES = frozenset(
    {
        PipelineStage.RECORDING,
        PipelineStage.TRANSCRIBING,
        PipelineStage.CLEANING,
        PipelineStage.PASTING,
    }
)


class HoldEdge(str, Enum):
    START = "hold-start"
    END = "hold-end"


class HoldPhase(str, Enum):
    IDLE = "idle"          # target key up
    ARMED = "armed"        # target down, grace timer pending
    TAINTED = "tainted"    # target down, a foreign key went down first
    HOLDING = "holding"    # grace elapsed, hold-start emitted


class RejectReason(str, Enum):
    TOO_SHORT = "too-short"
    TOO_LONG = "too-long"
    LOW_OVERLAP = "low-overlap"
    SERVICE_UNAVAILABLE = "service-unavailable"


@dataclass(frozen=True)
class ProofreadOutcome:
    text: Optional[str] = None
    reason: Optional[RejectReason] = None

    @property
    def accepted(self) -> bool:
        return self.text is not None

    @classmethod
    def ok(cls, text: str) -> "ProofreadOutcome":
        return cls(text=text)

    @classmethod
    def rejected(cls, reason: RejectReason) -> "ProofreadOutcome":
        return cls(reason=reason)


@dataclass(frozen=True)
class StatusEvent:
    stage: PipelineStage
    message: str = ""


@dataclass
class AudioFrame:
    samples: Any  # float32 ndarray, mono
    sample_rate: int = 16000
    timestamp_ms: int = 0


@dataclass
class PasteResult:
    success: bool
    reason: str
    clipboard_restored: bool


@dataclass
class HealthStatus:
    mic: str = "unknown"  # "ok" | "unavailable" | "unknown"
    whisper: bool = False
    model: bool = False
    ollama: bool = False
    ollama_model: Optional[str] = None

    def problems(self) -> List[str]:
        found: List[str] = []
        if self.mic == "unavailable":
            found.append("Microphone unavailable")
        missing = []
        if not self.whisper:
            missing.append("whisper binary")
        if not self.model:
            missing.append("speech model")
        if missing:
            found.append(f"Missing: {', '.join(missing)}")
        if not self.ollama:
            found.append("Ollama not running, proofreading unavailable")
        elif not self.ollama_model:
            found.append("No Ollama model installed")
        return found
