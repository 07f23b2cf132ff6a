"""Shared error codes, user-facing messages and pipeline faults."""

from __future__ import annotations

from typing import Optional

from models import RejectReason

INPUT_FAULT = "INPUT_FAULT"
RESOURCE_MISSING = "RESOURCE_MISSING"
TRANSCRIPTION_FAULT = "TRANSCRIPTION_FAULT"
NO_SPEECH = "NO_SPEECH"
PROOFREAD_FAULT = "PROOFREAD_FAULT"
PASTE_FAULT = "PASTE_FAULT"

ERROR_MESSAGES = {
    INPUT_FAULT: "Microphone unavailable or no audio received.",
    RESOURCE_MISSING: "Speech engine or model is missing.",
    TRANSCRIPTION_FAULT: "Transcription failed.",
    NO_SPEECH: "No speech detected.",
    PROOFREAD_FAULT: "Proofreading failed.",
    PASTE_FAULT: "Paste failed, check Accessibility permission.",
}


class PipelineFault(Exception):
    """Base class for every fault the coordinator recovers from."""

    code = TRANSCRIPTION_FAULT

    @property
    def user_message(self) -> str:
        return ERROR_MESSAGES.get(self.code, str(self))


class InputFault(PipelineFault):
    code = INPUT_FAULT


class ResourceMissing(PipelineFault):
    code = RESOURCE_MISSING


class TranscriptionFault(PipelineFault):
    code = TRANSCRIPTION_FAULT


class TranscriptionCancelled(TranscriptionFault):
    pass


class NoSpeechDetected(TranscriptionFault):
    code = NO_SPEECH


class ProofreadFault(PipelineFault):
    code = PROOFREAD_FAULT

    def __init__(self, message: str, reason: Optional[RejectReason] = None) -> None:
        super().__init__(message)
        self.reason = reason

    @property
    def user_message(self) -> str:
        if self.reason is RejectReason.SERVICE_UNAVAILABLE:
            return "Proofreading unavailable, is Ollama running?"
        if self.reason is not None:
            return f"Proofreading rejected ({self.reason.value})."
        return super().user_message


class PasteFault(PipelineFault):
    code = PASTE_FAULT
