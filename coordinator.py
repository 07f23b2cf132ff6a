"""State-machine based pipeline orchestration.

One coordinator drives a dictation from hold-start to pasted text:

    IDLE -> RECORDING -> TRANSCRIBING -> CLEANING -> PASTING -> DONE -> IDLE

A recording shorter than the minimum goes straight back to IDLE. Any fault
moves to ERROR, which returns to IDLE after a display timeout. Stage changes
happen under one lock; the slow stage calls run on the caller's thread outside
it, while the busy stage keeps a second session from starting.
"""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Callable, Optional, Union

from audio_buffer import AudioSessionBuffer, min_samples
from errors import (
    InputFault,
    NoSpeechDetected,
    PasteFault,
    PipelineFault,
    ProofreadFault,
    TranscriptionFault,
)
from hold_detector import TimerFactory, TimerHandle, thread_timer
from interfaces import Notifier, PasteService, Proofreader, Recorder, Transcriber
from models import AudioFrame, HoldEdge, PasteResult, PipelineStage, StatusEvent
from wav_encoder import temporary_wav

logger = logging.getLogger(__name__)

StatusCallback = Callable[[StatusEvent], None]

NOTIFY_TITLE = "holdtalk"

_STAGE_FAULTS = {
    PipelineStage.TRANSCRIBING: TranscriptionFault,
    PipelineStage.CLEANING: ProofreadFault,
    PipelineStage.PASTING: PasteFault,
}


class PipelineCoordinator:
    def __init__(
        self,
        recorder: Recorder,
        transcriber: Transcriber,
        proofreader: Proofreader,
        paste_service: PasteService,
        notifier: Optional[Notifier] = None,
        on_status: Optional[StatusCallback] = None,
        sample_rate: int = 16000,
        min_recording_ms: int = 400,
        done_hide_ms: int = 2000,
        error_hide_ms: int = 3000,
        temp_dir: Optional[Union[str, Path]] = None,
        timer_factory: TimerFactory = thread_timer,
    ) -> None:
        self._recorder = recorder
        self._transcriber = transcriber
        self._proofreader = proofreader
        self._paste_service = paste_service
        self._notifier = notifier
        self._on_status = on_status
        self._sample_rate = sample_rate
        self._min_samples = min_samples(min_recording_ms, sample_rate)
        self._done_hide_s = done_hide_ms / 1000.0
        self._error_hide_s = error_hide_ms / 1000.0
        self._temp_dir = temp_dir
        self._timer_factory = timer_factory

        self._lock = threading.RLock()
        self._stage = PipelineStage.IDLE
        self._buffer = AudioSessionBuffer(sample_rate)
        self._cancel = threading.Event()
        self._idle_timer: Optional[TimerHandle] = None
        self._idle_generation = 0
        self._closed = False
        self._stopping = False

    @property
    def stage(self) -> PipelineStage:
        return self._stage

    @property
    def buffer(self) -> AudioSessionBuffer:
        return self._buffer

    def handle_edge(self, edge: HoldEdge) -> None:
        if edge is HoldEdge.START:
            self.start_session()
        elif edge is HoldEdge.END:
            self.stop_session()

    def start_session(self) -> bool:
        with self._lock:
            if self._closed:
                return False
            if self._stage.is_busy:
                logger.info("Hold ignored, pipeline busy (%s)", self._stage.value)
                return False
            self._cancel_idle_timer()
            if not self._buffer.start():
                logger.warning("Recording session already live, hold ignored")
                return False
            self._transition(PipelineStage.RECORDING)
            logger.info("Recording started")
            try:
                self._recorder.start(self._on_frame)
            except PipelineFault as fault:
                self._fail(fault)
                return False
            except Exception as exc:
                self._fail(InputFault(f"recorder failed to start: {exc}"))
                return False
            return True

    def push_frame(self, samples) -> None:  # noqa: ANN001
        # Called on the audio thread. Must not take self._lock: recorder.stop()
        # waits for this callback and is called by stop_session.
        self._buffer.push_frame(samples)

    def stop_session(self) -> None:
        with self._lock:
            if self._closed or self._stopping or self._stage is not PipelineStage.RECORDING:
                return
            self._stopping = True
        # Outside the lock: stopping the stream waits for the audio callback.
        self._safe_stop_recorder()
        with self._lock:
            self._stopping = False
            if self._closed:
                return
            samples, duration_s = self._buffer.finish()
            logger.info("Recording stopped (%.2fs, %d samples)", duration_s, len(samples))
            if len(samples) == 0:
                self._fail(InputFault("no audio frames received"))
                return
            if len(samples) < self._min_samples:
                logger.info(
                    "Recording too short (%d samples < %d min), discarding",
                    len(samples),
                    self._min_samples,
                )
                self._transition(PipelineStage.IDLE)
                return
            self._transition(PipelineStage.TRANSCRIBING)

        self._run_pipeline(samples)

    def shutdown(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._cancel.set()
            self._cancel_idle_timer()
        self._safe_stop_recorder()
        self._buffer.discard()
        logger.info("Pipeline shut down")

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _run_pipeline(self, samples) -> None:  # noqa: ANN001
        pipeline_start = time.monotonic()
        try:
            t0 = time.monotonic()
            with temporary_wav(samples, self._sample_rate, self._temp_dir) as wav_path:
                logger.info("[timing] WAV encode: %dms", _ms_since(t0))
                self._transcriber.ensure_resources()
                t0 = time.monotonic()
                raw_text = self._transcriber.transcribe(wav_path, cancel=self._cancel)
                logger.info("[timing] Whisper transcribe: %dms", _ms_since(t0))

            if not raw_text.strip():
                raise NoSpeechDetected("no speech detected")
            logger.debug("[whisper] raw transcription: %r", raw_text)
            if not self._advance(PipelineStage.CLEANING):
                return

            t0 = time.monotonic()
            outcome = self._proofreader.proofread(raw_text, cancel=self._cancel)
            if not outcome.accepted:
                raise ProofreadFault(f"proofreading rejected: {outcome.reason.value}", outcome.reason)
            cleaned = outcome.text or ""
            logger.info("[timing] LLM proofread: %dms", _ms_since(t0))
            logger.debug("[llm] input (%d chars): %r", len(raw_text), raw_text)
            logger.debug("[llm] output (%d chars): %r", len(cleaned), cleaned)
            if not self._advance(PipelineStage.PASTING):
                return

            t0 = time.monotonic()
            result = self._run_paste(cleaned)
            if not result.success:
                raise PasteFault(result.reason)
            logger.info("[timing] Paste: %dms", _ms_since(t0))
            if not self._advance(PipelineStage.DONE):
                return
            logger.info("[timing] Total pipeline: %dms", _ms_since(pipeline_start))
        except NoSpeechDetected as fault:
            logger.info("No speech detected")
            self._fail(fault)
        except PipelineFault as fault:
            self._fail(fault)
        except Exception as exc:
            logger.exception("Pipeline failed")
            fault_type = _STAGE_FAULTS.get(self._stage, TranscriptionFault)
            self._fail(fault_type(str(exc)))

    def _run_paste(self, text: str) -> PasteResult:
        try:
            return self._paste_service.paste_text(text)
        except Exception as exc:
            return PasteResult(success=False, reason=str(exc), clipboard_restored=False)

    def _on_frame(self, frame: AudioFrame) -> None:
        self.push_frame(frame.samples)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _advance(self, to_stage: PipelineStage) -> bool:
        with self._lock:
            if self._closed:
                logger.info("Pipeline closed, dropping %s", to_stage.value)
                return False
            self._transition(to_stage)
            if to_stage is PipelineStage.DONE:
                self._schedule_idle(self._done_hide_s)
            return True

    def _fail(self, fault: PipelineFault) -> None:
        with self._lock:
            if self._closed:
                logger.info("Fault after shutdown ignored: %s", fault)
                return
            logger.error("%s: %s", fault.code, fault)
            self._buffer.discard()
            message = fault.user_message
            self._transition(PipelineStage.ERROR, message)
            self._schedule_idle(self._error_hide_s)
        self._safe_stop_recorder()
        self._notify(message)

    def _transition(self, to_stage: PipelineStage, message: str = "") -> None:
        from_stage = self._stage
        if from_stage == to_stage:
            return
        self._stage = to_stage
        logger.debug("Stage %s -> %s", from_stage.value, to_stage.value)
        if self._on_status:
            self._on_status(StatusEvent(to_stage, message))

    def _notify(self, message: str) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier.notify(NOTIFY_TITLE, message)
        except Exception:  # pragma: no cover - defensive
            logger.exception("Notification failed")

    def _schedule_idle(self, delay_s: float) -> None:
        self._cancel_idle_timer()
        generation = self._idle_generation
        self._idle_timer = self._timer_factory(delay_s, lambda: self._on_idle_timeout(generation))
        self._idle_timer.start()

    def _cancel_idle_timer(self) -> None:
        self._idle_generation += 1
        if self._idle_timer is not None:
            self._idle_timer.cancel()
            self._idle_timer = None

    def _on_idle_timeout(self, generation: int) -> None:
        with self._lock:
            if self._closed or generation != self._idle_generation:
                return
            self._idle_timer = None
            if self._stage in (PipelineStage.DONE, PipelineStage.ERROR):
                self._transition(PipelineStage.IDLE)

    def _safe_stop_recorder(self) -> None:
        try:
            self._recorder.stop()
        except Exception:  # pragma: no cover - defensive
            logger.exception("Recorder stop failed")


def _ms_since(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
