"""Tests for WhisperCliTranscriber."""

from __future__ import annotations

import subprocess
import threading
from pathlib import Path
from unittest.mock import patch

import pytest

from errors import ResourceMissing, TranscriptionCancelled, TranscriptionFault
from transcriber import WhisperCliTranscriber, clean_transcript


# ---------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------

class FakeProc:
    def __init__(self, stdout: str = "", stderr: str = "", returncode: int = 0, hang: bool = False) -> None:
        self._stdout = stdout
        self._stderr = stderr
        self._hang = hang
        self.returncode = None if hang else returncode
        self._final_code = returncode
        self.killed = False

    def communicate(self, timeout=None):  # noqa: ANN001
        if self._hang and not self.killed:
            raise subprocess.TimeoutExpired(cmd="whisper-cli", timeout=timeout)
        self.returncode = -9 if self.killed else self._final_code
        return self._stdout, self._stderr

    def kill(self) -> None:
        self.killed = True


def _resources(tmp_path: Path) -> WhisperCliTranscriber:
    binary = tmp_path / "whisper-cli"
    binary.write_text("#!/bin/sh\n")
    model = tmp_path / "ggml-base.en.bin"
    model.write_bytes(b"\x00")
    return WhisperCliTranscriber(
        binary=str(binary),
        model_path=str(model),
        language="en",
        prompt="Use proper punctuation.",
    )


# ---------------------------------------------------------------
# Output cleaning
# ---------------------------------------------------------------

def test_clean_transcript_strips_blank_marker() -> None:
    assert clean_transcript("  [BLANK_AUDIO]\n") == ""
    assert clean_transcript(" Hello there. [BLANK_AUDIO] \n") == "Hello there."


# ---------------------------------------------------------------
# Resource checks
# ---------------------------------------------------------------

def test_ensure_resources_passes_when_present(tmp_path: Path) -> None:
    transcriber = _resources(tmp_path)
    assert transcriber.check_resources() == {"whisper": True, "model": True}
    transcriber.ensure_resources()


def test_ensure_resources_names_missing_artifacts(tmp_path: Path) -> None:
    transcriber = WhisperCliTranscriber(
        binary=str(tmp_path / "nope" / "whisper-cli"),
        model_path=str(tmp_path / "missing.bin"),
    )
    with pytest.raises(ResourceMissing) as info:
        transcriber.ensure_resources()
    assert "whisper binary" in str(info.value)
    assert "speech model" in str(info.value)


# ---------------------------------------------------------------
# Subprocess contract
# ---------------------------------------------------------------

def test_build_args_uses_fixed_flag_set(tmp_path: Path) -> None:
    transcriber = _resources(tmp_path)
    args = transcriber.build_args("/tmp/a.wav")

    assert args[0] == str(tmp_path / "whisper-cli")
    assert args[args.index("-f") + 1] == "/tmp/a.wav"
    assert args[args.index("-l") + 1] == "en"
    assert "-nt" in args
    assert "-np" in args
    assert args[args.index("--prompt") + 1] == "Use proper punctuation."


def test_success_returns_trimmed_stdout(tmp_path: Path) -> None:
    transcriber = _resources(tmp_path)
    proc = FakeProc(stdout="\n um write a script for it \n", stderr="whisper_init: loading")

    with patch("transcriber.subprocess.Popen", return_value=proc) as popen:
        text = transcriber.transcribe(tmp_path / "a.wav")

    assert text == "um write a script for it"
    kwargs = popen.call_args.kwargs
    assert kwargs["stdout"] == subprocess.PIPE
    assert kwargs["stderr"] == subprocess.PIPE


def test_blank_audio_becomes_empty_text(tmp_path: Path) -> None:
    transcriber = _resources(tmp_path)
    with patch("transcriber.subprocess.Popen", return_value=FakeProc(stdout="[BLANK_AUDIO]\n")):
        assert transcriber.transcribe(tmp_path / "a.wav") == ""


def test_nonzero_exit_raises_with_stderr_excerpt(tmp_path: Path) -> None:
    transcriber = _resources(tmp_path)
    proc = FakeProc(stderr="error: failed to read WAV " + "x" * 500, returncode=2)

    with patch("transcriber.subprocess.Popen", return_value=proc):
        with pytest.raises(TranscriptionFault) as info:
            transcriber.transcribe(tmp_path / "a.wav")

    message = str(info.value)
    assert "code 2" in message
    assert "failed to read WAV" in message
    assert len(message) < 300


def test_launch_failure_is_resource_missing(tmp_path: Path) -> None:
    transcriber = _resources(tmp_path)
    with patch("transcriber.subprocess.Popen", side_effect=FileNotFoundError("whisper-cli")):
        with pytest.raises(ResourceMissing):
            transcriber.transcribe(tmp_path / "a.wav")


def test_cancel_kills_child(tmp_path: Path) -> None:
    transcriber = _resources(tmp_path)
    proc = FakeProc(hang=True)
    cancel = threading.Event()
    cancel.set()

    with patch("transcriber.subprocess.Popen", return_value=proc):
        with pytest.raises(TranscriptionCancelled):
            transcriber.transcribe(tmp_path / "a.wav", cancel=cancel)

    assert proc.killed is True


def test_configured_timeout_kills_child(tmp_path: Path) -> None:
    transcriber = _resources(tmp_path)
    transcriber._timeout_s = 0.0
    proc = FakeProc(hang=True)

    with patch("transcriber.subprocess.Popen", return_value=proc):
        with pytest.raises(TranscriptionFault, match="timed out"):
            transcriber.transcribe(tmp_path / "a.wav")

    assert proc.killed is True


def test_lib_dir_is_exported_to_child(tmp_path: Path) -> None:
    transcriber = WhisperCliTranscriber(
        binary="whisper-cli", model_path="m.bin", lib_dir=str(tmp_path)
    )
    env = transcriber._child_env()
    assert str(tmp_path) in (env.get("LD_LIBRARY_PATH", "") + env.get("DYLD_LIBRARY_PATH", ""))
