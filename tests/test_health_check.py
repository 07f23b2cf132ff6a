from __future__ import annotations

from pathlib import Path

import requests

from health_check import SETUP_ISSUE_TITLE, run_health_check
from proofreader import OllamaProofreader
from transcriber import WhisperCliTranscriber


class FakeTagsSession:
    def __init__(self, models: list[str] | None = None, down: bool = False) -> None:
        self.models = models or []
        self.down = down

    def get(self, url: str, timeout: float):  # noqa: ANN201
        if self.down:
            raise requests.ConnectionError("connection refused")
        response = requests.Response()
        response.status_code = 200
        response._content = (
            '{"models": [' + ", ".join('{"name": "%s"}' % m for m in self.models) + "]}"
        ).encode()
        return response


class FakeNotifier:
    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []

    def notify(self, title: str, body: str) -> None:
        self.messages.append((title, body))


def _transcriber(tmp_path: Path, present: bool) -> WhisperCliTranscriber:
    binary = tmp_path / "whisper-cli"
    model = tmp_path / "ggml-base.en.bin"
    if present:
        binary.write_text("")
        model.write_bytes(b"\x00")
    return WhisperCliTranscriber(binary=str(binary), model_path=str(model))


def test_healthy_setup_sends_no_notification(tmp_path: Path) -> None:
    notifier = FakeNotifier()
    status = run_health_check(
        _transcriber(tmp_path, present=True),
        OllamaProofreader(session=FakeTagsSession(["gemma3:4b"])),
        lambda: "ok",
        notifier,
    )

    assert status.whisper and status.model and status.ollama
    assert status.ollama_model == "gemma3:4b"
    assert status.problems() == []
    assert notifier.messages == []


def test_problems_are_reported_in_one_notification(tmp_path: Path) -> None:
    notifier = FakeNotifier()
    status = run_health_check(
        _transcriber(tmp_path, present=False),
        OllamaProofreader(session=FakeTagsSession(down=True)),
        lambda: "unavailable",
        notifier,
    )

    assert status.ollama is False
    assert len(notifier.messages) == 1
    title, body = notifier.messages[0]
    assert title == SETUP_ISSUE_TITLE
    assert "Microphone unavailable" in body
    assert "whisper binary" in body
    assert "speech model" in body
    assert "Ollama not running" in body


def test_running_ollama_without_models(tmp_path: Path) -> None:
    notifier = FakeNotifier()
    status = run_health_check(
        _transcriber(tmp_path, present=True),
        OllamaProofreader(session=FakeTagsSession([])),
        lambda: "ok",
        notifier,
    )

    assert status.ollama is True
    assert status.problems() == ["No Ollama model installed"]
