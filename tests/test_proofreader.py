"""Tests for OllamaProofreader."""

from __future__ import annotations

from typing import Any

import pytest
import requests

from models import RejectReason
from proofreader import SYSTEM_PROMPT, OllamaProofreader


# ---------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------

class FakeResponse:
    def __init__(self, payload: Any = None, status_code: int = 200, text: str = "") -> None:
        self._payload = payload
        self.status_code = status_code
        self.text = text

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        return self._payload

    def raise_for_status(self) -> None:
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code}")


class FakeSession:
    def __init__(self, models: list[str] | None = None, reply: str = "", tags_error: Exception | None = None) -> None:
        self.models = models or []
        self.reply = reply
        self.tags_error = tags_error
        self.chat_error: Exception | None = None
        self.chat_status = 200
        self.chat_body: Any = None
        self.get_calls: list[tuple[str, float]] = []
        self.post_calls: list[tuple[str, dict, float]] = []

    def get(self, url: str, timeout: float) -> FakeResponse:
        self.get_calls.append((url, timeout))
        if self.tags_error is not None:
            raise self.tags_error
        return FakeResponse({"models": [{"name": n} for n in self.models]})

    def post(self, url: str, json: dict, timeout: float) -> FakeResponse:
        self.post_calls.append((url, json, timeout))
        if self.chat_error is not None:
            raise self.chat_error
        if self.chat_status != 200:
            return FakeResponse(status_code=self.chat_status, text="model not found")
        if self.chat_body is not None:
            return FakeResponse(self.chat_body)
        return FakeResponse({"message": {"role": "assistant", "content": self.reply}})


@pytest.fixture(autouse=True)
def _no_env_model(monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.delenv("OLLAMA_MODEL", raising=False)


def _make(session: FakeSession, **kwargs) -> OllamaProofreader:  # noqa: ANN003
    return OllamaProofreader(base_url="http://localhost:11434/", session=session, **kwargs)


# ---------------------------------------------------------------
# Model selection
# ---------------------------------------------------------------

def test_preferred_model_wins() -> None:
    session = FakeSession(models=["llama3.2:latest", "gemma3:4b"])
    assert _make(session).resolve_model() == "gemma3:4b"


def test_fallback_order_is_respected() -> None:
    session = FakeSession(models=["llama3.2:latest", "phi4:latest"])
    assert _make(session).resolve_model() == "phi4:latest"


def test_any_installed_model_as_last_resort() -> None:
    session = FakeSession(models=["mistral:7b"])
    assert _make(session).resolve_model() == "mistral:7b"


def test_no_models_resolves_to_none() -> None:
    assert _make(FakeSession(models=[])).resolve_model() is None


def test_resolution_is_cached_until_invalidated() -> None:
    session = FakeSession(models=["gemma3:4b"])
    proofreader = _make(session)

    proofreader.resolve_model()
    session.models = ["phi4:latest"]
    assert proofreader.resolve_model() == "gemma3:4b"
    assert len(session.get_calls) == 1

    proofreader.invalidate_model()
    assert proofreader.resolve_model() == "phi4:latest"
    assert len(session.get_calls) == 2


def test_unreachable_service_is_cached_as_none() -> None:
    session = FakeSession(tags_error=requests.ConnectionError("refused"))
    proofreader = _make(session)

    assert proofreader.resolve_model() is None
    session.tags_error = None
    session.models = ["gemma3:4b"]
    assert proofreader.resolve_model() is None


def test_liveness_check_uses_short_timeout() -> None:
    session = FakeSession(models=["gemma3:4b"])
    _make(session).resolve_model()
    url, timeout = session.get_calls[0]
    assert url == "http://localhost:11434/api/tags"
    assert timeout == 2.0


def test_explicit_override_skips_discovery() -> None:
    session = FakeSession(models=["gemma3:4b"])
    proofreader = _make(session, model_override="my-model")
    assert proofreader.resolve_model() == "my-model"
    assert session.get_calls == []


def test_env_override(monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setenv("OLLAMA_MODEL", " env-model ")
    session = FakeSession(models=["gemma3:4b"])
    assert _make(session).resolve_model() == "env-model"


def test_describe_backend() -> None:
    assert _make(FakeSession(models=["gemma3:4b"])).describe_backend() == "Ollama (gemma3:4b)"
    assert "ollama pull gemma3" in _make(FakeSession()).describe_backend()


# ---------------------------------------------------------------
# Proofreading
# ---------------------------------------------------------------

def test_proofread_accepts_clean_output() -> None:
    session = FakeSession(models=["gemma3:4b"], reply="Here's the cleaned text: Write a script for it.")
    outcome = _make(session).proofread("um write a script for it")

    assert outcome.accepted is True
    assert outcome.text == "Write a script for it."

    url, payload, timeout = session.post_calls[0]
    assert url == "http://localhost:11434/api/chat"
    assert timeout == 30.0
    assert payload["model"] == "gemma3:4b"
    assert payload["stream"] is False
    assert payload["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}
    assert payload["messages"][1]["content"] == "[TEXT]um write a script for it[/TEXT]"


def test_proofread_rejects_hallucinated_expansion() -> None:
    reply = "#!/bin/bash\n" + "echo 'step'\n" * 40
    session = FakeSession(models=["gemma3:4b"], reply=reply)
    outcome = _make(session).proofread("write a script for it")

    assert outcome.accepted is False
    assert outcome.reason is RejectReason.TOO_LONG


def test_proofread_without_model_is_unavailable() -> None:
    outcome = _make(FakeSession(models=[])).proofread("write a script for it")
    assert outcome.reason is RejectReason.SERVICE_UNAVAILABLE


def test_proofread_connection_error_is_unavailable() -> None:
    session = FakeSession(models=["gemma3:4b"])
    session.chat_error = requests.Timeout("read timed out")
    outcome = _make(session).proofread("write a script for it")
    assert outcome.reason is RejectReason.SERVICE_UNAVAILABLE


def test_proofread_http_error_is_unavailable() -> None:
    session = FakeSession(models=["gemma3:4b"])
    session.chat_status = 404
    outcome = _make(session).proofread("write a script for it")
    assert outcome.reason is RejectReason.SERVICE_UNAVAILABLE


def test_is_alive() -> None:
    assert _make(FakeSession(models=[])).is_alive() is True
    assert _make(FakeSession(tags_error=requests.ConnectionError("x"))).is_alive() is False


@pytest.mark.parametrize(
    "body",
    [
        ["not", "an", "object"],
        {"message": {"role": "assistant", "content": None}},
        {"message": None},
        {"done": True},
    ],
)
def test_proofread_malformed_reply_is_unavailable(body: Any) -> None:
    session = FakeSession(models=["gemma3:4b"])
    session.chat_body = body
    outcome = _make(session).proofread("write a script for it")

    assert outcome.accepted is False
    assert outcome.reason is RejectReason.SERVICE_UNAVAILABLE
