"""Startup health check for the external collaborators."""

from __future__ import annotations

import logging
from typing import Callable, Optional

import requests

from interfaces import Notifier
from models import HealthStatus
from proofreader import OllamaProofreader
from transcriber import WhisperCliTranscriber

logger = logging.getLogger(__name__)

SETUP_ISSUE_TITLE = "holdtalk - Setup Issue"


def run_health_check(
    transcriber: WhisperCliTranscriber,
    proofreader: OllamaProofreader,
    mic_probe: Callable[[], str],
    notifier: Optional[Notifier] = None,
) -> HealthStatus:
    resources = transcriber.check_resources()
    status = HealthStatus(
        mic=mic_probe(),
        whisper=resources["whisper"],
        model=resources["model"],
    )

    try:
        installed = proofreader.list_models()
    except (requests.RequestException, ValueError) as exc:
        logger.debug("Ollama liveness check failed: %s", exc)
    else:
        status.ollama = True
        status.ollama_model = installed[0] if installed else None

    logger.info(
        "[health] mic=%s, whisper=%s, model=%s, ollama=%s, ollamaModel=%s",
        status.mic,
        status.whisper,
        status.model,
        status.ollama,
        status.ollama_model,
    )

    problems = status.problems()
    if problems:
        logger.warning("[health] problems: %s", "; ".join(problems))
        if notifier is not None:
            notifier.notify(SETUP_ISSUE_TITLE, "\n".join(problems))
    return status
