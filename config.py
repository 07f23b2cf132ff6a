"""Defaults and a simple JSON-based config store."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

APP_NAME = "holdtalk"
CONFIG_DIR = Path.home() / ".config" / APP_NAME

HOLD_GRACE_MS = 150
MIN_RECORDING_MS = 400
SAMPLE_RATE = 16000
BLOCK_SIZE = 4096
DONE_HIDE_MS = 2000
ERROR_HIDE_MS = 3000

# Right Option / AltGr. Any pynput key name works, e.g. "Key.ctrl_r".
DEFAULT_HOTKEY = "Key.alt_r"

OLLAMA_URL = "http://localhost:11434"
PREFERRED_MODEL = "gemma3"
FALLBACK_MODELS = ("qwen2.5:3b", "phi4", "llama3.2")

WHISPER_BINARY = "whisper-cli"
WHISPER_MODEL = str(CONFIG_DIR / "models" / "ggml-base.en.bin")
WHISPER_LANGUAGE = "en"
WHISPER_PROMPT = (
    "Use proper punctuation, capitalization, and sentence structure. "
    "Format numbered lists clearly."
)


@dataclass
class Settings:
    hotkey: str = DEFAULT_HOTKEY
    mic_device: Optional[str] = None
    whisper_binary: str = WHISPER_BINARY
    whisper_model: str = WHISPER_MODEL
    ollama_url: str = OLLAMA_URL
    ollama_model: str = ""


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or CONFIG_DIR / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_hotkey(self) -> str:
        data = self._read_all()
        return str(data.get("hotkey", DEFAULT_HOTKEY))

    def set_hotkey(self, hotkey: str) -> None:
        data = self._read_all()
        data["hotkey"] = hotkey
        self._write_all(data)

    def get_mic_device(self) -> Optional[str]:
        value = self._read_all().get("mic_device")
        return str(value) if value else None

    def set_mic_device(self, device: Optional[str]) -> None:
        data = self._read_all()
        data["mic_device"] = device
        self._write_all(data)

    def load(self) -> Settings:
        """Stored values over defaults, environment over both."""
        data = self._read_all()
        settings = Settings(
            hotkey=str(data.get("hotkey", DEFAULT_HOTKEY)),
            mic_device=self.get_mic_device(),
            whisper_binary=str(data.get("whisper_binary", WHISPER_BINARY)),
            whisper_model=str(data.get("whisper_model", WHISPER_MODEL)),
            ollama_url=str(data.get("ollama_url", OLLAMA_URL)),
            ollama_model=str(data.get("ollama_model", "")),
        )
        settings.whisper_binary = os.getenv("HOLDTALK_WHISPER_BIN", settings.whisper_binary)
        settings.whisper_model = os.getenv("HOLDTALK_WHISPER_MODEL", settings.whisper_model)
        return settings

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
