"""Auto paste service for text insertion at the cursor."""

from __future__ import annotations

import logging
import sys
import time

from errors import PASTE_FAULT
from models import PasteResult

try:
    import pyperclip
except Exception:  # pragma: no cover
    pyperclip = None  # type: ignore

try:
    from pynput.keyboard import Controller, Key
except Exception:  # pragma: no cover
    Controller = None  # type: ignore
    Key = None  # type: ignore

logger = logging.getLogger(__name__)


class ClipboardPasteService:
    def __init__(self, restore_delay_s: float = 0.1, restore_clipboard: bool = True) -> None:
        self._restore_delay_s = restore_delay_s
        self._restore_clipboard = restore_clipboard

    def paste_text(self, text: str) -> PasteResult:
        if not text.strip():
            return PasteResult(success=False, reason="empty text", clipboard_restored=True)
        if pyperclip is None or Controller is None or Key is None:
            return PasteResult(
                success=False,
                reason="clipboard/keyboard dependency missing",
                clipboard_restored=False,
            )

        old_clip: str | None = None
        try:
            if self._restore_clipboard:
                old_clip = pyperclip.paste()
            pyperclip.copy(text)
            modifier = Key.cmd if sys.platform == "darwin" else Key.ctrl
            keyboard = Controller()
            keyboard.press(modifier)
            keyboard.press("v")
            keyboard.release("v")
            keyboard.release(modifier)
            restored = False
            if old_clip is not None:
                time.sleep(self._restore_delay_s)
                pyperclip.copy(old_clip)
                restored = True
            return PasteResult(success=True, reason="ok", clipboard_restored=restored)
        except Exception as exc:
            logger.error("Paste failed: %s", exc)
            restored = False
            try:
                if old_clip is not None:
                    pyperclip.copy(old_clip)
                    restored = True
            except Exception:
                restored = False
            return PasteResult(
                success=False,
                reason=f"{PASTE_FAULT}: {exc}",
                clipboard_restored=restored,
            )
