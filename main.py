"""Application entrypoint."""

from __future__ import annotations

import logging
import sys
import threading
from typing import Optional

from auto_paste import ClipboardPasteService
from config import (
    BLOCK_SIZE,
    DONE_HIDE_MS,
    ERROR_HIDE_MS,
    FALLBACK_MODELS,
    HOLD_GRACE_MS,
    MIN_RECORDING_MS,
    PREFERRED_MODEL,
    SAMPLE_RATE,
    WHISPER_LANGUAGE,
    WHISPER_PROMPT,
    JsonConfigStore,
)
from coordinator import PipelineCoordinator
from health_check import run_health_check
from hotkey import GlobalHotkeyAdapter
from log_setup import configure_logging, log_session_start
from models import HoldEdge, PipelineStage, StatusEvent
from overlay import OverlayWindow
from proofreader import OllamaProofreader
from recorder import SoundDeviceRecorder, list_input_devices, probe_default_input
from transcriber import WhisperCliTranscriber

try:
    from PySide6.QtCore import QObject, Signal, QSize
    from PySide6.QtGui import QAction, QIcon, QPixmap, QPainter, QColor, QBrush
    from PySide6.QtWidgets import QApplication, QInputDialog, QMenu, QMessageBox, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger("holdtalk")

SYSTEM_DEFAULT_MIC = "System Default"
PIPELINE_JOIN_TIMEOUT_S = 2.0


def _create_icon(color: str = "#888888", size: int = 22) -> QIcon:
    """Generate a simple circular tray icon with the given color."""
    pixmap = QPixmap(QSize(size, size))
    pixmap.fill(QColor(0, 0, 0, 0))  # transparent background
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(QBrush(QColor(color)))
    painter.setPen(QColor(color))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


ICON_IDLE = "#888888"      # grey
ICON_RECORDING = "#FF4444"  # red
ICON_BUSY = "#4488FF"      # blue
ICON_ERROR = "#FF8800"     # orange

_BUSY_STAGES = {PipelineStage.TRANSCRIBING, PipelineStage.CLEANING, PipelineStage.PASTING}


class UIBridge(QObject):
    status_signal = Signal(str, str)  # stage, message
    notify_signal = Signal(str, str)  # title, body


class TrayNotifier:
    """Notifier that hands messages to the UI thread."""

    def __init__(self, bridge: UIBridge) -> None:
        self._bridge = bridge

    def notify(self, title: str, body: str) -> None:
        logger.info("[notify] %s: %s", title, body)
        self._bridge.notify_signal.emit(title, body)


class App:
    def __init__(self) -> None:
        log_path = configure_logging()
        log_session_start(log_path)

        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        self.config_store = JsonConfigStore()
        settings = self.config_store.load()
        self.overlay = OverlayWindow()
        self.ui = UIBridge()
        self.ui.status_signal.connect(self._on_status_ui)
        self.ui.notify_signal.connect(self._on_notify_ui)
        self.notifier = TrayNotifier(self.ui)

        self.recorder = SoundDeviceRecorder(
            sample_rate=SAMPLE_RATE, block_size=BLOCK_SIZE, device=settings.mic_device
        )
        self.transcriber = WhisperCliTranscriber(
            binary=settings.whisper_binary,
            model_path=settings.whisper_model,
            language=WHISPER_LANGUAGE,
            prompt=WHISPER_PROMPT,
        )
        self.proofreader = OllamaProofreader(
            base_url=settings.ollama_url,
            preferred_model=PREFERRED_MODEL,
            fallback_models=FALLBACK_MODELS,
            model_override=settings.ollama_model or None,
        )
        self.coordinator = PipelineCoordinator(
            recorder=self.recorder,
            transcriber=self.transcriber,
            proofreader=self.proofreader,
            paste_service=ClipboardPasteService(),
            notifier=self.notifier,
            on_status=self._on_status,
            sample_rate=SAMPLE_RATE,
            min_recording_ms=MIN_RECORDING_MS,
            done_hide_ms=DONE_HIDE_MS,
            error_hide_ms=ERROR_HIDE_MS,
        )
        self._pipeline_thread: Optional[threading.Thread] = None
        self.hotkey = GlobalHotkeyAdapter(
            hotkey_name=settings.hotkey,
            on_edge=self._on_hold_edge,
            grace_ms=HOLD_GRACE_MS,
        )

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(ICON_IDLE))
        self.tray.setToolTip("holdtalk - Ready")
        self._setup_menu()
        self.tray.show()

    def _setup_menu(self) -> None:
        menu = QMenu()

        hotkey_action = QAction("Set Hotkey", menu)
        hotkey_action.triggered.connect(self._set_hotkey)
        menu.addAction(hotkey_action)

        mic_action = QAction("Select Microphone", menu)
        mic_action.triggered.connect(self._select_microphone)
        menu.addAction(mic_action)

        menu.addSeparator()
        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit)
        menu.addAction(quit_action)

        self.tray.setContextMenu(menu)

    def _set_hotkey(self) -> None:
        value, ok = QInputDialog.getText(
            None, "Hotkey", "Use pynput key format, e.g. Key.alt_r (see the log for discovered keys)"
        )
        if not ok or not value:
            return
        self.config_store.set_hotkey(value)
        self.hotkey.set_hotkey(value)
        QMessageBox.information(None, "Saved", f"Hotkey set to {value}.")

    def _select_microphone(self) -> None:
        choices = [SYSTEM_DEFAULT_MIC] + list_input_devices()
        value, ok = QInputDialog.getItem(None, "Microphone", "Input device", choices, 0, False)
        if not ok:
            return
        device = None if value == SYSTEM_DEFAULT_MIC else value
        self.config_store.set_mic_device(device)
        self.recorder.set_device(device)
        logger.info("Mic updated to %s", device or SYSTEM_DEFAULT_MIC)

    # ------------------------------------------------------------------
    # Callbacks (called from worker threads → emit signals for UI thread)
    # ------------------------------------------------------------------

    def _on_status(self, event: StatusEvent) -> None:
        self.ui.status_signal.emit(event.stage.value, event.message)

    def _on_hold_edge(self, edge: HoldEdge) -> None:
        if edge is HoldEdge.START:
            logger.info("Hold detected, starting recording")
            self.coordinator.start_session()
        else:
            logger.info("Hold released, stopping recording")
            # The pipeline blocks on whisper and Ollama; keep it off the key hook thread.
            worker = threading.Thread(target=self.coordinator.stop_session, daemon=True)
            self._pipeline_thread = worker
            worker.start()

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_status_ui(self, stage_value: str, message: str) -> None:
        stage = PipelineStage(stage_value)
        self.overlay.show_stage(stage, message)
        if stage is PipelineStage.RECORDING:
            self.tray.setIcon(_create_icon(ICON_RECORDING))
            self.tray.setToolTip("holdtalk - Recording...")
        elif stage in _BUSY_STAGES:
            self.tray.setIcon(_create_icon(ICON_BUSY))
            self.tray.setToolTip("holdtalk - Processing...")
        elif stage is PipelineStage.ERROR:
            self.tray.setIcon(_create_icon(ICON_ERROR))
            self.tray.setToolTip(f"holdtalk - {message}")
        else:
            self.tray.setIcon(_create_icon(ICON_IDLE))
            self.tray.setToolTip("holdtalk - Ready")

    def _on_notify_ui(self, title: str, body: str) -> None:
        if QSystemTrayIcon.supportsMessages():
            self.tray.showMessage(title, body)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _startup_checks(self) -> None:
        run_health_check(self.transcriber, self.proofreader, probe_default_input, self.notifier)
        logger.info("Proofreading: %s", self.proofreader.describe_backend())

    def run(self) -> int:
        try:
            self.hotkey.start()
        except Exception as exc:
            logger.error("Failed to start keyboard hook (Accessibility permission needed?): %s", exc)
            self.overlay.show_stage(PipelineStage.ERROR, f"Hotkey disabled: {exc}")
        threading.Thread(target=self._startup_checks, daemon=True).start()
        logger.info("holdtalk ready")
        return self.app.exec()

    def quit(self) -> None:
        self.hotkey.stop()
        self.coordinator.shutdown()
        worker = self._pipeline_thread
        if worker is not None and worker.is_alive():
            worker.join(timeout=PIPELINE_JOIN_TIMEOUT_S)
            if worker.is_alive():
                logger.warning("Pipeline thread still running at quit")
        self.app.quit()


def main() -> int:
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
