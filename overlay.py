"""Overlay window showing the pipeline stage."""

from __future__ import annotations

from models import PipelineStage

try:
    from PySide6.QtCore import Qt
    from PySide6.QtWidgets import QApplication, QLabel, QWidget, QVBoxLayout
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QApplication = None  # type: ignore
    QLabel = object  # type: ignore
    QWidget = object  # type: ignore
    QVBoxLayout = object  # type: ignore

STAGE_LABELS = {
    PipelineStage.RECORDING: "🎙️ Listening...",
    PipelineStage.TRANSCRIBING: "Transcribing...",
    PipelineStage.CLEANING: "Cleaning up...",
    PipelineStage.PASTING: "Pasting...",
    PipelineStage.DONE: "✓ Done",
}

_NORMAL_STYLE = (
    "color: white; font-size: 18px; padding: 16px;"
    "background: rgba(0,0,0,190); border-radius: 12px;"
)
_ERROR_STYLE = (
    "color: #FF6B6B; font-size: 18px; padding: 16px;"
    "background: rgba(0,0,0,210); border-radius: 12px;"
)


class OverlayWindow(QWidget):
    def __init__(self) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowFlags(
            Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool
        )
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setFixedWidth(360)

        self._label = QLabel("")
        self._label.setWordWrap(True)
        self._label.setAlignment(Qt.AlignCenter)
        self._label.setStyleSheet(_NORMAL_STYLE)

        layout = QVBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self._label)
        self.setLayout(layout)

    def show_stage(self, stage: PipelineStage, message: str = "") -> None:
        """Reflect a status event. IDLE hides; the coordinator owns the timing."""
        if stage is PipelineStage.IDLE:
            self.hide()
            return
        if stage is PipelineStage.ERROR:
            self._label.setStyleSheet(_ERROR_STYLE)
            self._set_text(f"⚠️ {message or 'Something went wrong'}")
            return
        self._label.setStyleSheet(_NORMAL_STYLE)
        self._set_text(STAGE_LABELS.get(stage, stage.value.title()))

    def _set_text(self, text: str) -> None:
        self._label.setText(text)
        self._center_top()
        self.show()

    def _center_top(self) -> None:
        """Position the window at the top center of the primary screen."""
        if QApplication is None:
            return
        screen = QApplication.primaryScreen()
        if screen is None:
            return
        geom = screen.availableGeometry()
        self.adjustSize()
        x = geom.x() + (geom.width() - self.width()) // 2
        y = geom.y() + 40  # below menu bar
        self.move(x, y)
