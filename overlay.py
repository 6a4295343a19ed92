"""Floating status panel: status line, busy hint and input level bar."""

from __future__ import annotations

from models import SessionState, StatusUpdate
from recorder import LEVEL_FLOOR_DB

try:
    from PySide6.QtCore import Qt, QTimer
    from PySide6.QtWidgets import QApplication, QLabel, QProgressBar, QVBoxLayout, QWidget
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QTimer = None  # type: ignore
    QApplication = None  # type: ignore
    QLabel = object  # type: ignore
    QProgressBar = object  # type: ignore
    QVBoxLayout = object  # type: ignore
    QWidget = object  # type: ignore

_LABEL_STYLE = (
    "color: {color}; font-size: 18px; padding: 16px;"
    "background: rgba(0,0,0,190); border-radius: 12px;"
)
_STATE_COLORS = {
    SessionState.IDLE: "white",
    SessionState.RECORDING: "#FF6B6B",
    SessionState.PROCESSING: "#FFD166",
}
_ERROR_COLOR = "#FF8800"


def level_to_percent(db: float) -> int:
    """Map [-60 dB, 0 dB] onto a 0-100 bar."""
    span = -LEVEL_FLOOR_DB
    return int(round(max(0.0, min(1.0, (db - LEVEL_FLOOR_DB) / span)) * 100))


class OverlayWindow(QWidget):
    def __init__(self) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowFlags(Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool)
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setFixedWidth(420)

        self._label = QLabel("")
        self._label.setWordWrap(True)
        self._label.setStyleSheet(_LABEL_STYLE.format(color="white"))

        self._level = QProgressBar()
        self._level.setRange(0, 100)
        self._level.setTextVisible(False)
        self._level.setFixedHeight(6)
        self._level.hide()

        layout = QVBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self._label)
        layout.addWidget(self._level)
        self.setLayout(layout)

        self._hide_timer: QTimer | None = None

    def show_status(self, update: StatusUpdate, is_error: bool = False) -> None:
        color = _ERROR_COLOR if is_error else _STATE_COLORS[update.state]
        self._label.setStyleSheet(_LABEL_STYLE.format(color=color))
        text = update.message + (" ⏳" if update.busy else "")
        self._set_text(text)
        if update.state == SessionState.RECORDING:
            self._level.setValue(0)
            self._level.show()
        else:
            self._level.hide()
        if update.state == SessionState.IDLE:
            self.hide_with_delay(2000 if is_error else 1500)

    def show_level(self, db: float) -> None:
        self._level.setValue(level_to_percent(db))

    def hide_with_delay(self, delay_ms: int) -> None:
        self._cancel_hide_timer()
        self._hide_timer = QTimer()
        self._hide_timer.setSingleShot(True)
        self._hide_timer.timeout.connect(self.hide)
        self._hide_timer.start(delay_ms)

    def _set_text(self, text: str) -> None:
        self._cancel_hide_timer()
        self._label.setText(text)
        self._center_top()
        self.show()

    def _center_top(self) -> None:
        screen = QApplication.primaryScreen()
        if screen is None:
            return
        geom = screen.availableGeometry()
        self.adjustSize()
        self.move(geom.x() + (geom.width() - self.width()) // 2, geom.y() + 40)

    def _cancel_hide_timer(self) -> None:
        if self._hide_timer is not None:
            self._hide_timer.stop()
            self._hide_timer = None
