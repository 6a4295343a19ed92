"""Application entrypoint."""

from __future__ import annotations

import logging
import os
import sys

from config import JsonConfigStore
from hotkey import HoldHotkey
from models import LevelSample, SessionState, StatusUpdate
from overlay import OverlayWindow
from permissions import SoundDevicePermissionProvider
from recorder import SoundDeviceAudioCapture
from recording_controller import RecordingController
from text_inserter import ClipboardTextInserter
from transcription_client import HttpTranscriptionClient

try:
    from PySide6.QtCore import QObject, QSize, Signal
    from PySide6.QtGui import QAction, QBrush, QColor, QIcon, QPainter, QPixmap
    from PySide6.QtWidgets import QApplication, QInputDialog, QMenu, QMessageBox, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger("dictakey")

ICON_COLORS = {
    SessionState.IDLE: "#888888",
    SessionState.RECORDING: "#FF4444",
    SessionState.PROCESSING: "#3A86FF",
}
ICON_DISABLED = "#FF8800"


def _create_icon(color: str, size: int = 22) -> QIcon:
    pixmap = QPixmap(QSize(size, size))
    pixmap.fill(QColor(0, 0, 0, 0))
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(QBrush(QColor(color)))
    painter.setPen(QColor(color))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


class UIBridge(QObject):
    """Moves controller callbacks from worker threads onto the Qt thread."""

    status_signal = Signal(object)
    level_signal = Signal(float)
    error_signal = Signal(str, str)


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        self.config_store = JsonConfigStore()
        self.overlay = OverlayWindow()
        self.ui = UIBridge()
        self.ui.status_signal.connect(self._on_status_ui)
        self.ui.level_signal.connect(self.overlay.show_level)
        self.ui.error_signal.connect(self._on_error_ui)
        self._last_error = ""

        self.permissions = SoundDevicePermissionProvider()
        self.controller = self._build_controller()
        self.hotkey = HoldHotkey(key_name=self.config_store.get_hotkey())

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(ICON_COLORS[SessionState.IDLE]))
        self.tray.setToolTip("Dictakey")
        self._setup_menu()
        self.tray.show()

    def _build_controller(self) -> RecordingController:
        client = HttpTranscriptionClient(
            api_key=self.config_store.get_api_key(),
            endpoint_url=self.config_store.get_endpoint_url(),
            model=self.config_store.get_model(),
        )
        return RecordingController(
            capture=SoundDeviceAudioCapture(permissions=self.permissions),
            client=client,
            inserter=ClipboardTextInserter(),
            permissions=self.permissions,
            on_status=self.ui.status_signal.emit,
            on_level=self._on_level,
            on_error=self.ui.error_signal.emit,
        )

    def _setup_menu(self) -> None:
        menu = QMenu()
        for label, handler in (
            ("Set API Key", self._set_api_key),
            ("Set Endpoint URL", self._set_endpoint),
            ("Request Microphone Access", lambda: self.controller.request_permission()),
        ):
            action = QAction(label, menu)
            action.triggered.connect(handler)
            menu.addAction(action)
        menu.addSeparator()
        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit)
        menu.addAction(quit_action)
        self.tray.setContextMenu(menu)

    def _set_api_key(self) -> None:
        value, ok = QInputDialog.getText(None, "API Key", "Transcription service API key")
        if not ok:
            return
        self.config_store.set_api_key(value)
        self._rebuild_controller()
        QMessageBox.information(None, "Saved", "API key saved and applied.")

    def _set_endpoint(self) -> None:
        value, ok = QInputDialog.getText(
            None, "Endpoint", "Transcription URL", text=self.config_store.get_endpoint_url()
        )
        if not ok or not value:
            return
        self.config_store.set_endpoint_url(value)
        self._rebuild_controller()

    def _rebuild_controller(self) -> None:
        self.controller.close()
        self.controller = self._build_controller()
        self.controller.refresh_permission()

    # ------------------------------------------------------------------
    # Controller callbacks (any thread -> signals)
    # ------------------------------------------------------------------

    def _on_level(self, sample: LevelSample) -> None:
        self.ui.level_signal.emit(sample.db)

    # ------------------------------------------------------------------
    # UI thread handlers
    # ------------------------------------------------------------------

    def _on_error_ui(self, code: str, message: str) -> None:
        logger.info("session ended with %s: %s", code, message)
        self._last_error = message

    def _on_status_ui(self, update: StatusUpdate) -> None:
        is_error = bool(self._last_error) and update.message == self._last_error
        self._last_error = ""
        color = ICON_COLORS[update.state] if update.enabled or update.busy else ICON_DISABLED
        self.tray.setIcon(_create_icon(color))
        self.tray.setToolTip(f"Dictakey: {update.message}")
        self.overlay.show_status(update, is_error=is_error)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        self.controller.request_permission()
        try:
            self.hotkey.start(
                on_begin=lambda: self.controller.start(),
                on_end=lambda: self.controller.stop(),
            )
        except RuntimeError as exc:
            logger.error("hotkey disabled: %s", exc)
            self.tray.showMessage("Dictakey", f"Hotkey disabled: {exc}")
        return self.app.exec()

    def quit(self) -> None:
        self.hotkey.stop()
        self.controller.close()
        self.app.quit()


def main() -> int:
    logging.basicConfig(
        level=logging.DEBUG if os.environ.get("DICTAKEY_DEBUG") == "1" else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
