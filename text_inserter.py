"""Insert text into the focused field via the clipboard and a paste keystroke."""

from __future__ import annotations

import logging
import sys
import time

from errors import InsertionError

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


class ClipboardTextInserter:
    def __init__(self, restore_delay_s: float = 0.1) -> None:
        self._restore_delay_s = restore_delay_s

    def insert(self, text: str) -> None:
        if not text:
            raise InsertionError("empty text")
        if pyperclip is None or Controller is None or Key is None:
            raise InsertionError("clipboard/keyboard dependency missing")

        modifier = Key.cmd if sys.platform == "darwin" else Key.ctrl
        old_clip: str | None = None
        try:
            old_clip = pyperclip.paste()
            pyperclip.copy(text)
            keyboard = Controller()
            keyboard.press(modifier)
            keyboard.press("v")
            keyboard.release("v")
            keyboard.release(modifier)
            time.sleep(self._restore_delay_s)
        except Exception as exc:
            raise InsertionError(str(exc)) from exc
        finally:
            if old_clip is not None:
                self._restore(old_clip)

    def _restore(self, old_clip: str) -> None:
        try:
            pyperclip.copy(old_clip)
        except Exception as exc:
            logger.warning("clipboard not restored: %s", exc)
