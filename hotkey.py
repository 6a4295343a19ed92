"""Hold-to-record gesture bound to a global key, based on pynput."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore

logger = logging.getLogger(__name__)


class HoldHotkey:
    """Fires ``on_begin`` when the key goes down and ``on_end`` when it comes up.

    Key repeat while held is collapsed into a single begin. Stopping the
    listener while the key is down fires ``on_end`` so a recording is never
    left running.
    """

    def __init__(self, key_name: str = "Key.alt_r") -> None:
        self.key_name = key_name
        self._listener: Optional[object] = None
        self._held = False
        self._on_end: Optional[Callable[[], None]] = None
        self._lock = threading.Lock()

    @property
    def held(self) -> bool:
        return self._held

    def start(self, on_begin: Callable[[], None], on_end: Callable[[], None]) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")
        self._on_end = on_end
        self._listener = keyboard.Listener(
            on_press=lambda key: self.key_down(key, on_begin),
            on_release=lambda key: self.key_up(key, on_end),
        )
        self._listener.start()
        logger.info("hold-to-record key: %s", self.key_name)

    def key_down(self, key: object, on_begin: Callable[[], None]) -> None:
        if str(key) != self.key_name:
            return
        with self._lock:
            if self._held:
                return
            self._held = True
        on_begin()

    def key_up(self, key: object, on_end: Callable[[], None]) -> None:
        if str(key) != self.key_name:
            return
        with self._lock:
            if not self._held:
                return
            self._held = False
        on_end()

    def stop(self) -> None:
        listener, self._listener = self._listener, None
        if listener is not None:
            listener.stop()
        with self._lock:
            was_held, self._held = self._held, False
        if was_held and self._on_end is not None:
            self._on_end()
