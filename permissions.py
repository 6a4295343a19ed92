"""Microphone permission provider backed by a PortAudio settings probe.

Desktop platforms have no portable "ask for microphone access" call. Opening
the default input device with the capture settings is what triggers the OS
prompt on macOS and fails when access was refused, so that probe stands in
for the request.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from models import PermissionState

try:
    import sounddevice as sd
except Exception:  # pragma: no cover - PortAudio missing
    sd = None  # type: ignore

logger = logging.getLogger(__name__)


class SoundDevicePermissionProvider:
    def __init__(self, sample_rate: int = 16000, channels: int = 1, run_async: bool = True) -> None:
        self._sample_rate = sample_rate
        self._channels = channels
        self._run_async = run_async
        self._state = PermissionState.UNDETERMINED

    def current_state(self) -> PermissionState:
        return self._state

    def request_microphone_permission(self, on_result: Callable[[bool], None]) -> None:
        if not self._run_async:
            self._request(on_result)
            return
        threading.Thread(target=self._request, args=(on_result,), daemon=True).start()

    def _request(self, on_result: Callable[[bool], None]) -> None:
        granted = self._probe()
        self._state = PermissionState.GRANTED if granted else PermissionState.DENIED
        on_result(granted)

    def _probe(self) -> bool:
        if sd is None:
            logger.warning("sounddevice is not installed; microphone unavailable")
            return False
        try:
            sd.check_input_settings(
                samplerate=self._sample_rate, channels=self._channels, dtype="int16"
            )
        except (sd.PortAudioError, ValueError) as exc:
            logger.info("microphone probe failed: %s", exc)
            return False
        return True
