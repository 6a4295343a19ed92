"""Protocol interfaces used by RecordingController."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional, Protocol

from models import AudioArtifact, LevelSample, PermissionState, TranscriptionResult

LevelCallback = Callable[[LevelSample], None]
FaultCallback = Callable[[str], None]


class AudioCapture(Protocol):
    @property
    def is_active(self) -> bool: ...

    def start(
        self,
        on_level: Optional[LevelCallback] = None,
        on_fault: Optional[FaultCallback] = None,
    ) -> Path: ...

    def stop(self) -> AudioArtifact: ...

    def discard(self) -> None: ...


class TranscriptionClient(Protocol):
    def transcribe(self, artifact: AudioArtifact) -> TranscriptionResult: ...

    def cancel(self) -> None: ...


class TextInserter(Protocol):
    def insert(self, text: str) -> None: ...


class PermissionProvider(Protocol):
    def current_state(self) -> PermissionState: ...

    def request_microphone_permission(
        self, on_result: Callable[[bool], None]
    ) -> None: ...


class ConfigStore(Protocol):
    def get_api_key(self) -> str: ...

    def set_api_key(self, key: str) -> None: ...

    def get_endpoint_url(self) -> str: ...

    def set_endpoint_url(self, url: str) -> None: ...

    def get_model(self) -> str: ...

    def get_hotkey(self) -> str: ...

    def set_hotkey(self, hotkey: str) -> None: ...
