"""Core data models for the app."""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "IDLE"
    RECORDING = "RECORDING"
    PROCESSING = "PROCESSING"


class PermissionState(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    UNDETERMINED = "undetermined"


@dataclass
class AudioArtifact:
    """A finalized 16 kHz / 16-bit mono WAV file on disk."""

    path: Path
    byte_length: int

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()

    def exists(self) -> bool:
        return self.path.exists()

    def delete(self) -> None:
        """Remove the file. Deleting twice is fine."""
        try:
            self.path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("could not delete %s: %s", self.path, exc)


@dataclass
class LevelSample:
    db: float
    timestamp_ms: int = 0


@dataclass
class TranscriptionResult:
    text: str = ""


@dataclass
class StatusUpdate:
    state: SessionState
    message: str
    enabled: bool = True
    busy: bool = False


@dataclass
class Session:
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: SessionState = SessionState.RECORDING
    created_at: float = field(default_factory=time.time)
    artifact: Optional[AudioArtifact] = None
    last_error: str = ""

    def release_artifact(self) -> None:
        artifact = self.artifact
        self.artifact = None
        if artifact is not None:
            artifact.delete()
