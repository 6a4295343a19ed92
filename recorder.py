"""Microphone capture to a temporary WAV file with level metering."""

from __future__ import annotations

import logging
import math
import os
import tempfile
import threading
import time
import wave
from pathlib import Path
from typing import Any, Optional

import numpy as np

from errors import (
    ALREADY_ACTIVE,
    CAPTURE_FAILED,
    DEVICE_UNAVAILABLE,
    NOT_ACTIVE,
    CaptureError,
    MicrophonePermissionError,
)
from interfaces import FaultCallback, LevelCallback, PermissionProvider
from models import AudioArtifact, LevelSample, PermissionState

try:
    import sounddevice as sd
except Exception:  # pragma: no cover - PortAudio missing
    sd = None  # type: ignore

logger = logging.getLogger(__name__)

LEVEL_FLOOR_DB = -60.0
SAMPLE_WIDTH = 2
DEVICE_LOST_MESSAGE = "input device stopped delivering audio"


def level_db(samples: Any) -> float:
    """RMS level of int16 samples in dBFS, clamped to [-60, 0]."""
    data = np.asarray(samples, dtype=np.float64)
    if data.size == 0:
        return LEVEL_FLOOR_DB
    rms = float(np.sqrt(np.mean(np.square(data))))
    if rms <= 0.0:
        return LEVEL_FLOOR_DB
    db = 20.0 * math.log10(rms / 32768.0)
    return max(LEVEL_FLOOR_DB, min(0.0, db))


def now_ms() -> int:
    return int(time.time() * 1000)


class SoundDeviceAudioCapture:
    def __init__(
        self,
        permissions: Optional[PermissionProvider] = None,
        sample_rate: int = 16000,
        channels: int = 1,
        level_interval_s: float = 0.1,
        temp_dir: Optional[Path] = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.level_interval_s = level_interval_s
        self._permissions = permissions
        self._temp_dir = temp_dir
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._running = False
        self._stream: Any = None
        self._writer: Optional[wave.Wave_write] = None
        self._path: Optional[Path] = None
        self._fault: Optional[str] = None
        self._latest_db = LEVEL_FLOOR_DB
        self._meter_stop = threading.Event()
        self._meter_thread: Optional[threading.Thread] = None

    @property
    def is_active(self) -> bool:
        return self._running

    def start(
        self,
        on_level: Optional[LevelCallback] = None,
        on_fault: Optional[FaultCallback] = None,
    ) -> Path:
        with self._lock:
            if self._running:
                raise CaptureError(ALREADY_ACTIVE)
            if self._permissions is not None:
                state = self._permissions.current_state()
                if state != PermissionState.GRANTED:
                    raise MicrophonePermissionError(f"microphone permission is {state.value}")
            if sd is None:
                raise CaptureError(DEVICE_UNAVAILABLE, "sounddevice is not installed")

            path: Optional[Path] = None
            try:
                path = self._new_temp_path()
                writer = wave.open(str(path), "wb")
                writer.setnchannels(self.channels)
                writer.setsampwidth(SAMPLE_WIDTH)
                writer.setframerate(self.sample_rate)
            except (OSError, wave.Error) as exc:
                if path is not None:
                    path.unlink(missing_ok=True)
                raise CaptureError(DEVICE_UNAVAILABLE, str(exc)) from exc

            self._writer = writer
            self._path = path
            self._fault = None
            self._latest_db = LEVEL_FLOOR_DB
            self._running = True
            stream = None
            try:
                stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    dtype="int16",
                    blocksize=int(self.sample_rate * self.level_interval_s),
                    callback=self._on_audio,
                )
                stream.start()
            except (sd.PortAudioError, OSError, ValueError) as exc:
                self._running = False
                if stream is not None:
                    stream.close()
                self._close_writer()
                path.unlink(missing_ok=True)
                self._path = None
                raise CaptureError(DEVICE_UNAVAILABLE, str(exc)) from exc

            self._stream = stream
            self._start_metering(on_level, on_fault)
            logger.debug("capture started: %s", path)
            return path

    def stop(self) -> AudioArtifact:
        with self._lock:
            if not self._running:
                raise CaptureError(NOT_ACTIVE)
            path = self._path
            fault = self._release()
            if path is None:
                raise CaptureError(CAPTURE_FAILED, "no output file")
            if fault is not None:
                path.unlink(missing_ok=True)
                raise CaptureError(CAPTURE_FAILED, fault)
            try:
                size = path.stat().st_size
            except OSError as exc:
                path.unlink(missing_ok=True)
                raise CaptureError(CAPTURE_FAILED, str(exc)) from exc
            artifact = AudioArtifact(path=path, byte_length=size)
            logger.debug("capture finished: %s (%d bytes)", path, artifact.byte_length)
            return artifact

    def discard(self) -> None:
        with self._lock:
            if not self._running:
                return
            path = self._path
            self._release()
            if path is not None:
                path.unlink(missing_ok=True)
            logger.debug("capture discarded")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _new_temp_path(self) -> Path:
        fd, name = tempfile.mkstemp(prefix="dictakey_", suffix=".wav", dir=self._temp_dir)
        os.close(fd)
        return Path(name)

    def _release(self) -> Optional[str]:
        """Stop metering, the input stream and the writer. Returns any fault."""
        self._running = False
        self._stop_metering()
        stream, self._stream = self._stream, None
        try:
            if stream is not None:
                try:
                    stream.stop()
                finally:
                    stream.close()
        except Exception as exc:
            logger.warning("error while closing input stream: %s", exc)
        finally:
            self._close_writer()
            self._path = None
        return self._fault

    def _close_writer(self) -> None:
        with self._write_lock:
            writer, self._writer = self._writer, None
            if writer is None:
                return
            try:
                writer.close()
            except (OSError, wave.Error) as exc:
                self._fault = self._fault or str(exc)

    def _start_metering(
        self, on_level: Optional[LevelCallback], on_fault: Optional[FaultCallback]
    ) -> None:
        self._meter_stop = threading.Event()
        self._meter_thread = threading.Thread(
            target=self._meter_loop,
            args=(self._meter_stop, on_level, on_fault),
            daemon=True,
        )
        self._meter_thread.start()

    def _stop_metering(self) -> None:
        self._meter_stop.set()
        thread, self._meter_thread = self._meter_thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def _meter_loop(
        self,
        stop_event: threading.Event,
        on_level: Optional[LevelCallback],
        on_fault: Optional[FaultCallback],
    ) -> None:
        while not stop_event.wait(self.level_interval_s):
            stream = self._stream
            if self._running and stream is not None and not stream.active:
                self._fault = self._fault or DEVICE_LOST_MESSAGE
            fault = self._fault
            if fault is not None:
                if on_fault is not None:
                    on_fault(fault)
                return
            if on_level is not None:
                on_level(LevelSample(db=self._latest_db, timestamp_ms=now_ms()))

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if not self._running:
            return
        if status:
            logger.debug("input stream status: %s", status)
        samples = np.asarray(indata, dtype=np.int16)
        with self._write_lock:
            if self._writer is None:
                return
            try:
                self._writer.writeframes(samples.tobytes())
            except (OSError, wave.Error) as exc:
                self._fault = self._fault or str(exc)
                return
        self._latest_db = level_db(samples)
