"""State-machine based recording orchestration.

IDLE -> RECORDING -> PROCESSING -> IDLE, with every failure path going
straight back to IDLE. Each session owns its temporary WAV file and the file
is deleted on every way out of the session.
"""

from __future__ import annotations

import logging
import threading
from functools import partial
from typing import Callable, Optional

from errors import (
    CANCELLED,
    CAPTURE_FAILED,
    INSERTION_FAILED,
    PERMISSION_DENIED,
    TOO_SHORT,
    UNEXPECTED_ERROR,
    CaptureError,
    DictakeyError,
    InsertionError,
    TranscriptionError,
    describe,
)
from interfaces import AudioCapture, PermissionProvider, TextInserter, TranscriptionClient
from models import (
    LevelSample,
    PermissionState,
    Session,
    SessionState,
    StatusUpdate,
    TranscriptionResult,
)
from transcription_client import MIN_AUDIO_BYTES

logger = logging.getLogger(__name__)

StateCallback = Callable[[SessionState, SessionState], None]
StatusCallback = Callable[[StatusUpdate], None]
LevelCallback = Callable[[LevelSample], None]
ErrorCallback = Callable[[str, str], None]

READY_MESSAGE = "Ready to record"
RECORDING_MESSAGE = "Hold to continue recording"
PROCESSING_MESSAGE = "Processing..."
SUCCESS_MESSAGE = "✓ Text inserted successfully"

_NO_SPACE_AFTER = (" ", ".", "!", "?")


def normalize_transcript(text: str) -> str:
    """Append one space so the next dictation doesn't run into this one."""
    if text.endswith(_NO_SPACE_AFTER):
        return text
    return text + " "


class RecordingController:
    def __init__(
        self,
        capture: AudioCapture,
        client: TranscriptionClient,
        inserter: TextInserter,
        permissions: PermissionProvider,
        min_bytes: int = MIN_AUDIO_BYTES,
        confirm_delay_s: float = 1.5,
        on_status: Optional[StatusCallback] = None,
        on_state_change: Optional[StateCallback] = None,
        on_level: Optional[LevelCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._capture = capture
        self._client = client
        self._inserter = inserter
        self._permissions = permissions
        self._min_bytes = min_bytes
        self._confirm_delay_s = confirm_delay_s
        self._on_status = on_status
        self._on_state_change = on_state_change
        self._on_level = on_level
        self._on_error = on_error

        self._lock = threading.RLock()
        self._state = SessionState.IDLE
        self._session: Optional[Session] = None
        self._permission = PermissionState.UNDETERMINED
        self._worker: Optional[threading.Thread] = None
        self._ready_timer: Optional[threading.Timer] = None
        self._idle = threading.Event()
        self._idle.set()
        self._closed = False

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def permission(self) -> PermissionState:
        return self._permission

    # ------------------------------------------------------------------
    # Permission
    # ------------------------------------------------------------------

    def refresh_permission(self) -> PermissionState:
        """Re-read the permission state, e.g. when the UI becomes visible."""
        with self._lock:
            self._permission = self._permissions.current_state()
            if self._state == SessionState.IDLE:
                self._emit_idle_status()
            return self._permission

    def request_permission(self) -> None:
        self._permissions.request_microphone_permission(self._handle_permission_result)

    def _handle_permission_result(self, granted: bool) -> None:
        with self._lock:
            self._permission = PermissionState.GRANTED if granted else PermissionState.DENIED
            logger.info("microphone permission %s", self._permission.value)
            if self._state == SessionState.IDLE and not self._closed:
                self._emit_idle_status()

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    def start(self) -> None:
        with self._lock:
            if self._closed or self._state != SessionState.IDLE:
                return
            self._cancel_ready_timer()
            self._permission = self._permissions.current_state()
            if self._permission != PermissionState.GRANTED:
                self._report(PERMISSION_DENIED, describe(PERMISSION_DENIED))
                return

            session = Session()
            try:
                self._capture.start(
                    on_level=partial(self._handle_level, session),
                    on_fault=partial(self._handle_capture_fault, session),
                )
            except CaptureError as exc:
                logger.warning("capture did not start: %s", exc)
                self._report(exc.code, describe(exc.code, exc.message))
                return
            except Exception as exc:
                logger.exception("capture start crashed")
                self._discard_capture()
                self._report(UNEXPECTED_ERROR, describe(UNEXPECTED_ERROR, str(exc)))
                return

            self._session = session
            logger.debug("session %s recording", session.id)
            self._transition(SessionState.RECORDING)
            self._emit_status(StatusUpdate(SessionState.RECORDING, RECORDING_MESSAGE))

    def stop(self) -> None:
        with self._lock:
            if self._state != SessionState.RECORDING or self._session is None:
                return
            session = self._session
            try:
                session.artifact = self._capture.stop()
            except CaptureError as exc:
                logger.warning("capture did not finish: %s", exc)
                self._finish(session, CAPTURE_FAILED, describe(CAPTURE_FAILED))
                return
            except Exception as exc:
                logger.exception("capture stop crashed")
                self._finish(session, UNEXPECTED_ERROR, describe(UNEXPECTED_ERROR, str(exc)))
                return

            self._transition(SessionState.PROCESSING)
            self._emit_status(
                StatusUpdate(SessionState.PROCESSING, PROCESSING_MESSAGE, enabled=False, busy=True)
            )
            self._worker = threading.Thread(target=self._process, args=(session,), daemon=True)
            self._worker.start()

    def cancel(self, reason: str = "") -> None:
        with self._lock:
            if self._state == SessionState.IDLE or self._session is None:
                return
            if self._state == SessionState.PROCESSING:
                self._cancel_client()
            self._finish(self._session, CANCELLED, reason or describe(CANCELLED))

    def close(self) -> None:
        """Synchronous teardown; safe to call more than once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._cancel_ready_timer()
            session, self._session = self._session, None
            if self._state == SessionState.PROCESSING:
                self._cancel_client()
            self._discard_capture()
            if session is not None:
                session.release_artifact()
            self._transition(SessionState.IDLE)
            logger.debug("controller closed")

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        if not self._idle.wait(timeout):
            return False
        with self._lock:
            return self._state == SessionState.IDLE

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _process(self, session: Session) -> None:
        artifact = session.artifact
        if artifact is None or artifact.byte_length < self._min_bytes:
            self._complete_with_error(session, TranscriptionError(TOO_SHORT))
            return
        try:
            result = self._client.transcribe(artifact)
        except TranscriptionError as exc:
            logger.info("transcription failed: %s (%s)", exc.code, exc.message)
            self._complete_with_error(session, exc)
            return
        except Exception as exc:
            logger.exception("transcription crashed")
            self._complete_with_error(session, DictakeyError(UNEXPECTED_ERROR, str(exc)))
            return
        self._deliver(session, result)

    def _deliver(self, session: Session, result: TranscriptionResult) -> None:
        with self._lock:
            if session is not self._session:
                logger.debug("dropping result for stale session %s", session.id)
                return
            text = normalize_transcript(result.text)
            try:
                self._inserter.insert(text)
            except InsertionError as exc:
                self._finish(session, exc.code, describe(exc.code, exc.message))
                return
            except Exception as exc:
                logger.exception("text insertion crashed")
                self._finish(session, INSERTION_FAILED, describe(INSERTION_FAILED, str(exc)))
                return

            session.state = SessionState.IDLE
            session.release_artifact()
            self._session = None
            self._transition(SessionState.IDLE)
            self._emit_status(StatusUpdate(SessionState.IDLE, SUCCESS_MESSAGE))
            self._schedule_ready()

    def _complete_with_error(self, session: Session, exc: DictakeyError) -> None:
        with self._lock:
            if session is not self._session:
                logger.debug("dropping error for stale session %s", session.id)
                return
            status = exc.status if isinstance(exc, TranscriptionError) else None
            self._finish(session, exc.code, describe(exc.code, exc.message, status))

    # ------------------------------------------------------------------
    # Capture callbacks (metering thread)
    # ------------------------------------------------------------------

    def _handle_level(self, session: Session, sample: LevelSample) -> None:
        if session is not self._session or self._state != SessionState.RECORDING:
            return
        if self._on_level:
            self._on_level(sample)

    def _handle_capture_fault(self, session: Session, message: str) -> None:
        # The metering thread must not block on our lock while stop() joins it.
        threading.Thread(
            target=self._fail_capture, args=(session, message), daemon=True
        ).start()

    def _fail_capture(self, session: Session, message: str) -> None:
        with self._lock:
            if session is not self._session or self._state != SessionState.RECORDING:
                return
            logger.error("capture fault: %s", message)
            self._finish(session, CAPTURE_FAILED, describe(CAPTURE_FAILED))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _finish(self, session: Session, code: str, message: str) -> None:
        session.last_error = code
        session.state = SessionState.IDLE
        self._discard_capture()
        session.release_artifact()
        if session is self._session:
            self._session = None
        self._transition(SessionState.IDLE)
        self._report(code, message)

    def _report(self, code: str, message: str) -> None:
        if self._on_error:
            self._on_error(code, message)
        self._emit_idle_status(message)

    def _emit_idle_status(self, message: Optional[str] = None) -> None:
        granted = self._permission == PermissionState.GRANTED
        if message is None:
            message = READY_MESSAGE if granted else describe(PERMISSION_DENIED)
        self._emit_status(StatusUpdate(SessionState.IDLE, message, enabled=granted))

    def _emit_status(self, update: StatusUpdate) -> None:
        if self._on_status:
            self._on_status(update)

    def _schedule_ready(self) -> None:
        self._cancel_ready_timer()
        timer = threading.Timer(self._confirm_delay_s, self._emit_ready)
        timer.daemon = True
        self._ready_timer = timer
        timer.start()

    def _emit_ready(self) -> None:
        with self._lock:
            self._ready_timer = None
            if self._closed or self._state != SessionState.IDLE:
                return
            self._emit_idle_status()

    def _cancel_ready_timer(self) -> None:
        timer, self._ready_timer = self._ready_timer, None
        if timer is not None:
            timer.cancel()

    def _discard_capture(self) -> None:
        try:
            self._capture.discard()
        except Exception:
            logger.exception("capture discard failed")

    def _cancel_client(self) -> None:
        try:
            self._client.cancel()
        except Exception:
            logger.exception("transcription cancel failed")

    def _transition(self, to_state: SessionState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        if self._session is not None:
            self._session.state = to_state
        if to_state == SessionState.IDLE:
            self._idle.set()
        else:
            self._idle.clear()
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
