"""HTTP client for OpenAI-compatible ``/audio/transcriptions`` endpoints.

The recorded WAV file is posted as ``multipart/form-data`` together with the
model name and ``response_format=json``. The JSON answer is reduced to either
a trimmed transcript or a :class:`TranscriptionError` with a stable code.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Callable, Optional

import requests

from config import DEFAULT_ENDPOINT_URL, DEFAULT_MODEL
from errors import (
    AUDIO_UNREADABLE,
    EMPTY_RESPONSE,
    MALFORMED_RESPONSE,
    NETWORK_ERROR,
    NO_CONNECTIVITY,
    NO_SPEECH,
    SERVER_ERROR,
    SERVICE_ERROR,
    TIMEOUT,
    TOO_SHORT,
    UNAUTHORIZED,
    TranscriptionError,
)
from models import AudioArtifact, TranscriptionResult
from multipart import MultipartEncoder

logger = logging.getLogger(__name__)

MIN_AUDIO_BYTES = 1000
REQUEST_TIMEOUT_S = 30.0
UPLOAD_FILENAME = "audio.wav"
UPLOAD_CONTENT_TYPE = "audio/wav"


class HttpTranscriptionClient:
    def __init__(
        self,
        api_key: str,
        endpoint_url: str = DEFAULT_ENDPOINT_URL,
        model: str = DEFAULT_MODEL,
        timeout_s: float = REQUEST_TIMEOUT_S,
        min_bytes: int = MIN_AUDIO_BYTES,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        self._api_key = api_key
        self._endpoint_url = endpoint_url
        self._model = model
        self._timeout_s = timeout_s
        self._min_bytes = min_bytes
        self._session_factory = session_factory
        self._session: Optional[requests.Session] = None
        self._lock = threading.Lock()

    def transcribe(self, artifact: AudioArtifact) -> TranscriptionResult:
        if artifact.byte_length < self._min_bytes:
            raise TranscriptionError(TOO_SHORT, f"{artifact.byte_length} bytes")
        if not self._api_key:
            raise TranscriptionError(UNAUTHORIZED, "No API key configured")
        try:
            audio = artifact.read_bytes()
        except OSError as exc:
            raise TranscriptionError(AUDIO_UNREADABLE, str(exc)) from exc

        body, content_type = self.build_body(audio)
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": content_type,
        }
        logger.debug("uploading %d bytes to %s", len(audio), self._endpoint_url)
        try:
            response = self._get_session().post(
                self._endpoint_url,
                data=body,
                headers=headers,
                timeout=self._timeout_s,
            )
        except requests.Timeout as exc:
            raise TranscriptionError(TIMEOUT, str(exc)) from exc
        except requests.ConnectionError as exc:
            raise TranscriptionError(NO_CONNECTIVITY, str(exc)) from exc
        except requests.RequestException as exc:
            raise TranscriptionError(NETWORK_ERROR, str(exc)) from exc

        return self.parse_response(response.status_code, response.content)

    def build_body(self, audio: bytes) -> tuple[bytes, str]:
        encoder = MultipartEncoder()
        encoder.add_field("model", self._model)
        encoder.add_field("response_format", "json")
        encoder.add_file("file", UPLOAD_FILENAME, audio, UPLOAD_CONTENT_TYPE)
        return encoder.encode()

    @staticmethod
    def parse_response(status: int, content: Optional[bytes]) -> TranscriptionResult:
        logger.debug("transcription HTTP status %s", status)
        if status == 401:
            raise TranscriptionError(UNAUTHORIZED, status=status)
        if status != 200:
            raise TranscriptionError(SERVER_ERROR, f"HTTP {status}", status=status)
        if not content:
            raise TranscriptionError(EMPTY_RESPONSE)

        try:
            payload: Any = json.loads(content)
        except ValueError as exc:
            logger.debug("unparseable response body: %r", content[:200])
            raise TranscriptionError(MALFORMED_RESPONSE, str(exc)) from exc
        if not isinstance(payload, dict):
            raise TranscriptionError(MALFORMED_RESPONSE, "expected a JSON object")

        error = payload.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            raise TranscriptionError(SERVICE_ERROR, error["message"])

        text = payload.get("text")
        if not isinstance(text, str) or not text.strip():
            raise TranscriptionError(NO_SPEECH)
        return TranscriptionResult(text=text.strip())

    def cancel(self) -> None:
        """Abandon any in-flight request by closing the HTTP session."""
        with self._lock:
            session, self._session = self._session, None
        if session is not None:
            session.close()

    def _get_session(self) -> requests.Session:
        with self._lock:
            if self._session is None:
                self._session = self._session_factory()
            return self._session
