"""Tests for HttpTranscriptionClient."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import requests

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
from models import AudioArtifact
from transcription_client import HttpTranscriptionClient


# ---------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------

def _artifact(tmp_path: Path, size: int = 2000) -> AudioArtifact:
    path = tmp_path / "clip.wav"
    path.write_bytes(b"RIFF" + b"\x01" * (size - 4))
    return AudioArtifact(path=path, byte_length=size)


def _response(status: int, body: bytes | str | dict | None) -> MagicMock:
    if isinstance(body, dict):
        body = json.dumps(body)
    if isinstance(body, str):
        body = body.encode("utf-8")
    response = MagicMock()
    response.status_code = status
    response.content = body
    return response


def _client(session: MagicMock, **kwargs) -> HttpTranscriptionClient:  # noqa: ANN003
    kwargs.setdefault("api_key", "secret")
    return HttpTranscriptionClient(
        endpoint_url="https://example.test/v1/audio/transcriptions",
        model="whisper-large-v3",
        session_factory=lambda: session,
        **kwargs,
    )


def _error_code(client: HttpTranscriptionClient, artifact: AudioArtifact) -> TranscriptionError:
    with pytest.raises(TranscriptionError) as info:
        client.transcribe(artifact)
    return info.value


# ---------------------------------------------------------------
# Request construction
# ---------------------------------------------------------------

def test_request_is_multipart_with_bearer_token(tmp_path: Path) -> None:
    session = MagicMock()
    session.post.return_value = _response(200, {"text": "hi"})
    artifact = _artifact(tmp_path)

    _client(session).transcribe(artifact)

    session.post.assert_called_once()
    args, kwargs = session.post.call_args
    assert args[0] == "https://example.test/v1/audio/transcriptions"
    assert kwargs["timeout"] == 30.0
    headers = kwargs["headers"]
    assert headers["Authorization"] == "Bearer secret"
    assert headers["Content-Type"].startswith("multipart/form-data; boundary=")

    boundary = headers["Content-Type"].split("boundary=", 1)[1].encode()
    body: bytes = kwargs["data"]
    model_at = body.index(b'name="model"')
    format_at = body.index(b'name="response_format"')
    file_at = body.index(b'name="file"; filename="audio.wav"')
    assert model_at < format_at < file_at
    assert b"whisper-large-v3" in body
    assert b"\r\n\r\njson\r\n" in body
    assert b"Content-Type: audio/wav" in body
    assert artifact.read_bytes() in body
    assert body.endswith(b"--" + boundary + b"--\r\n")


def test_short_artifact_rejected_without_network(tmp_path: Path) -> None:
    session = MagicMock()
    error = _error_code(_client(session), _artifact(tmp_path, size=999))

    assert error.code == TOO_SHORT
    session.post.assert_not_called()


def test_missing_api_key_rejected_without_network(tmp_path: Path) -> None:
    session = MagicMock()
    error = _error_code(_client(session, api_key=""), _artifact(tmp_path))

    assert error.code == UNAUTHORIZED
    session.post.assert_not_called()


def test_unreadable_audio(tmp_path: Path) -> None:
    artifact = AudioArtifact(path=tmp_path / "gone.wav", byte_length=5000)
    error = _error_code(_client(MagicMock()), artifact)
    assert error.code == AUDIO_UNREADABLE


# ---------------------------------------------------------------
# Transport failures
# ---------------------------------------------------------------

@pytest.mark.parametrize(
    "exc, code",
    [
        (requests.ConnectTimeout("slow"), TIMEOUT),
        (requests.ReadTimeout("slow"), TIMEOUT),
        (requests.ConnectionError("offline"), NO_CONNECTIVITY),
        (requests.TooManyRedirects("loop"), NETWORK_ERROR),
    ],
)
def test_transport_errors_map_to_network_kinds(tmp_path: Path, exc: Exception, code: str) -> None:
    session = MagicMock()
    session.post.side_effect = exc

    error = _error_code(_client(session), _artifact(tmp_path))

    assert error.code == code
    assert error.is_network is True


# ---------------------------------------------------------------
# Response interpretation
# ---------------------------------------------------------------

@pytest.mark.parametrize(
    "status, body, code",
    [
        (401, {"text": "ignored"}, UNAUTHORIZED),
        (401, b"", UNAUTHORIZED),
        (500, {"text": "hi"}, SERVER_ERROR),
        (429, b"slow down", SERVER_ERROR),
        (200, b"", EMPTY_RESPONSE),
        (200, None, EMPTY_RESPONSE),
        (200, b"<html>", MALFORMED_RESPONSE),
        (200, b"[1, 2]", MALFORMED_RESPONSE),
        (200, {"error": {"message": "model overloaded"}}, SERVICE_ERROR),
        (200, {"text": "  "}, NO_SPEECH),
        (200, {"text": 42}, NO_SPEECH),
        (200, {}, NO_SPEECH),
    ],
)
def test_response_errors(status: int, body, code: str) -> None:  # noqa: ANN001
    with pytest.raises(TranscriptionError) as info:
        HttpTranscriptionClient.parse_response(status, _response(status, body).content)
    assert info.value.code == code


def test_server_error_carries_status() -> None:
    with pytest.raises(TranscriptionError) as info:
        HttpTranscriptionClient.parse_response(500, b"oops")
    assert info.value.status == 500


def test_service_error_carries_message() -> None:
    body = json.dumps({"error": {"message": "quota exceeded"}}).encode()
    with pytest.raises(TranscriptionError) as info:
        HttpTranscriptionClient.parse_response(200, body)
    assert info.value.message == "quota exceeded"


def test_service_error_wins_over_text() -> None:
    body = json.dumps({"text": "hi", "error": {"message": "partial"}}).encode()
    with pytest.raises(TranscriptionError) as info:
        HttpTranscriptionClient.parse_response(200, body)
    assert info.value.code == SERVICE_ERROR


def test_success_returns_trimmed_text(tmp_path: Path) -> None:
    session = MagicMock()
    session.post.return_value = _response(200, {"text": "  hello world \n"})

    result = _client(session).transcribe(_artifact(tmp_path))

    assert result.text == "hello world"


def test_plain_hi() -> None:
    assert HttpTranscriptionClient.parse_response(200, b'{"text":"hi"}').text == "hi"


# ---------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------

def test_cancel_closes_session_and_next_call_reopens(tmp_path: Path) -> None:
    sessions: list[MagicMock] = []

    def factory() -> MagicMock:
        session = MagicMock()
        session.post.return_value = _response(200, {"text": "hi"})
        sessions.append(session)
        return session

    client = HttpTranscriptionClient(api_key="secret", session_factory=factory)
    client.transcribe(_artifact(tmp_path))
    client.cancel()
    client.cancel()
    client.transcribe(_artifact(tmp_path))

    assert len(sessions) == 2
    sessions[0].close.assert_called_once()
    sessions[1].close.assert_not_called()
