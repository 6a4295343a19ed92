from __future__ import annotations

from pathlib import Path

from errors import DEVICE_UNAVAILABLE, SERVER_ERROR, SERVICE_ERROR, TOO_SHORT, describe
from models import AudioArtifact, Session, SessionState


def test_release_artifact_is_idempotent(tmp_path: Path) -> None:
    path = tmp_path / "clip.wav"
    path.write_bytes(b"\x00" * 10)
    session = Session(artifact=AudioArtifact(path=path, byte_length=10))

    session.release_artifact()
    session.release_artifact()

    assert not path.exists()
    assert session.artifact is None


def test_sessions_get_distinct_ids() -> None:
    first, second = Session(), Session()
    assert first.id != second.id
    assert first.state == SessionState.RECORDING


def test_describe_formats() -> None:
    assert describe(SERVER_ERROR, status=503) == "API error (503)"
    assert describe(SERVICE_ERROR, "bad audio") == "API Error: bad audio"
    assert describe(TOO_SHORT, "ignored") == "Recording too short"
    assert describe("SOMETHING_NEW") == "Unexpected error"
    assert describe(DEVICE_UNAVAILABLE, "Invalid device") == "Recording failed: Invalid device"
