from __future__ import annotations

from unittest.mock import patch

import pytest

from multipart import MultipartEncoder, escape_header_value


def test_fields_and_file_are_encoded_in_order() -> None:
    encoder = MultipartEncoder(boundary="XYZ")
    encoder.add_field("model", "whisper-large-v3")
    encoder.add_field("response_format", "json")
    encoder.add_file("file", "audio.wav", b"\x00\x01\x02", "audio/wav")

    body, content_type = encoder.encode()

    assert content_type == "multipart/form-data; boundary=XYZ"
    assert body == (
        b"--XYZ\r\n"
        b'Content-Disposition: form-data; name="model"\r\n\r\n'
        b"whisper-large-v3\r\n"
        b"--XYZ\r\n"
        b'Content-Disposition: form-data; name="response_format"\r\n\r\n'
        b"json\r\n"
        b"--XYZ\r\n"
        b'Content-Disposition: form-data; name="file"; filename="audio.wav"\r\n'
        b"Content-Type: audio/wav\r\n\r\n"
        b"\x00\x01\x02\r\n"
        b"--XYZ--\r\n"
    )


def test_default_boundary_is_uuid() -> None:
    _, content_type = MultipartEncoder().add_field("a", "b").encode()
    boundary = content_type.split("boundary=", 1)[1]
    assert len(boundary) == 36
    assert boundary.count("-") == 4


def test_filename_quotes_and_newlines_are_escaped() -> None:
    encoder = MultipartEncoder(boundary="B")
    encoder.add_file("file", 'evil"\r\nX-Injected: 1.wav', b"data", "audio/wav")

    body, _ = encoder.encode()

    assert b'filename="evil%22%0D%0AX-Injected: 1.wav"' in body
    assert b"\r\nX-Injected" not in body


def test_escape_header_value() -> None:
    assert escape_header_value('a"b\nc\rd') == "a%22b%0Ac%0Dd"


def test_generated_boundary_rerolls_on_collision() -> None:
    colliding = "11111111-1111-1111-1111-111111111111"
    clean = "22222222-2222-2222-2222-222222222222"
    encoder = MultipartEncoder()
    encoder.add_file("file", "audio.wav", b"\x00" + colliding.encode() + b"\x00", "audio/wav")

    with patch("multipart.uuid.uuid4", side_effect=[colliding, clean]):
        body, content_type = encoder.encode()

    assert content_type.endswith(clean)
    assert body.count(b"--" + clean.encode()) == 2


def test_fixed_boundary_collision_raises() -> None:
    encoder = MultipartEncoder(boundary="AUDIO")
    encoder.add_file("file", "audio.wav", b"xxAUDIOxx", "audio/wav")
    with pytest.raises(ValueError):
        encoder.encode()


def test_binary_payload_is_untouched() -> None:
    payload = bytes(range(256)) * 4
    encoder = MultipartEncoder(boundary="zz-boundary")
    encoder.add_file("file", "audio.wav", payload, "audio/wav")

    body, _ = encoder.encode()

    start = body.index(b"\r\n\r\n") + 4
    assert body[start:start + len(payload)] == payload
