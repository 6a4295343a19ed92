"""Minimal multipart/form-data encoder for the transcription upload."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional

CRLF = b"\r\n"
_MAX_BOUNDARY_ATTEMPTS = 16


def escape_header_value(value: str) -> str:
    """Percent-escape the characters that would break a quoted header param."""
    return value.replace("\r", "%0D").replace("\n", "%0A").replace('"', "%22")


@dataclass
class FormPart:
    name: str
    data: bytes
    filename: Optional[str] = None
    content_type: Optional[str] = None

    def headers(self) -> bytes:
        disposition = f'Content-Disposition: form-data; name="{escape_header_value(self.name)}"'
        if self.filename is not None:
            disposition += f'; filename="{escape_header_value(self.filename)}"'
        lines = [disposition]
        if self.content_type:
            lines.append(f"Content-Type: {escape_header_value(self.content_type)}")
        return "\r\n".join(lines).encode("utf-8") + CRLF + CRLF


class MultipartEncoder:
    def __init__(self, boundary: Optional[str] = None) -> None:
        self._fixed_boundary = boundary
        self._parts: list[FormPart] = []

    @property
    def parts(self) -> list[FormPart]:
        return list(self._parts)

    def add_field(self, name: str, value: str) -> "MultipartEncoder":
        self._parts.append(FormPart(name=name, data=value.encode("utf-8")))
        return self

    def add_file(
        self,
        name: str,
        filename: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> "MultipartEncoder":
        self._parts.append(
            FormPart(name=name, data=bytes(data), filename=filename, content_type=content_type)
        )
        return self

    def encode(self) -> tuple[bytes, str]:
        """Return ``(body, content_type_header)``.

        The boundary must not occur inside any part. A generated boundary is
        re-rolled on collision; a caller-supplied one raises ``ValueError``.
        """
        boundary = self._choose_boundary()
        delimiter = b"--" + boundary.encode("ascii")
        chunks: list[bytes] = []
        for part in self._parts:
            chunks.append(delimiter + CRLF)
            chunks.append(part.headers())
            chunks.append(part.data)
            chunks.append(CRLF)
        chunks.append(delimiter + b"--" + CRLF)
        return b"".join(chunks), f"multipart/form-data; boundary={boundary}"

    def _choose_boundary(self) -> str:
        if self._fixed_boundary is not None:
            if not self._fixed_boundary or self._collides(self._fixed_boundary):
                raise ValueError("boundary is empty or occurs inside a form part")
            return self._fixed_boundary
        for _ in range(_MAX_BOUNDARY_ATTEMPTS):
            candidate = str(uuid.uuid4())
            if not self._collides(candidate):
                return candidate
        raise ValueError("could not find a boundary absent from the payload")

    def _collides(self, boundary: str) -> bool:
        token = boundary.encode("ascii")
        for part in self._parts:
            if token in part.data or token in part.headers():
                return True
        return False
