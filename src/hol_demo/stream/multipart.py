"""
Multipart Writer
================

Serializes parts of a ``multipart/x-mixed-replace`` body.

The stream never ends, so no closing boundary is written. The first
part starts directly with the dash-boundary line; every later part is
preceded by the CRLF that terminates the previous part's body.
"""

import secrets
from typing import Dict, Optional


class MultipartWriter:
    """
    Stateful part serializer for one response body.

    Example:
        writer = MultipartWriter()
        content_type = writer.content_type("multipart/x-mixed-replace")
        chunk = writer.part({"Content-Type": "image/jpeg"}, jpeg_bytes)
    """

    def __init__(self, boundary: Optional[str] = None) -> None:
        if boundary is None:
            boundary = secrets.token_hex(30)
        if not boundary or len(boundary) > 70:
            raise ValueError("boundary must be 1..70 characters")
        self._boundary = boundary
        self._parts_written = 0

    @property
    def boundary(self) -> str:
        return self._boundary

    @property
    def parts_written(self) -> int:
        return self._parts_written

    def content_type(self, media_type: str = "multipart/x-mixed-replace") -> str:
        """Content-Type header value announcing the boundary."""
        return f"{media_type}; boundary={self._boundary}"

    def part(self, headers: Dict[str, str], body: bytes) -> bytes:
        """
        Serialize one part, headers sorted by name.

        Returns:
            Bytes to write to the response as a single chunk
        """
        lines = []
        if self._parts_written == 0:
            lines.append(f"--{self._boundary}\r\n")
        else:
            lines.append(f"\r\n--{self._boundary}\r\n")
        for name in sorted(headers):
            lines.append(f"{name}: {headers[name]}\r\n")
        lines.append("\r\n")

        self._parts_written += 1
        return "".join(lines).encode("latin-1") + body

    def jpeg_part(self, jpeg: bytes) -> bytes:
        """One image/jpeg part with an explicit Content-Length."""
        return self.part(
            {
                "Content-Type": "image/jpeg",
                "Content-Length": str(len(jpeg)),
            },
            jpeg,
        )
