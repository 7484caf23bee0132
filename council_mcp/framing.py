"""Content-Length framed transport over a pair of byte streams."""

import logging
from typing import BinaryIO

logger = logging.getLogger(__name__)

HEADER_TERMINATOR = b"\r\n\r\n"


def encode_frame(body: bytes) -> bytes:
    """Wrap an encoded payload in a ``Content-Length`` header."""
    header = f"Content-Length: {len(body)}\r\n\r\n".encode("ascii")
    return header + body


def _parse_content_length(header: bytes) -> int | None:
    fields: dict[str, str] = {}
    for line in header.decode("ascii", errors="replace").split("\r\n"):
        name, sep, value = line.partition(":")
        if sep and name.strip():
            fields[name.strip().lower()] = value.strip()
    try:
        length = int(fields.get("content-length", ""))
    except ValueError:
        return None
    return length if length > 0 else None


class FramedTransport:
    """Blocking reader/writer of ``HEADER\\r\\n\\r\\nBODY`` frames.

    ``read_message`` returns ``None`` on end of stream and on any framing
    desync (bad or zero ``Content-Length``, short body). The body is returned
    undecoded.
    """

    def __init__(self, reader: BinaryIO, writer: BinaryIO) -> None:
        self._reader = reader
        self._writer = writer

    def _read_some(self, size: int) -> bytes:
        while True:
            try:
                chunk = self._reader.read(size)
            except (InterruptedError, BlockingIOError):
                continue
            # Non-blocking streams return None when no data is ready yet.
            if chunk is None:
                continue
            return chunk

    def _read_exact(self, total: int) -> bytes | None:
        chunks: list[bytes] = []
        remaining = total
        while remaining > 0:
            chunk = self._read_some(remaining)
            if not chunk:
                return None
            chunks.append(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)

    def read_message(self) -> bytes | None:
        header = bytearray()
        while not header.endswith(HEADER_TERMINATOR):
            one = self._read_some(1)
            if not one:
                return None
            header += one

        length = _parse_content_length(bytes(header))
        if length is None:
            logger.warning("Dropping frame with invalid Content-Length header: %r", bytes(header))
            return None

        body = self._read_exact(length)
        if body is None:
            logger.warning("Stream ended inside a %d-byte frame body", length)
        return body

    def write_message(self, body: bytes) -> None:
        self._writer.write(encode_frame(body))
        self._writer.flush()
