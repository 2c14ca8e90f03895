"""Streaming line sources over plain and gzip compressed log files."""
from __future__ import annotations

import logging
import zlib
from collections.abc import AsyncGenerator
from pathlib import Path

import aiofiles

from loganalyzer.exceptions import SourceError

logger = logging.getLogger(__name__)

GZIP_SUFFIX = ".gz"
CHUNK_SIZE = 256 * 1024


def is_gzip(path: Path | str) -> bool:
    """Return True if the file name carries the gzip extension."""
    return Path(path).suffix.lower() == GZIP_SUFFIX


class GzipDecoder:
    """Incremental gzip decoder that also handles concatenated members."""

    def __init__(self) -> None:
        self._decompressor = zlib.decompressobj(wbits=zlib.MAX_WBITS | 16)
        self._fed = False

    def feed(self, data: bytes) -> bytes:
        out = bytearray()
        while data:
            self._fed = True
            if self._decompressor.eof:
                # Next gzip member
                self._decompressor = zlib.decompressobj(wbits=zlib.MAX_WBITS | 16)
            out += self._decompressor.decompress(data)
            data = self._decompressor.unused_data if self._decompressor.eof else b""
        return bytes(out)

    def finish(self) -> bytes:
        if not self._fed:
            return b""
        tail = self._decompressor.flush()
        if not self._decompressor.eof:
            raise zlib.error("compressed stream ended before the end-of-stream marker")
        return tail


class LineBuffer:
    """Collects decoded chunks and hands out complete lines.

    Bytes after the last newline stay buffered, and only bytes added since
    the previous ``feed`` are scanned for a newline.
    """

    def __init__(self) -> None:
        self._data = bytearray()
        self._scanned = 0

    def feed(self, chunk: bytes) -> list[bytes]:
        """Append chunk and return the lines it completes."""
        data = self._data
        data += chunk
        lines: list[bytes] = []
        start = 0
        while (end := data.find(b"\n", max(start, self._scanned))) != -1:
            lines.append(bytes(data[start:end + 1]))
            start = end + 1
        if start:
            del data[:start]
        self._scanned = len(data)
        return lines

    def rest(self) -> bytes:
        """Return the unterminated tail of the stream."""
        return bytes(self._data)


class LineSource:
    """Yields the raw lines of one log file.

    Lines keep their trailing newline; the last line of a file may lack one.
    Blank lines are skipped. Files ending in ``.gz`` are decompressed while
    they are read.
    """

    def __init__(self, path: Path | str, chunk_size: int = CHUNK_SIZE) -> None:
        self.path = Path(path)
        self.chunk_size = chunk_size
        self.compressed = is_gzip(self.path)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self.path)!r})"

    async def lines(self) -> AsyncGenerator[bytes, None]:
        """Stream the lines of the file.

        Raises:
            SourceError: The file cannot be opened, read or decompressed.
        """
        decoder = GzipDecoder() if self.compressed else None
        buffer = LineBuffer()
        try:
            async with aiofiles.open(self.path, "rb") as file:
                logger.debug("Reading %s (gzip=%s)", self.path, self.compressed)
                while chunk := await file.read(self.chunk_size):
                    for line in buffer.feed(decoder.feed(chunk) if decoder else chunk):
                        if line.strip():
                            yield line
                if decoder:
                    for line in buffer.feed(decoder.finish()):
                        if line.strip():
                            yield line
        except OSError as e:
            raise SourceError(str(self.path), e.strerror or str(e)) from e
        except zlib.error as e:
            raise SourceError(str(self.path), f"gzip decompression failed: {e}") from e

        if (tail := buffer.rest()).strip():
            yield tail
