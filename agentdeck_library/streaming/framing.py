"""Newline-delimited record framing.

Accumulates raw output chunks into complete records, one buffer per process
handle, carrying a partial trailing fragment across chunks.

Contract:
- Inputs: Raw stdout chunks keyed by process handle
- Outputs: Complete records (without the delimiter), in arrival order
- Side Effects: None beyond the per-handle buffers
"""

import codecs
import logging
from dataclasses import dataclass
from dataclasses import field

logger = logging.getLogger(__name__)

RECORD_DELIMITER = "\n"


@dataclass
class _FrameBuffer:
    decoder: codecs.IncrementalDecoder = field(default_factory=lambda: codecs.getincrementaldecoder("utf-8")("replace"))
    pending: str = ""


class LineFramer:
    """Split output chunks into newline-delimited records.

    Buffers are indexed by handle so a handle can be invalidated by simple
    removal. A fragment with no trailing delimiter at end of stream is never
    emitted; `discard()` drops it.

    Example:
        >>> framer = LineFramer()
        >>> framer.feed("p1", b'{"a": 1}\\n{"b"')
        ['{"a": 1}']
        >>> framer.feed("p1", b': 2}\\n')
        ['{"b": 2}']
    """

    def __init__(self) -> None:
        self._buffers: dict[str, _FrameBuffer] = {}

    def feed(self, handle: str, chunk: bytes | str) -> list[str]:
        """Append a chunk and return every record it completes.

        Args:
            handle: Process handle owning the stream
            chunk: Raw bytes (decoded as UTF-8, split code points are carried over) or text

        Returns:
            Complete records, possibly empty strings for blank lines
        """
        buffer = self._buffers.get(handle)
        if buffer is None:
            buffer = self._buffers[handle] = _FrameBuffer()

        text = buffer.decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        segments = (buffer.pending + text).split(RECORD_DELIMITER)
        buffer.pending = segments.pop()
        return segments

    def pending(self, handle: str) -> str:
        """Return the buffered partial fragment for a handle."""
        buffer = self._buffers.get(handle)
        return buffer.pending if buffer is not None else ""

    def discard(self, handle: str) -> str:
        """Drop a handle's buffer at end of stream.

        Returns:
            The unterminated trailing fragment that was dropped
        """
        buffer = self._buffers.pop(handle, None)
        if buffer is None:
            return ""
        leftover = buffer.pending + buffer.decoder.decode(b"", final=True)
        if leftover.strip():
            logger.debug(f"Discarding unterminated trailing output for {handle} ({len(leftover)} chars)")
        return leftover

    def __contains__(self, handle: str) -> bool:
        return handle in self._buffers
