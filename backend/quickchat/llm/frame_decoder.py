"""
Incremental frame decoding for streamed vendor responses.

WHAT: Turn raw body chunks into complete SSE or NDJSON frame payloads
WHY: Chunk boundaries fall anywhere, and some vendors/proxies skip SSE framing
HOW: Growing text buffer per stream, format detected from the buffer contents
"""

import codecs
import json
from typing import Any

DONE_SENTINEL = "[DONE]"

# Upper bound on the body copy kept for the end-of-stream whole-document parse
MAX_TRANSCRIPT_CHARS = 2 * 1024 * 1024


def looks_like_sse(buffer: str) -> bool:
    """
    Vendor-format predicate: a line starting with `data:` means SSE framing.

    Only line starts count; answer text such as "metadata:" inside an
    NDJSON object must not switch the framing.
    """
    return buffer.startswith("data:") or "\ndata:" in buffer


def _sse_payload(block: str) -> str | None:
    """Join the `data:` values of one SSE block, or None if it carries none."""
    data_lines = [line[5:].strip() for line in block.split("\n") if line.startswith("data:")]
    if not data_lines:
        return None
    return "\n".join(data_lines).strip()


def _ndjson_payload(line: str) -> str | None:
    line = line.strip()
    if not line or line.startswith("data:"):
        return None
    if line == DONE_SENTINEL or line[0] in "{[":
        return line
    return None


class FrameDecoder:
    """
    Frame extractor owned by exactly one stream.

    Feed body chunks in arrival order; each call returns the frames the
    chunk completed. A `[DONE]` payload ends the stream: it is returned as
    the last frame and everything after it is ignored.
    """

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._transcript: list[str] = []
        self._transcript_len = 0
        self._pending_cr = False
        self._sse = False
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    @property
    def is_sse(self) -> bool:
        return self._sse

    def feed(self, chunk: bytes | str) -> list[str]:
        """Append a chunk and return the frames it completed, in order."""
        if self._done:
            return []
        text = self._decoder.decode(chunk) if isinstance(chunk, (bytes, bytearray)) else chunk
        self._append(self._normalize_newlines(text))
        return self._drain(final=False)

    def flush(self) -> list[str]:
        """End of body: return a trailing frame that lacked its terminator."""
        if self._done:
            return []
        tail = self._decoder.decode(b"", final=True)
        if self._pending_cr:
            tail += "\n"
            self._pending_cr = False
        self._append(tail)
        return self._drain(final=True)

    def parse_whole_body(self) -> Any | None:
        """Parse everything received so far as one JSON document, or None."""
        text = "".join(self._transcript).strip()
        if not text:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return None

    def transcript_excerpt(self, limit: int) -> str:
        return "".join(self._transcript)[:limit]

    def _normalize_newlines(self, text: str) -> str:
        if self._pending_cr:
            text = "\r" + text
            self._pending_cr = False
        if text.endswith("\r"):
            # may be the first half of a \r\n split across chunks
            text = text[:-1]
            self._pending_cr = True
        return text.replace("\r\n", "\n").replace("\r", "\n")

    def _append(self, text: str) -> None:
        if not text:
            return
        self._buffer += text
        if self._transcript_len < MAX_TRANSCRIPT_CHARS:
            self._transcript.append(text)
            self._transcript_len += len(text)
        if not self._sse and looks_like_sse(self._buffer):
            self._sse = True

    def _drain(self, final: bool) -> list[str]:
        frames = []
        separator = "\n\n" if self._sse else "\n"
        extract = _sse_payload if self._sse else _ndjson_payload

        while True:
            index = self._buffer.find(separator)
            if index < 0:
                if not (final and self._buffer.strip()):
                    break
                piece, self._buffer = self._buffer, ""
            else:
                piece = self._buffer[:index]
                self._buffer = self._buffer[index + len(separator):]

            payload = extract(piece)
            if payload is None:
                continue
            frames.append(payload)
            if payload == DONE_SENTINEL:
                self._done = True
                self._buffer = ""
                break

        return frames
