"""
Server-Sent Events decoder for OpenAI-compatible chat-completion streams.

The body arrives as arbitrarily sliced chunks. `SSEDecoder` keeps the
incomplete trailing line between chunks and turns every complete line into
a tagged frame:

- ``Content(fragment)``: a ``data:`` line carrying ``choices[0].delta.content``
- ``Done()``: the literal ``data: [DONE]`` terminator
- ``Skip(reason)``: anything else (comments, blank lines, other SSE fields,
  malformed JSON, deltas without text). Skips never stop the stream.
"""

import codecs
import json
from dataclasses import dataclass
from typing import Optional, Union

from ..errors import ProtocolError

DATA_FIELD = "data:"
DONE_SENTINEL = "[DONE]"


@dataclass(frozen=True)
class Content:
    fragment: str


@dataclass(frozen=True)
class Done:
    pass


@dataclass(frozen=True)
class Skip:
    reason: str
    error: Optional[ProtocolError] = None


Frame = Union[Content, Done, Skip]


def parse_line(line: str) -> Frame:
    """Classify a single complete SSE line."""
    line = line.rstrip("\r")
    if not line.strip():
        return Skip("blank line")
    if not line.startswith(DATA_FIELD):
        return Skip("not a data line")

    payload = line[len(DATA_FIELD):]
    if payload.startswith(" "):
        payload = payload[1:]
    if payload.strip() == DONE_SENTINEL:
        return Done()

    try:
        event = json.loads(payload)
    except json.JSONDecodeError as e:
        return Skip("malformed JSON", ProtocolError(f"malformed SSE frame: {e}"))

    try:
        content = event["choices"][0]["delta"].get("content")
    except (KeyError, IndexError, TypeError, AttributeError):
        return Skip("no delta in frame")

    if not isinstance(content, str) or not content:
        return Skip("empty delta")
    return Content(content)


class SSEDecoder:
    """Incremental line decoder.

    Usage:
        decoder = SSEDecoder()
        for chunk in chunks:
            for frame in decoder.feed(chunk):
                ...
        for frame in decoder.flush():
            ...
    """

    def __init__(self):
        self._buffer = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def pending(self) -> str:
        """Text of the incomplete line carried over to the next chunk."""
        return self._buffer

    def feed(self, chunk: Union[bytes, str]) -> list[Frame]:
        """Add a chunk and return frames for every line it completes."""
        if isinstance(chunk, (bytes, bytearray)):
            text = self._utf8.decode(bytes(chunk))
        else:
            text = chunk
        if not text:
            return []

        self._buffer += text
        *lines, self._buffer = self._buffer.split("\n")
        return [parse_line(line) for line in lines]

    def flush(self) -> list[Frame]:
        """Emit the frame for a final line that had no trailing newline."""
        self._buffer += self._utf8.decode(b"", final=True)
        remaining, self._buffer = self._buffer, ""
        if not remaining.strip():
            return []
        return [parse_line(remaining)]
