"""
Streaming protocol layer - SSE decoding and incremental completion consumption.
"""

from .parser import (
    Content,
    Done,
    Frame,
    Skip,
    SSEDecoder,
    parse_line,
)
from .stream import (
    CompletionStream,
    StreamingResult,
    StreamUpdate,
)

__all__ = [
    "Content",
    "Done",
    "Frame",
    "Skip",
    "SSEDecoder",
    "parse_line",
    "CompletionStream",
    "StreamingResult",
    "StreamUpdate",
]
