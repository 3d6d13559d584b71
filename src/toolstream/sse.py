"""Server-Sent Events decoding for streamed chat completions.

A response body is a sequence of ``data: <json>`` lines terminated by
``data: [DONE]``.  Network chunks do not respect line boundaries, so the
parser buffers partial lines (and partial UTF-8 sequences) between feeds.
"""

from __future__ import annotations

import codecs
import logging
from collections.abc import AsyncIterator

from pydantic import BaseModel, ValidationError

from toolstream.streaming import (
    ContentFragment,
    Fragment,
    StreamEnd,
    ToolCallFragment,
)

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


class _FunctionDelta(BaseModel):
    name: str | None = None
    arguments: str | None = None


class _ToolCallDelta(BaseModel):
    index: int
    id: str | None = None
    type: str | None = None
    function: _FunctionDelta | None = None


class _Delta(BaseModel):
    content: str | None = None
    tool_calls: list[_ToolCallDelta] | None = None


class _Choice(BaseModel):
    delta: _Delta | None = None


class _Chunk(BaseModel):
    choices: list[_Choice]


class StreamingDeltaParser:
    """Incremental decoder from raw response bytes to fragments.

    ``feed`` may be called with arbitrary byte chunks; each call returns the
    fragments completed by that chunk, in stream order.  Once ``[DONE]`` is
    seen the parser is finished and ignores further input.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.finished = False

    def feed(self, chunk: bytes) -> list[Fragment]:
        if self.finished:
            return []
        self._buffer += self._decoder.decode(chunk)
        fragments: list[Fragment] = []
        while not self.finished and "\n" in self._buffer:
            line, self._buffer = self._buffer.split("\n", 1)
            fragments.extend(self._parse_line(line.rstrip("\r")))
        return fragments

    def close(self) -> list[Fragment]:
        """Flush a trailing line that was not newline-terminated."""
        if self.finished:
            return []
        self._buffer += self._decoder.decode(b"", final=True)
        line, self._buffer = self._buffer, ""
        if not line:
            return []
        return self._parse_line(line.rstrip("\r"))

    def _parse_line(self, line: str) -> list[Fragment]:
        if not line.startswith(DATA_PREFIX):
            return []
        payload = line[len(DATA_PREFIX):]
        if payload == DONE_SENTINEL:
            self.finished = True
            return [StreamEnd()]
        try:
            chunk = _Chunk.model_validate_json(payload)
        except ValidationError as e:
            logger.debug(f"Skipping undecodable stream line: {e.error_count()} error(s)")
            return []
        if not chunk.choices:
            return []
        delta = chunk.choices[0].delta
        if delta is None:
            return []
        return list(_delta_fragments(delta))


def _delta_fragments(delta: _Delta):
    if delta.content:
        yield ContentFragment(text=delta.content)
    for tc in delta.tool_calls or []:
        function = tc.function or _FunctionDelta()
        yield ToolCallFragment(
            index=tc.index,
            id=tc.id,
            type=tc.type,
            name=function.name,
            arguments=function.arguments,
        )


async def parse_stream(chunks: AsyncIterator[bytes]) -> AsyncIterator[Fragment]:
    """Lazily turn a response byte stream into fragments.

    The sequence always ends with exactly one :class:`StreamEnd`; if the body
    closes without ``[DONE]`` one is produced after the buffered tail.
    """
    parser = StreamingDeltaParser()
    async for chunk in chunks:
        for fragment in parser.feed(chunk):
            yield fragment
            if isinstance(fragment, StreamEnd):
                return
    for fragment in parser.close():
        yield fragment
        if isinstance(fragment, StreamEnd):
            return
    logger.debug("Response body ended without [DONE]")
    yield StreamEnd()
