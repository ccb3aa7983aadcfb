"""Reasoning/answer channel splitting for streamed model output.

Models that reason inline wrap their chain of thought in a marker pair
(``<think>...</think>`` by default) inside the same token stream as the
answer. TagSplitter separates the two channels while text is still
streaming, so a marker may arrive split across any number of fragments.

Example:
    splitter = TagSplitter()
    for fragment in ["The answer ", "is <thi", "nk>42</think> done"]:
        for segment in splitter.feed(fragment):
            print(segment.channel, repr(segment.text))
    for segment in splitter.flush():
        print(segment.channel, repr(segment.text))
"""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass
from enum import Enum

DEFAULT_OPEN_TAG = "<think>"
DEFAULT_CLOSE_TAG = "</think>"


class Channel(str, Enum):
    """Logical output channels."""

    REASONING = "reasoning"
    ANSWER = "answer"


@dataclass(frozen=True)
class Segment:
    """A run of text belonging to a single channel."""

    channel: Channel
    text: str


def _partial_marker_length(text: str, marker: str) -> int:
    """Length of the longest suffix of text that is a proper prefix of marker."""
    start = max(0, len(text) - len(marker) + 1)
    for i in range(start, len(text)):
        if marker.startswith(text[i:]):
            return len(text) - i
    return 0


class TagSplitter:
    """Incremental splitter for marker-delimited reasoning.

    Marker matching is literal, case-sensitive and first-match. A tail that
    could be the beginning of the marker currently being searched for is
    held back until the next fragment resolves it; anything else is emitted
    as soon as it arrives. One instance handles exactly one stream.
    """

    def __init__(
        self,
        open_tag: str = DEFAULT_OPEN_TAG,
        close_tag: str = DEFAULT_CLOSE_TAG,
        *,
        inside: bool = False,
    ) -> None:
        """Initialize the splitter.

        Args:
            open_tag: Marker that starts the reasoning channel
            close_tag: Marker that ends the reasoning channel
            inside: Whether the stream starts inside the reasoning channel
        """
        if not open_tag or not close_tag:
            raise ValueError("Markers cannot be empty")
        self._open_tag = open_tag
        self._close_tag = close_tag
        self._inside = inside
        self._pending = ""

    @property
    def inside(self) -> bool:
        """True while the reasoning channel is active."""
        return self._inside

    @property
    def pending(self) -> str:
        """Text held back as a possible partial marker."""
        return self._pending

    @property
    def channel(self) -> Channel:
        return Channel.REASONING if self._inside else Channel.ANSWER

    def feed(self, fragment: str) -> list[Segment]:
        """Consume one fragment and return the segments it resolves."""
        text = self._pending + fragment
        self._pending = ""
        segments: list[Segment] = []

        while text:
            marker = self._close_tag if self._inside else self._open_tag
            index = text.find(marker)
            if index >= 0:
                self._emit(segments, text[:index])
                self._inside = not self._inside
                text = text[index + len(marker) :]
                continue

            held = _partial_marker_length(text, marker)
            if held:
                self._emit(segments, text[:-held])
                self._pending = text[-held:]
            else:
                self._emit(segments, text)
            break

        return segments

    def flush(self) -> list[Segment]:
        """End of stream: release held-back text to the active channel."""
        segments: list[Segment] = []
        self._emit(segments, self._pending)
        self._pending = ""
        return segments

    def _emit(self, segments: list[Segment], text: str) -> None:
        if text:
            segments.append(Segment(self.channel, text))


async def split_tagged_stream(
    fragments: AsyncIterable[str],
    open_tag: str = DEFAULT_OPEN_TAG,
    close_tag: str = DEFAULT_CLOSE_TAG,
    *,
    inside: bool = False,
) -> AsyncIterator[Segment]:
    """Lazily split an async stream of fragments into channel segments."""
    splitter = TagSplitter(open_tag, close_tag, inside=inside)
    async for fragment in fragments:
        for segment in splitter.feed(fragment):
            yield segment
    for segment in splitter.flush():
        yield segment
