"""Unit tests for reasoning channel splitting.

Covers marker detection within and across fragments, hold-back of
possible partial markers, and end-of-stream flushing.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest

from chat_runtime.protocols.reasoning import (
    Channel,
    Segment,
    TagSplitter,
    _partial_marker_length,
    split_tagged_stream,
)


def _run(splitter: TagSplitter, fragments: list[str]) -> list[Segment]:
    segments: list[Segment] = []
    for fragment in fragments:
        segments.extend(splitter.feed(fragment))
    segments.extend(splitter.flush())
    return segments


def _joined(segments: list[Segment], channel: Channel) -> str:
    return "".join(s.text for s in segments if s.channel == channel)


# =============================================================================
# Partial Marker Detection
# =============================================================================


class TestPartialMarkerLength:
    """Tests for _partial_marker_length."""

    def test_no_overlap(self) -> None:
        """Text ending in unrelated characters holds nothing back."""
        assert _partial_marker_length("hello", "<think>") == 0

    def test_single_character_prefix(self) -> None:
        """A trailing '<' could start the marker."""
        assert _partial_marker_length("hello <", "<think>") == 1

    def test_longest_prefix(self) -> None:
        """The longest matching suffix is used."""
        assert _partial_marker_length("abc</thi", "</think>") == 5

    def test_full_marker_is_not_partial(self) -> None:
        """A complete marker is not a proper prefix."""
        assert _partial_marker_length("<think>", "<think>") == 0

    def test_empty_text(self) -> None:
        """Empty text holds nothing back."""
        assert _partial_marker_length("", "<think>") == 0


# =============================================================================
# TagSplitter Tests
# =============================================================================


class TestTagSplitter:
    """Tests for TagSplitter - incremental splitting."""

    def test_plain_text_is_answer(self) -> None:
        """Text with no markers goes to the answer channel."""
        splitter = TagSplitter()
        segments = splitter.feed("Hello world")
        assert segments == [Segment(Channel.ANSWER, "Hello world")]

    def test_markers_within_one_fragment(self) -> None:
        """Both markers in a single fragment are resolved immediately."""
        splitter = TagSplitter()
        segments = splitter.feed("<think>pondering</think>The answer")
        assert segments == [
            Segment(Channel.REASONING, "pondering"),
            Segment(Channel.ANSWER, "The answer"),
        ]
        assert splitter.inside is False

    def test_marker_split_across_fragments(self) -> None:
        """A marker spread over fragments is still recognized."""
        splitter = TagSplitter()
        segments = _run(splitter, ["Hello <thi", "nk>abc</thi", "nk> done"])
        assert segments == [
            Segment(Channel.ANSWER, "Hello "),
            Segment(Channel.REASONING, "abc"),
            Segment(Channel.ANSWER, " done"),
        ]

    def test_answer_reasoning_answer_scenario(self) -> None:
        """Split open marker between fragments, close marker within one."""
        splitter = TagSplitter()
        segments = _run(splitter, ["The answer ", "is <thi", "nk>42</think> done"])
        assert _joined(segments, Channel.ANSWER) == "The answer is  done"
        assert _joined(segments, Channel.REASONING) == "42"
        assert segments[-1] == Segment(Channel.ANSWER, " done")

    def test_marker_split_one_character_at_a_time(self) -> None:
        """Feeding single characters yields the same channel text."""
        text = "pre<think>why</think>post"
        splitter = TagSplitter()
        segments = _run(splitter, list(text))
        assert _joined(segments, Channel.REASONING) == "why"
        assert _joined(segments, Channel.ANSWER) == "prepost"

    def test_partial_marker_is_held_back(self) -> None:
        """A possible marker prefix is not emitted until resolved."""
        splitter = TagSplitter()
        segments = splitter.feed("Hello <thi")
        assert segments == [Segment(Channel.ANSWER, "Hello ")]
        assert splitter.pending == "<thi"

    def test_false_alarm_is_released(self) -> None:
        """Held text that turns out not to be a marker is emitted."""
        splitter = TagSplitter()
        splitter.feed("a <th")
        segments = splitter.feed("ing")
        assert segments == [Segment(Channel.ANSWER, "<thing")]
        assert splitter.pending == ""

    def test_flush_releases_pending_to_active_channel(self) -> None:
        """End of stream emits held text in the current channel."""
        splitter = TagSplitter()
        splitter.feed("<think>still thinking </thin")
        segments = splitter.flush()
        assert segments == [Segment(Channel.REASONING, "</thin")]

    def test_unclosed_reasoning_stays_reasoning(self) -> None:
        """Text after an unclosed open marker is all reasoning."""
        splitter = TagSplitter()
        segments = _run(splitter, ["<think>never", " closed"])
        assert _joined(segments, Channel.REASONING) == "never closed"
        assert _joined(segments, Channel.ANSWER) == ""
        assert splitter.inside is True

    def test_starts_inside_reasoning(self) -> None:
        """With inside=True text is reasoning until the close marker."""
        splitter = TagSplitter(inside=True)
        segments = _run(splitter, ["planning", "</think>", "answer"])
        assert segments == [
            Segment(Channel.REASONING, "planning"),
            Segment(Channel.ANSWER, "answer"),
        ]

    def test_stray_close_marker_in_answer_is_text(self) -> None:
        """A close marker outside reasoning is ordinary answer text."""
        splitter = TagSplitter()
        segments = _run(splitter, ["a </think> b"])
        assert _joined(segments, Channel.ANSWER) == "a </think> b"

    def test_markers_are_case_sensitive(self) -> None:
        """Only the exact marker switches channels."""
        splitter = TagSplitter()
        segments = _run(splitter, ["<THINK>x</THINK>"])
        assert _joined(segments, Channel.ANSWER) == "<THINK>x</THINK>"

    def test_empty_segments_never_emitted(self) -> None:
        """Adjacent markers produce no empty segments."""
        splitter = TagSplitter()
        segments = _run(splitter, ["<think></think><think></think>"])
        assert segments == []

    def test_empty_fragment(self) -> None:
        """An empty fragment resolves nothing."""
        splitter = TagSplitter()
        assert splitter.feed("") == []

    def test_custom_markers(self) -> None:
        """Markers are configurable."""
        splitter = TagSplitter("[r]", "[/r]")
        segments = _run(splitter, ["[r]hmm[/", "r]ok"])
        assert segments == [
            Segment(Channel.REASONING, "hmm"),
            Segment(Channel.ANSWER, "ok"),
        ]

    def test_empty_markers_rejected(self) -> None:
        """Empty markers raise ValueError."""
        with pytest.raises(ValueError, match="cannot be empty"):
            TagSplitter("", "</think>")

    def test_channel_property_tracks_state(self) -> None:
        """channel reflects whether reasoning is active."""
        splitter = TagSplitter()
        assert splitter.channel == Channel.ANSWER
        splitter.feed("<think>")
        assert splitter.channel == Channel.REASONING


# =============================================================================
# split_tagged_stream Tests
# =============================================================================


class TestSplitTaggedStream:
    """Tests for the async generator wrapper."""

    @pytest.mark.asyncio
    async def test_splits_async_fragments(self) -> None:
        """Segments are yielded lazily from an async source."""

        async def source() -> AsyncIterator[str]:
            for fragment in ["<thi", "nk>r</think>", "a"]:
                yield fragment

        segments = [s async for s in split_tagged_stream(source())]
        assert segments == [
            Segment(Channel.REASONING, "r"),
            Segment(Channel.ANSWER, "a"),
        ]

    @pytest.mark.asyncio
    async def test_flushes_pending_at_end(self) -> None:
        """Held text is yielded when the source ends."""

        async def source() -> AsyncIterator[str]:
            yield "tail <"

        segments = [s async for s in split_tagged_stream(source())]
        assert _joined(segments, Channel.ANSWER) == "tail <"


# =============================================================================
# Chunking Invariance
# =============================================================================


class TestChunkingInvariance:
    """Channel output must not depend on where the stream is cut."""

    @pytest.mark.parametrize(
        "text",
        [
            "a<think>b</think>c<",
            "<think></think>x",
            "pre<think>mid</thi",
            "x</think>y<think>z",
            "<<think><</think>>",
            "<thin<think>k</think</think>",
        ],
    )
    @pytest.mark.parametrize("inside", [False, True])
    def test_every_two_and_three_way_split(self, text: str, inside: bool) -> None:
        """Every split point pair yields the single-fragment channel text."""
        whole = _run(TagSplitter(inside=inside), [text])
        expected = (_joined(whole, Channel.REASONING), _joined(whole, Channel.ANSWER))

        for i in range(len(text) + 1):
            for j in range(i, len(text) + 1):
                fragments = [text[:i], text[i:j], text[j:]]
                segments = _run(TagSplitter(inside=inside), fragments)
                actual = (_joined(segments, Channel.REASONING), _joined(segments, Channel.ANSWER))
                assert actual == expected, fragments
                assert all(s.text for s in segments), fragments

    def test_single_fragment_reference(self) -> None:
        """The reference partition itself elides markers."""
        segments = _run(TagSplitter(), ["a<think>b</think>c<"])
        assert _joined(segments, Channel.ANSWER) == "ac<"
        assert _joined(segments, Channel.REASONING) == "b"
