"""
Incremental decoder for line-delimited `data:` event streams.
"""
import codecs
import json
import logging
from typing import AsyncIterable, AsyncIterator, Callable, List, Optional, TYPE_CHECKING

from .events import StreamEvent, Terminal, TextDelta, classify_frame

if TYPE_CHECKING:
    from stream_debug import StreamTracer

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"

Classifier = Callable[[object], List[StreamEvent]]


class StreamDecoder:
    """Reassembles frames across arbitrary byte chunk boundaries.

    The carried text buffer (plus the UTF-8 decoder's pending bytes) is the
    only state between feeds.
    """

    def __init__(self, classifier: Classifier = classify_frame, dedupe_first_text: bool = False) -> None:
        self.classifier = classifier
        self.dedupe_first_text = dedupe_first_text
        self.done = False

        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._text_deltas_seen = 0
        self._first_text: Optional[str] = None

    def feed(self, chunk: bytes) -> List[StreamEvent]:
        """Consume raw bytes and return the events completed by them."""
        if self.done or not chunk:
            return []

        self._buffer += self._utf8.decode(chunk)
        return self._drain()

    def finish(self) -> List[StreamEvent]:
        """Signal end of input.

        A trailing fragment without a newline is never treated as a frame,
        so this only releases decoder state.
        """
        if not self.done:
            self._buffer += self._utf8.decode(b"", final=True)
            if self._buffer:
                logger.debug(f"Discarding unterminated trailing fragment ({len(self._buffer)} chars)")
        self._buffer = ""
        return []

    def _drain(self) -> List[StreamEvent]:
        events: List[StreamEvent] = []

        while not self.done:
            newline_idx = self._buffer.find("\n")
            if newline_idx == -1:
                break

            line = self._buffer[:newline_idx]
            self._buffer = self._buffer[newline_idx + 1:]
            events.extend(self._process_line(line))

        return events

    def _process_line(self, line: str) -> List[StreamEvent]:
        if not line.startswith(DATA_PREFIX):
            return []

        data = line[len(DATA_PREFIX):].strip()
        if data == DONE_SENTINEL:
            self.done = True
            return [Terminal()]

        try:
            frame = json.loads(data)
        except json.JSONDecodeError:
            logger.debug(f"Skipping unparseable frame: {data[:200]}")
            return []

        events: List[StreamEvent] = []
        for event in self.classifier(frame):
            if isinstance(event, Terminal):
                self.done = True
                events.append(event)
                break
            if isinstance(event, TextDelta) and self._is_replayed_first_text(event):
                logger.debug("Suppressed replayed first text chunk")
                continue
            events.append(event)

        return events

    def _is_replayed_first_text(self, event: TextDelta) -> bool:
        # Legacy web transport sometimes sends its first text chunk twice
        if not self.dedupe_first_text:
            return False

        self._text_deltas_seen += 1
        if self._text_deltas_seen == 1:
            self._first_text = event.content
            return False
        return self._text_deltas_seen == 2 and event.content == self._first_text


async def decode_stream(
    chunks: AsyncIterable[bytes],
    classifier: Classifier = classify_frame,
    dedupe_first_text: bool = False,
    tracer: Optional["StreamTracer"] = None,
) -> AsyncIterator[StreamEvent]:
    """
    Decode an async byte stream into stream events.

    Stops consuming input right after a Terminal event; a source that ends
    without one simply ends the sequence.

    Args:
        chunks: Raw response body chunks (e.g. httpx aiter_bytes())
        classifier: Maps one parsed frame to events
        dedupe_first_text: Enable the legacy duplicate-first-chunk suppression
        tracer: Optional stream tracer for debugging

    Yields:
        StreamEvent objects in arrival order
    """
    decoder = StreamDecoder(classifier=classifier, dedupe_first_text=dedupe_first_text)

    async for chunk in chunks:
        if tracer:
            tracer.log_source_chunk(chunk.decode("utf-8", "replace"))

        for event in decoder.feed(chunk):
            if tracer:
                tracer.log_event(repr(event))
            yield event

        if decoder.done:
            if tracer:
                tracer.log_note("terminal event received, closing stream")
            return

    decoder.finish()
    if tracer:
        tracer.log_note("source ended without terminal event")
