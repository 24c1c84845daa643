"""
Request-scoped traces of chat streams for troubleshooting.

When STREAM_TRACE_ENABLED is set, every streamed reply gets one log file
holding the raw body chunks as received and the events the decoder made of
them, one line per entry, so chunk boundaries stay visible.
"""

from __future__ import annotations

import datetime
from pathlib import Path
from typing import Optional

TRUNCATION_MARKER = "... trace truncated"


def _utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class StreamTracer:
    """Writes one line per source chunk, decoded event or note to a trace file."""

    def __init__(self, request_id: str, route: str, base_dir: str, max_bytes: Optional[int]):
        self.request_id = request_id
        self.route = "-".join(route.replace("/", " ").split()) or "stream"
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

        stamp = _utc_now().strftime("%Y%m%dT%H%M%SZ")
        self.path = self.base_dir / f"{stamp}_{self.route}_{request_id}.log"
        self._file = self.path.open("w", encoding="utf-8")

        # None means unlimited
        self.budget = max_bytes if isinstance(max_bytes, int) and max_bytes > 0 else None
        self.bytes_written = 0
        self.truncated = False
        self.chunks = 0
        self.events = 0

        self.log_note(f"trace started for {self.route} request {request_id}")

    def log_source_chunk(self, chunk: str) -> None:
        """Record a raw body chunk; repr keeps embedded newlines on one line."""
        self.chunks += 1
        self._record(f"SOURCE#{self.chunks}", repr(chunk))

    def log_event(self, event: str) -> None:
        self.events += 1
        self._record(f"EVENT#{self.events}", event)

    def log_note(self, note: str) -> None:
        self._record("NOTE", note)

    def log_error(self, message: str) -> None:
        self._record("ERROR", message)

    def close(self) -> None:
        if self._file.closed:
            return
        try:
            self.log_note(f"trace closed after {self.chunks} chunks and {self.events} events")
        finally:
            self._file.close()

    def _record(self, label: str, payload: str) -> None:
        if self._file.closed or self.truncated:
            return

        line = f"{_utc_now().strftime('%H:%M:%S.%f')[:-3]} {label} {payload}\n"
        data = line.encode("utf-8", "replace")

        if self.budget is not None and self.bytes_written + len(data) > self.budget:
            room = max(self.budget - self.bytes_written, 0)
            head = data[:room].decode("utf-8", "ignore").rstrip("\n")
            if head:
                self._file.write(head + "\n")
            self._file.write(TRUNCATION_MARKER + "\n")
            self._file.flush()
            self.bytes_written = self.budget
            self.truncated = True
            return

        self._file.write(line)
        self._file.flush()
        self.bytes_written += len(data)


def maybe_create_stream_tracer(
    enabled: bool,
    request_id: str,
    route: str,
    base_dir: str,
    max_bytes: Optional[int],
) -> Optional[StreamTracer]:
    """Return a tracer when tracing is enabled, otherwise None."""
    if not enabled:
        return None
    return StreamTracer(request_id=request_id, route=route, base_dir=base_dir, max_bytes=max_bytes)
