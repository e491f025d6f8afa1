"""Text stream sink for single-stream dumps."""

from typing import TextIO

from pg_snapdump.errors import SinkWriteError


class StreamSink:
    """``DumpSink`` over an open text stream (file or stdout).

    The stream is owned by the caller and is not closed here.

    Example:
        with open("dump.sql", "w", encoding="utf-8") as f:
            sink = StreamSink(f)
            await dump_database(coordinator, sink, settings)
    """

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream

    def write(self, text: str) -> None:
        try:
            self._stream.write(text)
        except OSError as e:
            raise SinkWriteError(f"Failed to write dump output: {e}") from e

    def flush(self) -> None:
        try:
            self._stream.flush()
        except OSError as e:
            raise SinkWriteError(f"Failed to flush dump output: {e}") from e
