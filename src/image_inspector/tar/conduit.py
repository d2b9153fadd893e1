"""Bounded pipe between the filesystem copy-out and the tar materializer."""

import asyncio
import os
from typing import BinaryIO, Optional

DRAIN_CHUNK_SIZE = 64 * 1024


class ExtractionConduit:
    """An OS pipe with an async writing end and a blocking reading end.

    The producer writes from the event loop (each write runs in the default
    executor and blocks while the pipe is full); the consumer reads
    ``reader`` from a worker thread. Closing the reading end makes pending
    and later writes fail with ``BrokenPipeError``; closing the writing end
    is end-of-stream for the reader.
    """

    def __init__(self) -> None:
        read_fd, write_fd = os.pipe()
        self.reader: BinaryIO = os.fdopen(read_fd, "rb")
        self._writer = os.fdopen(write_fd, "wb", buffering=0)
        self._pending: Optional[asyncio.Future] = None

    def __enter__(self) -> "ExtractionConduit":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close_writer()
        self.close_reader()

    def _write_all(self, data: bytes) -> None:
        if self._writer.closed:
            raise BrokenPipeError("Conduit writer is closed")
        view = memoryview(data)
        while view:
            written = self._writer.write(view)
            if written is None:
                continue
            view = view[written:]

    async def write(self, chunk: bytes) -> None:
        """Write ``chunk`` completely, waiting while the pipe is full.

        Cancelling the caller does not interrupt a write already handed to
        the executor; ``finish_writes()`` waits for it.

        Raises:
            BrokenPipeError: If the reading end has been closed
        """
        if not chunk:
            return
        loop = asyncio.get_event_loop()
        self._pending = loop.run_in_executor(None, self._write_all, chunk)
        await asyncio.shield(self._pending)

    async def finish_writes(self) -> None:
        """Wait for an in-flight write, then close the writing end."""
        pending = self._pending
        if pending is not None and not pending.done():
            await asyncio.wait({pending})
        self.close_writer()

    def close_writer(self) -> None:
        if not self._writer.closed:
            self._writer.close()

    def close_reader(self) -> None:
        if not self.reader.closed:
            self.reader.close()

    def drain(self) -> int:
        """Discard everything up to end-of-stream (blocking).

        Returns:
            Number of bytes discarded
        """
        discarded = 0
        while True:
            chunk = self.reader.read(DRAIN_CHUNK_SIZE)
            if not chunk:
                return discarded
            discarded += len(chunk)
