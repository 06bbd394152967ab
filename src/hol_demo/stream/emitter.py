"""
Stream Emitter
==============

Per-connection MJPEG session: asks the producer for a frame, writes it
as one (or, for the first frame, two) multipart parts, then sleeps out
the rest of the cadence interval.

Termination:
    - stop() called (client gone, handler exiting): exit quietly
    - producer returns FrameFailed: log the error and exit
    - send() raises a write error: exit quietly

Design Rules:
    - Both waits (frame result, inter-cycle delay) race the stop event
    - Nothing is written once the stop event is set
    - Processing time is subtracted from the delay, clamped at zero
"""

import asyncio
import itertools
import logging
import time
from typing import Awaitable, Callable, Optional

from starlette.requests import ClientDisconnect

from hol_demo.stream.frame import Frame, FrameFailed, FrameResult
from hol_demo.stream.multipart import MultipartWriter
from hol_demo.stream.producer import FrameProducer


logger = logging.getLogger(__name__)


DEFAULT_INTERVAL = 0.5

# Errors raised by an ASGI send() once the peer has gone away
WRITE_ERRORS = (OSError, RuntimeError, ClientDisconnect)

_session_ids = itertools.count(1)


def cadence_delay(interval: float, elapsed: float) -> float:
    """Time left in the current cycle, never negative."""
    return max(0.0, interval - elapsed)


class StreamEmitter:
    """
    One stream session.

    Attributes:
        session_id: Process-wide session number, never reused
        interval: Target seconds between the starts of consecutive cycles
        writer: Multipart serializer for this response body
        frame_count: Frames emitted so far
        parts_sent: Multipart parts successfully written

    Example:
        emitter = StreamEmitter(generate_random_jpeg)
        headers = {"Content-Type": emitter.content_type}

        task = asyncio.create_task(emitter.run(send_chunk))
        ...
        emitter.stop()
        await task
    """

    def __init__(
        self,
        generate: Callable[[], bytes],
        interval: float = DEFAULT_INTERVAL,
        writer: Optional[MultipartWriter] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize a session.

        Args:
            generate: Synchronous frame generator returning JPEG bytes
            interval: Cadence in seconds
            writer: Multipart writer; a fresh random boundary if None
            clock: Monotonic clock used for cadence arithmetic
        """
        if interval < 0:
            raise ValueError("interval must be >= 0")

        self.session_id = next(_session_ids)
        self.interval = interval
        self.writer = writer or MultipartWriter()
        self._clock = clock
        self._producer = FrameProducer(generate)
        self._stop_event = asyncio.Event()

        self.frame_count: int = 0
        self.parts_sent: int = 0
        self.last_frame: Optional[Frame] = None

    @property
    def content_type(self) -> str:
        """Response Content-Type announcing this session's boundary."""
        return self.writer.content_type("multipart/x-mixed-replace")

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Fire the cancellation signal. Safe to call more than once."""
        self._stop_event.set()

    async def run(self, send: Callable[[bytes], Awaitable[None]]) -> None:
        """
        Emit frames until stopped or a frame/write fails.

        Args:
            send: Writes one chunk to the client and flushes it
        """
        producer_task = asyncio.create_task(
            self._producer.run(),
            name=f"frame_producer_{self.session_id}",
        )
        try:
            await self._emit_loop(send)
        finally:
            self._stop_event.set()
            producer_task.cancel()
            try:
                await producer_task
            except asyncio.CancelledError:
                pass
            logger.debug(
                f"Stream session {self.session_id} finished: "
                f"frames={self.frame_count}, parts={self.parts_sent}"
            )

    async def _emit_loop(self, send: Callable[[bytes], Awaitable[None]]) -> None:
        while not self._stop_event.is_set():
            started = self._clock()

            await self._producer.request()
            result = await self._next_result()
            if result is None:
                return

            if isinstance(result, FrameFailed):
                logger.error(
                    f"Error getting frame for stream session "
                    f"{self.session_id}: {result.error}"
                )
                return

            self.frame_count += 1
            frame = Frame(
                frame_id=self.frame_count,
                timestamp=time.time(),
                jpeg=result.jpeg,
            )
            self.last_frame = frame

            # Browsers may not render the first part until a second arrives
            copies = 2 if frame.frame_id == 1 else 1
            for _ in range(copies):
                if self._stop_event.is_set():
                    return
                try:
                    await send(self.writer.jpeg_part(frame.jpeg))
                except WRITE_ERRORS:
                    return
                self.parts_sent += 1

            delay = cadence_delay(self.interval, self._clock() - started)
            if await self._wait_stopped(delay):
                return

    async def _next_result(self) -> Optional[FrameResult]:
        """Wait for the producer's answer. None means the session was stopped."""
        get_task = asyncio.ensure_future(self._producer.results.get())
        stop_task = asyncio.ensure_future(self._stop_event.wait())
        try:
            await asyncio.wait(
                {get_task, stop_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in (get_task, stop_task):
                if not task.done():
                    task.cancel()

        if self._stop_event.is_set():
            return None
        return get_task.result()

    async def _wait_stopped(self, delay: float) -> bool:
        """Sleep for delay seconds. Returns True if stopped meanwhile."""
        if delay <= 0:
            return self._stop_event.is_set()
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            return True
        except asyncio.TimeoutError:
            return False
