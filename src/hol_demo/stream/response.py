"""
Multipart Stream Response
=========================

ASGI response that drives one StreamEmitter for the lifetime of the
request. The emitter runs alongside a listener for ``http.disconnect``;
whichever finishes first stops the other, so the client going away is
the session's cancellation signal.
"""

import asyncio
import logging
from typing import Mapping, Optional

from starlette.background import BackgroundTask
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from hol_demo.stream.emitter import WRITE_ERRORS, StreamEmitter


logger = logging.getLogger(__name__)


_active_sessions: int = 0


def active_sessions() -> int:
    """Number of stream sessions currently running in this process."""
    return _active_sessions


class MultipartStreamResponse(Response):
    """
    Streams ``multipart/x-mixed-replace`` parts produced by an emitter.

    Example:
        emitter = StreamEmitter(generate_random_jpeg, interval=0.5)
        return MultipartStreamResponse(emitter)
    """

    def __init__(
        self,
        emitter: StreamEmitter,
        status_code: int = 200,
        headers: Optional[Mapping[str, str]] = None,
        background: Optional[BackgroundTask] = None,
    ) -> None:
        self.emitter = emitter
        self.status_code = status_code
        self.background = background
        self.init_headers(
            {
                "Content-Type": emitter.content_type,
                "Cache-Control": "no-cache",
                **(headers or {}),
            }
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        global _active_sessions

        try:
            await send(
                {
                    "type": "http.response.start",
                    "status": self.status_code,
                    "headers": self.raw_headers,
                }
            )
        except WRITE_ERRORS:
            return

        async def send_chunk(chunk: bytes) -> None:
            await send({"type": "http.response.body", "body": chunk, "more_body": True})

        _active_sessions += 1
        logger.info(
            f"Stream session {self.emitter.session_id} opened "
            f"({scope.get('path', '')}, active={_active_sessions})"
        )

        emit_task = asyncio.create_task(
            self.emitter.run(send_chunk),
            name=f"stream_session_{self.emitter.session_id}",
        )
        disconnect_task = asyncio.create_task(self._listen_for_disconnect(receive))
        try:
            await asyncio.wait(
                {emit_task, disconnect_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            self.emitter.stop()
            client_gone = disconnect_task.done() and not disconnect_task.cancelled()
            disconnect_task.cancel()
            try:
                await disconnect_task
            except asyncio.CancelledError:
                pass
            try:
                await emit_task
            finally:
                _active_sessions -= 1
                logger.info(
                    f"Stream session {self.emitter.session_id} closed "
                    f"(frames={self.emitter.frame_count}, active={_active_sessions})"
                )

        if not client_gone:
            # Emitter gave up on its own; end the body so the connection can be reused
            try:
                await send({"type": "http.response.body", "body": b"", "more_body": False})
            except WRITE_ERRORS:
                pass

        if self.background is not None:
            await self.background()

    @staticmethod
    async def _listen_for_disconnect(receive: Receive) -> None:
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                break
