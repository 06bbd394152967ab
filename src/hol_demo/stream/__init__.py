"""
Stream Module
=============

Synthetic MJPEG stream sessions.

This module provides the streaming side of the demo server:
    - Frame, FrameReady, FrameFailed: Frame record and tagged producer result
    - FrameProducer: Request/response frame generator task
    - MultipartWriter: multipart/x-mixed-replace part serializer
    - StreamEmitter: Per-connection cadence loop
    - MultipartStreamResponse: ASGI response driving one emitter

Example:
    from hol_demo.stream import MultipartStreamResponse, StreamEmitter
    from hol_demo.stream.image_encoder import generate_random_jpeg

    emitter = StreamEmitter(generate_random_jpeg, interval=0.5)
    return MultipartStreamResponse(emitter)
"""

from hol_demo.stream.frame import Frame, FrameFailed, FrameReady, FrameResult
from hol_demo.stream.producer import FrameProducer
from hol_demo.stream.multipart import MultipartWriter
from hol_demo.stream.emitter import StreamEmitter, cadence_delay
from hol_demo.stream.response import MultipartStreamResponse, active_sessions


__all__ = [
    "Frame",
    "FrameReady",
    "FrameFailed",
    "FrameResult",
    "FrameProducer",
    "MultipartWriter",
    "StreamEmitter",
    "cadence_delay",
    "MultipartStreamResponse",
    "active_sessions",
]
