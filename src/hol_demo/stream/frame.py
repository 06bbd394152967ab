"""
Frame Data Model
=================

Internal frame representation for the stream emitter.

Design Rules:
    - Frames are immutable once produced
    - The producer hands back a tagged result, never a bare value
      that may be either bytes or an exception
"""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True, slots=True)
class Frame:
    """
    One frame written to a stream session.

    Attributes:
        frame_id: 1-based counter, strictly increasing within a session
        timestamp: UNIX timestamp when the frame was received from the producer
        jpeg: Encoded JPEG bytes
    """

    frame_id: int
    timestamp: float
    jpeg: bytes

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the image bytes."""
        return (
            f"Frame(frame_id={self.frame_id}, "
            f"timestamp={self.timestamp:.3f}, "
            f"size={len(self.jpeg)})"
        )


@dataclass(frozen=True, slots=True)
class FrameReady:
    """Producer succeeded; carries the encoded image."""

    jpeg: bytes


@dataclass(frozen=True, slots=True)
class FrameFailed:
    """Producer failed; carries the error that stopped it."""

    error: Exception


FrameResult = Union[FrameReady, FrameFailed]
