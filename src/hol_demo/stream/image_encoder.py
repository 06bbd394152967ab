"""
Image Encoder
=============

Produces the synthetic JPEG frames pushed to stream sessions.

Design Rules:
    - This is the ONLY place in the codebase that encodes images
    - Every frame is a single solid color, re-drawn per frame
    - Fails fast with ImageEncodeError on any OpenCV failure
"""

import logging
from typing import Optional, Tuple

import cv2
import numpy as np


logger = logging.getLogger(__name__)


DEFAULT_FRAME_SIZE = 25
DEFAULT_JPEG_QUALITY = 75


class ImageEncodeError(Exception):
    """Raised when image encoding fails."""
    pass


def random_color(rng: Optional[np.random.Generator] = None) -> Tuple[int, int, int]:
    """
    Draw one RGB color, each channel independently uniform over 0..255.

    Args:
        rng: Random generator to draw from. A fresh one is used if None.

    Returns:
        (red, green, blue) tuple
    """
    if rng is None:
        rng = np.random.default_rng()
    r, g, b = rng.integers(0, 256, size=3)
    return int(r), int(g), int(b)


def encode_solid_jpeg(
    color: Tuple[int, int, int],
    width: int = DEFAULT_FRAME_SIZE,
    height: int = DEFAULT_FRAME_SIZE,
    quality: int = DEFAULT_JPEG_QUALITY,
) -> bytes:
    """
    Encode a width x height image filled with one RGB color as JPEG.

    Args:
        color: (red, green, blue) channel values
        width: Image width in pixels
        height: Image height in pixels
        quality: JPEG quality, 1..100

    Returns:
        JPEG bytes

    Raises:
        ImageEncodeError: If the image cannot be built or encoded
    """
    try:
        r, g, b = color
        # OpenCV expects BGR channel order
        image = np.empty((height, width, 3), dtype=np.uint8)
        image[:, :] = (b, g, r)

        ok, buffer = cv2.imencode(
            ".jpg",
            image,
            [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)],
        )
        if not ok:
            raise ImageEncodeError(
                f"cv2.imencode failed for {width}x{height} frame"
            )

        return buffer.tobytes()

    except ImageEncodeError:
        raise
    except Exception as e:
        raise ImageEncodeError(
            f"Unexpected error encoding {width}x{height} frame: {e}"
        ) from e


def generate_random_jpeg(
    width: int = DEFAULT_FRAME_SIZE,
    height: int = DEFAULT_FRAME_SIZE,
    quality: int = DEFAULT_JPEG_QUALITY,
    rng: Optional[np.random.Generator] = None,
) -> bytes:
    """Encode a fresh frame with a random solid color."""
    return encode_solid_jpeg(random_color(rng), width, height, quality)
