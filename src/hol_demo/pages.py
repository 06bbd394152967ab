"""
Page Rendering
==============

HTML for the landing page and the secondary page.

The landing page embeds ``n`` MJPEG streams. Each image source gets a
distinct camera segment and a nanosecond timestamp so the browser opens
a fresh connection per image instead of reusing a cached one.
"""

import re
import time
from typing import Optional


ISSUE_URL = "https://bugs.chromium.org/p/chromium/issues/detail?id=735583"

STREAM_SUFFIX = ".mjpg"

OTHER_PAGE_PATH = "/other-page"

NOT_FOUND_BODY = "404 page not found\n"

_INT_PATTERN = re.compile(r"[+-]?[0-9]+")


def parse_stream_count(raw: Optional[str], default: int = 6, maximum: int = 10) -> int:
    """
    Coerce the ``n`` parameter into a stream count.

    Missing, non-numeric, zero or negative values fall back to default;
    anything above maximum is clamped.
    """
    n = 0
    if raw is not None and _INT_PATTERN.fullmatch(raw):
        n = int(raw)
    if n < 1:
        n = default
    if n > maximum:
        n = maximum
    return n


def stream_src(index: int, timestamp_ns: int) -> str:
    """Image source for the index-th embedded stream."""
    return f"/cam{index}/{timestamp_ns}/stream{STREAM_SUFFIX}"


def protocol_message(proto: str, secure: bool, http2: bool) -> str:
    """Tell the visitor whether their connection should show the bug."""
    if secure and http2:
        return f"You're using {proto}; you <b>should NOT</b> see the bug repro."
    return (
        f"You're using {proto}; you <b>should</b> see the bug. "
        f"You will be unable to click the link below."
    )


def render_root_page(
    n: int,
    proto: str,
    secure: bool,
    http2: bool,
    timestamp_ns: Optional[int] = None,
) -> str:
    """
    Render the landing page.

    Args:
        n: Number of stream images to embed
        proto: Protocol label shown to the visitor, e.g. "HTTP/1.1"
        secure: Whether the request arrived over TLS
        http2: Whether HTTP/2 was negotiated
        timestamp_ns: Cache-busting value; current time if None

    Returns:
        HTML document
    """
    if timestamp_ns is None:
        timestamp_ns = time.time_ns()

    parts = [
        "<html><body>\n",
        "<h1>Issue 735583 Demo</h1>\n",
        f"<p>For background, see <a href='{ISSUE_URL}'>Chrome Issue 735583</a>.</p>\n",
        "<p>This page streams 6 MJPEG streams by default (change with URL param "
        "<code>?n=</code>) in &lt;img&gt; tags to demonstrate that over HTTP/1.1, "
        "navigating to another page on the same site via an &lt;a&gt; link is broken.\n"
        "It works with HTTP/2 and fails with plaintext HTTP/1.x.</p>\n",
        f"<p>{protocol_message(proto, secure, http2)}</p>\n",
        f"\n<h2>\n<a href='{OTHER_PAGE_PATH}'>Some same-host link to another page</a> "
        "&lt;-- click me if you can</h2>\n",
        "\n<p>\n",
    ]
    for i in range(n):
        parts.append(
            f"<img src='{stream_src(i, timestamp_ns)}' width=100 height=100 "
            f"style='border: 2px solid black'>\n"
        )
    parts.append("</body></html>\n")
    return "".join(parts)


def render_other_page() -> str:
    return "<html><body>Some other page on the site."
