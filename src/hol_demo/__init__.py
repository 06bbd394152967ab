"""
HOL Demo
========

Diagnostic web server reproducing HTTP/1.1 head-of-line blocking in
browsers (Chromium issue 735583).

The landing page embeds several multipart/x-mixed-replace MJPEG streams.
Over plaintext HTTP/1.1 they exhaust the browser's per-host connection
pool, so the same-host link on the page cannot be followed. The same
app is served over TLS with HTTP/2, where the link keeps working.

Components:
    - config: Settings, YAML/env loading, logging setup
    - pages: Landing page and secondary page rendering
    - stream: Synthetic MJPEG stream sessions
    - tls: Certificate material for the TLS listener
    - main: FastAPI application and Hypercorn bootstrap

Example:
    hol-demo --http :8080 --https :4430
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
