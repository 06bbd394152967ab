"""
Test Configuration
==================

Pytest fixtures and test configuration for hol-demo.
"""

import asyncio
import itertools
from typing import List, Optional, Tuple

import pytest


@pytest.fixture
def app_settings():
    """Install fresh settings on the app with a short stream cadence."""
    from hol_demo.config import Settings, StreamConfig
    from hol_demo.main import app

    previous = getattr(app.state, "settings", None)
    current = Settings(stream=StreamConfig(interval_ms=200))
    app.state.settings = current
    yield current
    app.state.settings = previous


@pytest.fixture
def client(app_settings):
    """Provide a TestClient for the page routes."""
    from fastapi.testclient import TestClient
    from hol_demo.main import app

    return TestClient(app)


@pytest.fixture
def counting_generator():
    """Frame generator returning b"frame-1", b"frame-2", ..."""
    counter = itertools.count(1)

    def generate() -> bytes:
        return f"frame-{next(counter)}".encode()

    return generate


def http_scope(
    path: str,
    query: str = "",
    method: str = "GET",
    raw_path: Optional[bytes] = None,
) -> dict:
    """Minimal ASGI HTTP scope for driving the app directly."""
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "raw_path": raw_path if raw_path is not None else path.encode(),
        "query_string": query.encode(),
        "root_path": "",
        "headers": [(b"host", b"testserver")],
        "client": ("127.0.0.1", 50000),
        "server": ("testserver", 80),
    }


def run_stream_request(
    app,
    path: str,
    disconnect_after: float,
    query: str = "",
    raw_path: Optional[bytes] = None,
) -> List[Tuple[float, dict]]:
    """
    Call the ASGI app for a stream URL and disconnect after a delay.

    Returns:
        (elapsed seconds, message) for every message the app sent
    """

    async def drive() -> List[Tuple[float, dict]]:
        loop = asyncio.get_running_loop()
        started = loop.time()
        messages: List[Tuple[float, dict]] = []
        request_delivered = False

        async def receive() -> dict:
            nonlocal request_delivered
            if not request_delivered:
                request_delivered = True
                return {"type": "http.request", "body": b"", "more_body": False}
            remaining = disconnect_after - (loop.time() - started)
            if remaining > 0:
                await asyncio.sleep(remaining)
            return {"type": "http.disconnect"}

        async def send(message: dict) -> None:
            messages.append((loop.time() - started, message))

        await asyncio.wait_for(
            app(http_scope(path, query, raw_path=raw_path), receive, send),
            timeout=disconnect_after + 5.0,
        )
        return messages

    return asyncio.run(drive())


def parse_part(chunk: bytes, boundary: str, first: bool) -> Tuple[dict, bytes]:
    """Split one serialized multipart part into (headers, payload)."""
    prefix = f"--{boundary}\r\n" if first else f"\r\n--{boundary}\r\n"
    assert chunk.startswith(prefix.encode())
    head, _, payload = chunk[len(prefix):].partition(b"\r\n\r\n")
    headers = {}
    for line in head.decode("latin-1").split("\r\n"):
        name, _, value = line.partition(": ")
        headers[name] = value
    return headers, payload


def header_value(raw_headers: list, name: str) -> Optional[str]:
    for key, value in raw_headers:
        if key.decode("latin-1").lower() == name.lower():
            return value.decode("latin-1")
    return None
