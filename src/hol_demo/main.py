"""
HOL Demo Main Application
=========================

FastAPI entry point for the head-of-line blocking demo server.

One application is served on two listeners by Hypercorn:
    - plaintext HTTP/1.1 (reproduces the bug)
    - TLS with HTTP/2 negotiated via ALPN (does not reproduce it)

Endpoints:
    ANY  /              - Landing page with ?n= embedded MJPEG streams
    ANY  /<...>.mjpg    - Synthetic MJPEG stream
    ANY  /other-page    - Secondary page used to test navigation
    ANY  <other>        - 404
"""

import argparse
import asyncio
import logging
import signal
import sys
import tempfile
from contextlib import asynccontextmanager
from functools import partial
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, List, Optional
from urllib.parse import parse_qs

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, Response
from hypercorn.asyncio import serve as hypercorn_serve
from hypercorn.config import Config as HypercornConfig
from pydantic import ValidationError
from starlette.types import Receive, Scope, Send

from hol_demo import __version__
from hol_demo.config import ServerConfig, Settings, get_settings, load_config, setup_logging
from hol_demo.pages import (
    NOT_FOUND_BODY,
    OTHER_PAGE_PATH,
    STREAM_SUFFIX,
    parse_stream_count,
    render_other_page,
    render_root_page,
)
from hol_demo.stream import MultipartStreamResponse, MultipartWriter, StreamEmitter, active_sessions
from hol_demo.stream.image_encoder import generate_random_jpeg
from hol_demo.tls import TLSConfigError, resolve_tls_files


logger = logging.getLogger(__name__)


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager."""
    current = current_settings(app)
    logger.info(
        f"Starting hol-demo {__version__}: "
        f"{current.page.default_streams} streams by default, "
        f"{current.stream.interval_ms}ms cadence"
    )

    yield

    logger.info(f"Shutting down ({active_sessions()} stream sessions active)")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="hol-demo",
    description="HTTP/1.1 head-of-line blocking reproduction server",
    version=__version__,
    lifespan=lifespan,
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
)


def current_settings(app: FastAPI) -> Settings:
    """Settings installed by serve(), or the default file/env settings."""
    installed = getattr(app.state, "settings", None)
    if installed is not None:
        return installed
    return get_settings()


def _request_uri(request: Request) -> str:
    """The request target as sent by the client, before percent-decoding."""
    raw_path = request.scope.get("raw_path")
    if raw_path is None:
        raw_path = request.url.path.encode("utf-8")
    uri = raw_path.split(b"?", 1)[0].decode("latin-1")
    query = request.scope.get("query_string", b"")
    if query:
        uri += "?" + query.decode("latin-1")
    return uri


async def _form_value(request: Request, name: str) -> Optional[str]:
    """
    Look up a form value, body first and then query string.

    Only URL-encoded POST bodies are consulted.
    """
    content_type = request.headers.get("content-type", "")
    if request.method == "POST" and content_type.startswith("application/x-www-form-urlencoded"):
        body = await request.body()
        values = parse_qs(body.decode("latin-1"), keep_blank_values=True)
        if name in values:
            return values[name][0]
    return request.query_params.get(name)


def stream_response(current: Settings) -> MultipartStreamResponse:
    """Start a new stream session with the configured frame settings."""
    generate = partial(
        generate_random_jpeg,
        width=current.stream.frame_width,
        height=current.stream.frame_height,
        quality=current.stream.jpeg_quality,
    )
    emitter = StreamEmitter(generate, interval=current.stream.interval_ms / 1000.0)
    return MultipartStreamResponse(emitter)


# =============================================================================
# HTTP Endpoints
# =============================================================================

class AnyMethodEndpoint:
    """
    ASGI endpoint that hands every request method to one handler.

    Starlette routes built from a plain function only accept the methods
    they list; routes built from an ASGI callable accept any method.
    """

    def __init__(self, handler: Callable[[Request], Awaitable[Response]]) -> None:
        self.handler = handler

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        response = await self.handler(request)
        await response(scope, receive, send)


async def other_page(request: Request) -> HTMLResponse:
    """Secondary page; reaching it proves navigation still works."""
    return HTMLResponse(render_other_page())


async def root(request: Request) -> Response:
    """
    Landing page, stream endpoints, and 404 for everything else.

    Stream URLs live under the root prefix, so the suffix check comes
    before the exact-path check.
    """
    current = current_settings(request.app)

    if _request_uri(request).endswith(STREAM_SUFFIX):
        if request.method == "HEAD":
            # Headers only; no session for a body nobody reads
            return Response(
                headers={
                    "Content-Type": MultipartWriter().content_type(),
                    "Cache-Control": "no-cache",
                }
            )
        return stream_response(current)

    if request.url.path != "/":
        return PlainTextResponse(NOT_FOUND_BODY, status_code=404)

    n = parse_stream_count(
        await _form_value(request, "n"),
        default=current.page.default_streams,
        maximum=current.page.max_streams,
    )

    http_version = request.scope.get("http_version", "1.1")
    html = render_root_page(
        n,
        proto=f"HTTP/{http_version}",
        secure=request.url.scheme == "https",
        http2=http_version.startswith("2"),
    )
    return HTMLResponse(html)


app.add_route(OTHER_PAGE_PATH, AnyMethodEndpoint(other_page))
app.add_route("/{rest:path}", AnyMethodEndpoint(root))


# =============================================================================
# Server Bootstrap
# =============================================================================

def normalize_listen_address(address: str) -> str:
    """
    Turn a host:port listen address into a Hypercorn bind string.

    An empty host means every interface: ":8080" -> "0.0.0.0:8080".

    Raises:
        ValueError: If the address has no valid port
    """
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit() or int(port) > 65535:
        raise ValueError(f"Invalid listen address {address!r}: expected host:port")
    if not host:
        host = "0.0.0.0"
    return f"{host}:{port}"


def build_server_config(server: ServerConfig, certfile: str, keyfile: str) -> HypercornConfig:
    """Hypercorn config with a TLS bind and a plaintext insecure bind."""
    config = HypercornConfig()
    config.bind = [normalize_listen_address(server.tls_listen_address)]
    config.insecure_bind = [normalize_listen_address(server.http_listen_address)]
    config.certfile = certfile
    config.keyfile = keyfile
    config.alpn_protocols = ["h2", "http/1.1"]
    config.h2_max_concurrent_streams = server.h2_max_concurrent_streams
    config.graceful_timeout = 2.0
    return config


def check_listen_addresses(*binds: str) -> None:
    """
    Bind and release every listen address before anything else starts.

    Raises:
        OSError: If an address is in use or cannot be bound
    """
    for bind in binds:
        config = HypercornConfig()
        config.bind = [bind]
        for sock in config.create_sockets().insecure_sockets:
            sock.close()


def _handle_shutdown_signal(signum: int, shutdown_event: asyncio.Event) -> None:
    """Handle SIGINT/SIGTERM for graceful shutdown."""
    logger.info(f"Received {signal.Signals(signum).name}, initiating graceful shutdown...")
    shutdown_event.set()


async def serve(current: Settings) -> None:
    """Run both listeners until a shutdown signal arrives."""
    app.state.settings = current

    # Validate and bind addresses before minting certificates
    http_bind = normalize_listen_address(current.server.http_listen_address)
    tls_bind = normalize_listen_address(current.server.tls_listen_address)
    check_listen_addresses(http_bind, tls_bind)

    with tempfile.TemporaryDirectory(prefix="hol-demo-tls-") as scratch:
        certfile, keyfile = resolve_tls_files(current.server, Path(scratch))
        config = build_server_config(current.server, certfile, keyfile)

        shutdown_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, _handle_shutdown_signal, signum, shutdown_event)
            except NotImplementedError:
                pass  # Not supported on Windows event loops

        logger.info(f"Running HTTP port at {http_bind}, HTTPS port at {tls_bind}.")
        await hypercorn_serve(app, config, shutdown_trigger=shutdown_event.wait)
    logger.info("Shutdown complete")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="hol-demo",
        description="Serve MJPEG streams over HTTP/1.1 and HTTP/2 to compare "
        "browser connection-pool behavior.",
    )
    parser.add_argument(
        "--http",
        dest="http_listen_address",
        help="HTTP listen address (default :8080)",
    )
    parser.add_argument(
        "--https",
        dest="tls_listen_address",
        help="HTTPS listen address (default :4430)",
    )
    parser.add_argument("--config", help="Path to a YAML config file")
    parser.add_argument("--log-level", help="Log level, e.g. DEBUG or INFO")
    return parser.parse_args(argv)


def resolve_settings(args: argparse.Namespace) -> Settings:
    """Apply command-line flags on top of file and environment settings."""
    current = load_config(args.config) if args.config else get_settings()
    current = current.model_copy(deep=True)

    if args.http_listen_address is not None:
        current.server.http_listen_address = args.http_listen_address
    if args.tls_listen_address is not None:
        current.server.tls_listen_address = args.tls_listen_address
    if args.log_level is not None:
        current.logging.level = args.log_level
    return current


def main(argv: Optional[List[str]] = None) -> int:
    """Console entry point. Returns the process exit status."""
    args = parse_args(argv)

    try:
        current = resolve_settings(args)
    except ValidationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    setup_logging(current)

    try:
        asyncio.run(serve(current))
    except (OSError, ValueError, TLSConfigError) as e:
        logger.critical(f"Server failed to start: {e}")
        return 1
    return 0


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    sys.exit(main())
