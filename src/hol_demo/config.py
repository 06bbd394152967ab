"""
HOL Demo Configuration
======================

This module handles configuration loading for the demo server.

Configuration Sources (in order of precedence):
    1. Command-line flags (applied by main.py)
    2. Environment variables
    3. config.yaml file
    4. Default values (lowest priority)

Environment Variable Mapping:
    HOL_DEMO_HTTP_LISTEN   -> server.http_listen_address
    HOL_DEMO_TLS_LISTEN    -> server.tls_listen_address
    HOL_DEMO_CERTFILE      -> server.certfile
    HOL_DEMO_KEYFILE       -> server.keyfile
    HOL_DEMO_INTERVAL_MS   -> stream.interval_ms
    HOL_DEMO_LOG_LEVEL     -> logging.level

Example:
    from hol_demo.config import get_settings

    settings = get_settings()
    print(settings.server.http_listen_address)
    print(settings.stream.interval_ms)
"""

import os
import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class ServerConfig(BaseModel):
    """
    Listener configuration.

    Addresses are host:port strings. An empty host binds every
    interface, so ":8080" means "0.0.0.0:8080".
    """

    model_config = ConfigDict(populate_by_name=True)

    http_listen_address: str = Field(
        default=":8080",
        alias="httpListenAddress",
        description="Plaintext HTTP/1.1 listen address",
    )
    tls_listen_address: str = Field(
        default=":4430",
        alias="tlsListenAddress",
        description="TLS listen address (HTTP/2 negotiated via ALPN)",
    )
    certfile: Optional[str] = Field(
        default=None,
        description="PEM certificate; a self-signed one is generated if unset",
    )
    keyfile: Optional[str] = Field(
        default=None,
        description="PEM private key matching certfile",
    )
    h2_max_concurrent_streams: int = Field(
        default=250,
        ge=1,
        description="HTTP/2 concurrent stream limit per connection",
    )


class PageConfig(BaseModel):
    """Landing page configuration."""

    default_streams: int = Field(default=6, ge=1, description="Streams embedded when n is unusable")
    max_streams: int = Field(default=10, ge=1, description="Upper clamp for n")


class StreamConfig(BaseModel):
    """Synthetic MJPEG stream configuration."""

    frame_width: int = Field(default=25, ge=1, le=4096, description="Frame width in pixels")
    frame_height: int = Field(default=25, ge=1, le=4096, description="Frame height in pixels")
    interval_ms: int = Field(
        default=500,
        ge=1,
        description="Target time between the starts of consecutive frames",
    )
    jpeg_quality: int = Field(default=75, ge=1, le=100, description="JPEG quality")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for the demo server.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    server: ServerConfig = Field(default_factory=ServerConfig)
    page: PageConfig = Field(default_factory=PageConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.debug("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Server settings (alias keys win over field names during validation)
    if env_http := os.environ.get("HOL_DEMO_HTTP_LISTEN"):
        server = config_data.setdefault("server", {})
        server.pop("http_listen_address", None)
        server["httpListenAddress"] = env_http
    if env_tls := os.environ.get("HOL_DEMO_TLS_LISTEN"):
        server = config_data.setdefault("server", {})
        server.pop("tls_listen_address", None)
        server["tlsListenAddress"] = env_tls
    if env_cert := os.environ.get("HOL_DEMO_CERTFILE"):
        config_data.setdefault("server", {})["certfile"] = env_cert
    if env_key := os.environ.get("HOL_DEMO_KEYFILE"):
        config_data.setdefault("server", {})["keyfile"] = env_key

    # Stream settings
    if env_interval := os.environ.get("HOL_DEMO_INTERVAL_MS"):
        config_data.setdefault("stream", {})["interval_ms"] = env_interval

    # Logging settings
    if env_log := os.environ.get("HOL_DEMO_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Settings from the default file search and environment.

    Loaded on first use so that bad values surface where the caller
    can report them, not at import.
    """
    return load_config()
