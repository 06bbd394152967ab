"""
TLS Material
============

Certificate handling for the TLS listener.

If no certificate is configured, a throwaway self-signed one is minted
at startup so that browsers can negotiate HTTP/2 after clicking through
the warning.
"""

import datetime
import ipaddress
import logging
from pathlib import Path
from typing import Tuple

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from hol_demo.config import ServerConfig


logger = logging.getLogger(__name__)


class TLSConfigError(Exception):
    """Raised when configured certificate material is unusable."""
    pass


def generate_self_signed(
    directory: Path,
    common_name: str = "localhost",
    days: int = 365,
) -> Tuple[str, str]:
    """
    Write a self-signed EC P-256 certificate and key into directory.

    The certificate carries SANs for localhost and 127.0.0.1.

    Returns:
        (certfile, keyfile) paths
    """
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime.now(datetime.timezone.utc)

    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=5))
        .not_valid_after(now + datetime.timedelta(days=days))
        .add_extension(
            x509.SubjectAlternativeName([
                x509.DNSName(common_name),
                x509.IPAddress(ipaddress.ip_address("127.0.0.1")),
            ]),
            critical=False,
        )
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .sign(key, hashes.SHA256())
    )

    directory.mkdir(parents=True, exist_ok=True)
    cert_path = directory / "server.crt"
    key_path = directory / "server.key"
    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(
        key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.TraditionalOpenSSL,
            serialization.NoEncryption(),
        )
    )
    return str(cert_path), str(key_path)


def resolve_tls_files(
    server: ServerConfig,
    scratch_dir: Path,
) -> Tuple[str, str]:
    """
    Pick the certificate/key pair for the TLS listener.

    Args:
        server: Listener configuration
        scratch_dir: Where to write a generated pair. The caller owns
            its lifetime.

    Returns:
        (certfile, keyfile) paths

    Raises:
        TLSConfigError: If only one of certfile/keyfile is set, or a
            configured file does not exist
    """
    if server.certfile or server.keyfile:
        if not (server.certfile and server.keyfile):
            raise TLSConfigError("certfile and keyfile must be configured together")
        for path in (server.certfile, server.keyfile):
            if not Path(path).is_file():
                raise TLSConfigError(f"TLS file not found: {path}")
        logger.info(f"Using configured certificate: {server.certfile}")
        return server.certfile, server.keyfile

    certfile, keyfile = generate_self_signed(scratch_dir)
    logger.info(f"Generated self-signed certificate: {certfile}")
    return certfile, keyfile
