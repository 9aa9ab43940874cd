from __future__ import annotations

import _ssl
import logging
import socket
import ssl
from dataclasses import dataclass

from cryptography import x509

from .cipher import to_iana_name
from .errors import HandshakeError, NoCertificateError
from .trust import TrustPolicy, build_context

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_READ_TIMEOUT = 10.0


@dataclass(frozen=True)
class HandshakeResult:
    """
    What the server presented: chain leaf first, in wire order.
    """
    chain: tuple[x509.Certificate, ...]
    tls_version: str | None
    cipher_suite: str | None


def _peer_chain_der(ssock: ssl.SSLSocket) -> list[bytes]:
    """
    Full presented chain. Python/OpenSSL support differs by version, so try
    the public accessor, then the internal one, then settle for the leaf.
    """
    # 3.13+: DER bytes
    getter = getattr(ssock, "get_unverified_chain", None)
    if callable(getter):
        chain = getter()
        if chain:
            logger.debug("Chain captured with get_unverified_chain")
            return [bytes(der) for der in chain]

    # 3.10 - 3.12: private _ssl.Certificate objects, the only use of _ssl here
    getter = getattr(getattr(ssock, "_sslobj", None), "get_unverified_chain", None)
    if callable(getter):
        chain = getter()
        if chain:
            logger.debug("Chain captured with _sslobj.get_unverified_chain")
            return [c.public_bytes(_ssl.ENCODING_DER) for c in chain]

    leaf = ssock.getpeercert(binary_form=True)
    logger.debug("Only the leaf certificate is available")
    return [leaf] if leaf else []


def perform_handshake(
    hostname: str,
    port: int = 443,
    *,
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    read_timeout: float = DEFAULT_READ_TIMEOUT,
) -> HandshakeResult:
    """
    Complete one TLS handshake with SNI set to ``hostname`` and capture what
    was negotiated, whatever the validity of the server chain.

    Raises HandshakeError on connect/handshake failure or timeout and
    NoCertificateError if the server sent no certificate.
    """
    ctx = build_context(TrustPolicy.CAPTURE)
    logger.debug("Connecting to %s:%d (connect %.1fs, read %.1fs)", hostname, port, connect_timeout, read_timeout)

    try:
        with socket.create_connection((hostname, port), timeout=connect_timeout) as sock:
            sock.settimeout(read_timeout)
            with ctx.wrap_socket(sock, server_hostname=hostname) as ssock:
                tls_version = ssock.version()
                cipher = ssock.cipher()
                ders = _peer_chain_der(ssock)
    except (OSError, ssl.SSLError) as e:
        raise HandshakeError.from_exception(e) from e

    cipher_suite = to_iana_name(cipher[0]) if cipher else None
    logger.debug("Negotiated %s / %s, %d certificate(s)", tls_version, cipher_suite, len(ders))

    if not ders:
        raise NoCertificateError(tls_version=tls_version, cipher_suite=cipher_suite)

    chain = tuple(x509.load_der_x509_certificate(der) for der in ders)
    return HandshakeResult(chain=chain, tls_version=tls_version, cipher_suite=cipher_suite)
