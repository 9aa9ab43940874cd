from __future__ import annotations


class CertCheckError(Exception):
    """Base class for failures that abort a single check."""


class HandshakeError(CertCheckError):
    """
    The TCP connect or TLS handshake failed (refused, reset, timed out, ...).

    The message names the underlying exception class so that it stays
    meaningful once flattened into ``CheckResult.error``.
    """

    @classmethod
    def from_exception(cls, exc: BaseException) -> "HandshakeError":
        message = str(exc) or repr(exc)
        return cls(f"{exc.__class__.__name__}: {message}")


class NoCertificateError(CertCheckError):
    """The handshake completed but the server presented no certificate."""

    def __init__(
        self,
        message: str = "no certificate received from server",
        *,
        tls_version: str | None = None,
        cipher_suite: str | None = None,
    ) -> None:
        super().__init__(message)
        self.tls_version = tls_version
        self.cipher_suite = cipher_suite
