from __future__ import annotations

import enum
import logging
import ssl
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable, Sequence

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from .models import Issue, IssueType, Severity
from .utils import as_utc, name_to_str, utc_now

logger = logging.getLogger(__name__)


class TrustPolicy(enum.Enum):
    """
    CAPTURE accepts any server certificate so the full chain can be recorded;
    it must never be used to decide trust. SYSTEM is the host's default
    verifying policy.
    """
    CAPTURE = "capture"
    SYSTEM = "system"


def build_context(policy: TrustPolicy) -> ssl.SSLContext:
    if policy is TrustPolicy.SYSTEM:
        return ssl.create_default_context()

    ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    # Legacy servers must still complete the handshake to be diagnosed.
    try:
        ctx.minimum_version = ssl.TLSVersion.MINIMUM_SUPPORTED
    except (ValueError, ssl.SSLError) as e:
        logger.debug("Cannot lower minimum TLS version: %s", e)
    try:
        ctx.set_ciphers("ALL:@SECLEVEL=0")
    except ssl.SSLError as e:
        logger.debug("Cannot relax cipher list: %s", e)
    return ctx


def _spki(cert: x509.Certificate) -> bytes:
    return cert.public_key().public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def _is_valid_at(cert: x509.Certificate, now: datetime) -> bool:
    return cert.not_valid_before_utc <= now <= cert.not_valid_after_utc


def _is_ca(cert: x509.Certificate) -> bool:
    try:
        bc = cert.extensions.get_extension_for_class(x509.BasicConstraints).value
        return bool(bc.ca)
    except Exception:
        return False


def _load_pem_bundle(path: Path) -> list[x509.Certificate]:
    try:
        return x509.load_pem_x509_certificates(path.read_bytes())
    except (OSError, ValueError) as e:
        logger.debug("Skipping %s: %s", path, e)
        return []


def load_system_anchors() -> tuple[x509.Certificate, ...]:
    """
    Root certificates of the host operating system store, as seen by the
    SYSTEM trust policy. Returns an empty tuple if the store cannot be read.
    """
    found: dict[bytes, x509.Certificate] = {}

    def add(certs: Iterable[x509.Certificate]) -> None:
        for c in certs:
            found.setdefault(c.public_bytes(serialization.Encoding.DER), c)

    try:
        ctx = build_context(TrustPolicy.SYSTEM)
        for der in ctx.get_ca_certs(binary_form=True):
            try:
                add([x509.load_der_x509_certificate(der)])
            except ValueError as e:
                logger.debug("Skipping unparsable system anchor: %s", e)

        paths = ssl.get_default_verify_paths()
        for cafile in {paths.cafile, paths.openssl_cafile}:
            if cafile and Path(cafile).is_file():
                add(_load_pem_bundle(Path(cafile)))

        # hashed directory only when no bundle is available
        capath = paths.capath or paths.openssl_capath
        if not found and capath and Path(capath).is_dir():
            for entry in sorted(Path(capath).iterdir()):
                if entry.is_file():
                    add(_load_pem_bundle(entry))
    except Exception:
        logger.warning("Could not enumerate system trust anchors", exc_info=True)
        return ()

    if not found:
        logger.warning("System trust store is empty; every chain will be reported as untrusted")
    else:
        logger.debug("Loaded %d system trust anchors", len(found))
    return tuple(found.values())


@dataclass(frozen=True)
class TrustStore:
    anchors: tuple[x509.Certificate, ...]
    source: str = "custom"

    @classmethod
    def system(cls) -> "TrustStore":
        return cls(anchors=load_system_anchors(), source="system")

    def accepted_issuer_names(self) -> frozenset[str]:
        names: set[str] = set()
        for anchor in self.anchors:
            try:
                names.add(name_to_str(anchor.subject))
            except Exception:
                logger.debug("Unreadable anchor subject", exc_info=True)
        return frozenset(names)

    def contains(self, cert: x509.Certificate) -> bool:
        spki = _spki(cert)
        return any(a.subject == cert.subject and _spki(a) == spki for a in self.anchors)

    def issuers_of(self, cert: x509.Certificate) -> list[x509.Certificate]:
        return [a for a in self.anchors if a.subject == cert.issuer]


def _validate_path(chain: Sequence[x509.Certificate], store: TrustStore, now: datetime) -> bool:
    for i, cert in enumerate(chain):
        if not _is_valid_at(cert, now):
            logger.debug("Certificate %d outside its validity window", i)
            return False
        if store.contains(cert):
            return True
        for anchor in store.issuers_of(cert):
            if not _is_valid_at(anchor, now):
                continue
            try:
                cert.verify_directly_issued_by(anchor)
                return True
            except Exception as e:
                logger.debug("Anchor %s did not sign certificate %d: %r", anchor.subject, i, e)
        if i + 1 >= len(chain):
            return False
        issuer = chain[i + 1]
        if not _is_ca(issuer):
            logger.debug("Certificate %d is not a CA but issues certificate %d", i + 1, i)
            return False
        cert.verify_directly_issued_by(issuer)
    return False


def is_trusted_by_platform(
    chain: Sequence[x509.Certificate],
    hostname: str,
    store: TrustStore | None = None,
    *,
    now: datetime | None = None,
) -> bool:
    """
    Whether the platform trust store accepts the chain. The hostname is not
    part of this decision; it is checked separately.

    Fails closed: any error means "not trusted".
    """
    if not chain:
        return False
    store = store if store is not None else TrustStore.system()
    now = as_utc(now) if now is not None else utc_now()
    try:
        trusted = _validate_path(chain, store, now)
    except Exception as e:
        logger.debug("Path validation for %s failed: %r", hostname, e)
        return False
    logger.debug("Platform trust for %s (%s store): %s", hostname, store.source, trusted)
    return trusted


def diagnose_trust_failure(
    chain: Sequence[x509.Certificate],
    hostname: str,
    store: TrustStore | None = None,
) -> Issue:
    """
    Explain why the platform rejected the chain. First match wins:
    self-signed, incomplete chain, untrusted root, then a generic verdict.
    """
    if len(chain) == 1 and chain[0].subject == chain[0].issuer:
        return Issue(
            type=IssueType.SELF_SIGNED,
            severity=Severity.CRITICAL,
            title="Self-signed certificate",
            description=(
                "The server presents a self-signed certificate. Android rejects it "
                "because no trusted CA signed it. Browsers may show a warning and "
                "still let the user continue."
            ),
        )

    last = chain[-1]
    if last.subject != last.issuer:
        missing = name_to_str(last.issuer)
        return Issue(
            type=IssueType.INCOMPLETE_CHAIN,
            severity=Severity.CRITICAL,
            title="Incomplete certificate chain",
            description=(
                "The server does not send all intermediate certificates. Browsers can "
                "complete the chain through AIA fetching or their cache, Android does not. "
                f"The missing intermediate is issued by: '{missing}'. "
                "The server must include every intermediate in its TLS configuration."
            ),
        )

    store = store if store is not None else TrustStore.system()
    root_subject = name_to_str(last.subject)
    # by name only: a cross-signed root sharing a subject is not told apart
    if root_subject not in store.accepted_issuer_names():
        return Issue(
            type=IssueType.UNTRUSTED_ROOT,
            severity=Severity.CRITICAL,
            title="Root CA not recognised by Android",
            description=(
                f"The root CA '{root_subject}' is not in the Android trust store. "
                "Browsers shipping their own store may still accept it; this is common "
                "with new or regional CAs."
            ),
        )

    logger.debug("Could not pinpoint trust failure for %s", hostname)
    return Issue(
        type=IssueType.ANDROID_SPECIFIC_TRUST_ISSUE,
        severity=Severity.CRITICAL,
        title="Not trusted by Android",
        description=(
            "The certificate is not trusted by the Android trust store and the exact "
            "cause could not be determined. Check the server TLS configuration."
        ),
    )
