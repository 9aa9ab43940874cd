from __future__ import annotations

import logging
from typing import Sequence

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed448, ed25519, rsa

from .models import Issue, IssueType, Severity
from .utils import common_name

logger = logging.getLogger(__name__)


def extract_sans(cert: x509.Certificate) -> list[str]:
    """DNS names from the SubjectAlternativeName extension (GeneralName tag 2)."""
    try:
        ext = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
        return list(ext.value.get_values_for_type(x509.DNSName))
    except x509.ExtensionNotFound:
        return []
    except Exception:
        logger.debug("Unreadable SAN extension on %s", cert.subject, exc_info=True)
        return []


def _signature_verifies(cert: x509.Certificate, issuer: x509.Certificate) -> None:
    """Raises if ``cert`` was not signed by ``issuer``'s key. Names are not compared."""
    key = issuer.public_key()
    sig, tbs = cert.signature, cert.tbs_certificate_bytes
    if isinstance(key, rsa.RSAPublicKey):
        key.verify(sig, tbs, cert.signature_algorithm_parameters, cert.signature_hash_algorithm)
    elif isinstance(key, ec.EllipticCurvePublicKey):
        key.verify(sig, tbs, cert.signature_algorithm_parameters)
    elif isinstance(key, (ed25519.Ed25519PublicKey, ed448.Ed448PublicKey)):
        key.verify(sig, tbs)
    elif isinstance(key, dsa.DSAPublicKey):
        key.verify(sig, tbs, cert.signature_hash_algorithm)
    else:
        raise TypeError(f"unsupported issuer key {type(key).__name__}")


def verify_chain_linkage(chain: Sequence[x509.Certificate]) -> bool:
    """
    Each certificate must be signed by the key of the one that follows it.
    Only signatures are checked; issuer names are left to trust validation.
    A mismatch is an expected outcome, so failures return False.
    """
    for i in range(len(chain) - 1):
        try:
            _signature_verifies(chain[i], chain[i + 1])
        except Exception as e:
            logger.debug("Chain link %d -> %d does not verify: %r", i, i + 1, e)
            return False
    return True


def chain_linkage_issue() -> Issue:
    return Issue(
        type=IssueType.INCOMPLETE_CHAIN,
        severity=Severity.CRITICAL,
        title="Invalid certificate chain",
        description=(
            "The certificate chain could not be validated. "
            "An intermediate certificate may be missing or out of order."
        ),
    )


def matches_hostname(hostname: str, pattern: str) -> bool:
    """
    Exact (case-insensitive) match, or a left-most ``*.`` wildcard covering
    exactly one label. ``*.example.com`` matches ``foo.example.com`` but not
    ``example.com`` nor ``a.b.example.com``.
    """
    hostname = hostname.rstrip(".")
    pattern = pattern.rstrip(".")
    if pattern.startswith("*."):
        suffix = pattern[2:]
        first, sep, rest = hostname.partition(".")
        if not first or not sep or rest.count(".") < 1:
            return False
        return rest.lower() == suffix.lower()
    return hostname.lower() == pattern.lower()


def verify_hostname(hostname: str, leaf: x509.Certificate) -> bool:
    sans = extract_sans(leaf)
    if sans:
        return any(matches_hostname(hostname, san) for san in sans)
    # CN fallback, obsolete but still served by some hosts
    cn = common_name(leaf.subject)
    return cn is not None and matches_hostname(hostname, cn)


def hostname_mismatch_issue(hostname: str, leaf: x509.Certificate) -> Issue:
    sans = extract_sans(leaf)
    found = ", ".join(sans) if sans else "none"
    return Issue(
        type=IssueType.HOSTNAME_MISMATCH,
        severity=Severity.CRITICAL,
        title="Hostname does not match",
        description=f"The certificate is not valid for '{hostname}'. SANs present: {found}",
    )
