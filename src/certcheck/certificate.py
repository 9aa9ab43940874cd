from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Sequence

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed448, ed25519, rsa

from .models import CertFingerprints, CertificateInfo, Issue, IssueType, Severity
from .utils import (
    as_utc,
    common_name,
    dt_to_utc_iso,
    name_to_str,
    sha1_fingerprint,
    sha256_fingerprint,
    utc_now,
)
from .verify import extract_sans

logger = logging.getLogger(__name__)

EXPIRY_WARNING_DAYS = 30
MS_PER_DAY = 86_400_000

WEAK_SIGNATURE_ALGORITHMS = frozenset({"SHA1withRSA", "MD5withRSA", "MD2withRSA"})
MIN_KEY_SIZES = {"RSA": 2048, "EC": 256}

# JCA-style names, keyed by signature algorithm OID.
SIGNATURE_ALGORITHM_NAMES: dict[str, str] = {
    "1.2.840.113549.1.1.2": "MD2withRSA",
    "1.2.840.113549.1.1.4": "MD5withRSA",
    "1.2.840.113549.1.1.5": "SHA1withRSA",
    "1.2.840.113549.1.1.14": "SHA224withRSA",
    "1.2.840.113549.1.1.11": "SHA256withRSA",
    "1.2.840.113549.1.1.12": "SHA384withRSA",
    "1.2.840.113549.1.1.13": "SHA512withRSA",
    "1.2.840.113549.1.1.10": "RSASSA-PSS",
    "1.2.840.10045.4.1": "SHA1withECDSA",
    "1.2.840.10045.4.3.1": "SHA224withECDSA",
    "1.2.840.10045.4.3.2": "SHA256withECDSA",
    "1.2.840.10045.4.3.3": "SHA384withECDSA",
    "1.2.840.10045.4.3.4": "SHA512withECDSA",
    "1.2.840.10040.4.3": "SHA1withDSA",
    "2.16.840.1.101.3.4.3.1": "SHA224withDSA",
    "2.16.840.1.101.3.4.3.2": "SHA256withDSA",
    "1.3.101.112": "Ed25519",
    "1.3.101.113": "Ed448",
}


def signature_algorithm_name(cert: x509.Certificate) -> str:
    oid = cert.signature_algorithm_oid.dotted_string
    return SIGNATURE_ALGORITHM_NAMES.get(oid, oid)


def public_key_details(cert: x509.Certificate) -> tuple[str, int]:
    """
    (algorithm, size in bits). Only RSA and EC report a size; anything else
    is 0 so it can never be flagged as a weak key.
    """
    try:
        key = cert.public_key()
    except Exception:
        logger.debug("Unsupported public key in %s", cert.subject, exc_info=True)
        return "Unknown", 0
    if isinstance(key, rsa.RSAPublicKey):
        return "RSA", key.key_size
    if isinstance(key, ec.EllipticCurvePublicKey):
        # curve order bit length
        return "EC", key.curve.key_size
    if isinstance(key, dsa.DSAPublicKey):
        return "DSA", 0
    if isinstance(key, ed25519.Ed25519PublicKey):
        return "Ed25519", 0
    if isinstance(key, ed448.Ed448PublicKey):
        return "Ed448", 0
    return key.__class__.__name__, 0


def is_self_signed(cert: x509.Certificate) -> bool:
    return cert.subject == cert.issuer


def days_until(not_after: datetime, now: datetime) -> int:
    # floor of the millisecond difference over whole days
    return (not_after - now) // timedelta(milliseconds=1) // MS_PER_DAY


def _validity_issues(
    cert: x509.Certificate,
    position: int,
    now: datetime,
    days_left: int,
    expiry_warning_days: int,
) -> list[Issue]:
    not_before = cert.not_valid_before_utc
    not_after = cert.not_valid_after_utc
    if now > not_after:
        cn = common_name(cert.subject) or name_to_str(cert.subject)
        return [Issue(
            type=IssueType.EXPIRED,
            severity=Severity.CRITICAL,
            title=f"Certificate expired (position {position})",
            description=f"The certificate '{cn}' expired on {dt_to_utc_iso(not_after)}.",
        )]
    if now < not_before:
        return [Issue(
            type=IssueType.NOT_YET_VALID,
            severity=Severity.CRITICAL,
            title=f"Certificate not yet valid (position {position})",
            description=f"The certificate only becomes valid on {dt_to_utc_iso(not_before)}.",
        )]
    if position == 0 and days_left <= expiry_warning_days:
        return [Issue(
            type=IssueType.EXPIRING_SOON,
            severity=Severity.WARNING,
            title="Certificate expires soon",
            description=(
                f"The certificate expires in {days_left} days "
                f"({dt_to_utc_iso(not_after)})."
            ),
        )]
    return []


def _crypto_issues(position: int, sig_alg: str, key_alg: str, key_size: int) -> list[Issue]:
    issues: list[Issue] = []
    if sig_alg in WEAK_SIGNATURE_ALGORITHMS:
        issues.append(Issue(
            type=IssueType.WEAK_SIGNATURE,
            severity=Severity.WARNING,
            title=f"Weak signature algorithm (position {position})",
            description=f"The certificate is signed with {sig_alg}, which is obsolete. SHA-256 or better is recommended.",
        ))
    minimum = MIN_KEY_SIZES.get(key_alg)
    if minimum is not None and key_size < minimum:
        issues.append(Issue(
            type=IssueType.WEAK_KEY,
            severity=Severity.WARNING,
            title=f"Weak key (position {position})",
            description=f"The certificate uses a {key_size}-bit {key_alg} key. Recommended minimum: RSA 2048 / EC 256.",
        ))
    return issues


def analyze_certificate(
    cert: x509.Certificate,
    position: int,
    chain: Sequence[x509.Certificate],
    *,
    now: datetime | None = None,
    expiry_warning_days: int = EXPIRY_WARNING_DAYS,
) -> tuple[CertificateInfo, tuple[Issue, ...]]:
    """
    Analyse one certificate at ``position`` in the presented chain.

    Pure: the same certificate, position, chain and ``now`` always give the
    same info and issues.
    """
    now = as_utc(now) if now is not None else utc_now()
    not_before = cert.not_valid_before_utc
    not_after = cert.not_valid_after_utc
    days_left = days_until(not_after, now)

    sig_alg = signature_algorithm_name(cert)
    key_alg, key_size = public_key_details(cert)
    sans = extract_sans(cert)
    self_signed = is_self_signed(cert)

    issues = _validity_issues(cert, position, now, days_left, expiry_warning_days)
    if position == 0 and not sans:
        issues.append(Issue(
            type=IssueType.NO_SANS,
            severity=Severity.CRITICAL,
            title="No Subject Alternative Names",
            description=(
                "The certificate has no Subject Alternative Name. Android 8+ (API 26) "
                "ignores the CN and requires SANs; browsers may still fall back to the CN."
            ),
        ))
    issues.extend(_crypto_issues(position, sig_alg, key_alg, key_size))

    der = cert.public_bytes(serialization.Encoding.DER)
    info = CertificateInfo(
        position=position,
        subject=name_to_str(cert.subject),
        issuer=name_to_str(cert.issuer),
        serial_number=format(cert.serial_number, "x"),
        not_before=not_before,
        not_after=not_after,
        signature_algorithm=sig_alg,
        public_key_algorithm=key_alg,
        public_key_size=key_size,
        days_until_expiry=days_left,
        subject_alternative_names=tuple(sans),
        is_expired=now > not_after,
        is_not_yet_valid=now < not_before,
        is_self_signed=self_signed,
        is_trust_anchor=self_signed and position == len(chain) - 1,
        fingerprints=CertFingerprints(sha256=sha256_fingerprint(der), sha1=sha1_fingerprint(der)),
        version=cert.version.value + 1,
    )
    return info, tuple(issues)
