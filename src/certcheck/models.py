from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Protocol, Sequence

from .utils import dt_to_utc_iso, utc_now


class Severity(IntEnum):
    INFO = 0
    WARNING = 1
    CRITICAL = 2


class IssueType(str, Enum):
    EXPIRED = "EXPIRED"
    NOT_YET_VALID = "NOT_YET_VALID"
    EXPIRING_SOON = "EXPIRING_SOON"
    SELF_SIGNED = "SELF_SIGNED"
    UNTRUSTED_ROOT = "UNTRUSTED_ROOT"
    HOSTNAME_MISMATCH = "HOSTNAME_MISMATCH"
    WEAK_SIGNATURE = "WEAK_SIGNATURE"
    WEAK_KEY = "WEAK_KEY"
    INCOMPLETE_CHAIN = "INCOMPLETE_CHAIN"
    TLS_VERSION_OLD = "TLS_VERSION_OLD"
    NO_SANS = "NO_SANS"
    CHAIN_TOO_LONG = "CHAIN_TOO_LONG"
    ANDROID_SPECIFIC_TRUST_ISSUE = "ANDROID_SPECIFIC_TRUST_ISSUE"
    CIPHER_WEAK = "CIPHER_WEAK"
    CIPHER_NO_FORWARD_SECRECY = "CIPHER_NO_FORWARD_SECRECY"


class CheckStatus(str, Enum):
    OK = "OK"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"
    ERROR = "ERROR"


class CipherStrength(str, Enum):
    STRONG = "STRONG"
    ACCEPTABLE = "ACCEPTABLE"
    WEAK = "WEAK"


@dataclass(frozen=True)
class Issue:
    type: IssueType
    severity: Severity
    title: str
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "severity": self.severity.name,
            "title": self.title,
            "description": self.description,
        }


@dataclass(frozen=True)
class CertFingerprints:
    sha256: str = ""
    sha1: str = ""


@dataclass(frozen=True)
class CertificateInfo:
    """
    Analysis of one certificate as presented by the server.
    Position 0 is the leaf; the rest follow wire order.
    """
    position: int
    subject: str
    issuer: str
    serial_number: str
    not_before: datetime
    not_after: datetime
    signature_algorithm: str
    public_key_algorithm: str
    public_key_size: int
    days_until_expiry: int
    subject_alternative_names: tuple[str, ...] = ()
    is_expired: bool = False
    is_not_yet_valid: bool = False
    is_self_signed: bool = False
    is_trust_anchor: bool = False
    fingerprints: CertFingerprints = field(default_factory=CertFingerprints)
    version: int = 3

    @property
    def label(self) -> str:
        if self.position == 0:
            return "Leaf (Server)"
        if self.is_trust_anchor:
            return "Root CA"
        return f"Intermediate CA #{self.position}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "position": self.position,
            "label": self.label,
            "subject": self.subject,
            "issuer": self.issuer,
            "serial_number": self.serial_number,
            "not_before": dt_to_utc_iso(self.not_before),
            "not_after": dt_to_utc_iso(self.not_after),
            "days_until_expiry": self.days_until_expiry,
            "signature_algorithm": self.signature_algorithm,
            "public_key_algorithm": self.public_key_algorithm,
            "public_key_size": self.public_key_size,
            "subject_alternative_names": list(self.subject_alternative_names),
            "is_expired": self.is_expired,
            "is_not_yet_valid": self.is_not_yet_valid,
            "is_self_signed": self.is_self_signed,
            "is_trust_anchor": self.is_trust_anchor,
            "fingerprints": {"sha256": self.fingerprints.sha256, "sha1": self.fingerprints.sha1},
            "version": self.version,
        }


@dataclass(frozen=True)
class CipherCompatibility:
    platform: str
    supported: bool
    detail: str


@dataclass(frozen=True)
class CipherAnalysis:
    full_name: str
    key_exchange: str
    encryption: str
    mac: str
    strength: CipherStrength
    has_forward_secrecy: bool
    is_tls13: bool
    is_aead: bool
    compatibility: tuple[CipherCompatibility, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "full_name": self.full_name,
            "key_exchange": self.key_exchange,
            "encryption": self.encryption,
            "mac": self.mac,
            "strength": self.strength.value,
            "has_forward_secrecy": self.has_forward_secrecy,
            "is_tls13": self.is_tls13,
            "is_aead": self.is_aead,
            "compatibility": [
                {"platform": c.platform, "supported": c.supported, "detail": c.detail}
                for c in self.compatibility
            ],
        }


@dataclass(frozen=True)
class CheckResult:
    """
    Outcome of one inspection. Always produced, even on failure:
    ``error`` set means the check could not run to completion.
    """
    hostname: str
    port: int = 443
    timestamp: datetime = field(default_factory=utc_now)
    tls_version: str | None = None
    cipher_suite: str | None = None
    cipher_analysis: CipherAnalysis | None = None
    certificates: tuple[CertificateInfo, ...] = ()
    chain_valid: bool = False
    trusted_by_platform: bool = False
    hostname_matches: bool = False
    issues: tuple[Issue, ...] = ()
    error: str | None = None

    @property
    def overall_status(self) -> CheckStatus:
        if self.error is not None:
            return CheckStatus.ERROR
        if any(i.severity == Severity.CRITICAL for i in self.issues):
            return CheckStatus.CRITICAL
        if any(i.severity == Severity.WARNING for i in self.issues):
            return CheckStatus.WARNING
        return CheckStatus.OK

    @property
    def leaf(self) -> CertificateInfo | None:
        return self.certificates[0] if self.certificates else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "hostname": self.hostname,
            "port": self.port,
            "timestamp": dt_to_utc_iso(self.timestamp),
            "overall_status": self.overall_status.value,
            "tls_version": self.tls_version,
            "cipher_suite": self.cipher_suite,
            "cipher_analysis": self.cipher_analysis.to_dict() if self.cipher_analysis else None,
            "certificates": [c.to_dict() for c in self.certificates],
            "chain_valid": self.chain_valid,
            "trusted_by_platform": self.trusted_by_platform,
            "hostname_matches": self.hostname_matches,
            "issues": [i.to_dict() for i in self.issues],
            "error": self.error,
        }


@dataclass(frozen=True)
class Favorite:
    """
    A saved target. Owned by the storage layer; the checker only reads it.
    """
    hostname: str
    port: int = 443
    created_at: datetime = field(default_factory=utc_now)
    last_checked_at: datetime | None = None
    notifications_enabled: bool = True

    @property
    def target(self) -> str:
        return f"{self.hostname}:{self.port}"


class CheckRepository(Protocol):
    """Storage collaborator for check results of saved targets."""

    def save_result(self, favorite_id: int, result: CheckResult) -> None: ...

    def last_two_results(self, favorite_id: int) -> Sequence[CheckResult]: ...
