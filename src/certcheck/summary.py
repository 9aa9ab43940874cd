from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .models import CheckResult, CheckStatus
from .utils import dt_to_utc_iso, utc_iso_to_dt


@dataclass(frozen=True)
class CheckSummary:
    """
    The part of a CheckResult worth keeping in a check history.
    """
    hostname: str
    port: int
    checked_at: datetime
    overall_status: CheckStatus
    trusted_by_platform: bool
    hostname_matches: bool
    chain_valid: bool
    issues_summary: str
    certificate_fingerprint: str | None
    days_until_expiry: int | None
    error: str | None

    @classmethod
    def from_result(cls, result: CheckResult) -> "CheckSummary":
        leaf = result.leaf
        return cls(
            hostname=result.hostname,
            port=result.port,
            checked_at=result.timestamp,
            overall_status=result.overall_status,
            trusted_by_platform=result.trusted_by_platform,
            hostname_matches=result.hostname_matches,
            chain_valid=result.chain_valid,
            issues_summary="; ".join(f"{i.type.value}: {i.title}" for i in result.issues),
            certificate_fingerprint=leaf.fingerprints.sha256 if leaf else None,
            days_until_expiry=leaf.days_until_expiry if leaf else None,
            error=result.error,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CheckSummary":
        return cls(
            hostname=data["hostname"],
            port=int(data["port"]),
            checked_at=utc_iso_to_dt(data["checked_at"]),
            overall_status=CheckStatus(data["overall_status"]),
            trusted_by_platform=bool(data["trusted_by_platform"]),
            hostname_matches=bool(data["hostname_matches"]),
            chain_valid=bool(data["chain_valid"]),
            issues_summary=data.get("issues_summary", ""),
            certificate_fingerprint=data.get("certificate_fingerprint"),
            days_until_expiry=data.get("days_until_expiry"),
            error=data.get("error"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "hostname": self.hostname,
            "port": self.port,
            "checked_at": dt_to_utc_iso(self.checked_at),
            "overall_status": self.overall_status.value,
            "trusted_by_platform": self.trusted_by_platform,
            "hostname_matches": self.hostname_matches,
            "chain_valid": self.chain_valid,
            "issues_summary": self.issues_summary,
            "certificate_fingerprint": self.certificate_fingerprint,
            "days_until_expiry": self.days_until_expiry,
            "error": self.error,
        }


@dataclass(frozen=True)
class ChangeDetection:
    hostname: str
    changes: tuple[str, ...]
    previous_status: CheckStatus
    new_status: CheckStatus

    @property
    def degraded(self) -> bool:
        """The target was fine and no longer is."""
        return self.previous_status is CheckStatus.OK and self.new_status is not CheckStatus.OK

    def to_dict(self) -> dict[str, Any]:
        return {
            "hostname": self.hostname,
            "changes": list(self.changes),
            "previous_status": self.previous_status.value,
            "new_status": self.new_status.value,
            "degraded": self.degraded,
        }


def detect_changes(previous: CheckSummary, current: CheckSummary) -> ChangeDetection | None:
    changes: list[str] = []
    if previous.overall_status != current.overall_status:
        changes.append(
            f"Status changed from {previous.overall_status.value} to {current.overall_status.value}"
        )
    if previous.trusted_by_platform != current.trusted_by_platform:
        changes.append(
            f"Platform trust changed: {previous.trusted_by_platform} -> {current.trusted_by_platform}"
        )
    if previous.certificate_fingerprint != current.certificate_fingerprint:
        changes.append("Certificate fingerprint changed")
    if previous.days_until_expiry != current.days_until_expiry:
        changes.append(
            f"Days until expiry changed: {previous.days_until_expiry} -> {current.days_until_expiry}"
        )
    if not changes:
        return None
    return ChangeDetection(
        hostname=current.hostname,
        changes=tuple(changes),
        previous_status=previous.overall_status,
        new_status=current.overall_status,
    )
