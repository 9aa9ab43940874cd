from __future__ import annotations

from typing import Sequence

from .models import Issue, IssueType, Severity

OLD_TLS_VERSIONS = ("TLSv1", "TLSv1.1")
MAX_REASONABLE_CHAIN_LENGTH = 5


def check_tls_version(tls_version: str | None) -> tuple[Issue, ...]:
    # Unrecognised versions are not reported as old.
    if tls_version not in OLD_TLS_VERSIONS:
        return ()
    return (Issue(
        type=IssueType.TLS_VERSION_OLD,
        severity=Severity.WARNING,
        title="Outdated TLS version",
        description=(
            f"The server negotiated {tls_version}, which is deprecated. "
            "Modern Android apps require TLS 1.2 or later."
        ),
    ),)


def check_chain_length(chain: Sequence[object], max_length: int = MAX_REASONABLE_CHAIN_LENGTH) -> tuple[Issue, ...]:
    if len(chain) <= max_length:
        return ()
    return (Issue(
        type=IssueType.CHAIN_TOO_LONG,
        severity=Severity.INFO,
        title="Long certificate chain",
        description=(
            f"The chain contains {len(chain)} certificates, "
            "which can slow down the TLS handshake on mobile networks."
        ),
    ),)
