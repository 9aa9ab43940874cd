from __future__ import annotations

__version__ = "0.1.0"

from .checker import check, parse_host_and_port  # noqa: E402
from .models import (  # noqa: E402
    CertificateInfo,
    CheckResult,
    CheckStatus,
    CipherAnalysis,
    CipherStrength,
    Issue,
    IssueType,
    Severity,
)

__all__ = [
    "__version__",
    "check",
    "parse_host_and_port",
    "CertificateInfo",
    "CheckResult",
    "CheckStatus",
    "CipherAnalysis",
    "CipherStrength",
    "Issue",
    "IssueType",
    "Severity",
]
