from __future__ import annotations

import logging
from datetime import datetime
from typing import Sequence

from cryptography import x509

from .certificate import analyze_certificate
from .checks import check_chain_length, check_tls_version
from .cipher import analyze_cipher_suite
from .errors import HandshakeError, NoCertificateError
from .handshake import perform_handshake
from .models import CheckResult, Issue, IssueType
from .settings import Settings
from .trust import TrustStore, diagnose_trust_failure, is_trusted_by_platform
from .utils import as_utc, utc_now
from .verify import chain_linkage_issue, hostname_mismatch_issue, verify_chain_linkage, verify_hostname

logger = logging.getLogger(__name__)


def parse_host_and_port(host_input: str, default_port: int = 443) -> tuple[str, int]:
    """
    Accepts:
      - example.com
      - example.com:8443
      - https://example.com
      - https://example.com:8443/path
      - [2001:db8::1]:8443
    The port follows the last colon; one that does not parse as an integer
    is ignored.
    """
    t = (host_input or "").strip()
    for scheme in ("https://", "http://"):
        if t.lower().startswith(scheme):
            t = t[len(scheme):]
            break
    t = t.split("/", 1)[0]

    port_s = ""
    if t.startswith("["):
        host, _, rest = t[1:].partition("]")
        if rest.startswith(":"):
            port_s = rest[1:]
    else:
        host, sep, port_s = t.rpartition(":")
        if not sep:
            host, port_s = t, ""

    port = default_port
    if port_s:
        try:
            port = int(port_s.strip())
        except ValueError:
            port = default_port
    return host.strip(), port


def sort_issues(issues: Sequence[Issue]) -> tuple[Issue, ...]:
    # stable: equal severities keep detection order
    return tuple(sorted(issues, key=lambda i: i.severity, reverse=True))


def assemble_result(
    hostname: str,
    port: int,
    chain: Sequence[x509.Certificate],
    tls_version: str | None,
    cipher_suite: str | None,
    *,
    store: TrustStore,
    settings: Settings,
    now: datetime | None = None,
) -> CheckResult:
    """
    Run every analysis stage over a captured chain and merge the findings.
    No stage short-circuits another.
    """
    now = as_utc(now) if now is not None else utc_now()
    issues: list[Issue] = []

    trusted = is_trusted_by_platform(chain, hostname, store, now=now)
    if not trusted:
        issues.append(diagnose_trust_failure(chain, hostname, store))

    hostname_ok = verify_hostname(hostname, chain[0])
    if not hostname_ok:
        issues.append(hostname_mismatch_issue(hostname, chain[0]))

    chain_ok = verify_chain_linkage(chain)
    if not chain_ok and not any(i.type is IssueType.INCOMPLETE_CHAIN for i in issues):
        issues.append(chain_linkage_issue())

    infos = []
    for position, cert in enumerate(chain):
        info, cert_issues = analyze_certificate(
            cert, position, chain, now=now, expiry_warning_days=settings.expiry_warning_days,
        )
        infos.append(info)
        issues.extend(cert_issues)

    issues.extend(check_tls_version(tls_version))
    issues.extend(check_chain_length(chain, settings.max_chain_length))

    cipher_analysis = None
    if cipher_suite:
        cipher_analysis, cipher_issues = analyze_cipher_suite(cipher_suite, tls_version)
        issues.extend(cipher_issues)

    return CheckResult(
        hostname=hostname,
        port=port,
        timestamp=now,
        tls_version=tls_version,
        cipher_suite=cipher_suite,
        cipher_analysis=cipher_analysis,
        certificates=tuple(infos),
        chain_valid=chain_ok,
        trusted_by_platform=trusted,
        hostname_matches=hostname_ok,
        issues=sort_issues(issues),
    )


def check(
    host_input: str,
    default_port: int | None = None,
    *,
    settings: Settings | None = None,
    trust_store: TrustStore | None = None,
) -> CheckResult:
    """
    Inspect the TLS certificate of ``host_input`` the way a mobile client
    would. Never raises: failures are reported in ``CheckResult.error``.
    """
    settings = settings or Settings()
    port_default = settings.default_port if default_port is None else default_port
    hostname, port = "", port_default

    try:
        hostname, port = parse_host_and_port(host_input, port_default)
        if not hostname:
            return CheckResult(hostname=hostname, port=port, error="empty hostname")

        logger.info("Checking %s:%d", hostname, port)
        try:
            captured = perform_handshake(
                hostname,
                port,
                connect_timeout=settings.connect_timeout,
                read_timeout=settings.read_timeout,
            )
        except HandshakeError as e:
            logger.info("Handshake with %s:%d failed: %s", hostname, port, e)
            return CheckResult(hostname=hostname, port=port, error=str(e))
        except NoCertificateError as e:
            return CheckResult(
                hostname=hostname,
                port=port,
                tls_version=e.tls_version,
                cipher_suite=e.cipher_suite,
                error=str(e),
            )

        store = trust_store if trust_store is not None else TrustStore.system()
        result = assemble_result(
            hostname,
            port,
            captured.chain,
            captured.tls_version,
            captured.cipher_suite,
            store=store,
            settings=settings,
        )
    except Exception as e:
        logger.exception("Unexpected failure while checking %r", host_input)
        return CheckResult(hostname=hostname, port=port, error=f"{e.__class__.__name__}: {e}")

    logger.info("%s:%d -> %s (%d issue(s))", hostname, port, result.overall_status.value, len(result.issues))
    return result
