from __future__ import annotations

import pytest

from certcheck.cipher import (
    TLS13_KEY_EXCHANGE,
    CipherComponents,
    analyze_cipher_suite,
    evaluate_cipher_strength,
    evaluate_compatibility,
    is_tls13_suite,
    parse_cipher_components,
    to_iana_name,
)
from certcheck.models import CipherStrength, IssueType, Severity
from certcheck.trust import TrustPolicy, build_context


class TestParseCipherComponents:
    """Decomposition of IANA suite identifiers"""

    def test_tls13_suite(self):
        c = parse_cipher_components("TLS_AES_256_GCM_SHA384", is_tls13=True)
        assert c == CipherComponents(TLS13_KEY_EXCHANGE, "AES-256-GCM", "SHA384")

    def test_tls13_chacha(self):
        c = parse_cipher_components("TLS_CHACHA20_POLY1305_SHA256", is_tls13=True)
        assert c.encryption == "CHACHA20-POLY1305"
        assert c.mac == "SHA256"

    def test_tls12_ecdhe_gcm(self):
        c = parse_cipher_components("TLS_ECDHE_RSA_WITH_AES_128_GCM_SHA256", is_tls13=False)
        assert c == CipherComponents("ECDHE", "AES-128-GCM", "SHA256")

    def test_tls12_rsa_cbc_sha(self):
        c = parse_cipher_components("TLS_RSA_WITH_AES_256_CBC_SHA", is_tls13=False)
        assert c == CipherComponents("RSA", "AES-256-CBC", "SHA")

    def test_tls12_static_ecdh(self):
        c = parse_cipher_components("TLS_ECDH_ECDSA_WITH_AES_128_CBC_SHA256", is_tls13=False)
        assert c.key_exchange == "ECDH"
        assert c.mac == "SHA256"

    def test_tls12_md5(self):
        c = parse_cipher_components("TLS_RSA_WITH_RC4_128_MD5", is_tls13=False)
        assert c == CipherComponents("RSA", "RC4-128", "MD5")

    def test_tls12_unknown_mac_uses_last_segment(self):
        c = parse_cipher_components("TLS_ECDHE_ECDSA_WITH_AES_128_CCM", is_tls13=False)
        assert c.mac == "CCM"
        assert c.encryption == "AES-128"

    def test_unrecognised_format_never_raises(self):
        c = parse_cipher_components("SOMETHING-ODD", is_tls13=False)
        assert c == CipherComponents("Unknown", "SOMETHING-ODD", "Unknown")


class TestCipherStrength:
    """Strength tiers"""

    @pytest.mark.parametrize("mac", ["SHA", "SHA256", "SHA384"])
    def test_rc4_is_weak_regardless_of_mac(self, mac):
        assert evaluate_cipher_strength(CipherComponents("RSA", "RC4-128", mac)) is CipherStrength.WEAK

    def test_md5_mac_is_weak(self):
        assert evaluate_cipher_strength(CipherComponents("RSA", "AES-128-CBC", "MD5")) is CipherStrength.WEAK

    def test_3des_is_weak(self):
        assert evaluate_cipher_strength(CipherComponents("RSA", "3DES-EDE-CBC", "SHA")) is CipherStrength.WEAK

    def test_gcm_is_strong(self):
        assert evaluate_cipher_strength(CipherComponents("ECDHE", "AES-256-GCM", "SHA384")) is CipherStrength.STRONG

    def test_weak_takes_priority_over_strong(self):
        assert evaluate_cipher_strength(CipherComponents("RSA", "NULL-GCM", "SHA256")) is CipherStrength.WEAK

    def test_cbc_is_acceptable(self):
        assert evaluate_cipher_strength(CipherComponents("ECDHE", "AES-128-CBC", "SHA256")) is CipherStrength.ACCEPTABLE


class TestCompatibility:
    """Per-platform verdicts"""

    def test_tls13_modern_only(self):
        c = parse_cipher_components("TLS_AES_128_GCM_SHA256", True)
        verdicts = evaluate_compatibility("TLS_AES_128_GCM_SHA256", True, c)
        assert [v.supported for v in verdicts] == [True, True, True, False]
        assert verdicts[0].platform == "Android 10+"

    def test_dhe_rejected_by_ios(self):
        name = "TLS_DHE_RSA_WITH_AES_128_GCM_SHA256"
        verdicts = evaluate_compatibility(name, False, parse_cipher_components(name, False))
        ios = verdicts[1]
        assert ios.platform == "iOS / Safari"
        assert ios.supported is False
        assert "DHE" in ios.detail
        assert verdicts[2].supported is True

    def test_camellia_rejected_by_ios_and_android(self):
        name = "TLS_RSA_WITH_CAMELLIA_128_CBC_SHA"
        verdicts = evaluate_compatibility(name, False, parse_cipher_components(name, False))
        assert verdicts[0].supported is False
        assert verdicts[1].supported is False
        assert "CAMELLIA" in verdicts[1].detail

    def test_rsa_kx_not_for_browsers(self):
        name = "TLS_RSA_WITH_AES_128_CBC_SHA"
        verdicts = evaluate_compatibility(name, False, parse_cipher_components(name, False))
        assert verdicts[2].supported is False
        assert verdicts[3].supported is True
        assert "IE 11" in verdicts[3].detail


class TestAnalyzeCipherSuite:
    """Issue emission"""

    def test_strong_tls13_has_no_issues(self):
        analysis, issues = analyze_cipher_suite("TLS_AES_256_GCM_SHA384", "TLSv1.3")
        assert issues == ()
        assert analysis.is_tls13
        assert analysis.is_aead
        assert analysis.has_forward_secrecy
        assert analysis.strength is CipherStrength.STRONG
        assert len(analysis.compatibility) == 4

    def test_rc4_rsa_reports_weak_and_no_forward_secrecy(self):
        _, issues = analyze_cipher_suite("TLS_RSA_WITH_RC4_128_SHA", "TLSv1.2")
        assert [i.type for i in issues] == [IssueType.CIPHER_WEAK, IssueType.CIPHER_NO_FORWARD_SECRECY]
        assert all(i.severity is Severity.WARNING for i in issues)

    def test_tls13_detected_from_suite_shape(self):
        assert is_tls13_suite("TLS_AES_128_GCM_SHA256", None)
        assert not is_tls13_suite("TLS_ECDHE_RSA_WITH_AES_128_GCM_SHA256", None)


class TestIanaNames:
    def test_openssl_name_is_translated(self):
        assert to_iana_name("ECDHE-RSA-AES128-GCM-SHA256") == "TLS_ECDHE_RSA_WITH_AES_128_GCM_SHA256"

    def test_tls13_name_is_kept(self):
        assert to_iana_name("TLS_AES_256_GCM_SHA384") == "TLS_AES_256_GCM_SHA384"

    def test_unknown_name_passes_through(self):
        assert to_iana_name("GOST2012-KUZNYECHIK") == "GOST2012-KUZNYECHIK"


def _offered_tls12_ciphers():
    ctx = build_context(TrustPolicy.CAPTURE)
    return [c for c in ctx.get_ciphers() if c["protocol"] != "TLSv1.3"]


class TestCaptureContextCoverage:
    """Every suite the capture context can negotiate decomposes cleanly"""

    def test_ephemeral_suites_have_iana_names(self):
        missing = [
            c["name"] for c in _offered_tls12_ciphers()
            if c["kea"] in ("kx-ecdhe", "kx-dhe") and "_WITH_" not in to_iana_name(c["name"])
        ]
        assert missing == []

    def test_authenticated_ephemeral_suites_have_forward_secrecy(self):
        flagged = []
        for c in _offered_tls12_ciphers():
            if c["kea"] not in ("kx-ecdhe", "kx-dhe") or c["auth"] == "auth-null":
                continue
            analysis, issues = analyze_cipher_suite(to_iana_name(c["name"]), "TLSv1.2")
            if not analysis.has_forward_secrecy or IssueType.CIPHER_NO_FORWARD_SECRECY in [i.type for i in issues]:
                flagged.append(c["name"])
        assert flagged == []

    def test_rsa_key_transport_suites_are_known(self):
        missing = [
            c["name"] for c in _offered_tls12_ciphers()
            if c["kea"] == "kx-rsa" and to_iana_name(c["name"]) == c["name"]
        ]
        assert missing == []

    def test_anonymous_suites_follow_prefix_rule(self):
        analysis, issues = analyze_cipher_suite(to_iana_name("ADH-AES128-GCM-SHA256"), "TLSv1.2")
        assert analysis.key_exchange == "DH"
        assert analysis.encryption == "AES-128-GCM"
        assert IssueType.CIPHER_NO_FORWARD_SECRECY in [i.type for i in issues]


class TestStrictVendorFamilies:
    @pytest.mark.parametrize(
        "openssl_name",
        ["ECDHE-ECDSA-AES128-CCM8", "DHE-RSA-AES256-CCM8", "AES128-CCM8"],
    )
    def test_ccm8_rejected_by_ios(self, openssl_name):
        name = to_iana_name(openssl_name)
        analysis, _ = analyze_cipher_suite(name, "TLSv1.2")
        ios = analysis.compatibility[1]
        assert ios.supported is False
        assert "DHE" in ios.detail or "CCM8" in ios.detail

    def test_ccm8_named_in_detail(self):
        name = to_iana_name("ECDHE-ECDSA-AES256-CCM8")
        verdicts = evaluate_compatibility(name, False, parse_cipher_components(name, False))
        assert "CCM8" in verdicts[1].detail

    def test_plain_ccm_is_fine_on_ios(self):
        name = to_iana_name("ECDHE-ECDSA-AES128-CCM")
        verdicts = evaluate_compatibility(name, False, parse_cipher_components(name, False))
        assert verdicts[1].supported is True

    def test_dhe_dss_aria_decomposes(self):
        analysis, issues = analyze_cipher_suite(to_iana_name("DHE-DSS-ARIA128-GCM-SHA256"), "TLSv1.2")
        assert analysis.key_exchange == "DHE"
        assert analysis.encryption == "ARIA-128-GCM"
        assert analysis.has_forward_secrecy
        assert issues == ()
        assert analysis.compatibility[1].supported is False
