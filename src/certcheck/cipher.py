from __future__ import annotations

from dataclasses import dataclass

from .models import (
    CipherAnalysis,
    CipherCompatibility,
    CipherStrength,
    Issue,
    IssueType,
    Severity,
)

TLS13_KEY_EXCHANGE = "N/A (TLS 1.3)"
UNKNOWN = "Unknown"

FORWARD_SECRET_KEY_EXCHANGES = ("ECDHE", "DHE", TLS13_KEY_EXCHANGE)

_KX_PREFIXES = (
    ("ECDHE", "ECDHE"),
    ("DHE", "DHE"),
    ("RSA", "RSA"),
    ("ECDH_", "ECDH"),
    ("DH_", "DH"),
)
_TLS12_MAC_SUFFIXES = ("SHA384", "SHA256", "SHA", "MD5")
_TLS13_MAC_SUFFIXES = ("SHA384", "SHA256")

_WEAK_ENCRYPTION = ("RC4", "DES", "3DES", "NULL", "EXPORT")
_AEAD_ENCRYPTION = ("GCM", "CCM", "CHACHA20", "POLY1305")
_STRICT_VENDOR_UNSUPPORTED = ("ARIA", "CAMELLIA", "SEED", "CCM8")

# OpenSSL reports TLS <= 1.2 suites by its own names; these are the IANA
# identifiers for every suite the capture context can offer. PSK and SRP
# suites need client credentials it never has and are left out. TLS 1.3
# names are already IANA.
OPENSSL_TO_IANA: dict[str, str] = {
    # ECDHE, ECDSA
    "ECDHE-ECDSA-AES128-GCM-SHA256": "TLS_ECDHE_ECDSA_WITH_AES_128_GCM_SHA256",
    "ECDHE-ECDSA-AES256-GCM-SHA384": "TLS_ECDHE_ECDSA_WITH_AES_256_GCM_SHA384",
    "ECDHE-ECDSA-CHACHA20-POLY1305": "TLS_ECDHE_ECDSA_WITH_CHACHA20_POLY1305_SHA256",
    "ECDHE-ECDSA-AES128-CCM": "TLS_ECDHE_ECDSA_WITH_AES_128_CCM",
    "ECDHE-ECDSA-AES256-CCM": "TLS_ECDHE_ECDSA_WITH_AES_256_CCM",
    "ECDHE-ECDSA-AES128-CCM8": "TLS_ECDHE_ECDSA_WITH_AES_128_CCM_8",
    "ECDHE-ECDSA-AES256-CCM8": "TLS_ECDHE_ECDSA_WITH_AES_256_CCM_8",
    "ECDHE-ECDSA-ARIA128-GCM-SHA256": "TLS_ECDHE_ECDSA_WITH_ARIA_128_GCM_SHA256",
    "ECDHE-ECDSA-ARIA256-GCM-SHA384": "TLS_ECDHE_ECDSA_WITH_ARIA_256_GCM_SHA384",
    "ECDHE-ECDSA-AES128-SHA256": "TLS_ECDHE_ECDSA_WITH_AES_128_CBC_SHA256",
    "ECDHE-ECDSA-AES256-SHA384": "TLS_ECDHE_ECDSA_WITH_AES_256_CBC_SHA384",
    "ECDHE-ECDSA-CAMELLIA128-SHA256": "TLS_ECDHE_ECDSA_WITH_CAMELLIA_128_CBC_SHA256",
    "ECDHE-ECDSA-CAMELLIA256-SHA384": "TLS_ECDHE_ECDSA_WITH_CAMELLIA_256_CBC_SHA384",
    "ECDHE-ECDSA-AES128-SHA": "TLS_ECDHE_ECDSA_WITH_AES_128_CBC_SHA",
    "ECDHE-ECDSA-AES256-SHA": "TLS_ECDHE_ECDSA_WITH_AES_256_CBC_SHA",
    "ECDHE-ECDSA-DES-CBC3-SHA": "TLS_ECDHE_ECDSA_WITH_3DES_EDE_CBC_SHA",
    "ECDHE-ECDSA-RC4-SHA": "TLS_ECDHE_ECDSA_WITH_RC4_128_SHA",
    "ECDHE-ECDSA-NULL-SHA": "TLS_ECDHE_ECDSA_WITH_NULL_SHA",
    # ECDHE, RSA
    "ECDHE-RSA-AES128-GCM-SHA256": "TLS_ECDHE_RSA_WITH_AES_128_GCM_SHA256",
    "ECDHE-RSA-AES256-GCM-SHA384": "TLS_ECDHE_RSA_WITH_AES_256_GCM_SHA384",
    "ECDHE-RSA-CHACHA20-POLY1305": "TLS_ECDHE_RSA_WITH_CHACHA20_POLY1305_SHA256",
    "ECDHE-ARIA128-GCM-SHA256": "TLS_ECDHE_RSA_WITH_ARIA_128_GCM_SHA256",
    "ECDHE-ARIA256-GCM-SHA384": "TLS_ECDHE_RSA_WITH_ARIA_256_GCM_SHA384",
    "ECDHE-RSA-AES128-SHA256": "TLS_ECDHE_RSA_WITH_AES_128_CBC_SHA256",
    "ECDHE-RSA-AES256-SHA384": "TLS_ECDHE_RSA_WITH_AES_256_CBC_SHA384",
    "ECDHE-RSA-CAMELLIA128-SHA256": "TLS_ECDHE_RSA_WITH_CAMELLIA_128_CBC_SHA256",
    "ECDHE-RSA-CAMELLIA256-SHA384": "TLS_ECDHE_RSA_WITH_CAMELLIA_256_CBC_SHA384",
    "ECDHE-RSA-AES128-SHA": "TLS_ECDHE_RSA_WITH_AES_128_CBC_SHA",
    "ECDHE-RSA-AES256-SHA": "TLS_ECDHE_RSA_WITH_AES_256_CBC_SHA",
    "ECDHE-RSA-DES-CBC3-SHA": "TLS_ECDHE_RSA_WITH_3DES_EDE_CBC_SHA",
    "ECDHE-RSA-RC4-SHA": "TLS_ECDHE_RSA_WITH_RC4_128_SHA",
    "ECDHE-RSA-NULL-SHA": "TLS_ECDHE_RSA_WITH_NULL_SHA",
    # DHE, RSA
    "DHE-RSA-AES128-GCM-SHA256": "TLS_DHE_RSA_WITH_AES_128_GCM_SHA256",
    "DHE-RSA-AES256-GCM-SHA384": "TLS_DHE_RSA_WITH_AES_256_GCM_SHA384",
    "DHE-RSA-CHACHA20-POLY1305": "TLS_DHE_RSA_WITH_CHACHA20_POLY1305_SHA256",
    "DHE-RSA-AES128-CCM": "TLS_DHE_RSA_WITH_AES_128_CCM",
    "DHE-RSA-AES256-CCM": "TLS_DHE_RSA_WITH_AES_256_CCM",
    "DHE-RSA-AES128-CCM8": "TLS_DHE_RSA_WITH_AES_128_CCM_8",
    "DHE-RSA-AES256-CCM8": "TLS_DHE_RSA_WITH_AES_256_CCM_8",
    "DHE-RSA-ARIA128-GCM-SHA256": "TLS_DHE_RSA_WITH_ARIA_128_GCM_SHA256",
    "DHE-RSA-ARIA256-GCM-SHA384": "TLS_DHE_RSA_WITH_ARIA_256_GCM_SHA384",
    "DHE-RSA-AES128-SHA256": "TLS_DHE_RSA_WITH_AES_128_CBC_SHA256",
    "DHE-RSA-AES256-SHA256": "TLS_DHE_RSA_WITH_AES_256_CBC_SHA256",
    "DHE-RSA-CAMELLIA128-SHA256": "TLS_DHE_RSA_WITH_CAMELLIA_128_CBC_SHA256",
    "DHE-RSA-CAMELLIA256-SHA256": "TLS_DHE_RSA_WITH_CAMELLIA_256_CBC_SHA256",
    "DHE-RSA-AES128-SHA": "TLS_DHE_RSA_WITH_AES_128_CBC_SHA",
    "DHE-RSA-AES256-SHA": "TLS_DHE_RSA_WITH_AES_256_CBC_SHA",
    "DHE-RSA-CAMELLIA128-SHA": "TLS_DHE_RSA_WITH_CAMELLIA_128_CBC_SHA",
    "DHE-RSA-CAMELLIA256-SHA": "TLS_DHE_RSA_WITH_CAMELLIA_256_CBC_SHA",
    "DHE-RSA-SEED-SHA": "TLS_DHE_RSA_WITH_SEED_CBC_SHA",
    "DHE-RSA-DES-CBC3-SHA": "TLS_DHE_RSA_WITH_3DES_EDE_CBC_SHA",
    "EDH-RSA-DES-CBC3-SHA": "TLS_DHE_RSA_WITH_3DES_EDE_CBC_SHA",
    # DHE, DSS
    "DHE-DSS-AES128-GCM-SHA256": "TLS_DHE_DSS_WITH_AES_128_GCM_SHA256",
    "DHE-DSS-AES256-GCM-SHA384": "TLS_DHE_DSS_WITH_AES_256_GCM_SHA384",
    "DHE-DSS-ARIA128-GCM-SHA256": "TLS_DHE_DSS_WITH_ARIA_128_GCM_SHA256",
    "DHE-DSS-ARIA256-GCM-SHA384": "TLS_DHE_DSS_WITH_ARIA_256_GCM_SHA384",
    "DHE-DSS-AES128-SHA256": "TLS_DHE_DSS_WITH_AES_128_CBC_SHA256",
    "DHE-DSS-AES256-SHA256": "TLS_DHE_DSS_WITH_AES_256_CBC_SHA256",
    "DHE-DSS-CAMELLIA128-SHA256": "TLS_DHE_DSS_WITH_CAMELLIA_128_CBC_SHA256",
    "DHE-DSS-CAMELLIA256-SHA256": "TLS_DHE_DSS_WITH_CAMELLIA_256_CBC_SHA256",
    "DHE-DSS-AES128-SHA": "TLS_DHE_DSS_WITH_AES_128_CBC_SHA",
    "DHE-DSS-AES256-SHA": "TLS_DHE_DSS_WITH_AES_256_CBC_SHA",
    "DHE-DSS-CAMELLIA128-SHA": "TLS_DHE_DSS_WITH_CAMELLIA_128_CBC_SHA",
    "DHE-DSS-CAMELLIA256-SHA": "TLS_DHE_DSS_WITH_CAMELLIA_256_CBC_SHA",
    "DHE-DSS-SEED-SHA": "TLS_DHE_DSS_WITH_SEED_CBC_SHA",
    "DHE-DSS-DES-CBC3-SHA": "TLS_DHE_DSS_WITH_3DES_EDE_CBC_SHA",
    "EDH-DSS-DES-CBC3-SHA": "TLS_DHE_DSS_WITH_3DES_EDE_CBC_SHA",
    # anonymous (EC)DH
    "ADH-AES128-GCM-SHA256": "TLS_DH_anon_WITH_AES_128_GCM_SHA256",
    "ADH-AES256-GCM-SHA384": "TLS_DH_anon_WITH_AES_256_GCM_SHA384",
    "ADH-AES128-SHA256": "TLS_DH_anon_WITH_AES_128_CBC_SHA256",
    "ADH-AES256-SHA256": "TLS_DH_anon_WITH_AES_256_CBC_SHA256",
    "ADH-CAMELLIA128-SHA256": "TLS_DH_anon_WITH_CAMELLIA_128_CBC_SHA256",
    "ADH-CAMELLIA256-SHA256": "TLS_DH_anon_WITH_CAMELLIA_256_CBC_SHA256",
    "ADH-AES128-SHA": "TLS_DH_anon_WITH_AES_128_CBC_SHA",
    "ADH-AES256-SHA": "TLS_DH_anon_WITH_AES_256_CBC_SHA",
    "ADH-CAMELLIA128-SHA": "TLS_DH_anon_WITH_CAMELLIA_128_CBC_SHA",
    "ADH-CAMELLIA256-SHA": "TLS_DH_anon_WITH_CAMELLIA_256_CBC_SHA",
    "ADH-SEED-SHA": "TLS_DH_anon_WITH_SEED_CBC_SHA",
    "ADH-DES-CBC3-SHA": "TLS_DH_anon_WITH_3DES_EDE_CBC_SHA",
    "ADH-RC4-MD5": "TLS_DH_anon_WITH_RC4_128_MD5",
    "AECDH-AES128-SHA": "TLS_ECDH_anon_WITH_AES_128_CBC_SHA",
    "AECDH-AES256-SHA": "TLS_ECDH_anon_WITH_AES_256_CBC_SHA",
    "AECDH-DES-CBC3-SHA": "TLS_ECDH_anon_WITH_3DES_EDE_CBC_SHA",
    "AECDH-RC4-SHA": "TLS_ECDH_anon_WITH_RC4_128_SHA",
    "AECDH-NULL-SHA": "TLS_ECDH_anon_WITH_NULL_SHA",
    # RSA key transport
    "AES128-GCM-SHA256": "TLS_RSA_WITH_AES_128_GCM_SHA256",
    "AES256-GCM-SHA384": "TLS_RSA_WITH_AES_256_GCM_SHA384",
    "AES128-CCM": "TLS_RSA_WITH_AES_128_CCM",
    "AES256-CCM": "TLS_RSA_WITH_AES_256_CCM",
    "AES128-CCM8": "TLS_RSA_WITH_AES_128_CCM_8",
    "AES256-CCM8": "TLS_RSA_WITH_AES_256_CCM_8",
    "ARIA128-GCM-SHA256": "TLS_RSA_WITH_ARIA_128_GCM_SHA256",
    "ARIA256-GCM-SHA384": "TLS_RSA_WITH_ARIA_256_GCM_SHA384",
    "AES128-SHA256": "TLS_RSA_WITH_AES_128_CBC_SHA256",
    "AES256-SHA256": "TLS_RSA_WITH_AES_256_CBC_SHA256",
    "CAMELLIA128-SHA256": "TLS_RSA_WITH_CAMELLIA_128_CBC_SHA256",
    "CAMELLIA256-SHA256": "TLS_RSA_WITH_CAMELLIA_256_CBC_SHA256",
    "AES128-SHA": "TLS_RSA_WITH_AES_128_CBC_SHA",
    "AES256-SHA": "TLS_RSA_WITH_AES_256_CBC_SHA",
    "CAMELLIA128-SHA": "TLS_RSA_WITH_CAMELLIA_128_CBC_SHA",
    "CAMELLIA256-SHA": "TLS_RSA_WITH_CAMELLIA_256_CBC_SHA",
    "SEED-SHA": "TLS_RSA_WITH_SEED_CBC_SHA",
    "DES-CBC3-SHA": "TLS_RSA_WITH_3DES_EDE_CBC_SHA",
    "RC4-SHA": "TLS_RSA_WITH_RC4_128_SHA",
    "RC4-MD5": "TLS_RSA_WITH_RC4_128_MD5",
    "NULL-SHA256": "TLS_RSA_WITH_NULL_SHA256",
    "NULL-SHA": "TLS_RSA_WITH_NULL_SHA",
    "NULL-MD5": "TLS_RSA_WITH_NULL_MD5",
}


@dataclass(frozen=True)
class CipherComponents:
    key_exchange: str
    encryption: str
    mac: str


def to_iana_name(cipher: str) -> str:
    """Map an OpenSSL cipher name to its IANA identifier, if known."""
    if cipher.startswith("TLS_"):
        return cipher
    return OPENSSL_TO_IANA.get(cipher, cipher)


def is_tls13_suite(cipher: str, tls_version: str | None) -> bool:
    return tls_version == "TLSv1.3" or (cipher.startswith("TLS_") and "WITH" not in cipher)


def _split_mac(rest: str, suffixes: tuple[str, ...]) -> tuple[str, str]:
    mac = next((s for s in suffixes if rest.endswith(s)), rest.rsplit("_", 1)[-1])
    enc = rest[: -len("_" + mac)] if rest.endswith("_" + mac) else rest
    return enc, mac


def parse_cipher_components(cipher: str, is_tls13: bool) -> CipherComponents:
    """
    Split an IANA suite identifier into key exchange, encryption and MAC.

    TLS 1.3:  TLS_AES_256_GCM_SHA384
    TLS 1.2:  TLS_ECDHE_RSA_WITH_AES_128_GCM_SHA256

    Never raises; unrecognised shapes come back as "Unknown".
    """
    if is_tls13:
        enc, mac = _split_mac(cipher.removeprefix("TLS_"), _TLS13_MAC_SUFFIXES)
        return CipherComponents(
            key_exchange=TLS13_KEY_EXCHANGE,
            encryption=enc.replace("_", "-"),
            mac=mac,
        )

    with_index = cipher.find("_WITH_")
    if with_index > 0:
        kx_part = cipher[:with_index].removeprefix("TLS_")
        rest = cipher[with_index + len("_WITH_"):]

        kx = next(
            (name for prefix, name in _KX_PREFIXES if kx_part.startswith(prefix)),
            kx_part.split("_", 1)[0],
        )
        enc, mac = _split_mac(rest, _TLS12_MAC_SUFFIXES)
        return CipherComponents(key_exchange=kx, encryption=enc.replace("_", "-"), mac=mac)

    return CipherComponents(key_exchange=UNKNOWN, encryption=cipher, mac=UNKNOWN)


def evaluate_cipher_strength(components: CipherComponents) -> CipherStrength:
    enc = components.encryption.upper()
    mac = components.mac.upper()

    if any(token in enc for token in _WEAK_ENCRYPTION) or mac == "MD5":
        return CipherStrength.WEAK
    if any(token in enc for token in _AEAD_ENCRYPTION):
        return CipherStrength.STRONG
    # e.g. AES-CBC with SHA-256+
    return CipherStrength.ACCEPTABLE


def _is_modern_encryption(enc: str) -> bool:
    return "AES" in enc or "CHACHA20" in enc


def _strict_vendor_unsupported_family(components: CipherComponents) -> str | None:
    # AES_128_CCM_8 decomposes into encryption AES-128-CCM and mac 8
    compact = (components.encryption + components.mac).upper().replace("-", "").replace("_", "")
    return next((token for token in _STRICT_VENDOR_UNSUPPORTED if token in compact), None)


def evaluate_compatibility(
    cipher: str,
    is_tls13: bool,
    components: CipherComponents,
) -> tuple[CipherCompatibility, ...]:
    """
    Verdicts for, in order: recent Android, iOS/Safari, modern browsers,
    legacy systems.
    """
    enc = components.encryption.upper()
    kx = components.key_exchange.upper()
    verdicts: list[CipherCompatibility] = []

    if is_tls13:
        verdicts.append(CipherCompatibility(
            platform="Android 10+",
            supported=True,
            detail="TLS 1.3 is supported natively since Android 10 (API 29)",
        ))
    else:
        modern = _is_modern_encryption(enc)
        verdicts.append(CipherCompatibility(
            platform="Android 8+",
            supported=modern,
            detail=(
                "Cipher supported on Android 8+ (API 26+)" if modern
                else "This cipher may be unavailable on some Android versions"
            ),
        ))

    if is_tls13:
        verdicts.append(CipherCompatibility(
            platform="iOS 12.2+ / Safari",
            supported=True,
            detail="TLS 1.3 is supported since iOS 12.2",
        ))
    else:
        dhe_unsupported = kx == "DHE"
        family = _strict_vendor_unsupported_family(components)
        supported = not dhe_unsupported and family is None and _is_modern_encryption(enc)
        if dhe_unsupported:
            detail = ("iOS does not support DHE suites (ECDHE only); "
                      "Safari and native iOS apps will fail to connect")
        elif family is not None:
            detail = (f"iOS does not support {family} ({components.encryption}); "
                      "Safari and native iOS apps will fail to connect")
        elif not supported:
            detail = "This cipher may not be supported by iOS"
        else:
            detail = "Cipher supported on iOS / Safari"
        verdicts.append(CipherCompatibility(platform="iOS / Safari", supported=supported, detail=detail))

    browsers = is_tls13 or (
        _is_modern_encryption(enc) and kx in ("ECDHE", "DHE", TLS13_KEY_EXCHANGE.upper())
    )
    verdicts.append(CipherCompatibility(
        platform="Chrome / Edge / Firefox",
        supported=browsers,
        detail=(
            "Supported by modern browsers" if browsers
            else "This cipher may be rejected by recent browsers"
        ),
    ))

    if is_tls13:
        legacy = "Legacy systems (< Windows 10, < Android 10, IE 11) do not support TLS 1.3"
    elif kx == "RSA" and "AES" in enc:
        legacy = "Compatible with legacy systems (IE 11, Java 7, ...)"
    elif kx == "ECDHE" and "AES" in enc:
        legacy = "Compatible with most systems (Java 8+, Windows 7+)"
    else:
        legacy = "Compatibility varies across systems"
    verdicts.append(CipherCompatibility(platform="Legacy systems", supported=not is_tls13, detail=legacy))

    return tuple(verdicts)


def analyze_cipher_suite(
    cipher: str,
    tls_version: str | None,
) -> tuple[CipherAnalysis, tuple[Issue, ...]]:
    is_tls13 = is_tls13_suite(cipher, tls_version)
    components = parse_cipher_components(cipher, is_tls13)
    strength = evaluate_cipher_strength(components)
    has_fs = components.key_exchange in FORWARD_SECRET_KEY_EXCHANGES
    is_aead = any(token in components.encryption for token in _AEAD_ENCRYPTION)

    issues: list[Issue] = []
    if strength is CipherStrength.WEAK:
        issues.append(Issue(
            type=IssueType.CIPHER_WEAK,
            severity=Severity.WARNING,
            title="Weak cipher suite",
            description=(
                f"The cipher '{cipher}' relies on algorithms considered weak. "
                "A modern cipher (AES-GCM, ChaCha20) is recommended."
            ),
        ))
    if not has_fs and not is_tls13:
        issues.append(Issue(
            type=IssueType.CIPHER_NO_FORWARD_SECRECY,
            severity=Severity.WARNING,
            title="No forward secrecy",
            description=(
                f"The cipher '{cipher}' does not use ECDHE or DHE. Without forward "
                "secrecy, a compromised server private key exposes all past traffic."
            ),
        ))

    analysis = CipherAnalysis(
        full_name=cipher,
        key_exchange=components.key_exchange,
        encryption=components.encryption,
        mac=components.mac,
        strength=strength,
        has_forward_secrecy=has_fs,
        is_tls13=is_tls13,
        is_aead=is_aead,
        compatibility=evaluate_compatibility(cipher, is_tls13, components),
    )
    return analysis, tuple(issues)
