from __future__ import annotations

import hashlib
from datetime import datetime, timezone

from cryptography import x509
from cryptography.x509.oid import NameOID


def colon_hex(data: bytes) -> str:
    return ":".join(f"{b:02X}" for b in data)


def sha256_fingerprint(der: bytes) -> str:
    return colon_hex(hashlib.sha256(der).digest())


def sha1_fingerprint(der: bytes) -> str:
    return colon_hex(hashlib.sha1(der).digest())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def dt_to_utc_iso(dt: datetime) -> str:
    return as_utc(dt).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def utc_iso_to_dt(value: str) -> datetime:
    return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def name_to_str(name: x509.Name) -> str:
    # RFC4514
    try:
        return name.rfc4514_string()
    except Exception:
        return str(name)


def common_name(name: x509.Name) -> str | None:
    try:
        attrs = name.get_attributes_for_oid(NameOID.COMMON_NAME)
    except Exception:
        return None
    if not attrs:
        return None
    value = attrs[0].value
    return value if isinstance(value, str) else value.decode("utf-8", "replace")
