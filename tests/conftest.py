from __future__ import annotations

import socket
import ssl
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import NameOID

NOW = datetime(2026, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
DATA_DIR = Path(__file__).parent / "data"


def make_name(cn: str, org: str = "CertCheck Tests") -> x509.Name:
    return x509.Name([
        x509.NameAttribute(NameOID.COUNTRY_NAME, "DE"),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, org),
        x509.NameAttribute(NameOID.COMMON_NAME, cn),
    ])


def issue_cert(
    subject: x509.Name,
    key,
    *,
    issuer: x509.Certificate | None = None,
    issuer_key=None,
    issuer_name: x509.Name | None = None,
    ca: bool = False,
    sans: Iterable[str] | None = (),
    not_before: datetime | None = None,
    not_after: datetime | None = None,
) -> x509.Certificate:
    """
    Build a certificate. Without ``issuer`` it is self-signed (or signed by
    ``issuer_key`` under ``issuer_name`` when those are given).
    """
    not_before = not_before or NOW - timedelta(days=30)
    not_after = not_after or NOW + timedelta(days=365)
    if issuer is not None:
        name, signing_key = issuer.subject, issuer_key
    else:
        name, signing_key = issuer_name or subject, issuer_key or key

    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
    )
    sans = list(sans or [])
    if sans:
        builder = builder.add_extension(
            x509.SubjectAlternativeName([x509.DNSName(s) for s in sans]),
            critical=False,
        )
    return builder.sign(signing_key, hashes.SHA256())


@pytest.fixture(scope="session")
def keys():
    return {
        "root": rsa.generate_private_key(public_exponent=65537, key_size=2048),
        "intermediate": rsa.generate_private_key(public_exponent=65537, key_size=2048),
        "leaf": rsa.generate_private_key(public_exponent=65537, key_size=2048),
        "other": rsa.generate_private_key(public_exponent=65537, key_size=2048),
        "weak": rsa.generate_private_key(public_exponent=65537, key_size=1024),
        "ec": ec.generate_private_key(ec.SECP256R1()),
    }


@dataclass
class Pki:
    root: x509.Certificate
    intermediate: x509.Certificate
    leaf: x509.Certificate

    @property
    def chain(self) -> list[x509.Certificate]:
        return [self.leaf, self.intermediate]

    @property
    def full_chain(self) -> list[x509.Certificate]:
        return [self.leaf, self.intermediate, self.root]


def build_pki(keys, *, now: datetime, leaf_cn: str = "example.com", sans=("example.com", "www.example.com"),
              leaf_not_after: datetime | None = None) -> Pki:
    root = issue_cert(
        make_name("CertCheck Test Root"), keys["root"], ca=True, sans=None,
        not_before=now - timedelta(days=3650), not_after=now + timedelta(days=3650),
    )
    intermediate = issue_cert(
        make_name("CertCheck Test Intermediate"), keys["intermediate"],
        issuer=root, issuer_key=keys["root"], ca=True, sans=None,
        not_before=now - timedelta(days=365), not_after=now + timedelta(days=1825),
    )
    leaf = issue_cert(
        make_name(leaf_cn), keys["leaf"], issuer=intermediate, issuer_key=keys["intermediate"],
        sans=sans, not_before=now - timedelta(days=10),
        not_after=leaf_not_after or now + timedelta(days=90),
    )
    return Pki(root=root, intermediate=intermediate, leaf=leaf)


@pytest.fixture(scope="session")
def pki(keys) -> Pki:
    return build_pki(keys, now=NOW)


@pytest.fixture(scope="session")
def sha1_cert() -> x509.Certificate:
    """Self-signed sha1WithRSAEncryption leaf for sha1.example.com, valid 2026-10-18 to 2126."""
    # stored on disk: recent cryptography releases refuse to sign with SHA-1
    return x509.load_pem_x509_certificate((DATA_DIR / "sha1_rsa.pem").read_bytes())


@pytest.fixture(scope="session")
def self_signed(keys) -> x509.Certificate:
    return issue_cert(make_name("self.example.com"), keys["other"], sans=["self.example.com"])


# ---------------------------------------------------------------------------
# Local TLS server
# ---------------------------------------------------------------------------

def _pem(cert: x509.Certificate) -> bytes:
    return cert.public_bytes(serialization.Encoding.PEM)


@pytest.fixture
def live_pki(keys) -> Pki:
    """A chain valid at the real current time, issued for localhost."""
    now = datetime.now(timezone.utc).replace(microsecond=0)
    return build_pki(keys, now=now, leaf_cn="localhost", sans=("localhost",))


@pytest.fixture
def tls_server(tmp_path: Path, keys, live_pki):
    certfile = tmp_path / "chain.pem"
    keyfile = tmp_path / "key.pem"
    certfile.write_bytes(_pem(live_pki.leaf) + _pem(live_pki.intermediate))
    keyfile.write_bytes(keys["leaf"].private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ))

    ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    ctx.load_cert_chain(str(certfile), str(keyfile))

    listener = socket.create_server(("127.0.0.1", 0))
    listener.settimeout(0.2)
    port = listener.getsockname()[1]
    stop = threading.Event()

    def serve() -> None:
        while not stop.is_set():
            try:
                conn, _ = listener.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            with conn:
                conn.settimeout(5)
                try:
                    with ctx.wrap_socket(conn, server_side=True) as tls:
                        tls.recv(1)
                except OSError:
                    pass

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    yield port
    stop.set()
    thread.join(timeout=2)
    listener.close()


@pytest.fixture
def silent_server():
    """Accepts TCP connections but never answers the ClientHello."""
    listener = socket.create_server(("127.0.0.1", 0))
    yield listener.getsockname()[1]
    listener.close()
