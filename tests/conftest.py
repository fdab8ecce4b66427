"""Shared test fixtures for the allocator client test suite."""

from __future__ import annotations

import datetime
import os
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from allocator_client.allocation import TLSMaterial
from allocator_client.errors import ProbeError
from allocator_client.ping import Trace


# ---------------------------------------------------------------------------
# Keep the developer's AGONES_* environment out of the tests
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _clear_agones_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("AGONES_"):
            monkeypatch.delenv(key, raising=False)


# ---------------------------------------------------------------------------
# TLS material
# ---------------------------------------------------------------------------

def make_key_pair(common_name: str = "allocator-client") -> tuple[bytes, bytes]:
    """Self-signed certificate and its private key, both PEM."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=1))
        .not_valid_after(now + datetime.timedelta(days=1))
        .sign(key, hashes.SHA256())
    )
    cert_pem = cert.public_bytes(serialization.Encoding.PEM)
    key_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    return cert_pem, key_pem


@pytest.fixture(scope="session")
def key_pair() -> tuple[bytes, bytes]:
    return make_key_pair()


@pytest.fixture(scope="session")
def ca_pem() -> bytes:
    cert_pem, _ = make_key_pair("test-ca")
    return cert_pem


@pytest.fixture
def tls_material(key_pair: tuple[bytes, bytes], ca_pem: bytes) -> TLSMaterial:
    cert, key = key_pair
    return TLSMaterial(cert=cert, key=key, ca=ca_pem)


@pytest.fixture
def pem_files(tmp_path: Path, key_pair: tuple[bytes, bytes], ca_pem: bytes) -> dict[str, str]:
    """Client cert, key and CA written to disk; returns their paths."""
    cert, key = key_pair
    paths = {
        "cert": tmp_path / "client.crt",
        "key": tmp_path / "client.key",
        "ca_cert": tmp_path / "ca.crt",
    }
    paths["cert"].write_bytes(cert)
    paths["key"].write_bytes(key)
    paths["ca_cert"].write_bytes(ca_pem)
    return {name: str(path) for name, path in paths.items()}


# ---------------------------------------------------------------------------
# Probe double
# ---------------------------------------------------------------------------

class FakeProbe:
    """LatencyProbe stand-in with scripted response times.

    ``timings`` maps probe target to response time; targets in ``failing``
    raise ProbeError. Every call is recorded in ``calls``.
    """

    def __init__(self, timings: dict[str, float], failing: set[str] | None = None) -> None:
        self.timings = timings
        self.failing = failing or set()
        self.calls: list[str] = []

    async def run(self, target: str) -> Trace:
        self.calls.append(target)
        if target in self.failing:
            raise ProbeError(f"trace failed on {target}", target=target)
        return Trace(host=f"http://{target}", response="ok", response_time=self.timings[target])


@pytest.fixture
def fake_probe_factory():
    return FakeProbe


@pytest.fixture
def key_pair_factory():
    return make_key_pair
