"""Mutual-TLS material for the allocator gRPC channel.

The client certificate, its private key and an optional CA bundle arrive as
PEM bytes. They are parsed up front so that bad material is reported as a
configuration error before any connection is attempted.

SECURITY: Never logs key or certificate contents.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import grpc
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization

from allocator_client.errors import MalformedCAError, TLSMaterialError


def _public_key_bytes(key: object) -> bytes:
    return key.public_bytes(  # type: ignore[attr-defined]
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


@dataclass(frozen=True)
class TLSMaterial:
    """PEM-encoded client certificate, client key and optional CA bundle."""

    cert: bytes
    key: bytes
    ca: bytes = b""

    @classmethod
    def from_files(cls, cert_path: str, key_path: str, ca_path: str = "") -> TLSMaterial:
        """Read the three PEM files. An empty ``ca_path`` means no custom CA."""
        try:
            cert = Path(cert_path).read_bytes()
            key = Path(key_path).read_bytes()
            ca = Path(ca_path).read_bytes() if ca_path else b""
        except OSError as exc:
            raise TLSMaterialError(f"could not read TLS material: {exc}") from exc
        return cls(cert=cert, key=key, ca=ca)

    def validate(self) -> None:
        """Check that the key pair parses and matches and that the CA is PEM.

        Raises
        ------
        TLSMaterialError
            Missing or unparseable certificate/key, or a key that does not
            belong to the certificate.
        MalformedCAError
            A non-empty CA bundle that contains no PEM certificates.
        """
        if not self.cert or not self.key:
            raise TLSMaterialError("client certificate and key are required")

        try:
            certificate = x509.load_pem_x509_certificate(self.cert)
            private_key = serialization.load_pem_private_key(self.key, password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise TLSMaterialError(f"invalid client certificate or key: {exc}") from exc

        if _public_key_bytes(certificate.public_key()) != _public_key_bytes(
            private_key.public_key()
        ):
            raise TLSMaterialError("private key does not match client certificate")

        if self.ca:
            try:
                x509.load_pem_x509_certificates(self.ca)
            except ValueError as exc:
                raise MalformedCAError() from exc

    def channel_credentials(self) -> grpc.ChannelCredentials:
        """Validate the material and build gRPC channel credentials.

        Without a CA bundle the system trust roots are used.
        """
        self.validate()
        return grpc.ssl_channel_credentials(
            root_certificates=self.ca or None,
            private_key=self.key,
            certificate_chain=self.cert,
        )
