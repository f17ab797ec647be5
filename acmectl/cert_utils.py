"""
Certificate utilities for acmectl.

Key generation, CSR building and packaging of issued certificates into a
password-protected PKCS#12 bundle with optional PEM exports. All encoding
is left to the cryptography package.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

logger = logging.getLogger(__name__)

PFX_SUFFIX = ".pfx"
CHAIN_SUFFIX = ".pem"
CHAIN_WITH_KEY_SUFFIX = ".cer"
KEY_SUFFIX = ".pkey"


@dataclass
class CertificateBundle:
    """Issued certificate and where it was written."""

    pfx_path: Path
    password: str
    private_key_pem: bytes
    certificate: x509.Certificate
    chain: list[x509.Certificate] = field(default_factory=list)
    pem_paths: list[Path] = field(default_factory=list)

    @property
    def fullchain_pem(self) -> bytes:
        return b"".join(
            cert.public_bytes(serialization.Encoding.PEM)
            for cert in [self.certificate, *self.chain]
        )


def generate_private_key(key_size: int = 2048) -> rsa.RSAPrivateKey:
    """Generate an RSA private key."""
    return rsa.generate_private_key(public_exponent=65537, key_size=key_size)


def private_key_to_pem(private_key: rsa.RSAPrivateKey) -> bytes:
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def create_csr(
    private_key: rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey,
    domains: list[str],
) -> bytes:
    """Build a PEM CSR with the first domain as CN and all domains as SANs.

    Args:
        private_key: Key the CSR is signed with
        domains: Domain names, primary first

    Returns:
        PEM-encoded CSR
    """
    if not domains:
        raise ValueError("At least one domain is required for a CSR")

    csr = (
        x509.CertificateSigningRequestBuilder()
        .subject_name(
            x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, domains[0])])
        )
        .add_extension(
            x509.SubjectAlternativeName([x509.DNSName(d) for d in domains]),
            critical=False,
        )
        .sign(private_key, hashes.SHA256())
    )
    return csr.public_bytes(serialization.Encoding.PEM)


def create_order_csr(domains: list[str]) -> bytes:
    """Build a CSR that only carries the order identifiers.

    The ACME client derives new-order identifiers from a CSR. The key that
    signs this one is thrown away; the certificate key is generated at
    finalization.
    """
    return create_csr(ec.generate_private_key(ec.SECP256R1()), domains)


def split_fullchain(
    fullchain_pem: bytes | str,
) -> tuple[x509.Certificate, list[x509.Certificate]]:
    """Split a PEM full chain into leaf certificate and issuer chain."""
    if isinstance(fullchain_pem, str):
        fullchain_pem = fullchain_pem.encode("ascii")
    certificates = x509.load_pem_x509_certificates(fullchain_pem)
    return certificates[0], certificates[1:]


def get_san_domains(certificate: x509.Certificate) -> list[str]:
    """Return the DNS names of a certificate's SAN extension."""
    try:
        san = certificate.extensions.get_extension_for_class(
            x509.SubjectAlternativeName
        )
    except x509.ExtensionNotFound:
        return []
    return san.value.get_values_for_type(x509.DNSName)


def _write_private(path: Path, data: bytes) -> None:
    path.write_bytes(data)
    try:
        os.chmod(path, 0o600)
    except OSError:
        pass


def write_bundle(
    output_path: Path,
    private_key: rsa.RSAPrivateKey,
    certificate: x509.Certificate,
    chain: list[x509.Certificate],
    friendly_name: str,
    password: str,
    export_pem: bool = False,
) -> CertificateBundle:
    """Write the PKCS#12 bundle and, if asked, the PEM exports.

    ``output_path`` is the path without suffix: ``<output_path>.pfx`` is
    always written, ``.pem`` (chain), ``.cer`` (chain and key) and ``.pkey``
    (key) only with ``export_pem``.

    Raises:
        OSError: If the output directory is missing or a write fails
    """
    if not output_path.parent.is_dir():
        raise FileNotFoundError(
            f"Output directory does not exist: {output_path.parent}"
        )

    key_pem = private_key_to_pem(private_key)
    pfx_data = pkcs12.serialize_key_and_certificates(
        name=friendly_name.encode("utf-8"),
        key=private_key,
        cert=certificate,
        cas=chain or None,
        encryption_algorithm=serialization.BestAvailableEncryption(
            password.encode("utf-8")
        ),
    )

    pfx_path = output_path.with_name(output_path.name + PFX_SUFFIX)
    _write_private(pfx_path, pfx_data)
    logger.info(f"Certificate bundle written to {pfx_path}")

    bundle = CertificateBundle(
        pfx_path=pfx_path,
        password=password,
        private_key_pem=key_pem,
        certificate=certificate,
        chain=list(chain),
    )

    if export_pem:
        chain_path = output_path.with_name(output_path.name + CHAIN_SUFFIX)
        chain_path.write_bytes(bundle.fullchain_pem)

        chain_key_path = output_path.with_name(
            output_path.name + CHAIN_WITH_KEY_SUFFIX
        )
        _write_private(chain_key_path, bundle.fullchain_pem + key_pem)

        key_path = output_path.with_name(output_path.name + KEY_SUFFIX)
        _write_private(key_path, key_pem)

        bundle.pem_paths = [chain_path, chain_key_path, key_path]
        logger.info(f"PEM exports written next to {pfx_path}")

    return bundle
