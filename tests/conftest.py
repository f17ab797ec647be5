"""
Fixtures for pytest.

Certificates used by the tests are signed by a throwaway CA built with
the cryptography package, so no test talks to a real ACME server.
"""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from acmectl.config import Config
from acmectl.options import AgentOptions

CertificateFactory = Callable[..., tuple[x509.Certificate, rsa.RSAPrivateKey]]


class SigningAuthority:
    """Minimal CA issuing leaf certificates for the tests."""

    def __init__(self) -> None:
        self.key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "acmectl test CA")])
        now = datetime.now(timezone.utc)
        self.certificate = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(self.key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - timedelta(days=1))
            .not_valid_after(now + timedelta(days=3650))
            .add_extension(x509.BasicConstraints(ca=True, path_length=None), True)
            .sign(self.key, hashes.SHA256())
        )

    def issue(
        self,
        subject: x509.Name,
        public_key: rsa.RSAPublicKey,
        domains: list[str],
        days: int = 90,
        serial: int | None = None,
    ) -> x509.Certificate:
        now = datetime.now(timezone.utc)
        return (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(self.certificate.subject)
            .public_key(public_key)
            .serial_number(serial or x509.random_serial_number())
            .not_valid_before(now - timedelta(minutes=5))
            .not_valid_after(now + timedelta(days=days))
            .add_extension(
                x509.SubjectAlternativeName([x509.DNSName(d) for d in domains]),
                critical=False,
            )
            .sign(self.key, hashes.SHA256())
        )

    def sign_csr(self, csr_pem: bytes | str, days: int = 90) -> str:
        """Issue for a CSR and return the full chain as the CA would."""
        if isinstance(csr_pem, str):
            csr_pem = csr_pem.encode("ascii")
        csr = x509.load_pem_x509_csr(csr_pem)
        san = csr.extensions.get_extension_for_class(x509.SubjectAlternativeName)
        leaf = self.issue(
            csr.subject,
            csr.public_key(),
            san.value.get_values_for_type(x509.DNSName),
            days=days,
        )
        return (
            leaf.public_bytes(serialization.Encoding.PEM)
            + self.certificate.public_bytes(serialization.Encoding.PEM)
        ).decode("ascii")


@pytest.fixture(scope="session")
def signing_authority() -> SigningAuthority:
    return SigningAuthority()


@pytest.fixture
def certificate_factory(signing_authority: SigningAuthority) -> CertificateFactory:
    """Issue a leaf certificate and return it with its private key."""

    def factory(
        domains: list[str] | None = None, days: int = 90, serial: int | None = None
    ) -> tuple[x509.Certificate, rsa.RSAPrivateKey]:
        domains = domains or ["example.com"]
        key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, domains[0])])
        certificate = signing_authority.issue(
            subject, key.public_key(), domains, days=days, serial=serial
        )
        return certificate, key

    return factory


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    return tmp_path / "config"


@pytest.fixture
def profile(config_dir: Path) -> Config:
    """A stored profile for example.com."""
    config = Config("example.com", base_dir=config_dir)
    config.write_str_list("certificate.domains", ["example.com", "www.example.com"])
    return config


@pytest.fixture
def agent_options(config_dir: Path, tmp_path: Path) -> AgentOptions:
    """Options that pass validation with a webroot challenge."""
    webroot = tmp_path / "webroot"
    webroot.mkdir()
    return AgentOptions(
        name="example.com",
        config_dir=config_dir,
        domains=["example.com", "www.example.com"],
        email="admin@example.com",
        webroot=str(webroot),
    )
