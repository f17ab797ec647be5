"""Tests for the local certificate store."""

from pathlib import Path

from acmectl.cert_utils import write_bundle
from acmectl.certstore import LocalCertificateStore
from tests.conftest import CertificateFactory, SigningAuthority


class TestLocalCertificateStore:
    """Test installing, finding and removing certificates."""

    def test_add_find_remove(
        self,
        tmp_path: Path,
        certificate_factory: CertificateFactory,
        signing_authority: SigningAuthority,
    ) -> None:
        certificate, key = certificate_factory(serial=0xBEEF)
        bundle = write_bundle(
            tmp_path / "example.com",
            key,
            certificate,
            [signing_authority.certificate],
            "examplecom000000",
            "0123456789abcdef",
        )
        store = LocalCertificateStore(tmp_path / "store")

        serial = store.add(bundle)

        assert serial == "BEEF"
        assert (tmp_path / "store" / "BEEF.pem").read_bytes() == bundle.fullchain_pem
        assert (tmp_path / "store" / "BEEF.key").read_bytes() == bundle.private_key_pem
        assert store.find_by_serial("beef") == certificate

        assert store.remove("BEEF") is True
        assert store.find_by_serial("BEEF") is None
        assert store.remove("BEEF") is False

    def test_unknown_serial(self, tmp_path: Path) -> None:
        assert LocalCertificateStore(tmp_path).find_by_serial("ABC123") is None

    def test_unparseable_entry(self, tmp_path: Path) -> None:
        (tmp_path / "ABC123.pem").write_text("not a certificate")
        assert LocalCertificateStore(tmp_path).find_by_serial("ABC123") is None
