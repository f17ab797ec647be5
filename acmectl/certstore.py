"""
Local certificate store.

Issued certificates are installed as ``<SERIAL>.pem`` (leaf first, then
the chain) with the key beside them as ``<SERIAL>.key``. Revocation looks
certificates up here by the serial recorded at issuance.
"""

import logging
import os
from pathlib import Path

from cryptography import x509

from .cert_utils import CertificateBundle
from .records import format_serial

logger = logging.getLogger(__name__)


class LocalCertificateStore:
    """Directory of installed certificates keyed by upper-case hex serial."""

    def __init__(self, store_dir: str | Path):
        self.store_dir = Path(store_dir)

    def _paths(self, serial: str) -> tuple[Path, Path]:
        serial = serial.upper()
        return self.store_dir / f"{serial}.pem", self.store_dir / f"{serial}.key"

    def add(self, bundle: CertificateBundle) -> str:
        """Install the bundle's certificate and key; returns the serial.

        Raises:
            OSError: If the store cannot be written
        """
        self.store_dir.mkdir(parents=True, exist_ok=True)
        serial = format_serial(bundle.certificate)
        cert_path, key_path = self._paths(serial)

        cert_path.write_bytes(bundle.fullchain_pem)
        key_path.write_bytes(bundle.private_key_pem)
        os.chmod(key_path, 0o600)

        logger.info(f"Installed certificate {serial} into {self.store_dir}")
        return serial

    def find_by_serial(self, serial: str) -> x509.Certificate | None:
        cert_path, _ = self._paths(serial)
        try:
            return x509.load_pem_x509_certificate(cert_path.read_bytes())
        except FileNotFoundError:
            return None
        except ValueError as e:
            logger.warning(f"Stored certificate {cert_path} cannot be parsed: {e}")
            return None

    def remove(self, serial: str) -> bool:
        """Delete an installed certificate; False if nothing was there."""
        removed = False
        for path in self._paths(serial):
            try:
                path.unlink()
                removed = True
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Could not delete {path}: {e}")
        return removed
