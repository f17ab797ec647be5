"""Persisted records of issued certificates, keyed by host id."""

from dataclasses import dataclass

from cryptography import x509

from .renewal import format_expiration
from .store import ConfigStore

RECORDS_SECTION = "records"


@dataclass
class IssuedCertificateRecord:
    expiration_date: str | None = None
    serial: str | None = None


def format_serial(certificate: x509.Certificate) -> str:
    """Upper-case hex serial, padded to whole bytes."""
    serial = f"{certificate.serial_number:X}"
    if len(serial) % 2:
        serial = "0" + serial
    return serial


def _key(host_id: str, field: str) -> str:
    return f"{RECORDS_SECTION}.{host_id}.{field}"


def load_record(store: ConfigStore, host_id: str) -> IssuedCertificateRecord:
    return IssuedCertificateRecord(
        expiration_date=store.read_str(_key(host_id, "expiration_date")),
        serial=store.read_str(_key(host_id, "serial")),
    )


def save_record(
    store: ConfigStore, host_id: str, certificate: x509.Certificate
) -> IssuedCertificateRecord:
    """Store expiration and serial of a freshly issued certificate."""
    record = IssuedCertificateRecord(
        expiration_date=format_expiration(certificate.not_valid_after_utc),
        serial=format_serial(certificate),
    )
    store.write_str(_key(host_id, "expiration_date"), record.expiration_date)
    store.write_str(_key(host_id, "serial"), record.serial)
    return record


def delete_record(store: ConfigStore, host_id: str) -> None:
    store.delete(_key(host_id, "expiration_date"))
    store.delete(_key(host_id, "serial"))
