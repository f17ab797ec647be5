"""
DNS-01 provider for a Windows DNS server, driven over WMI.

The ``wmi`` package only exists on Windows, so it is imported when the
provider first connects rather than at module import.
"""

import logging
import platform
from typing import Any

from .base import DnsChallengeProvider

logger = logging.getLogger(__name__)

WMI_NAMESPACE = r"root\MicrosoftDNS"


def infer_zone(owner_name: str) -> str:
    """Guess the zone from the last two labels of ``owner_name``."""
    labels = owner_name.rstrip(".").split(".")
    return ".".join(labels[-2:])


class WindowsDnsProvider(DnsChallengeProvider):
    """Creates or modifies ``MicrosoftDNS_TXTType`` records.

    Args:
        server: DNS server to manage, the local machine when None
        user: Optional account for the WMI connection
        password: Password for ``user``
        zone: Zone holding the records; inferred from the owner name when None
    """

    def __init__(
        self,
        server: str | None = None,
        user: str | None = None,
        password: str | None = None,
        zone: str | None = None,
    ):
        self.server = server
        self.user = user
        self.password = password
        self.zone = zone

    def _connect(self) -> Any:
        import wmi

        kwargs: dict[str, Any] = {"namespace": WMI_NAMESPACE}
        if self.server:
            kwargs["computer"] = self.server
        if self.user:
            kwargs["user"] = self.user
            kwargs["password"] = self.password or ""
        return wmi.WMI(**kwargs)

    def prepare_challenge_for_validation(self, name: str, value: str) -> bool:
        try:
            connection = self._connect()
            records = connection.MicrosoftDNS_TXTType(OwnerName=name)
            if records:
                records[0].Modify(DescriptiveText=value)
                logger.info(f"Modified TXT record {name}")
                return True

            zone = self.zone or infer_zone(name)
            connection.MicrosoftDNS_TXTType.CreateInstanceFromPropertyData(
                DnsServerName=self.server or platform.node(),
                ContainerName=zone,
                OwnerName=name,
                DescriptiveText=value,
            )
        # wmi raises its own x_wmi and pywin32 com_error types, neither of
        # which is importable off Windows
        except Exception as e:
            logger.error(f"Windows DNS update of {name} failed: {e}")
            return False

        logger.info(f"Created TXT record {name} in zone {zone}")
        return True
