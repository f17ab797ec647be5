"""
DNS-01 provider using RFC 2136 dynamic updates.

Works against any authoritative server that accepts dynamic updates
(BIND, Knot, PowerDNS, Windows DNS with unsecured updates), optionally
signed with a TSIG key.
"""

import logging

import dns.exception
import dns.inet
import dns.message
import dns.name
import dns.query
import dns.rcode
import dns.rdatatype
import dns.resolver
import dns.tsigkeyring
import dns.update

from ..types import UsageError
from .base import DNS_RECORD_TTL, DnsChallengeProvider, quote_txt

logger = logging.getLogger(__name__)


class DynamicUpdateDnsProvider(DnsChallengeProvider):
    """Replaces the TXT record through dynamic updates.

    Args:
        server: Name or address of the primary server for the zone
        port: DNS port on the server
        zone: Zone to update; looked up from the record name when None
        tsig_name: TSIG key name, updates are unsigned when None
        tsig_secret: Base64 TSIG secret
        tsig_algorithm: TSIG algorithm name (e.g. ``hmac-sha256``)
        timeout: Per-query timeout in seconds
    """

    def __init__(
        self,
        server: str,
        port: int = 53,
        zone: str | None = None,
        tsig_name: str | None = None,
        tsig_secret: str | None = None,
        tsig_algorithm: str = "hmac-sha256",
        timeout: float = 10.0,
    ):
        self.server = server
        self.port = port
        self.zone = zone
        self.timeout = timeout
        self.tsig_algorithm = tsig_algorithm
        self._keyring = None
        self._keyname = None
        if tsig_name and tsig_secret:
            try:
                self._keyring = dns.tsigkeyring.from_text(
                    {tsig_name: (tsig_algorithm, tsig_secret)}
                )
                self._keyname = dns.name.from_text(tsig_name)
            except (ValueError, dns.exception.DNSException) as e:
                raise UsageError(f"Invalid TSIG key {tsig_name}: {e}") from e

    def _server_address(self) -> str:
        if dns.inet.is_address(self.server):
            return self.server
        answer = dns.resolver.resolve(self.server, "A", lifetime=self.timeout)
        return answer[0].address

    def _zone_for(self, name: dns.name.Name) -> dns.name.Name:
        if self.zone:
            return dns.name.from_text(self.zone)
        return dns.resolver.zone_for_name(name)

    def _new_update(self, zone: dns.name.Name) -> dns.update.UpdateMessage:
        return dns.update.UpdateMessage(
            zone, keyring=self._keyring, keyname=self._keyname
        )

    def _send(self, update: dns.update.UpdateMessage, address: str) -> None:
        response = dns.query.tcp(update, address, timeout=self.timeout, port=self.port)
        rcode = response.rcode()
        if rcode != dns.rcode.NOERROR:
            raise dns.exception.DNSException(
                f"server answered {dns.rcode.to_text(rcode)}"
            )

    def _has_txt(self, name: dns.name.Name, address: str) -> bool:
        query = dns.message.make_query(name, dns.rdatatype.TXT)
        response = dns.query.tcp(query, address, timeout=self.timeout, port=self.port)
        return any(
            rrset.rdtype == dns.rdatatype.TXT and rrset.name == name
            for rrset in response.answer
        )

    def prepare_challenge_for_validation(self, name: str, value: str) -> bool:
        try:
            record = dns.name.from_text(name)
            address = self._server_address()
            zone = self._zone_for(record)

            if self._has_txt(record, address):
                delete = self._new_update(zone)
                delete.delete(record, dns.rdatatype.TXT)
                self._send(delete, address)
                logger.debug(f"Deleted stale TXT record {name}")

            add = self._new_update(zone)
            add.add(record, DNS_RECORD_TTL, dns.rdatatype.TXT, quote_txt(value))
            self._send(add, address)
        except (dns.exception.DNSException, OSError) as e:
            logger.error(f"Dynamic DNS update of {name} on {self.server} failed: {e}")
            return False

        logger.info(f"TXT record {name} published on {self.server}")
        return True
