"""
Challenge proof provider contracts and the challenge mode variant.

An HTTP provider publishes ``token -> key authorization`` and removes it
again; a DNS provider publishes a TXT record and leaves it in place.
Exactly one provider is active per run, wrapped in a ``ChallengeMode``.
"""

import abc
from dataclasses import dataclass

DNS_CHALLENGE_PREFIX = "_acme-challenge."
DNS_RECORD_TTL = 5


class HttpChallengeProvider(abc.ABC):
    """Publishes HTTP-01 key authorizations."""

    @abc.abstractmethod
    def prepare_challenge_for_validation(self, token: str, key_authz: str) -> bool:
        """Make ``key_authz`` reachable for ``token``; False on failure."""

    @abc.abstractmethod
    def cleanup_challenge_after_validation(self, token: str) -> None:
        """Withdraw the proof for ``token``; never raises."""

    @abc.abstractmethod
    def end_all_challenge_validations(self) -> None:
        """Release everything the provider set up; never raises."""


class DnsChallengeProvider(abc.ABC):
    """Publishes DNS-01 TXT records.

    Records are left in place after validation: removal would race the
    same propagation delay that publication has to wait for.
    """

    @abc.abstractmethod
    def prepare_challenge_for_validation(self, name: str, value: str) -> bool:
        """Create or replace the TXT record ``name``; False on failure."""


@dataclass(frozen=True)
class HttpChallengeMode:
    provider: HttpChallengeProvider
    challenge_type: str = "http-01"


@dataclass(frozen=True)
class DnsChallengeMode:
    provider: DnsChallengeProvider
    challenge_type: str = "dns-01"


ChallengeMode = HttpChallengeMode | DnsChallengeMode


def dns_record_name(domain: str) -> str:
    """TXT record name for ``domain``, wildcard marker stripped."""
    if domain.startswith("*."):
        domain = domain[2:]
    return DNS_CHALLENGE_PREFIX + domain


def quote_txt(value: str) -> str:
    return f'"{value}"'
