"""DNS-01 provider for an acme-dns server (https://github.com/joohoi/acme-dns)."""

import logging

import requests

from .base import DnsChallengeProvider

logger = logging.getLogger(__name__)


class AcmeDnsProvider(DnsChallengeProvider):
    """Pushes TXT values through the acme-dns ``update`` endpoint.

    The ``_acme-challenge`` name of each domain is expected to be a CNAME
    onto the acme-dns subdomain, so the record name is not sent.
    """

    def __init__(
        self,
        update_url: str,
        user: str,
        key: str,
        subdomain: str,
        timeout: float = 30.0,
    ):
        self.update_url = update_url
        self.user = user
        self.key = key
        self.subdomain = subdomain
        self.timeout = timeout

    def prepare_challenge_for_validation(self, name: str, value: str) -> bool:
        try:
            response = requests.post(
                self.update_url,
                json={"subdomain": self.subdomain, "txt": value},
                headers={"X-Api-User": self.user, "X-Api-Key": self.key},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"acme-dns update for {name} failed: {e}")
            return False

        if response.status_code != 200:
            logger.error(
                f"acme-dns update for {name} rejected with HTTP "
                f"{response.status_code}: {response.text[:200]}"
            )
            return False

        logger.info(f"acme-dns TXT value updated for {name}")
        return True
