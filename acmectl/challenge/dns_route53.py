"""DNS-01 provider for AWS Route 53 hosted zones."""

import logging
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..types import ProviderUnavailableError
from .base import DNS_RECORD_TTL, DnsChallengeProvider, quote_txt

logger = logging.getLogger(__name__)


def _fqdn(name: str) -> str:
    return name if name.endswith(".") else name + "."


class Route53DnsProvider(DnsChallengeProvider):
    """Replaces the TXT record in a Route 53 hosted zone.

    The zone is either given by id or found by walking the label suffixes
    of the record name until a hosted zone with that exact name exists.
    Credentials come from the usual boto3 chain unless given explicitly.
    """

    def __init__(
        self,
        zone_id: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        client: Any = None,
    ):
        self.zone_id = zone_id
        if client is None:
            client = boto3.client(
                "route53",
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
            )
        self.client = client

    def _hosted_zones(self) -> list[dict[str, Any]]:
        zones: list[dict[str, Any]] = []
        paginator = self.client.get_paginator("list_hosted_zones")
        for page in paginator.paginate():
            zones.extend(page.get("HostedZones", []))
        return zones

    def find_zone_id(self, name: str) -> str:
        """Resolve the hosted zone holding ``name``.

        Raises:
            ProviderUnavailableError: If no hosted zone matches
        """
        if self.zone_id:
            zone = self.client.get_hosted_zone(Id=self.zone_id)["HostedZone"]
            return zone["Id"]

        zones = {z["Name"].lower(): z["Id"] for z in self._hosted_zones()}
        labels = _fqdn(name).lower().split(".")
        # Skip the record label itself, stop before the root
        for i in range(1, len(labels) - 1):
            candidate = ".".join(labels[i:])
            if candidate in zones:
                logger.debug(f"Using hosted zone {candidate} for {name}")
                return zones[candidate]

        raise ProviderUnavailableError(f"No Route 53 hosted zone found for {name}")

    def _existing_txt(self, zone_id: str, name: str) -> dict[str, Any] | None:
        response = self.client.list_resource_record_sets(
            HostedZoneId=zone_id,
            StartRecordName=name,
            StartRecordType="TXT",
            MaxItems="1",
        )
        for record_set in response.get("ResourceRecordSets", []):
            if (
                record_set.get("Type") == "TXT"
                and record_set.get("Name", "").lower() == _fqdn(name).lower()
            ):
                return record_set
        return None

    def prepare_challenge_for_validation(self, name: str, value: str) -> bool:
        try:
            zone_id = self.find_zone_id(name)

            existing = self._existing_txt(zone_id, name)
            if existing is not None:
                self.client.change_resource_record_sets(
                    HostedZoneId=zone_id,
                    ChangeBatch={
                        "Changes": [{"Action": "DELETE", "ResourceRecordSet": existing}]
                    },
                )
                logger.debug(f"Deleted stale TXT record {name}")

            self.client.change_resource_record_sets(
                HostedZoneId=zone_id,
                ChangeBatch={
                    "Comment": "ACME DNS-01 challenge",
                    "Changes": [
                        {
                            "Action": "UPSERT",
                            "ResourceRecordSet": {
                                "Name": _fqdn(name),
                                "Type": "TXT",
                                "TTL": DNS_RECORD_TTL,
                                "ResourceRecords": [{"Value": quote_txt(value)}],
                            },
                        }
                    ],
                },
            )
        except ProviderUnavailableError as e:
            logger.error(str(e))
            return False
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Route 53 update of {name} failed: {e}")
            return False

        logger.info(f"TXT record {name} upserted in Route 53 zone {zone_id}")
        return True
