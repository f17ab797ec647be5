"""
Builds the active challenge mode from agent options.

Exactly one provider is active per run. DNS wins when both DNS and HTTP
are configured; neither being configured is a usage error.
"""

import logging

from ..options import AgentOptions
from ..types import UsageError
from .base import (
    ChallengeMode,
    DnsChallengeMode,
    DnsChallengeProvider,
    HttpChallengeMode,
)
from .dns_acme import AcmeDnsProvider
from .dns_rfc2136 import DynamicUpdateDnsProvider
from .dns_route53 import Route53DnsProvider
from .dns_script import ScriptDnsProvider
from .dns_windows import WindowsDnsProvider
from .http_file import FileChallengeProvider
from .http_server import StandaloneHttpChallengeProvider

logger = logging.getLogger(__name__)

DNS_VALIDATORS = ("acme-dns", "rfc2136", "route53", "win-dns", "script")


def _require(value: str | None, option: str, validator: str) -> str:
    if not value:
        raise UsageError(f"DNS validator {validator} needs {option}")
    return value


def build_dns_provider(options: AgentOptions) -> DnsChallengeProvider:
    """Create the DNS provider named by ``options.dns_validator``.

    Raises:
        UsageError: If the validator is unknown or misses a setting
    """
    validator = options.dns_validator
    if validator == "acme-dns":
        return AcmeDnsProvider(
            update_url=_require(options.dns_server_url, "--dns-url", validator),
            user=_require(options.dns_server_user, "--dns-user", validator),
            key=_require(options.dns_server_key, "--dns-key", validator),
            subdomain=_require(
                options.dns_server_subdomain, "--dns-subdomain", validator
            ),
            timeout=options.network_timeout,
        )
    if validator == "rfc2136":
        return DynamicUpdateDnsProvider(
            server=_require(options.dns_server_host, "--dns-host", validator),
            port=options.dns_server_port,
            zone=options.dns_server_zone,
            tsig_name=options.dns_server_user,
            tsig_secret=options.dns_server_key,
            tsig_algorithm=options.dns_tsig_algorithm,
            timeout=options.network_timeout,
        )
    if validator == "route53":
        return Route53DnsProvider(
            zone_id=options.dns_server_zone,
            access_key_id=options.dns_server_user,
            secret_access_key=options.dns_server_key,
        )
    if validator == "win-dns":
        return WindowsDnsProvider(
            server=options.dns_server_host,
            user=options.dns_server_user,
            password=options.dns_server_password,
            zone=options.dns_server_zone,
        )
    if validator == "script":
        return ScriptDnsProvider(
            _require(options.dns_script_file, "--dns-script", validator),
            timeout=options.dns_script_timeout,
        )
    raise UsageError(
        f"Unknown DNS validator {validator!r}, expected one of {DNS_VALIDATORS}"
    )


def build_challenge_mode(options: AgentOptions) -> ChallengeMode:
    """Pick and construct the one provider for this run.

    Raises:
        UsageError: If no validation method is configured or DNS settings
            are incomplete
        ProviderUnavailableError: If the embedded listener cannot bind
        OSError: If the webroot challenge directory cannot be created
    """
    http_configured = options.standalone or bool(options.webroot)

    if options.dns_validator:
        if http_configured:
            logger.warning(
                "Both HTTP and DNS validation are configured, using DNS "
                f"({options.dns_validator})"
            )
        return DnsChallengeMode(build_dns_provider(options))

    if options.standalone:
        return HttpChallengeMode(
            StandaloneHttpChallengeProvider(
                port=options.listen_port, host=options.listen_host
            )
        )

    if options.webroot:
        return HttpChallengeMode(FileChallengeProvider(options.webroot))

    raise UsageError("Specify either an HTTP or a DNS validation method")
