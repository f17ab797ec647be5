"""
Agent options and certificate profile resolution.

``AgentOptions`` is the one configuration value passed to the workflow,
the orchestrator and the providers. It is built from a profile's stored
config plus command-line overrides; nothing reads configuration from
ambient state.
"""

import dataclasses
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .config import (
    LETSENCRYPT_PRODUCTION,
    PROFILE_NAME_PATTERN,
    Config,
    get_config_dir,
)
from .types import MAX_REVOKE_REASON, Error, ExitCode, Result, Success
from .utils import MIN_PASSWORD_LENGTH, normalize_domains

logger = logging.getLogger(__name__)

# AgentOptions field -> persisted config key
OPTION_KEYS: dict[str, str] = {
    "service_uri": "acme.service_uri",
    "email": "acme.account_email",
    "account_key": "acme.account_key",
    "registered": "acme.registered",
    "domains": "certificate.domains",
    "output_dir": "certificate.output_dir",
    "export_pem": "certificate.export_pem",
    "pfx_password": "certificate.pfx_password",
    "renewal_days": "certificate.renewal_days",
    "webroot": "http.webroot",
    "standalone": "http.standalone",
    "listen_port": "http.listen_port",
    "listen_host": "http.listen_host",
    "dns_validator": "dns.validator",
    "dns_server_url": "dns.server_url",
    "dns_server_host": "dns.server_host",
    "dns_server_port": "dns.server_port",
    "dns_server_user": "dns.server_user",
    "dns_server_key": "dns.server_key",
    "dns_server_password": "dns.server_password",
    "dns_server_subdomain": "dns.server_subdomain",
    "dns_server_zone": "dns.server_zone",
    "dns_tsig_algorithm": "dns.tsig_algorithm",
    "dns_script_file": "dns.script_file",
    "dns_script_timeout": "dns.script_timeout",
    "poll_interval": "validation.poll_interval_seconds",
    "poll_attempts": "validation.poll_attempts",
    "dns_propagation_delay": "validation.dns_propagation_seconds",
    "network_timeout": "validation.network_timeout_seconds",
    "finalize_timeout": "validation.finalize_timeout_seconds",
    "install_enabled": "install.enabled",
    "store_dir": "install.store_dir",
    "hook_script": "install.script_file",
    "hook_timeout": "install.script_timeout",
}

# Changing any of these means a different ACME account
ACCOUNT_FIELDS = ("service_uri", "email", "account_key")


@dataclass
class AgentOptions:
    """Resolved options for one certificate profile."""

    name: str
    config_dir: Path
    domains: list[str] = field(default_factory=list)
    service_uri: str = LETSENCRYPT_PRODUCTION
    email: str | None = None
    account_key: str | None = None
    registered: bool = False
    output_dir: str | None = None
    export_pem: bool = False
    pfx_password: str | None = None
    renewal_days: int = 30
    webroot: str | None = None
    standalone: bool = False
    listen_port: int = 80
    listen_host: str = "0.0.0.0"
    dns_validator: str | None = None
    dns_server_url: str | None = None
    dns_server_host: str | None = None
    dns_server_port: int = 53
    dns_server_user: str | None = None
    dns_server_key: str | None = None
    dns_server_password: str | None = None
    dns_server_subdomain: str | None = None
    dns_server_zone: str | None = None
    dns_tsig_algorithm: str = "hmac-sha256"
    dns_script_file: str | None = None
    dns_script_timeout: int = 60
    poll_interval: float = 2.0
    poll_attempts: int = 10
    dns_propagation_delay: float = 5.0
    network_timeout: int = 45
    finalize_timeout: int = 90
    install_enabled: bool = True
    store_dir: str | None = None
    hook_script: str | None = None
    hook_timeout: int = 300

    @property
    def output_path(self) -> Path:
        """Bundle path without suffix."""
        base = Path(self.output_dir) if self.output_dir else self.config_dir / "certs"
        return base / self.name

    @property
    def local_store_dir(self) -> Path:
        return Path(self.store_dir) if self.store_dir else self.config_dir / "store"


def load_options(config: Config) -> AgentOptions:
    """Build options from a stored profile."""
    values: dict[str, Any] = {}
    for option, key in OPTION_KEYS.items():
        value = config.get(key)
        if value is not None:
            values[option] = value
    values["domains"] = normalize_domains(config.read_str_list("certificate.domains"))
    values["registered"] = config.read_bool("acme.registered")
    return AgentOptions(name=config.name, config_dir=config.config_dir, **values)


def save_options(config: Config, options: AgentOptions) -> None:
    """Persist every option back into the profile."""
    for option, key in OPTION_KEYS.items():
        config.set(key, getattr(options, option))


def apply_overrides(options: AgentOptions, overrides: dict[str, Any]) -> AgentOptions:
    """Merge command-line values into ``options``.

    ``None`` means "not given". A change of CA, email or account key
    drops the registered flag so the account is registered again.
    """
    changes = {
        k: v for k, v in overrides.items() if v is not None and k in OPTION_KEYS
    }
    if "domains" in changes:
        changes["domains"] = normalize_domains(changes["domains"])

    account_changed = [
        k for k in ACCOUNT_FIELDS if k in changes and changes[k] != getattr(options, k)
    ]
    if account_changed and options.registered:
        logger.info(
            f"ACME account settings changed ({', '.join(account_changed)}), "
            f"the account will be registered again"
        )
        changes["registered"] = False

    return dataclasses.replace(options, **changes)


def default_profile_name(domains: list[str]) -> str | None:
    if not domains:
        return None
    primary = domains[0]
    return primary[2:] if primary.startswith("*.") else primary


def resolve_profile(
    name: str | None,
    domains: list[str],
    base_dir: Path | None = None,
) -> Result:
    """Open the profile for ``name`` and reconcile its domain list.

    Returns:
        Success with the ``Config`` as data, or Error carrying the exit code
        for a missing name, a bad name or a changed domain list
    """
    domains = normalize_domains(domains)
    profile = name or default_profile_name(domains)
    if not profile:
        return Error(
            error="No domain given and no certificate name to look one up",
            recovery_suggestions="Pass --domain at least once, or --name",
            original_exit_code=ExitCode.NO_DOMAINS,
        )
    if not PROFILE_NAME_PATTERN.match(profile):
        return Error(
            error=f"Invalid certificate name: {profile}",
            recovery_suggestions="Use letters, digits, dots, dashes and underscores",
            original_exit_code=ExitCode.BAD_CERTIFICATE_NAME,
        )

    try:
        config = Config(profile, base_dir=base_dir or get_config_dir())
    except ValueError as e:
        return Error(
            error=f"Cannot open configuration for {profile}: {e}",
            exception=e,
            original_exit_code=ExitCode.CONFIG_FAILED,
        )

    stored = normalize_domains(config.read_str_list("certificate.domains"))
    if not stored and not domains:
        return Error(
            error=f"No domains configured for certificate {profile}",
            recovery_suggestions="Pass --domain at least once",
            original_exit_code=ExitCode.NO_DOMAINS,
        )
    if stored and domains and set(stored) != set(domains):
        return Error(
            error=(
                f"Domains for certificate {profile} changed from "
                f"{', '.join(stored)} to {', '.join(domains)}"
            ),
            recovery_suggestions=(
                "Use a new --name for the new domain set, or --reset this one"
            ),
            original_exit_code=ExitCode.DOMAIN_CONFLICT,
        )
    if not stored:
        config.write_str_list("certificate.domains", domains)

    return Success(data=config)


def validate_options(
    options: AgentOptions, revoke_reason: int | None = None
) -> Error | None:
    """Check options before any network activity.

    Returns:
        An Error with the matching exit code, or None when usable
    """
    if revoke_reason is not None:
        if not 0 <= revoke_reason <= MAX_REVOKE_REASON:
            return Error(
                error=f"Revocation reason must be 0 to {MAX_REVOKE_REASON}, "
                f"got {revoke_reason}",
                original_exit_code=ExitCode.REVOKE_REASON,
            )
        return None

    if not options.email or "@" not in options.email or len(options.email) < 5:
        return Error(
            error="A valid account email is required",
            recovery_suggestions="Pass --email",
            original_exit_code=ExitCode.NO_EMAIL,
        )
    if options.pfx_password and len(options.pfx_password) < MIN_PASSWORD_LENGTH:
        return Error(
            error=f"Certificate password must be at least "
            f"{MIN_PASSWORD_LENGTH} characters",
            original_exit_code=ExitCode.INCORRECT_PARAMETER,
        )
    if not (options.dns_validator or options.standalone or options.webroot):
        return Error(
            error="Specify either an HTTP or a DNS validation method",
            recovery_suggestions="Pass --webroot, --standalone or --dns-type",
            original_exit_code=ExitCode.MISSING_HTTP_DNS,
        )
    return None
