"""
Top-level enrollment and revocation flows.

Each flow returns a ``Result`` whose ``original_exit_code`` tells calling
automation what happened: nothing to do, a usage problem, a failed
validation, a failed retrieval, and so on.
"""

import logging
from collections.abc import Callable
from typing import Any

from .certstore import LocalCertificateStore
from .challenge.base import ChallengeMode, HttpChallengeMode
from .challenge.factory import build_challenge_mode
from .config import Config, flatten_config
from .hooks import run_post_issuance_script
from .options import AgentOptions, validate_options
from .orchestrator import (
    AccountContext,
    CertificateOrderOrchestrator,
    OrchestratorSettings,
)
from .records import delete_record, load_record, save_record
from .renewal import needs_renewal
from .types import (
    Error,
    ExitCode,
    ProviderUnavailableError,
    Result,
    Success,
    UsageError,
)
from .utils import domains_to_friendly_name, domains_to_host_id, format_exception_chain

logger = logging.getLogger(__name__)

OrchestratorFactory = Callable[
    [AccountContext, OrchestratorSettings], CertificateOrderOrchestrator
]

SECRET_KEYS = (
    "acme.account_key",
    "certificate.pfx_password",
    "dns.server_key",
    "dns.server_password",
)


def account_from_options(options: AgentOptions) -> AccountContext:
    return AccountContext(
        directory_url=options.service_uri,
        email=options.email,
        key_pem=options.account_key,
        registered=options.registered,
    )


def settings_from_options(options: AgentOptions) -> OrchestratorSettings:
    return OrchestratorSettings(
        poll_interval=options.poll_interval,
        poll_attempts=options.poll_attempts,
        dns_propagation_delay=options.dns_propagation_delay,
        network_timeout=options.network_timeout,
        finalize_timeout=options.finalize_timeout,
    )


def _save_account(config: Config, account: AccountContext) -> None:
    config.write_str("acme.account_key", account.key_pem)
    config.write_bool("acme.registered", account.registered)


def _with_exit_code(result: Error, code: ExitCode) -> Error:
    result.original_exit_code = code
    return result


def run_enrollment(
    options: AgentOptions,
    config: Config,
    orchestrator_factory: OrchestratorFactory = CertificateOrderOrchestrator,
    force: bool = False,
) -> Result:
    """Issue or renew the certificate of one profile when it is due.

    Args:
        options: Resolved options for the profile
        config: Store receiving the account state and issuance record
        orchestrator_factory: Builds the orchestrator (replaced in tests)
        force: Skip the renewal window check
    """
    error = validate_options(options)
    if error is not None:
        return error

    domains = options.domains
    host_id = domains_to_host_id(domains)
    record = load_record(config, host_id)
    if not force and not needs_renewal(record.expiration_date, options.renewal_days):
        message = (
            f"Certificate for {', '.join(domains)} expires "
            f"{record.expiration_date}, outside the {options.renewal_days} day "
            f"renewal window"
        )
        logger.info(message)
        return Success(message=message, original_exit_code=ExitCode.NOTHING_TO_DO)

    try:
        mode = build_challenge_mode(options)
    except (UsageError, ProviderUnavailableError, OSError) as e:
        return Error(
            error=f"Cannot set up challenge validation: {format_exception_chain(e)}",
            exception=e,
            original_exit_code=ExitCode.MISSING_HTTP_DNS,
        )

    account = account_from_options(options)
    orchestrator = orchestrator_factory(account, settings_from_options(options))
    try:
        return _issue(options, config, orchestrator, mode, host_id)
    finally:
        _save_account(config, account)


def _issue(
    options: AgentOptions,
    config: Config,
    orchestrator: CertificateOrderOrchestrator,
    mode: ChallengeMode,
    host_id: str,
) -> Result:
    domains = options.domains

    try:
        if not orchestrator.account.registered:
            result = orchestrator.register_account()
            if isinstance(result, Error):
                return _with_exit_code(result, ExitCode.REGISTRATION_FAILED)

        result = orchestrator.register_new_order_and_verify(domains, mode)
        if isinstance(result, Error):
            return _with_exit_code(result, ExitCode.VALIDATION_FAILED)
    finally:
        if isinstance(mode, HttpChallengeMode):
            mode.provider.end_all_challenge_validations()

    output_path = options.output_path
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        return Error(
            error=f"Cannot create output directory {output_path.parent}: {e}",
            exception=e,
            original_exit_code=ExitCode.RETRIEVAL_FAILED,
        )

    result = orchestrator.retrieve_certificate(
        domains,
        output_path,
        domains_to_friendly_name(domains),
        export_pem=options.export_pem,
        password=options.pfx_password,
    )
    if isinstance(result, Error):
        return _with_exit_code(result, ExitCode.RETRIEVAL_FAILED)

    bundle = result.data
    if options.install_enabled:
        try:
            LocalCertificateStore(options.local_store_dir).add(bundle)
        except OSError as e:
            return Error(
                error=f"Certificate issued but could not be installed: {e}",
                exception=e,
                recovery_suggestions=f"The bundle is kept at {bundle.pfx_path}",
                original_exit_code=ExitCode.ERROR,
            )

    # No record until the certificate is installed
    issued = save_record(config, host_id, bundle.certificate)
    config.write_int("certificate.renewal_days", options.renewal_days)

    if options.hook_script:
        if not run_post_issuance_script(
            options.hook_script,
            bundle.pfx_path,
            bundle.password,
            timeout=options.hook_timeout,
        ):
            logger.warning("Post-issuance script failed, see the log for details")

    if not options.export_pem:
        try:
            bundle.pfx_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not delete {bundle.pfx_path}: {e}")

    return Success(
        message=(
            f"Certificate for {', '.join(domains)} issued, serial {issued.serial}, "
            f"expires {issued.expiration_date}"
        ),
        data=bundle,
        original_exit_code=ExitCode.SUCCESS,
    )


def run_revocation(
    options: AgentOptions,
    config: Config,
    reason: int,
    orchestrator_factory: OrchestratorFactory = CertificateOrderOrchestrator,
) -> Result:
    """Revoke the certificate last issued for the profile's domains.

    The certificate is looked up by its recorded serial in the local store;
    without it no call is made to the CA.
    """
    error = validate_options(options, revoke_reason=reason)
    if error is not None:
        return error

    host_id = domains_to_host_id(options.domains)
    serial = load_record(config, host_id).serial
    if not serial:
        return Error(
            error=f"No issued certificate recorded for {', '.join(options.domains)}",
            original_exit_code=ExitCode.REVOCATION_FAILED,
        )

    store = LocalCertificateStore(options.local_store_dir)
    certificate = store.find_by_serial(serial)
    if certificate is None:
        return Error(
            error=f"Certificate {serial} not found in {store.store_dir}",
            original_exit_code=ExitCode.REVOCATION_FAILED,
        )

    account = account_from_options(options)
    orchestrator = orchestrator_factory(account, settings_from_options(options))
    try:
        result = orchestrator.revoke_certificate(certificate, reason)
    finally:
        _save_account(config, account)

    if isinstance(result, Error):
        return _with_exit_code(result, ExitCode.REVOCATION_FAILED)

    delete_record(config, host_id)
    store.remove(serial)
    return Success(
        message=f"Certificate {serial} revoked and removed",
        original_exit_code=ExitCode.SUCCESS,
    )


def show_profile(config: Config) -> dict[str, Any]:
    """Flattened profile contents with secrets masked."""
    flat = flatten_config(config.get_all())
    for key in SECRET_KEYS:
        if flat.get(key):
            flat[key] = "********"
    return flat


def reset_profile(config: Config) -> Success:
    """Forget everything stored for the profile."""
    config.remove()
    logger.info(f"Configuration for {config.name} removed")
    return Success(message=f"Configuration for {config.name} reset")
