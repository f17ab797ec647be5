"""
ACME certificate order orchestration.

This module drives a certificate order against an ACME CA:
1. Account registration (idempotent, the CA returns a known account)
2. Order creation and per-domain authorization
3. Challenge publication through the active proof provider, validation
   and bounded status polling
4. Finalization with a fresh key and CSR, chain download and packaging
5. Revocation

Every public operation returns a ``Result``. Failures talking to the CA
are logged with their full cause chain and returned as ``Error`` holding
one of the typed exceptions from ``acmectl.types``.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path

import acme.errors
import josepy as jose
import requests
from acme import client, messages
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from . import __version__
from .cert_utils import (
    create_csr,
    create_order_csr,
    generate_private_key,
    private_key_to_pem,
    split_fullchain,
    write_bundle,
)
from .challenge.base import (
    ChallengeMode,
    DnsChallengeMode,
    DnsChallengeProvider,
    HttpChallengeMode,
    HttpChallengeProvider,
    dns_record_name,
)
from .types import (
    MAX_REVOKE_REASON,
    AcmeCtlError,
    CertificateRetrievalError,
    ChallengeSetupError,
    ChallengeValidationError,
    Error,
    OrderCreationError,
    PrecededByError,
    RegistrationError,
    Result,
    RevocationError,
    Success,
    UnsupportedChallengeError,
    UsageError,
)
from .utils import (
    MIN_PASSWORD_LENGTH,
    format_exception_chain,
    generate_password,
    normalize_domains,
)

logger = logging.getLogger(__name__)

USER_AGENT = f"acmectl/{__version__}"

# Anything the ACME client stack raises for transport or protocol trouble
CA_ERRORS: tuple[type[Exception], ...] = (
    acme.errors.Error,
    jose.errors.Error,
    requests.RequestException,
    ValueError,
)

POLLING_STATUSES = (messages.STATUS_PENDING, messages.STATUS_PROCESSING)


def _status_name(status: messages.Status | None) -> str:
    return getattr(status, "name", str(status))


@dataclass
class AccountContext:
    """ACME account state persisted between runs."""

    directory_url: str
    email: str | None = None
    key_pem: str | None = None
    registered: bool = False


@dataclass
class OrchestratorSettings:
    """Timing and key parameters for one orchestrator."""

    poll_interval: float = 2.0
    poll_attempts: int = 10
    dns_propagation_delay: float = 5.0
    network_timeout: float = 45.0
    finalize_timeout: float = 90.0
    key_size: int = 2048


class CertificateOrderOrchestrator:
    """Drives the ACME order lifecycle for one run.

    The orchestrator is single-use per order: a successful
    ``register_new_order_and_verify`` leaves a verified order behind that
    ``retrieve_certificate`` consumes.
    """

    def __init__(
        self,
        account: AccountContext,
        settings: OrchestratorSettings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the orchestrator.

        Args:
            account: Account context; its key is generated when missing or
                unreadable, which also clears ``registered``
            settings: Poll, delay and timeout settings
            sleep: Blocking sleep used between polls
        """
        self.account = account
        self.settings = settings or OrchestratorSettings()
        self._sleep = sleep
        self._account_key = self._load_account_key()
        self._client: client.ClientV2 | None = None
        self._order: messages.OrderResource | None = None
        self._order_domains: list[str] = []

    def _load_account_key(self) -> jose.JWKRSA:
        if self.account.key_pem:
            try:
                key = serialization.load_pem_private_key(
                    self.account.key_pem.encode("ascii"), password=None
                )
            except (ValueError, TypeError, UnsupportedAlgorithm) as e:
                logger.warning(
                    f"Stored account key cannot be read, generating a new one: {e}"
                )
            else:
                if isinstance(key, rsa.RSAPrivateKey):
                    return jose.JWKRSA(key=key)
                logger.warning("Stored account key is not RSA, generating a new one")

        private_key = generate_private_key(self.settings.key_size)
        self.account.key_pem = private_key_to_pem(private_key).decode("ascii")
        self.account.registered = False
        logger.info("Generated a new ACME account key")
        return jose.JWKRSA(key=private_key)

    def _open_session(self) -> client.ClientV2:
        """Start a new protocol session bound to the account.

        Each session gets its own network object and therefore a fresh
        anti-replay nonce. The new-account call doubles as the account
        lookup: for a known key the CA answers with the existing account.
        """
        net = client.ClientNetwork(
            key=self._account_key,
            user_agent=USER_AGENT,
            timeout=self.settings.network_timeout,
        )
        new_account = messages.NewRegistration.from_data(
            email=self.account.email, terms_of_service_agreed=True
        )
        try:
            directory = client.ClientV2.get_directory(self.account.directory_url, net)
            acme_client = client.ClientV2(directory, net=net)
            try:
                acme_client.new_account(new_account)
            except acme.errors.ConflictError as e:
                logger.debug(f"ACME account already exists at {e.location}")
                acme_client.query_registration(
                    messages.RegistrationResource(
                        uri=e.location, body=messages.Registration()
                    )
                )
        except KeyError as e:
            # Directory lookups raise KeyError for entries the CA omits
            raise acme.errors.Error(f"Malformed ACME directory: {e}") from e

        self._client = acme_client
        return acme_client

    def _failure(self, summary: str, error: AcmeCtlError) -> Error:
        message = f"{summary}: {format_exception_chain(error)}"
        if isinstance(error, ChallengeValidationError) and error.detail:
            if error.detail not in message:
                message = f"{message} ({error.detail})"
        logger.error(message)
        return Error(error=message, exception=error)

    def register_account(self) -> Result:
        """Register the account with the CA, or bind to the existing one."""
        logger.info(f"Registering ACME account with {self.account.directory_url}")
        try:
            acme_client = self._open_session()
        except CA_ERRORS as e:
            error = RegistrationError("ACME account registration failed")
            error.__cause__ = e
            return self._failure("Could not register ACME account", error)

        self.account.registered = True
        terms = getattr(acme_client.directory.meta, "terms_of_service", None)
        if terms:
            logger.info(f"Terms of service of the CA: {terms}")
        logger.info("ACME account registered")
        return Success(message="ACME account registered")

    def register_new_order_and_verify(
        self, domains: list[str], mode: ChallengeMode
    ) -> Result:
        """Create an order for ``domains`` and validate every authorization.

        Args:
            domains: Domain names, primary first
            mode: Active challenge mode wrapping the proof provider

        Returns:
            Success once every authorization is valid, otherwise Error.
            Provider teardown is left to the caller either way.
        """
        domains = normalize_domains(domains)
        self._order = None
        self._order_domains = []
        if not domains:
            return self._failure(
                "Cannot create order", UsageError("No domains given")
            )

        logger.info(f"Creating ACME order for {', '.join(domains)}")
        try:
            orderr = self._create_order(domains)
            for authzr in orderr.authorizations:
                self._complete_authorization(authzr, mode)
        except OrderCreationError as e:
            return self._failure("Could not create ACME order", e)
        except AcmeCtlError as e:
            return self._failure(f"Could not validate {', '.join(domains)}", e)

        self._order = orderr
        self._order_domains = domains
        logger.info(f"All authorizations valid for {', '.join(domains)}")
        return Success(message="Domains validated", data=orderr)

    def _create_order(self, domains: list[str]) -> messages.OrderResource:
        try:
            acme_client = self._open_session()
            orderr = acme_client.new_order(create_order_csr(domains))
        except CA_ERRORS as e:
            raise OrderCreationError(
                f"Order creation for {', '.join(domains)} failed"
            ) from e

        if orderr is None or orderr.body is None:
            raise OrderCreationError("The CA returned no order")
        self.account.registered = True
        return orderr

    def _select_challenge(
        self, authzr: messages.AuthorizationResource, challenge_type: str
    ) -> messages.ChallengeBody:
        for challb in authzr.body.challenges:
            if challb.chall.typ == challenge_type:
                return challb
        offered = [c.chall.typ for c in authzr.body.challenges]
        raise UnsupportedChallengeError(
            f"The CA offered {offered} for {authzr.body.identifier.value}, "
            f"not {challenge_type}"
        )

    def _complete_authorization(
        self, authzr: messages.AuthorizationResource, mode: ChallengeMode
    ) -> None:
        domain = authzr.body.identifier.value
        if authzr.body.status == messages.STATUS_VALID:
            logger.info(f"Authorization for {domain} is already valid")
            return

        challb = self._select_challenge(authzr, mode.challenge_type)
        if isinstance(mode, HttpChallengeMode):
            self._complete_http01_challenge(authzr, challb, mode.provider)
        elif isinstance(mode, DnsChallengeMode):
            self._complete_dns01_challenge(authzr, challb, mode.provider)
        else:
            raise UnsupportedChallengeError(f"Unknown challenge mode: {mode!r}")

    def _complete_http01_challenge(
        self,
        authzr: messages.AuthorizationResource,
        challb: messages.ChallengeBody,
        provider: HttpChallengeProvider,
    ) -> None:
        domain = authzr.body.identifier.value
        response, key_authz = challb.chall.response_and_validation(self._account_key)
        token = challb.chall.encode("token")

        logger.info(f"Publishing HTTP-01 challenge for {domain}")
        if not provider.prepare_challenge_for_validation(token, key_authz):
            raise ChallengeSetupError(
                f"Could not publish the HTTP-01 challenge for {domain}"
            )
        try:
            self._answer_and_poll(authzr, challb, response)
        finally:
            provider.cleanup_challenge_after_validation(token)

    def _complete_dns01_challenge(
        self,
        authzr: messages.AuthorizationResource,
        challb: messages.ChallengeBody,
        provider: DnsChallengeProvider,
    ) -> None:
        domain = authzr.body.identifier.value
        response, validation = challb.chall.response_and_validation(self._account_key)
        record_name = dns_record_name(domain)

        logger.info(f"Publishing DNS-01 TXT record {record_name}")
        if not provider.prepare_challenge_for_validation(record_name, validation):
            raise ChallengeSetupError(
                f"Could not publish the DNS-01 record {record_name}"
            )

        if self.settings.dns_propagation_delay > 0:
            logger.info(
                f"Waiting {self.settings.dns_propagation_delay}s for DNS propagation"
            )
            self._sleep(self.settings.dns_propagation_delay)

        self._answer_and_poll(authzr, challb, response)

    def _answer_and_poll(
        self,
        authzr: messages.AuthorizationResource,
        challb: messages.ChallengeBody,
        response: object,
    ) -> None:
        """Ask the CA to validate, then poll while the challenge is in flight.

        Raises:
            ChallengeValidationError: If the final status is not ``valid``
        """
        domain = authzr.body.identifier.value
        assert self._client is not None  # set by _create_order

        try:
            answer = self._client.answer_challenge(challb, response)
            status = answer.body.status
            problem = answer.body.error

            polls = 0
            while status in POLLING_STATUSES and polls < self.settings.poll_attempts:
                self._sleep(self.settings.poll_interval)
                authzr, _ = self._client.poll(authzr)
                polls += 1
                current = self._find_challenge(authzr, challb.chall.typ)
                status, problem = current.status, current.error
                logger.debug(
                    f"Challenge for {domain} is {_status_name(status)} "
                    f"after {polls} poll(s)"
                )
        except CA_ERRORS as e:
            raise ChallengeValidationError(
                f"Validation of {domain} failed", detail=format_exception_chain(e)
            ) from e

        if status != messages.STATUS_VALID:
            detail = getattr(problem, "detail", None)
            raise ChallengeValidationError(
                f"Challenge for {domain} ended as {_status_name(status)}",
                detail=detail,
            )
        logger.info(f"Challenge for {domain} is valid")

    def _find_challenge(
        self, authzr: messages.AuthorizationResource, challenge_type: str
    ) -> messages.ChallengeBody:
        for challb in authzr.body.challenges:
            if challb.chall.typ == challenge_type:
                return challb
        raise ChallengeValidationError(
            f"Challenge {challenge_type} vanished from the authorization for "
            f"{authzr.body.identifier.value}"
        )

    def retrieve_certificate(
        self,
        domains: list[str],
        output_path: str | Path,
        friendly_name: str,
        export_pem: bool = False,
        password: str | None = None,
    ) -> Result:
        """Finalize the verified order and package the certificate.

        Args:
            domains: Domain names of the verified order, primary first
            output_path: Bundle path without suffix; its directory must exist
            friendly_name: Display name stored in the bundle
            export_pem: Also write plaintext PEM files
            password: Bundle password; a random one is generated when missing
                or shorter than 16 characters

        Returns:
            Success with a ``CertificateBundle`` as data, or Error
        """
        if self._order is None or self._client is None:
            return self._failure(
                "Cannot retrieve certificate",
                PrecededByError("No verified order, domains must be validated first"),
            )

        domains = normalize_domains(domains)
        if set(domains) != set(self._order_domains):
            return self._failure(
                "Cannot retrieve certificate",
                CertificateRetrievalError(
                    f"Domains {domains} do not match the verified order "
                    f"{self._order_domains}"
                ),
            )

        if not password or len(password) < MIN_PASSWORD_LENGTH:
            if password:
                logger.warning(
                    f"Bundle password shorter than {MIN_PASSWORD_LENGTH} "
                    f"characters, generating one instead"
                )
            password = generate_password()

        try:
            private_key = generate_private_key(self.settings.key_size)
            csr_pem = create_csr(private_key, domains)
            deadline = datetime.now() + timedelta(seconds=self.settings.finalize_timeout)

            logger.info(f"Finalizing ACME order for {', '.join(domains)}")
            orderr = self._client.finalize_order(
                self._order.update(csr_pem=csr_pem), deadline
            )
            if not orderr.fullchain_pem:
                raise CertificateRetrievalError("The CA returned no certificate")

            certificate, chain = split_fullchain(orderr.fullchain_pem)
            bundle = write_bundle(
                Path(output_path),
                private_key,
                certificate,
                chain,
                friendly_name,
                password,
                export_pem=export_pem,
            )
        except CertificateRetrievalError as e:
            return self._failure("Could not retrieve certificate", e)
        except (*CA_ERRORS, OSError) as e:
            error = CertificateRetrievalError(
                f"Certificate retrieval for {', '.join(domains)} failed"
            )
            error.__cause__ = e
            return self._failure("Could not retrieve certificate", error)

        self._order = None
        logger.info(
            f"Certificate issued for {', '.join(domains)}, serial "
            f"{certificate.serial_number:X}, expires "
            f"{certificate.not_valid_after_utc.isoformat()}"
        )
        return Success(message="Certificate retrieved", data=bundle)

    def revoke_certificate(self, certificate: x509.Certificate, reason: int) -> Result:
        """Revoke ``certificate`` with an RFC 5280 reason code from 0 to 5.

        The reason is checked before any network call. There is no retry.
        """
        if not 0 <= reason <= MAX_REVOKE_REASON:
            return self._failure(
                "Cannot revoke certificate",
                RevocationError(
                    f"Revocation reason must be 0 to {MAX_REVOKE_REASON}, got {reason}"
                ),
            )

        serial = f"{certificate.serial_number:X}"
        logger.info(f"Revoking certificate {serial} with reason {reason}")
        try:
            acme_client = self._open_session()
            acme_client.revoke(certificate, reason)
        except CA_ERRORS as e:
            error = RevocationError(f"Revocation of certificate {serial} failed")
            error.__cause__ = e
            return self._failure("Could not revoke certificate", error)

        logger.info(f"Certificate {serial} revoked")
        return Success(message=f"Certificate {serial} revoked")
