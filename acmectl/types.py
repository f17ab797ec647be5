"""
Type definitions for acmectl.

Contains the result objects, exit codes and exception hierarchy shared
across the application.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any


class ExitCode(IntEnum):
    """Process exit codes, stable for calling automation."""

    SUCCESS = 0
    ERROR = 1
    INCORRECT_PARAMETER = 2
    CONFIG_FAILED = 3
    BAD_CERTIFICATE_NAME = 4
    NO_DOMAINS = 5
    DOMAIN_CONFLICT = 6
    NO_EMAIL = 7
    REVOKE_REASON = 8
    MISSING_HTTP_DNS = 9
    REGISTRATION_FAILED = 10
    VALIDATION_FAILED = 11
    RETRIEVAL_FAILED = 12
    NOTHING_TO_DO = 13
    REVOCATION_FAILED = 14


# ACME revocation reason codes accepted by the CA (RFC 5280 0..5)
MAX_REVOKE_REASON = 5


# Structured result types for commands and orchestrator operations
@dataclass
class Success:
    message: str = ""
    data: Any | None = None
    original_exit_code: int | None = None


@dataclass
class Error:
    error: str
    exception: Exception | None = None
    recovery_suggestions: str | None = None
    original_exit_code: int | None = None


# Union type for command results
Result = Success | Error


class AcmeCtlError(Exception):
    """Base exception for acmectl failures."""

    pass


class RegistrationError(AcmeCtlError):
    """Account registration with the CA failed."""

    pass


class OrderCreationError(AcmeCtlError):
    """The CA did not return an order for the requested domains."""

    pass


class UnsupportedChallengeError(AcmeCtlError):
    """The CA did not offer the challenge type of the active provider."""

    pass


class ChallengeSetupError(AcmeCtlError):
    """A provider failed to publish a challenge proof."""

    pass


class ChallengeValidationError(AcmeCtlError):
    """The CA did not accept a challenge.

    ``detail`` carries the CA-reported problem detail when there is one.
    """

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.detail = detail


class PrecededByError(AcmeCtlError):
    """An operation was called before the step it depends on."""

    pass


class CertificateRetrievalError(AcmeCtlError):
    """Finalizing, downloading or writing the certificate failed."""

    pass


class RevocationError(AcmeCtlError):
    """Revoking a certificate failed or was rejected before the call."""

    pass


class ProviderUnavailableError(AcmeCtlError):
    """A challenge provider cannot be created (port in use, zone missing)."""

    pass


class UsageError(AcmeCtlError):
    """Options are missing or inconsistent."""

    pass
