"""
Renewal decision policy.

Expiration dates are always stored in one locale-independent form,
ISO-8601 UTC with a ``Z`` suffix, so a record written on one host reads
the same on any other.
"""

import logging
from datetime import datetime, timedelta, timezone

logger = logging.getLogger(__name__)

DEFAULT_RENEWAL_DAYS = 30
EXPIRATION_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def format_expiration(expiration: datetime) -> str:
    """Serialize an expiration timestamp in the canonical format."""
    if expiration.tzinfo is None:
        expiration = expiration.replace(tzinfo=timezone.utc)
    return expiration.astimezone(timezone.utc).strftime(EXPIRATION_FORMAT)


def parse_expiration(value: str) -> datetime:
    """Parse a canonical expiration string into an aware UTC datetime.

    Raises:
        ValueError: If ``value`` is not in the canonical format
    """
    return datetime.strptime(value.strip(), EXPIRATION_FORMAT).replace(
        tzinfo=timezone.utc
    )


def needs_renewal(
    expiration: str | None,
    lookahead_days: int = DEFAULT_RENEWAL_DAYS,
    now: datetime | None = None,
) -> bool:
    """Decide whether a certificate should be (re)issued.

    Args:
        expiration: Stored expiration string, None if never issued
        lookahead_days: Renewal window in days before expiration
        now: Reference time, defaults to the current UTC time

    Returns:
        True when ``now + lookahead_days`` reaches the expiration, or when
        there is no usable stored expiration
    """
    if not expiration:
        logger.debug("No stored expiration date, certificate needs issuance")
        return True

    try:
        expires_at = parse_expiration(expiration)
    except ValueError:
        logger.warning(
            f"Stored expiration date {expiration!r} is not in the expected "
            f"format, treating certificate as due for renewal"
        )
        return True

    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    due = now + timedelta(days=lookahead_days) >= expires_at
    logger.debug(
        f"Certificate expires {format_expiration(expires_at)}, "
        f"renewal window {lookahead_days} days, due: {due}"
    )
    return due
