"""
Utility functions for acmectl.

Contains reusable helpers for domain naming, error reporting and
password generation used across the application.
"""

import hashlib
import secrets
import subprocess
import sys
from typing import NoReturn

from .console import console_manager

APP_NAME = "acmectl"
FRIENDLY_NAME_LENGTH = 16
MIN_PASSWORD_LENGTH = 16

_FRIENDLY_NAME_STRIP = str.maketrans("", "", "*-:.")


def normalize_domains(domains: list[str]) -> list[str]:
    """Lowercase, strip and de-duplicate domains, keeping first-seen order."""
    normalized: list[str] = []
    for domain in domains:
        value = domain.strip().lower()
        if value and value not in normalized:
            normalized.append(value)
    return normalized


def domains_to_host_id(domains: list[str]) -> str:
    """Derive the storage key for a domain set.

    The id is independent of the order of ``domains``: it is ``_`` followed
    by the first 16 hex digits of the MD5 of the sorted names joined by ``-``.
    """
    joined = "-".join(sorted(normalize_domains(domains)))
    digest = hashlib.md5(joined.encode("utf-8"), usedforsecurity=False).hexdigest()
    return "_" + digest[:16].lower()


def domains_to_friendly_name(domains: list[str]) -> str:
    """Derive a fixed-length display name from the primary domain.

    Wildcard, dash, colon and dot characters are removed, then the name is
    right-padded with ``0`` and cut to 16 characters.
    """
    if not domains:
        base = APP_NAME
    else:
        base = domains[0].strip().lower().translate(_FRIENDLY_NAME_STRIP)
    return base.ljust(FRIENDLY_NAME_LENGTH, "0")[:FRIENDLY_NAME_LENGTH]


def generate_password() -> str:
    """Return a random 16-character hex password for certificate bundles."""
    return secrets.token_hex(MIN_PASSWORD_LENGTH // 2)


def format_exception_chain(e: BaseException) -> str:
    """Join the messages of an exception and its causes with `` - ``.

    Transport libraries tend to bury the useful message two or three
    levels down, so the whole chain is reported. Repeated messages are
    dropped.
    """
    messages: list[str] = []
    seen: set[int] = set()
    current: BaseException | None = e

    while current is not None and id(current) not in seen:
        seen.add(id(current))
        message = str(current).strip() or type(current).__name__
        if message not in messages:
            messages.append(message)
        current = current.__cause__ or current.__context__

    return " - ".join(messages)


def handle_exception(e: Exception, exit_on_error: bool = True) -> NoReturn | None:
    """Handle unexpected exceptions consistently.

    Args:
        e: The exception to handle
        exit_on_error: Whether to exit the program on error

    Returns:
        None if exit_on_error is False, otherwise does not return
    """
    if isinstance(e, subprocess.CalledProcessError):
        if e.stderr:
            console_manager.error_console.print(e.stderr, end="")
        else:
            console_manager.print_error(
                f"Command failed with exit code {e.returncode}"
            )
    elif isinstance(e, FileNotFoundError):
        console_manager.print_error(f"File not found: {e.filename}")
    elif isinstance(e, PermissionError):
        console_manager.print_error(f"Permission denied: {e.filename}")
    else:
        console_manager.print_error(format_exception_chain(e))

    if exit_on_error:
        sys.exit(1)
    return None
