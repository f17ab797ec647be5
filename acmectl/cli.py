"""
Command-line interface for acmectl.

Each command resolves one certificate profile (by --name, or by the
primary --domain), merges command-line values into its stored options and
hands them to the workflow. Values given on the command line are stored in
the profile, so scheduled runs only need ``acmectl issue -n <name>``.
"""

import logging
import sys
from collections.abc import Callable
from typing import Any

import click

from . import __version__
from .challenge.factory import DNS_VALIDATORS
from .config import LETSENCRYPT_STAGING, Config, list_profiles
from .console import console_manager
from .logutil import init_logging
from .options import (
    AgentOptions,
    apply_overrides,
    load_options,
    resolve_profile,
    save_options,
)
from .types import Error, ExitCode, Result, Success
from .utils import handle_exception
from .workflow import reset_profile, run_enrollment, run_revocation, show_profile

logger = logging.getLogger(__name__)


def handle_result(result: Result, exit_on_error: bool = True) -> None:
    """Report a result on the console and exit with its code."""
    exit_code: int = 0
    if isinstance(result, Success):
        if result.message:
            console_manager.print_success(result.message)
        if isinstance(result.original_exit_code, int):
            exit_code = result.original_exit_code
        logger.debug(f"Success result, final exit_code: {exit_code}")
    elif isinstance(result, Error):
        console_manager.print_error(result.error)
        if result.recovery_suggestions:
            console_manager.print_note(result.recovery_suggestions)
        if isinstance(result.original_exit_code, int):
            exit_code = result.original_exit_code
        else:
            exit_code = ExitCode.ERROR
        logger.debug(f"Error result, final exit_code: {exit_code}")

    if exit_on_error:
        sys.exit(int(exit_code))


def profile_options() -> Callable:
    """Decorator for the options every command uses to pick a profile."""

    def decorator(f: Callable) -> Callable:
        options = [
            click.option(
                "-n",
                "--name",
                default=None,
                help="Certificate profile name (default: the primary domain)",
            ),
            click.option(
                "-d",
                "--domain",
                "domains",
                multiple=True,
                help="Domain to include; repeat for more, the first is primary",
            ),
            click.option("--debug", is_flag=True, help="Enable debug logging"),
        ]
        for option in reversed(options):
            f = option(f)
        return f

    return decorator


def _open_profile(
    name: str | None, domains: tuple[str, ...], debug: bool
) -> tuple[Config, AgentOptions] | None:
    result = resolve_profile(name, list(domains))
    if isinstance(result, Error):
        handle_result(result)
        return None
    config = result.data
    init_logging(config, debug=debug)
    return config, load_options(config)


@click.group(invoke_without_command=True)
@click.version_option(__version__, prog_name="acmectl")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """ACME certificate automation agent."""
    if ctx.invoked_subcommand is None:
        console_manager.print("acmectl: ACME certificate automation agent")
        console_manager.print("Use --help to see available commands")


@cli.command()
@profile_options()
@click.option("-s", "--service", "service_uri", default=None, help="ACME directory URL")
@click.option(
    "--staging", is_flag=True, help="Use the Let's Encrypt staging directory"
)
@click.option("-e", "--email", default=None, help="Account contact email")
@click.option("-w", "--webroot", default=None, help="Web server document root")
@click.option(
    "--standalone/--no-standalone",
    "-a",
    "standalone",
    default=None,
    help="Answer HTTP-01 challenges with the built-in listener",
)
@click.option("-l", "--listen-port", type=int, default=None, help="Listener port")
@click.option(
    "--export/--no-export",
    "-x",
    "export_pem",
    default=None,
    help="Keep the PFX and write PEM files next to it",
)
@click.option(
    "-t", "--renewal-days", type=int, default=None, help="Renew this many days early"
)
@click.option("--password", default=None, help="PFX password, at least 16 characters")
@click.option("--output-dir", default=None, help="Directory for issued files")
@click.option("--store-dir", default=None, help="Local certificate store directory")
@click.option(
    "--install/--no-install",
    "install_enabled",
    default=None,
    help="Install issued certificates into the local store",
)
@click.option("-f", "--hook-script", default=None, help="Run after issuance")
@click.option("--dns-type", type=click.Choice(DNS_VALIDATORS), default=None)
@click.option("--dns-url", default=None, help="acme-dns update URL")
@click.option("--dns-host", default=None, help="DNS server host")
@click.option("--dns-port", type=int, default=None, help="DNS server port")
@click.option("--dns-user", default=None, help="DNS user, TSIG key name or AWS key id")
@click.option("--dns-key", default=None, help="DNS API key, TSIG secret or AWS secret")
@click.option("--dns-password", default=None, help="DNS server password")
@click.option("--dns-subdomain", default=None, help="acme-dns subdomain")
@click.option("--dns-zone", default=None, help="DNS zone or Route 53 zone id")
@click.option("--dns-script", default=None, help="Script publishing TXT records")
@click.option("--force", is_flag=True, help="Issue even if renewal is not due")
def issue(
    name: str | None,
    domains: tuple[str, ...],
    debug: bool,
    staging: bool,
    force: bool,
    **overrides: Any,
) -> None:
    """Issue or renew a certificate when it is due."""
    opened = _open_profile(name, domains, debug)
    if opened is None:
        return
    config, options = opened

    if staging and not overrides.get("service_uri"):
        overrides["service_uri"] = LETSENCRYPT_STAGING
    overrides["domains"] = list(domains) or None
    for cli_name, option in (
        ("dns_type", "dns_validator"),
        ("dns_url", "dns_server_url"),
        ("dns_host", "dns_server_host"),
        ("dns_port", "dns_server_port"),
        ("dns_user", "dns_server_user"),
        ("dns_key", "dns_server_key"),
        ("dns_password", "dns_server_password"),
        ("dns_subdomain", "dns_server_subdomain"),
        ("dns_zone", "dns_server_zone"),
        ("dns_script", "dns_script_file"),
        ("password", "pfx_password"),
    ):
        overrides[option] = overrides.pop(cli_name)

    options = apply_overrides(options, overrides)
    try:
        save_options(config, options)
    except ValueError as e:
        handle_result(
            Error(
                error=f"Invalid option: {e}",
                exception=e,
                original_exit_code=ExitCode.INCORRECT_PARAMETER,
            )
        )
        return

    handle_result(run_enrollment(options, config, force=force))


@cli.command()
@profile_options()
@click.option(
    "-r", "--reason", type=int, required=True, help="Revocation reason code, 0 to 5"
)
def revoke(
    name: str | None, domains: tuple[str, ...], debug: bool, reason: int
) -> None:
    """Revoke the certificate issued for a profile."""
    opened = _open_profile(name, domains, debug)
    if opened is None:
        return
    config, options = opened
    handle_result(run_revocation(options, config, reason))


@cli.command()
@profile_options()
def show(name: str | None, domains: tuple[str, ...], debug: bool) -> None:
    """Show the stored configuration of a profile."""
    opened = _open_profile(name, domains, debug)
    if opened is None:
        return
    config, _ = opened
    console_manager.print_config_table(show_profile(config), title=config.name)
    console_manager.print(f"Stored in {config.config_file}")


@cli.command()
@profile_options()
@click.confirmation_option(prompt="Forget every stored setting of this profile?")
def reset(name: str | None, domains: tuple[str, ...], debug: bool) -> None:
    """Reset all stored settings of a profile."""
    opened = _open_profile(name, domains, debug)
    if opened is None:
        return
    config, _ = opened
    handle_result(reset_profile(config))


@cli.command()
@profile_options()
def init(name: str | None, domains: tuple[str, ...], debug: bool) -> None:
    """Write a profile with every setting present, for editing by hand."""
    opened = _open_profile(name, domains, debug)
    if opened is None:
        return
    config, options = opened
    save_options(config, options)
    handle_result(Success(message=f"Profile written to {config.config_file}"))


@cli.command(name="list")
def list_command() -> None:
    """List stored certificate profiles."""
    profiles = list_profiles()
    if not profiles:
        console_manager.print("No certificate profiles stored")
        return
    for profile in profiles:
        console_manager.print(profile)


def main() -> int:
    """Main entry point.

    Returns:
        int: Exit code (0 for success, non-zero for error)
    """
    try:
        init_logging()
        cli(standalone_mode=False)
        return 0
    except click.exceptions.Abort:
        console_manager.print_error("Aborted")
        return int(ExitCode.ERROR)
    except click.ClickException as e:
        e.show()
        return int(ExitCode.INCORRECT_PARAMETER)
    except Exception as e:
        handle_exception(e, exit_on_error=False)
        return int(ExitCode.ERROR)


if __name__ == "__main__":
    sys.exit(main())
