"""Tests for domain naming, password and error helpers."""

import subprocess
from unittest.mock import Mock, patch

import pytest

from acmectl.utils import (
    FRIENDLY_NAME_LENGTH,
    MIN_PASSWORD_LENGTH,
    domains_to_friendly_name,
    domains_to_host_id,
    format_exception_chain,
    generate_password,
    handle_exception,
    normalize_domains,
)


class TestNormalizeDomains:
    """Test domain list normalization."""

    def test_lowercases_strips_and_deduplicates(self) -> None:
        """Duplicates differing only in case collapse onto the first one."""
        assert normalize_domains([" Example.COM", "www.example.com", "example.com"]) == [
            "example.com",
            "www.example.com",
        ]

    def test_drops_empty_entries(self) -> None:
        assert normalize_domains(["", "  ", "a.example"]) == ["a.example"]


class TestHostId:
    """Test the storage key derived from a domain set."""

    def test_known_value(self) -> None:
        """The id matches the value recorded by earlier installations."""
        assert (
            domains_to_host_id(["test2.example.com", "test.example.com"])
            == "_6fb23d16b162f18a"
        )

    def test_order_independent(self) -> None:
        assert domains_to_host_id(["b.example", "a.example"]) == domains_to_host_id(
            ["a.example", "b.example"]
        )

    def test_case_independent(self) -> None:
        assert domains_to_host_id(["TEST.example.com", "test2.Example.com"]) == (
            "_6fb23d16b162f18a"
        )

    def test_shape(self) -> None:
        host_id = domains_to_host_id(["example.com"])
        assert host_id.startswith("_")
        assert len(host_id) == 17
        int(host_id[1:], 16)


class TestFriendlyName:
    """Test the bundle display name."""

    def test_strips_and_pads(self) -> None:
        assert domains_to_friendly_name(["test.example.com"]) == "testexamplecom00"

    def test_wildcard_and_truncation(self) -> None:
        name = domains_to_friendly_name(["*.very-long-subdomain.example.com"])
        assert name == "verylongsubdomai"
        assert len(name) == FRIENDLY_NAME_LENGTH
        assert "*" not in name and "-" not in name and "." not in name

    def test_uses_primary_domain_only(self) -> None:
        assert domains_to_friendly_name(["a.io", "zzzz.example.com"]) == (
            "aio0000000000000"
        )


class TestGeneratePassword:
    """Test bundle password generation."""

    def test_length_and_uniqueness(self) -> None:
        first, second = generate_password(), generate_password()
        assert len(first) == MIN_PASSWORD_LENGTH
        assert first != second


class TestFormatExceptionChain:
    """Test flattening of chained exceptions."""

    def test_single_exception(self) -> None:
        assert format_exception_chain(ValueError("bad value")) == "bad value"

    def test_joins_causes(self) -> None:
        try:
            try:
                raise ConnectionError("connection refused")
            except ConnectionError as inner:
                raise RuntimeError("request failed") from inner
        except RuntimeError as outer:
            message = format_exception_chain(outer)

        assert message == "request failed - connection refused"

    def test_repeated_messages_dropped(self) -> None:
        inner = OSError("timed out")
        outer = OSError("timed out")
        outer.__cause__ = inner
        assert format_exception_chain(outer) == "timed out"

    def test_empty_message_uses_type_name(self) -> None:
        assert format_exception_chain(KeyError()) == "KeyError"


class TestHandleException:
    """Test reporting of unexpected exceptions."""

    @patch("acmectl.utils.console_manager")
    def test_exits_by_default(self, mock_console: Mock) -> None:
        with pytest.raises(SystemExit) as exc_info:
            handle_exception(RuntimeError("boom"))
        assert exc_info.value.code == 1
        mock_console.print_error.assert_called_once_with("boom")

    @patch("acmectl.utils.console_manager")
    def test_file_not_found(self, mock_console: Mock) -> None:
        error = FileNotFoundError(2, "No such file", "/missing")
        handle_exception(error, exit_on_error=False)
        mock_console.print_error.assert_called_once_with("File not found: /missing")

    @patch("acmectl.utils.console_manager")
    def test_called_process_error_prints_stderr(self, mock_console: Mock) -> None:
        error = subprocess.CalledProcessError(3, ["hook"], stderr="it broke\n")
        handle_exception(error, exit_on_error=False)
        mock_console.error_console.print.assert_called_once_with("it broke\n", end="")
