"""Tests for the webroot HTTP-01 provider."""

from pathlib import Path
from unittest.mock import patch

from acmectl.challenge.http_file import MARKER_FILE, WEB_CONFIG, FileChallengeProvider


class TestFileChallengeProvider:
    """Test token file publication and teardown."""

    def test_creates_challenge_dir_and_marker(self, tmp_path: Path) -> None:
        provider = FileChallengeProvider(tmp_path)

        assert provider.challenge_dir == tmp_path / ".well-known" / "acme-challenge"
        assert (provider.challenge_dir / MARKER_FILE).read_text() == WEB_CONFIG
        assert provider.created_well_known is True

    def test_prepare_and_cleanup(self, tmp_path: Path) -> None:
        provider = FileChallengeProvider(tmp_path)

        assert provider.prepare_challenge_for_validation("tok", "tok.thumb") is True
        assert (provider.challenge_dir / "tok").read_text() == "tok.thumb"

        provider.cleanup_challenge_after_validation("tok")
        assert not (provider.challenge_dir / "tok").exists()

        # Cleaning up twice is harmless
        provider.cleanup_challenge_after_validation("tok")

    def test_prepare_failure(self, tmp_path: Path) -> None:
        provider = FileChallengeProvider(tmp_path)

        with patch.object(Path, "write_text", side_effect=PermissionError("denied")):
            assert provider.prepare_challenge_for_validation("tok", "value") is False

    def test_teardown_removes_what_it_created(self, tmp_path: Path) -> None:
        provider = FileChallengeProvider(tmp_path)
        provider.prepare_challenge_for_validation("tok", "value")

        provider.end_all_challenge_validations()

        assert not (tmp_path / ".well-known").exists()
        assert tmp_path.exists()

    def test_existing_well_known_survives(self, tmp_path: Path) -> None:
        """A .well-known directory owned by the site is left in place."""
        well_known = tmp_path / ".well-known"
        well_known.mkdir()
        (well_known / "security.txt").write_text("Contact: mailto:sec@example.com")

        provider = FileChallengeProvider(tmp_path)
        assert provider.created_well_known is False
        provider.end_all_challenge_validations()

        assert not (well_known / "acme-challenge").exists()
        assert (well_known / "security.txt").exists()

    def test_teardown_twice(self, tmp_path: Path) -> None:
        provider = FileChallengeProvider(tmp_path)
        provider.end_all_challenge_validations()
        provider.end_all_challenge_validations()
        assert not (tmp_path / ".well-known").exists()
