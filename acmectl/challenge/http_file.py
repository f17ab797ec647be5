"""
HTTP-01 provider that drops token files under a web server document root.
"""

import logging
import shutil
from pathlib import Path

from .base import HttpChallengeProvider

logger = logging.getLogger(__name__)

WELL_KNOWN_DIR = ".well-known"
CHALLENGE_DIR = "acme-challenge"
MARKER_FILE = "web.config"

# Lets IIS serve extension-less token files; ignored by other servers.
WEB_CONFIG = """<?xml version="1.0" encoding="UTF-8"?>
<configuration>
  <system.webServer>
    <staticContent>
      <mimeMap fileExtension="." mimeType="application/octet-stream" />
      <mimeMap fileExtension=".*" mimeType="application/octet-stream" />
    </staticContent>
    <handlers>
      <clear />
      <add name="StaticFile" path="*" verb="*" modules="StaticFileModule" resourceType="Either" requireAccess="Read" />
    </handlers>
  </system.webServer>
</configuration>
"""


class FileChallengeProvider(HttpChallengeProvider):
    """Serves challenges as static files from ``<webroot>/.well-known``.

    The provider remembers whether it created ``.well-known`` so teardown
    never removes a directory another application owns.
    """

    def __init__(self, webroot: str | Path):
        """Create the challenge directory and marker file.

        Args:
            webroot: Document root of the web server answering for the domains

        Raises:
            OSError: If the directories or marker file cannot be created
        """
        self.webroot = Path(webroot)
        self.well_known_dir = self.webroot / WELL_KNOWN_DIR
        self.challenge_dir = self.well_known_dir / CHALLENGE_DIR

        self.created_well_known = not self.well_known_dir.exists()
        self.challenge_dir.mkdir(parents=True, exist_ok=True)
        (self.challenge_dir / MARKER_FILE).write_text(WEB_CONFIG, encoding="utf-8")

        logger.debug(f"HTTP-01 challenge directory ready at {self.challenge_dir}")

    def prepare_challenge_for_validation(self, token: str, key_authz: str) -> bool:
        token_file = self.challenge_dir / token
        try:
            token_file.write_text(key_authz, encoding="ascii")
        except (OSError, UnicodeError) as e:
            logger.error(f"Could not write challenge file {token_file}: {e}")
            return False
        logger.debug(f"Wrote challenge file {token_file}")
        return True

    def cleanup_challenge_after_validation(self, token: str) -> None:
        token_file = self.challenge_dir / token
        try:
            token_file.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not delete challenge file {token_file}: {e}")

    def end_all_challenge_validations(self) -> None:
        try:
            (self.challenge_dir / MARKER_FILE).unlink(missing_ok=True)
            shutil.rmtree(self.challenge_dir, ignore_errors=False)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove {self.challenge_dir}: {e}")

        if not self.created_well_known:
            return
        try:
            self.well_known_dir.rmdir()
        except FileNotFoundError:
            pass
        except OSError as e:
            # Not empty: something else put files there meanwhile
            logger.warning(f"Could not remove {self.well_known_dir}: {e}")
