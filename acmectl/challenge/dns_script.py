"""DNS-01 provider delegating record creation to an external script."""

import logging
import subprocess
from pathlib import Path

from .base import DnsChallengeProvider

logger = logging.getLogger(__name__)


class ScriptDnsProvider(DnsChallengeProvider):
    """Runs ``<script> <record name> <record value>``.

    A zero exit status means the record is published. The script must be
    idempotent: it may be called again with the same name.
    """

    def __init__(self, script: str | Path, timeout: int = 60):
        self.script = str(script)
        self.timeout = timeout

    def prepare_challenge_for_validation(self, name: str, value: str) -> bool:
        logger.info(f"DNS create: {name} via {self.script}")
        try:
            subprocess.run(  # noqa: S603
                [self.script, name, value],
                check=True,
                timeout=self.timeout,
                capture_output=True,
                text=True,
            )
        except subprocess.CalledProcessError as e:
            logger.error(
                f"DNS script {self.script} failed with exit code {e.returncode}: "
                f"{(e.stderr or '').strip()}"
            )
            return False
        except subprocess.TimeoutExpired:
            logger.error(f"DNS script {self.script} timed out after {self.timeout}s")
            return False
        except OSError as e:
            logger.error(f"Cannot run DNS script {self.script}: {e}")
            return False
        return True
