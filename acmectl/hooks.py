"""Post-issuance hook execution."""

import logging
import os
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

PASSWORD_ENV = "ACMECTL_PFX_PASSWORD"
PFX_ENV = "ACMECTL_PFX_PATH"


def run_post_issuance_script(
    script: str | Path, pfx_path: Path, password: str, timeout: int = 300
) -> bool:
    """Run ``<script> <pfx path>`` after a certificate was issued.

    The bundle password is passed in the ACMECTL_PFX_PASSWORD environment
    variable so it never shows up in process listings.

    Returns:
        True if the script exited with status 0
    """
    env = dict(os.environ)
    env[PFX_ENV] = str(pfx_path)
    env[PASSWORD_ENV] = password

    logger.info(f"Running post-issuance script {script}")
    try:
        result = subprocess.run(  # noqa: S603
            [str(script), str(pfx_path)],
            check=True,
            timeout=timeout,
            capture_output=True,
            text=True,
            env=env,
        )
    except subprocess.CalledProcessError as e:
        logger.error(
            f"Post-issuance script {script} failed with exit code {e.returncode}: "
            f"{(e.stderr or '').strip()}"
        )
        return False
    except subprocess.TimeoutExpired:
        logger.error(f"Post-issuance script {script} timed out after {timeout}s")
        return False
    except OSError as e:
        logger.error(f"Cannot run post-issuance script {script}: {e}")
        return False

    if result.stdout:
        logger.debug(f"Post-issuance script output: {result.stdout.strip()}")
    return True
