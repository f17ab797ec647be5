from collections.abc import Generator
from pathlib import Path

import pytest

from acmectl.logutil import logger as acmectl_logger


@pytest.fixture(autouse=True)
def isolate_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Generator[None, None, None]:
    """Keep profiles and log handlers from leaking between tests."""
    monkeypatch.setenv("ACMECTL_CONFIG_DIR", str(tmp_path / "acmectl-home"))
    monkeypatch.delenv("ACMECTL_LOG_LEVEL", raising=False)
    yield
    for handler in acmectl_logger.handlers[:]:
        acmectl_logger.removeHandler(handler)
        handler.close()
