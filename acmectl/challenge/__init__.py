"""
Challenge proof providers.

HTTP-01 providers publish key authorizations over HTTP; DNS-01 providers
publish TXT records. ``build_challenge_mode`` picks the one for a run.
"""

from .base import (
    ChallengeMode,
    DnsChallengeMode,
    DnsChallengeProvider,
    HttpChallengeMode,
    HttpChallengeProvider,
)

__all__ = [
    "ChallengeMode",
    "DnsChallengeMode",
    "DnsChallengeProvider",
    "HttpChallengeMode",
    "HttpChallengeProvider",
]
