"""Challenge ceremony — executor adapter and advisory classification."""

from __future__ import annotations

from wallet_provisioning.challenge.classification import (
    AdvisoryRules,
    classify_challenge_error,
)
from wallet_provisioning.challenge.executor import (
    AdvisoryWarning,
    ChallengeExecutorAdapter,
    ChallengeOutcome,
    Fatal,
    SecureChallengeModule,
    Success,
)

__all__ = [
    "AdvisoryRules",
    "AdvisoryWarning",
    "ChallengeExecutorAdapter",
    "ChallengeOutcome",
    "Fatal",
    "SecureChallengeModule",
    "Success",
    "classify_challenge_error",
]
