"""Custodial provider — HTTP client, response models and retry policy."""

from __future__ import annotations

from wallet_provisioning.provider.client import ProviderClient
from wallet_provisioning.provider.models import (
    AccessToken,
    ChallengeState,
    ChallengeStatus,
    UserBootstrap,
    Wallet,
    WalletRequestResult,
)
from wallet_provisioning.provider.retry import RetryPolicy

__all__ = [
    "AccessToken",
    "ChallengeState",
    "ChallengeStatus",
    "ProviderClient",
    "RetryPolicy",
    "UserBootstrap",
    "Wallet",
    "WalletRequestResult",
]
