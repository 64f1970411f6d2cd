"""Error types for wallet provisioning."""

from __future__ import annotations

from wallet_provisioning.errors.base import WalletProvisioningError
from wallet_provisioning.errors.provider_errors import (
    ProviderDataError,
    ProviderError,
    ProviderTimeoutError,
    ProviderTransportError,
)
from wallet_provisioning.errors.provisioning_errors import (
    AlreadyInProgressError,
    ChallengeTimeoutError,
    FatalProvisioningError,
    InvalidTransitionError,
    ProvisioningTimeout,
)

__all__ = [
    "AlreadyInProgressError",
    "ChallengeTimeoutError",
    "FatalProvisioningError",
    "InvalidTransitionError",
    "ProviderDataError",
    "ProviderError",
    "ProviderTimeoutError",
    "ProviderTransportError",
    "ProvisioningTimeout",
    "WalletProvisioningError",
]
