"""wallet_provisioning — custodial wallet provisioning with challenge recovery."""

from __future__ import annotations

__version__ = "0.1.0"

from wallet_provisioning.engine.client import ProvisioningEngine
from wallet_provisioning.errors import (
    AlreadyInProgressError,
    FatalProvisioningError,
    ProvisioningTimeout,
    WalletProvisioningError,
)
from wallet_provisioning.provider.models import Wallet
from wallet_provisioning.provisioning.orchestrator import ProvisioningOrchestrator

__all__ = [
    "AlreadyInProgressError",
    "FatalProvisioningError",
    "ProvisioningEngine",
    "ProvisioningOrchestrator",
    "ProvisioningTimeout",
    "Wallet",
    "WalletProvisioningError",
    "__version__",
]
