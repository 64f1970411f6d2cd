"""Engine — composition root."""

from __future__ import annotations

from wallet_provisioning.engine.client import ProvisioningEngine

__all__ = ["ProvisioningEngine"]
