"""Provisioning workflow — session state machine, guard and orchestrator."""

from __future__ import annotations

from wallet_provisioning.provisioning.guard import Lease, SessionGuard
from wallet_provisioning.provisioning.orchestrator import ProvisioningOrchestrator
from wallet_provisioning.provisioning.session import (
    TRANSITIONS,
    ProvisioningSession,
    ProvisioningState,
)

__all__ = [
    "TRANSITIONS",
    "Lease",
    "ProvisioningOrchestrator",
    "ProvisioningSession",
    "ProvisioningState",
    "SessionGuard",
]
