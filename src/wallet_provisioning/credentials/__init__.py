"""Credential store — persisted token and wallet per identity."""

from __future__ import annotations

from wallet_provisioning.credentials.memory import MemoryCredentialStore
from wallet_provisioning.credentials.sql import SQLCredentialStore
from wallet_provisioning.credentials.store import (
    UNSET,
    CredentialRecord,
    CredentialStore,
    create_credential_store,
)

__all__ = [
    "UNSET",
    "CredentialRecord",
    "CredentialStore",
    "MemoryCredentialStore",
    "SQLCredentialStore",
    "create_credential_store",
]
